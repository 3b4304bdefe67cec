import json
import logging
from donaro.core.dependencies import get_notification_service
from donaro.services.notification_service import DONATION_FINALIZED, WITHDRAWAL_PROCESSED

# We need to configure logging here since workers are entry points
from donaro.core.logging_config import configure_logging
configure_logging()

logger = logging.getLogger(__name__)

def handle_job(job: dict, notification_service=None):
    notification_service = notification_service or get_notification_service()

    if job.get("type") == DONATION_FINALIZED:
        notification_service.send_donation_finalized(
            email_to=job['email_to'],
            donation_id=job['donation_id'],
            title=job['title'],
            status=job['status'],
            credits=job['credits']
        )
    elif job.get("type") == WITHDRAWAL_PROCESSED:
        notification_service.send_withdrawal_processed(
            email_to=job['email_to'],
            withdrawal_id=job['withdrawal_id'],
            amount=job['amount'],
            status=job['status']
        )
    else:
        logger.warning(f"Received unhandled notification type: {job.get('type')}")

def lambda_handler(event, context):
    logger.info(f"Received {len(event['Records'])} notification jobs.")

    for record in event['Records']:
        try:
            handle_job(json.loads(record['body']))
        except Exception as e:
            logger.error(f"CRITICAL: Failed to process message {record['messageId']}. Error: {e}")
            raise

    return {'statusCode': 200}

import json
import logging
from botocore.exceptions import BotoCoreError, ClientError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

logger = logging.getLogger(__name__)

DONATION_FINALIZED = "DONATION_FINALIZED"
WITHDRAWAL_PROCESSED = "WITHDRAWAL_PROCESSED"


class NotificationPublisher:
    """Queues notification jobs on SQS for the notification worker."""

    def __init__(self, sqs_client, queue_url: str | None):
        self.sqs_client = sqs_client
        self.queue_url = queue_url

    def publish(self, job: dict) -> bool:
        if not self.queue_url or not job.get("email_to"):
            return False

        # The ledger change is already committed; a lost notification is only logged
        try:
            self.sqs_client.send_message(
                QueueUrl=self.queue_url,
                MessageBody=json.dumps(job)
            )
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"SQS Error queueing {job.get('type')} notification: {e}")
            return False


class NotificationService:
    def __init__(self, client, from_email: str):
        self.ses_client = client
        self.from_email = from_email

    @retry(
        wait=wait_exponential(multiplier=1, min=1, max=4),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type(ClientError)
    )
    def _send(self, email_to: str, subject: str, body_text: str):
        self.ses_client.send_email(
            Source=self.from_email,
            Destination={'ToAddresses': [email_to]},
            Message={
                'Subject': {'Data': subject},
                'Body': {'Text': {'Data': body_text}}
            }
        )

    def send_donation_finalized(self, email_to: str, donation_id: str, title: str, status: str, credits: int):
        if status == "approved":
            subject = "Your donation was approved!"
            body_text = (
                f"Hello,\n\n"
                f"Your donation \"{title}\" has been verified and approved.\n"
                f"{credits} credits were added to your balance.\n"
                f"Donation ID: {donation_id}\n\n"
                f"Thank you for giving back!"
            )
        else:
            subject = "Your donation could not be verified"
            body_text = (
                f"Hello,\n\n"
                f"Your donation \"{title}\" was reviewed and could not be approved.\n"
                f"Donation ID: {donation_id}\n\n"
                f"Please contact support if you believe this is a mistake."
            )

        logger.info(f"Sending donation {status} email for {donation_id}")
        self._send(email_to, subject, body_text)

    def send_withdrawal_processed(self, email_to: str, withdrawal_id: str, amount: int, status: str):
        if status == "processed":
            subject = "Your withdrawal has been processed"
            body_text = (
                f"Hello,\n\n"
                f"Your withdrawal of {amount} credits has been processed.\n"
                f"Withdrawal ID: {withdrawal_id}"
            )
        else:
            subject = "Your withdrawal request was rejected"
            body_text = (
                f"Hello,\n\n"
                f"Your withdrawal request of {amount} credits was rejected.\n"
                f"Withdrawal ID: {withdrawal_id}\n\n"
                f"Please contact support for details."
            )

        logger.info(f"Sending withdrawal {status} email for {withdrawal_id}")
        self._send(email_to, subject, body_text)

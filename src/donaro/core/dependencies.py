import boto3
from datetime import timedelta
from functools import lru_cache

from donaro.core.config import get_settings
from donaro.data_access.dynamodb import DynamoDataAccess
from donaro.services.donation_service import DonationService
from donaro.services.fraud import FraudDetector
from donaro.services.notification_service import NotificationPublisher, NotificationService
from donaro.services.user_service import UserService
from donaro.services.withdrawal_service import WithdrawalService


# Each factory builds its object once per process; FastAPI routes receive them
# through Depends and tests swap them with app.dependency_overrides.

@lru_cache()
def get_boto_session() -> boto3.Session:
    settings = get_settings()
    return boto3.Session(
        region_name=settings.AWS_REGION,
        profile_name=settings.AWS_PROFILE
    )

@lru_cache()
def get_data_access() -> DynamoDataAccess:
    session = get_boto_session()
    dynamo_resource = session.resource('dynamodb')
    table = dynamo_resource.Table(get_settings().DYNAMODB_TABLE_NAME)
    return DynamoDataAccess(table=table)

@lru_cache()
def get_notification_publisher() -> NotificationPublisher:
    session = get_boto_session()
    return NotificationPublisher(
        sqs_client=session.client('sqs'),
        queue_url=get_settings().NOTIFICATION_QUEUE_URL
    )

@lru_cache()
def get_notification_service() -> NotificationService:
    session = get_boto_session()
    ses_client = session.client('ses')
    return NotificationService(
        client=ses_client,
        from_email=get_settings().SES_FROM_EMAIL
    )

@lru_cache()
def get_fraud_detector() -> FraudDetector:
    return FraudDetector(
        history_provider=get_data_access(),
        history_window=timedelta(hours=get_settings().FRAUD_HISTORY_WINDOW_HOURS)
    )

@lru_cache()
def get_user_service() -> UserService:
    return UserService(data_access=get_data_access())

@lru_cache()
def get_donation_service() -> DonationService:
    return DonationService(
        data_access=get_data_access(),
        fraud_detector=get_fraud_detector(),
        publisher=get_notification_publisher()
    )

@lru_cache()
def get_withdrawal_service() -> WithdrawalService:
    return WithdrawalService(
        data_access=get_data_access(),
        refund_rejected=get_settings().REFUND_REJECTED_WITHDRAWALS,
        publisher=get_notification_publisher()
    )

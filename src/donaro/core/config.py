from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

class Settings(BaseSettings):

    AWS_REGION: str
    AWS_PROFILE: str | None = None
    DYNAMODB_TABLE_NAME: str

    NOTIFICATION_QUEUE_URL: str | None = None
    SES_FROM_EMAIL: str | None = None

    ADMIN_GROUP: str = "admin"
    API_ROOT_PATH: str = "/Prod"

    FRAUD_HISTORY_WINDOW_HOURS: int = 24 * 7
    # Rejected withdrawals keep their debit unless this is enabled
    REFUND_REJECTED_WITHDRAWALS: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

@lru_cache()
def get_settings() -> Settings:
    return Settings()

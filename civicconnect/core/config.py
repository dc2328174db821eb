import json
import secrets
from typing import Annotated, Any, List, Optional, Union

from pydantic import BaseModel, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class NotificationConfig(BaseModel):
    """
    Delivery credentials for the email and SMS channels.

    Built once from Settings and handed to the dispatcher.
    """
    mail_server: Optional[str] = None
    mail_port: int = 587
    mail_username: Optional[str] = None
    mail_password: Optional[str] = None
    mail_from_address: Optional[str] = None
    mail_from_name: str = "CivicConnect"
    mail_use_tls: bool = True
    mail_timeout: float = 10.0

    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def email_enabled(self) -> bool:
        return bool(self.mail_server and self.mail_username and self.mail_password)

    @property
    def sms_enabled(self) -> bool:
        return bool(
            self.twilio_account_sid and self.twilio_auth_token and self.twilio_phone_number
        )


class Settings(BaseSettings):
    PROJECT_NAME: str = "CivicConnect"
    API_PREFIX: str = "/api"

    # Security
    SECRET_KEY: str = secrets.token_urlsafe(32)
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 2
    JWT_ALGORITHM: str = "HS256"

    # CORS
    CORS_ORIGINS: Annotated[List[str], NoDecode] = []

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, str):
            return json.loads(v)
        elif isinstance(v, list):
            return v
        raise ValueError(v)

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "civicconnect"
    POSTGRES_PORT: int = 5432
    DATABASE_URI: Optional[str] = None

    @field_validator("DATABASE_URI", mode="before")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str], info: ValidationInfo) -> Any:
        if isinstance(v, str) and v:
            return v
        values = info.data
        return (
            f"postgresql+asyncpg://{values.get('POSTGRES_USER')}:{values.get('POSTGRES_PASSWORD')}"
            f"@{values.get('POSTGRES_SERVER')}:{values.get('POSTGRES_PORT')}"
            f"/{values.get('POSTGRES_DB') or ''}"
        )

    # Initial admin account
    FIRST_ADMIN_EMAIL: str = "admin@civicconnect.local"
    FIRST_ADMIN_PASSWORD: str = "Admin12345"
    FIRST_ADMIN_NAME: str = "CivicConnect Admin"

    # Uploads
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_SIZE: int = 5 * 1024 * 1024

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = "civicconnect.log"

    # Email
    MAIL_SERVER: Optional[str] = None
    MAIL_PORT: int = 587
    MAIL_USERNAME: Optional[str] = None
    MAIL_PASSWORD: Optional[str] = None
    MAIL_FROM_ADDRESS: Optional[str] = None
    MAIL_FROM_NAME: str = "CivicConnect"
    MAIL_USE_TLS: bool = True
    MAIL_TIMEOUT: float = 10.0

    # SMS
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_PHONE_NUMBER: Optional[str] = None

    NOTIFICATIONS_DEFAULT_LIMIT: int = 50

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        extra="allow",
        validate_default=True,
    )

    def notification_config(self) -> NotificationConfig:
        return NotificationConfig(
            mail_server=self.MAIL_SERVER,
            mail_port=self.MAIL_PORT,
            mail_username=self.MAIL_USERNAME,
            mail_password=self.MAIL_PASSWORD,
            mail_from_address=self.MAIL_FROM_ADDRESS or self.MAIL_USERNAME,
            mail_from_name=self.MAIL_FROM_NAME,
            mail_use_tls=self.MAIL_USE_TLS,
            mail_timeout=self.MAIL_TIMEOUT,
            twilio_account_sid=self.TWILIO_ACCOUNT_SID,
            twilio_auth_token=self.TWILIO_AUTH_TOKEN,
            twilio_phone_number=self.TWILIO_PHONE_NUMBER,
        )


settings = Settings()

import os
from pydantic_settings import BaseSettings
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    """Configuration settings for the application."""
    PROJECT_NAME: str = "ReadyPing Backend"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    # storage: "mongo" for the document store, "memory" for the demo store
    STORAGE_BACKEND: str = "mongo"
    MONGO_URI: str = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    DB_NAME: str = os.getenv("DB_NAME", "readyping")

    SECRET_KEY: str = os.getenv("SECRET_KEY", "MySecretKey@123")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7

    FRONTEND_URL: str = "http://localhost:8080"

    # WhatsApp gateway, demo mode when the credentials are missing
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_WHATSAPP_NUMBER: Optional[str] = None
    DEFAULT_COUNTRY_CODE: str = "1"
    BULK_SEND_INTERVAL_SECONDS: float = 1.0

    OTP_TTL_MINUTES: int = 5
    # returns the OTP in the send-otp response, no SMS channel exists yet
    OTP_ECHO_ENABLED: bool = True

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def twilio_configured(self) -> bool:
        return bool(self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN and self.TWILIO_WHATSAPP_NUMBER)

settings = Settings()

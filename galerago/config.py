# galerago/config.py
from typing import Optional

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    DATABASE_URL: str
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: float = 60  # supports decimal durations

    # Booking status emails are skipped when SMTP is not configured
    SMTP_EMAIL: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587

    FRONTEND_BASE_URL: str = "http://localhost:3000"

    BOOKING_REFERENCE_PREFIX: str = "GG"
    PAYMENT_REFERENCE_PREFIX: str = "PAY"

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()

"""
Application settings and configuration
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


class Settings:
    """Process-wide configuration, read from the environment once at start."""

    def __init__(self):
        # Application
        self.APP_NAME = os.getenv("APP_NAME", "SPORTI Club Bookings")
        self.VERSION = "1.0.0"
        self.DEBUG = _env_bool("DEBUG", "False")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

        # Database
        self.MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
        self.DATABASE_NAME = os.getenv("DATABASE_NAME", "sporti_db")
        # Multi-document transactions need a replica set
        self.MONGO_TRANSACTIONS = _env_bool("MONGO_TRANSACTIONS", "False")

        # Security
        self.SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
        self.ALGORITHM = "HS256"
        self.ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24  # 24 hours

        # CORS
        self.ALLOWED_ORIGINS = [
            origin.strip()
            for origin in os.getenv(
                "ALLOWED_ORIGINS",
                "http://localhost:3000,http://localhost:5173,http://127.0.0.1:5173",
            ).split(",")
            if origin.strip()
        ]

        # Pagination
        self.DEFAULT_PAGE_SIZE = 10
        self.MAX_PAGE_SIZE = 100

        # Dates are stored as naive UTC and rendered in the club's zone
        self.TIMEZONE = os.getenv("TIMEZONE", "Asia/Kolkata")

        # Per-resource booking lock
        self.RESOURCE_LOCK_TTL_SECONDS = float(os.getenv("RESOURCE_LOCK_TTL_SECONDS", "30"))
        self.RESOURCE_LOCK_WAIT_SECONDS = float(os.getenv("RESOURCE_LOCK_WAIT_SECONDS", "5"))
        self.RESOURCE_LOCK_POLL_SECONDS = float(os.getenv("RESOURCE_LOCK_POLL_SECONDS", "0.05"))

        # Email (SendGrid)
        self.SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
        self.SENDGRID_API_URL = os.getenv("SENDGRID_API_URL", "https://api.sendgrid.com/v3/mail/send")
        self.EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "noreply@sporti.club")
        self.EMAIL_FROM_NAME = os.getenv("EMAIL_FROM_NAME", "SPORTI Club")

        # SMS gateway
        self.SMS_API_URL = os.getenv("SMS_API_URL")
        self.SMS_API_KEY = os.getenv("SMS_API_KEY")
        self.SMS_SENDER_ID = os.getenv("SMS_SENDER_ID", "SPORTI")

        self.NOTIFICATION_TIMEOUT_SECONDS = float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "10"))


settings = Settings()

"""
Application configuration. Loads from environment variables.
Secrets and sensitive config must never be hardcoded.
"""

import os

from dotenv import load_dotenv

load_dotenv()
from functools import lru_cache


@lru_cache(maxsize=1)
def get_settings() -> "Settings":
    """Return cached settings instance."""
    return Settings()


class Settings:
    """Application settings loaded from environment."""

    # App
    app_name: str = "PMS"
    debug: bool = False
    frontend_url: str = "http://localhost:5173"

    # Database (postgresql+psycopg for psycopg3; sqlite accepted for tests)
    database_url: str = "postgresql+psycopg://localhost:5432/pms_dev"
    db_connect_timeout: int = 10  # seconds

    # Security
    secret_key: str = ""

    # Comments
    comment_max_length: int = 2000
    comment_max_attachments: int = 3
    upload_root: str = "."  # attachment file_url values are resolved under this directory

    # Notifications
    notification_email_enabled: bool = True

    # SMTP / Email
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = ""

    def __init__(self) -> None:
        self.app_name = os.getenv("APP_NAME", self.app_name)
        self.debug = os.getenv("DEBUG", "false").lower() == "true"
        self.frontend_url = os.getenv("FRONTEND_URL", self.frontend_url)

        default_user = os.getenv("PGUSER") or os.getenv("USER") or "postgres"
        default_url = (
            f"postgresql+psycopg://{default_user}:"
            f"{os.getenv('PGPASSWORD', '')}@"
            f"{os.getenv('PGHOST', 'localhost')}:"
            f"{os.getenv('PGPORT', '5432')}/"
            f"{os.getenv('PGDATABASE', 'pms_dev')}"
        )
        raw_url = os.getenv("DATABASE_URL", default_url)
        # Ensure psycopg3 driver if URL uses generic postgresql://
        if raw_url.startswith("postgresql://") and not raw_url.startswith("postgresql+psycopg"):
            raw_url = raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
        self.database_url = raw_url
        self.db_connect_timeout = int(os.getenv("DB_CONNECT_TIMEOUT", str(self.db_connect_timeout)))

        self.secret_key = os.getenv("SECRET_KEY", "")

        self.comment_max_length = int(
            os.getenv("COMMENT_MAX_LENGTH", str(self.comment_max_length))
        )
        self.comment_max_attachments = int(
            os.getenv("COMMENT_MAX_ATTACHMENTS", str(self.comment_max_attachments))
        )
        self.upload_root = os.getenv("UPLOAD_ROOT", self.upload_root)

        self.notification_email_enabled = (
            os.getenv("NOTIFICATION_EMAIL_ENABLED", "true").lower() == "true"
        )

        self.smtp_host = os.getenv("SMTP_HOST", "")
        self.smtp_port = int(os.getenv("SMTP_PORT", "587"))
        self.smtp_user = os.getenv("SMTP_USER", "")
        self.smtp_password = os.getenv("SMTP_PASSWORD", "")
        self.smtp_from = os.getenv("SMTP_FROM", "")

"""Environment-driven settings and logging setup."""
import logging
import os


def normalize_database_url(url: str) -> str:
    """Render/Heroku hand out postgres:// but SQLAlchemy needs postgresql://."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


# PostgreSQL in production (from DATABASE_URL), SQLite locally
DATABASE_URL = normalize_database_url(os.getenv("DATABASE_URL", "sqlite:///./takeon.db"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Root directory for the local blob store
BLOB_ROOT = os.getenv("BLOB_ROOT", "./blobs")

# 10MB upload ceiling for take-on documents
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

ALLOWED_MIME_TYPES = ("application/pdf", "image/jpeg", "image/png")

CORS_ALLOW_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",")
    if origin.strip()
]

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(level=level, format=LOG_FORMAT)

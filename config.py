"""Configuration module for the storefront application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    TESTING = False

    # Session cookie (holds only the device id)
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 60 * 60 * 24 * 30  # 30 days

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'ozo')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'ozo')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'ozo')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Pricing rules
    FREE_DELIVERY_THRESHOLD = int(os.getenv('FREE_DELIVERY_THRESHOLD', '199'))
    DELIVERY_FEE = int(os.getenv('DELIVERY_FEE', '40'))
    DEFAULT_MAX_ORDER_QTY = int(os.getenv('DEFAULT_MAX_ORDER_QTY', '10'))
    ESTIMATED_DELIVERY_MINUTES = int(os.getenv('ESTIMATED_DELIVERY_MINUTES', '30'))

    # Auth sessions
    AUTH_SESSION_TTL = int(os.getenv('AUTH_SESSION_TTL', str(60 * 60 * 24 * 7)))  # 7 days
    PASSWORD_RESET_TTL = int(os.getenv('PASSWORD_RESET_TTL', '3600'))
    PASSWORD_RESET_URL = os.getenv('PASSWORD_RESET_URL', 'http://localhost:5173/reset-password')

    # Email configuration
    MAIL_SERVER = os.getenv('SMTP_HOST', 'smtp.gmail.com')
    MAIL_PORT = int(os.getenv('SMTP_PORT', 587))
    MAIL_USE_TLS = True
    MAIL_USE_SSL = False
    MAIL_USERNAME = os.getenv('SMTP_USER') or ''
    MAIL_PASSWORD = os.getenv('SMTP_PASSWORD') or ''
    MAIL_DEFAULT_SENDER = (
        os.getenv('SMTP_FROM')
        or MAIL_USERNAME
        or 'no-reply@localhost'
    )
    MAIL_SUPPRESS_SEND = False

    # Object Storage Configuration (MinIO/S3) for product and category images
    S3_ENDPOINT = os.getenv('S3_ENDPOINT', 'http://minio:9000')
    S3_ACCESS_KEY = os.getenv('S3_ACCESS_KEY', 'minioadmin')
    S3_SECRET_KEY = os.getenv('S3_SECRET_KEY', 'minioadmin')
    S3_BUCKET = os.getenv('S3_BUCKET', 'ozo-images')
    S3_REGION = os.getenv('S3_REGION', 'us-east-1')
    S3_PUBLIC_URL = os.getenv('S3_PUBLIC_URL', 'http://localhost:9000')

    # Upload constraints
    MAX_UPLOAD_SIZE = int(os.getenv('MAX_UPLOAD_SIZE', 2 * 1024 * 1024))  # 2MB
    ALLOWED_MIME_TYPES = {
        'image/jpeg',
        'image/png',
        'image/gif',
        'image/webp'
    }

    # Redis: catalog cache and device-local state
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    CACHE_CATEGORIES_TTL = int(os.getenv('CACHE_CATEGORIES_TTL', '300'))
    CACHE_OFFERS_TTL = int(os.getenv('CACHE_OFFERS_TTL', '300'))
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'ozo')
    LOCAL_STATE_TTL = int(os.getenv('LOCAL_STATE_TTL', str(60 * 60 * 24 * 30)))


class TestingConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    DEBUG = False
    ENV = 'testing'
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ECHO = False
    CACHE_ENABLED = False
    MAIL_SUPPRESS_SEND = True

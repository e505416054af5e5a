import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


class Config:
    # Provide a safe development fallback to avoid 500s when SECRET_KEY is missing.
    SECRET_KEY = os.getenv('SECRET_KEY') or 'dev-secret-key-change-me'
    DATABASE_URL = os.getenv('DATABASE_URL')
    SQLALCHEMY_DATABASE_URI = DATABASE_URL or 'sqlite:///patronat.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SESSION_COOKIE_SECURE = _env_flag('SESSION_COOKIE_SECURE', 'true')
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    REMEMBER_COOKIE_SECURE = SESSION_COOKIE_SECURE
    REMEMBER_COOKIE_HTTPONLY = True
    WTF_CSRF_TIME_LIMIT = None

    # Outgoing mail. With MAIL_ENABLED off messages are logged instead of sent.
    MAIL_ENABLED = _env_flag('MAIL_ENABLED')
    SMTP_HOST = os.getenv('SMTP_HOST')
    SMTP_PORT = int(os.getenv('SMTP_PORT', 587))
    SMTP_USERNAME = os.getenv('SMTP_USERNAME')
    SMTP_PASSWORD = os.getenv('SMTP_PASSWORD')
    SMTP_USE_TLS = _env_flag('SMTP_USE_TLS', 'true')
    FROM_EMAIL = os.getenv('FROM_EMAIL', SMTP_USERNAME)
    FROM_NAME = os.getenv('FROM_NAME', 'Patronat de Festes')
    CONTACT_RECIPIENT = os.getenv('CONTACT_RECIPIENT', FROM_EMAIL)

    # Bulk email endpoint used by the notification client
    BULK_EMAIL_URL = os.getenv('BULK_EMAIL_URL', 'http://localhost:5000/sendBulkEmails')
    BULK_EMAIL_TIMEOUT = float(os.getenv('BULK_EMAIL_TIMEOUT', 30))

    # Object storage
    UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER')
    MAX_UPLOAD_SIZE = int(os.getenv('MAX_UPLOAD_SIZE', 5 * 1024 * 1024))

    # Store access policy
    STORE_RETRY_ATTEMPTS = int(os.getenv('STORE_RETRY_ATTEMPTS', 20))
    STORE_RETRY_DELAY = float(os.getenv('STORE_RETRY_DELAY', 1.5))
    FANOUT_CONCURRENCY = int(os.getenv('FANOUT_CONCURRENCY', 8))
    CREW_BATCH_LIMIT = int(os.getenv('CREW_BATCH_LIMIT', 450))

    RATELIMIT_ENABLED = _env_flag('RATELIMIT_ENABLED', 'true')
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')

    DEFAULT_LANGUAGE = os.getenv('DEFAULT_LANGUAGE', 'es')

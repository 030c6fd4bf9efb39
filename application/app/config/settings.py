import os
from dotenv import load_dotenv
load_dotenv()

class AuthConfigs:
    def __init__(self):

        # Environment settings
        self.APPLICATION_ENVIRONMENT = os.getenv("APPLICATION_ENVIRONMENT", "UAT")
        self.APP_NAME = os.getenv('APP_NAME', 'chatab-auth')
        self.APP_VERSION = os.getenv('APP_VERSION', '1.0.0')
        self.DEBUG = os.getenv("DEBUG", "true").lower() == "true"
        self.PORT = int(os.getenv("PORT", "5000"))

        # Redis settings
        self.REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")
        self.REDIS_CACHE_DB = int(os.getenv("REDIS_CACHE_DB", "3"))

        # Firebase settings
        self.FIREBASE_CREDENTIALS_PATH = os.getenv("FIREBASE_CREDENTIALS_PATH", "serviceAccountKey.json")
        self.FIREBASE_DATABASE_URL = os.getenv("FIREBASE_DATABASE_URL", "https://chatab-1444d-default-rtdb.firebaseio.com")
        self.FIREBASE_APP_NAME = os.getenv("FIREBASE_APP_NAME", "auth")
        self.FIREBASE_USERS_PATH = os.getenv("FIREBASE_USERS_PATH", "users")
        self.FIREBASE_EMAIL_INDEX_PATH = os.getenv("FIREBASE_EMAIL_INDEX_PATH", "user_emails")

        # JWT settings
        self.JWT_SECRET = os.getenv("JWT_SECRET", "")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRY_DAYS = int(os.getenv("JWT_EXPIRY_DAYS", "7"))
        self.EMAIL_VERIFICATION_TOKEN_MINUTES = int(os.getenv("EMAIL_VERIFICATION_TOKEN_MINUTES", "15"))
        self.REQUIRE_EMAIL_VERIFICATION = os.getenv("REQUIRE_EMAIL_VERIFICATION", "true").lower() == "true"

        # Password hashing
        self.BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "10"))

        # OTP settings
        self.OTP_LENGTH = int(os.getenv("OTP_LENGTH", "6"))
        self.OTP_EXPIRY_SECONDS = int(os.getenv("OTP_EXPIRY_SECONDS", "300"))
        self.OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", "0"))
        self.OTP_STORE_BACKEND = os.getenv("OTP_STORE_BACKEND", "memory").lower()
        self.OTP_REAP_INTERVAL_SECONDS = int(os.getenv("OTP_REAP_INTERVAL_SECONDS", "60"))
        # How long a redis OTP key outlives its expiry, so "expired" stays distinguishable from "not found"
        self.OTP_RETENTION_SECONDS = int(os.getenv("OTP_RETENTION_SECONDS", "3600"))

        # SMTP settings
        self.SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
        self.SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
        self.SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
        self.SMTP_TIMEOUT = int(os.getenv("SMTP_TIMEOUT", "10"))
        self.EMAIL_USER = os.getenv("EMAIL_USER", "")
        self.EMAIL_PASS = os.getenv("EMAIL_PASS", "")
        self.EMAIL_FROM_NAME = os.getenv("EMAIL_FROM_NAME", "ChatAB Team")

        # CORS
        self.ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "")

        # Sentry settings
        self.SENTRY_ENABLED = os.getenv("SENTRY_ENABLED", "false").lower() == "true"
        self.SENTRY_DSN = os.getenv("SENTRY_DSN", "")
        self.ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
        self.SENTRY_RELEASE = os.getenv("SENTRY_RELEASE", "chatab-auth@1.0.0")
        self.SENTRY_TRACES_SAMPLE_RATE = os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1")
        self.SENTRY_PROFILES_SAMPLE_RATE = os.getenv("SENTRY_PROFILES_SAMPLE_RATE", "0.1")

        # Logging Core settings
        self.FIREHOSE_ENABLED = os.getenv("FIREHOSE_ENABLED", "false").lower() == "true"
        self.AUDIT_LOGGING_ENABLED = os.getenv("AUDIT_LOGGING_ENABLED", "false").lower() == "true"
        self.CAPTURE_RESPONSE_BODY = os.getenv("CAPTURE_RESPONSE_BODY", "false").lower() == "true"
        self.LOG_DEBUG_PRINTS = os.getenv("LOG_DEBUG_PRINTS", "false").lower() == "true"
        self.LOG_DIR = os.getenv("LOG_DIR", "logs")

        # Logging Stream Names
        self.APP_LOGS_STREAM_NAME = os.getenv("APP_LOGS_STREAM_NAME", "")
        self.AUDIT_LOGS_STREAM_NAME = os.getenv("AUDIT_LOGS_STREAM_NAME", "")
        self.LOG_BUFFER_TIMEOUT = int(os.getenv("LOG_BUFFER_TIMEOUT", "600"))

        # Logging Buffer Sizes
        self.APP_LOGS_CAPACITY = int(os.getenv("APP_LOGS_CAPACITY", "50"))
        self.AUDIT_LOGS_CAPACITY = int(os.getenv("AUDIT_LOGS_CAPACITY", "50"))

        # Firehose settings
        self.FIREHOSE_REGION_NAME = os.getenv("FIREHOSE_REGION_NAME", "ap-south-1")
        self.FIREHOSE_ACCESS_KEY_ID = os.getenv("FIREHOSE_ACCESS_KEY_ID", "")
        self.FIREHOSE_SECRET_ACCESS_KEY = os.getenv("FIREHOSE_SECRET_ACCESS_KEY", "")
        self.FIREHOSE_RETRY_COUNT = int(os.getenv("FIREHOSE_RETRY_COUNT", "3"))
        self.FIREHOSE_RETRY_DELAY = int(os.getenv("FIREHOSE_RETRY_DELAY", "1"))

"""
Dependency providers for the auth routes.

Collaborators are built once per process from AuthConfigs; tests swap them
through `app.dependency_overrides`.
"""
from functools import lru_cache

from fastapi import Depends

from app.config.settings import AuthConfigs
from app.connections.firebase import get_firebase_app
from app.connections.redis_wrapper import RedisJSONWrapper
from app.core.security import PasswordHasher, TokenIssuer
from app.integrations.email_notifier import SMTPEmailNotifier
from app.logging.utils import get_app_logger
from app.repository.users import FirebaseUserRepository, UserRepository
from app.services.login_service import LoginService
from app.services.otp_service import OTPService
from app.services.otp_store import InMemoryOTPStore, OTPStore, RedisOTPStore
from app.services.registration_service import RegistrationService

configs = AuthConfigs()
logger = get_app_logger(__name__)


@lru_cache
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(
        secret=configs.JWT_SECRET,
        algorithm=configs.JWT_ALGORITHM,
        expiry_days=configs.JWT_EXPIRY_DAYS,
        verification_minutes=configs.EMAIL_VERIFICATION_TOKEN_MINUTES,
    )


@lru_cache
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=configs.BCRYPT_ROUNDS)


@lru_cache
def get_otp_store() -> OTPStore:
    if configs.OTP_STORE_BACKEND == "redis":
        logger.info("OTP store backend: redis")
        return RedisOTPStore(
            RedisJSONWrapper(database=configs.REDIS_CACHE_DB),
            retention_seconds=configs.OTP_RETENTION_SECONDS,
        )
    logger.info("OTP store backend: memory")
    return InMemoryOTPStore()


@lru_cache
def get_notifier() -> SMTPEmailNotifier:
    return SMTPEmailNotifier()


@lru_cache
def get_user_repository() -> UserRepository:
    return FirebaseUserRepository(
        get_firebase_app(),
        users_path=configs.FIREBASE_USERS_PATH,
        email_index_path=configs.FIREBASE_EMAIL_INDEX_PATH,
    )


def get_otp_service(
    store: OTPStore = Depends(get_otp_store),
    notifier=Depends(get_notifier),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
) -> OTPService:
    return OTPService(
        store,
        notifier,
        token_issuer,
        otp_length=configs.OTP_LENGTH,
        otp_expiry=configs.OTP_EXPIRY_SECONDS,
        max_attempts=configs.OTP_MAX_ATTEMPTS,
    )


def get_registration_service(
    users: UserRepository = Depends(get_user_repository),
    hasher: PasswordHasher = Depends(get_password_hasher),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
) -> RegistrationService:
    return RegistrationService(
        users,
        hasher,
        token_issuer,
        require_email_verification=configs.REQUIRE_EMAIL_VERIFICATION,
    )


def get_login_service(
    users: UserRepository = Depends(get_user_repository),
    hasher: PasswordHasher = Depends(get_password_hasher),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
) -> LoginService:
    return LoginService(users, hasher, token_issuer)

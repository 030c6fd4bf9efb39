from typing import Dict, Optional

from app.core.exceptions import UserNotFound, ValidationError, WrongPassword
from app.core.security import PasswordHasher, TokenIssuer
from app.dto.users import PublicUser
from app.logging.utils import get_app_logger
from app.repository.users import UserRepository

logger = get_app_logger(__name__)


def classify_identifier(email_or_phone: str) -> str:
    """Anything containing '@' is looked up as an email, everything else as a phone."""
    return "email" if "@" in email_or_phone else "phone"


class LoginService:

    def __init__(self, users: UserRepository, hasher: PasswordHasher, token_issuer: TokenIssuer):
        self.users = users
        self.hasher = hasher
        self.token_issuer = token_issuer

    def login(self, email_or_phone: Optional[str], password: Optional[str]) -> Dict:
        """
        Authenticate by email or phone plus password.

        Returns:
            dict: {'token': str, 'user': PublicUser}
        """
        email_or_phone = (email_or_phone or "").strip()
        if not email_or_phone or not password:
            raise ValidationError("Email/Phone and password required")

        field = classify_identifier(email_or_phone)
        matches = self.users.find_by(field, email_or_phone)
        if not matches:
            logger.warning(f"login_failed | {field}={email_or_phone} reason=user_not_found")
            raise UserNotFound()

        if len(matches) > 1:
            logger.warning(f"login_duplicate_users | {field}={email_or_phone} count={len(matches)}")
        user = matches[-1]

        if not self.hasher.verify(password, user.password):
            logger.warning(f"login_failed | phone={user.phone} reason=wrong_password")
            raise WrongPassword()

        token = self.token_issuer.issue(subject=user.phone, email=user.email)
        logger.info(f"login_success | phone={user.phone}")
        return {"token": token, "user": PublicUser.from_record(user)}

    def profile(self, token: Optional[str]) -> PublicUser:
        """Resolve the user behind an access token."""
        claims = self.token_issuer.decode(token)
        user = self.users.get(claims["uid"])
        if user is None:
            raise UserNotFound(status_code=404)
        return PublicUser.from_record(user)

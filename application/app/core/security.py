"""Password hashing and JWT issuance for the auth service."""
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import bcrypt
import jwt

from app.core.exceptions import InvalidToken
from app.logging.utils import get_app_logger

logger = get_app_logger(__name__)

EMAIL_VERIFICATION_PURPOSE = "email_verification"


class PasswordHasher:
    """One-way bcrypt hashing with a fixed cost factor."""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, password: str, hashed: str) -> bool:
        if not password or not hashed:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            # stored value is not a bcrypt hash
            logger.warning("password_verify_error | reason=malformed_hash")
            return False


class TokenIssuer:
    """
    Signs and decodes bearer tokens.

    Access tokens carry `{uid, email}` and stay valid until their embedded
    expiry; there is no revocation list. Email verification tokens carry
    `{email, purpose}` and prove a completed OTP check to `/register`.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expiry_days: int = 7,
        verification_minutes: int = 15,
    ):
        if not secret:
            logger.error("JWT secret not configured")
            raise ValueError("JWT secret not configured")
        self.secret = secret
        self.algorithm = algorithm
        self.access_ttl = timedelta(days=expiry_days)
        self.verification_ttl = timedelta(minutes=verification_minutes)

    def _encode(self, claims: Dict, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = dict(claims)
        payload.update({"iat": now, "exp": now + ttl})
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def _decode(self, token: Optional[str]) -> Dict:
        if not token:
            raise InvalidToken()
        try:
            return jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise InvalidToken("Token expired")
        except jwt.InvalidTokenError as e:
            logger.warning(f"token_decode_error | error={e}")
            raise InvalidToken()

    def issue(self, subject: str, email: str) -> str:
        return self._encode({"uid": subject, "email": email}, self.access_ttl)

    def decode(self, token: Optional[str]) -> Dict:
        claims = self._decode(token)
        if "purpose" in claims or not claims.get("uid"):
            raise InvalidToken()
        return claims

    def issue_email_verification(self, email: str) -> str:
        return self._encode({"email": email, "purpose": EMAIL_VERIFICATION_PURPOSE}, self.verification_ttl)

    def decode_email_verification(self, token: Optional[str]) -> str:
        """Return the verified email embedded in the token."""
        claims = self._decode(token)
        if claims.get("purpose") != EMAIL_VERIFICATION_PURPOSE or not claims.get("email"):
            raise InvalidToken()
        return claims["email"]


def extract_bearer_token(header_value: Optional[str]) -> Optional[str]:
    if not header_value:
        return None

    header = header_value.strip()
    if not header:
        return None

    if len(header) >= 7 and header[:7].lower() == "bearer ":
        return header[7:].strip() or None
    return header

import hashlib
import hmac
import secrets
import time
import uuid
from typing import Callable, Optional

from app.core.exceptions import OTPExpired, OTPMismatch, OTPNotFound, ValidationError
from app.core.security import TokenIssuer
from app.dto.otp import OTPRecord
from app.integrations.email_notifier import OTP_EMAIL_SUBJECT, render_otp_email
from app.logging.utils import get_app_logger
from app.services.otp_store import OTPStore

logger = get_app_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class OTPService:
    """
    Email OTP issuance and verification:
    - OTP generation
    - OTP hashing and storage (one active code per email, last write wins)
    - one-shot OTP validation with expiry
    """

    def __init__(
        self,
        store: OTPStore,
        notifier,
        token_issuer: TokenIssuer,
        otp_length: int = 6,
        otp_expiry: int = 300,
        max_attempts: int = 0,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.notifier = notifier
        self.token_issuer = token_issuer
        self.otp_length = otp_length
        self.otp_expiry = otp_expiry
        self.max_attempts = max_attempts
        self.clock = clock

    def generate_otp(self) -> str:
        """
        Generate a uniformly random numeric OTP.

        Returns:
            str: OTP of configured length with no leading zero (100000-999999 for 6 digits)
        """
        lower = 10 ** (self.otp_length - 1)
        return str(lower + secrets.randbelow(9 * lower))

    def hash_otp(self, otp: str) -> str:
        return hashlib.sha256(otp.encode()).hexdigest()

    def issue(self, email: Optional[str]) -> str:
        """
        Create a new OTP for `email`, store it and email it.

        The record is stored before delivery and kept if delivery fails, so a
        code that did reach the inbox can still be verified.

        Raises:
            ValidationError: email missing
            DeliveryFailed: the notifier could not send the email
        """
        if not email or not email.strip():
            raise ValidationError("Email is required")

        key = normalize_email(email)
        otp = self.generate_otp()
        record = OTPRecord(
            otp_id=uuid.uuid4().hex,
            otp_hash=self.hash_otp(otp),
            expires_at=self.clock() + self.otp_expiry,
        )
        self.store.put(key, record, self.otp_expiry)
        logger.info(f"otp_issued | email={key} expires_at={record.expires_at}")

        self.notifier.send(email.strip(), OTP_EMAIL_SUBJECT, render_otp_email(otp, self.otp_expiry // 60))
        return otp

    def verify(self, email: Optional[str], otp_code: Optional[str]) -> str:
        """
        Consume the OTP for `email`.

        Returns:
            str: email verification token to present at registration

        Raises:
            ValidationError: email or code missing
            OTPNotFound: no active code for this email
            OTPExpired: the code lapsed (it is deleted)
            OTPMismatch: wrong code (the stored code stays valid)
        """
        if not email or not email.strip() or not otp_code:
            raise ValidationError("Email and OTP are required")

        key = normalize_email(email)
        record = self.store.get(key)
        if record is None:
            logger.warning(f"otp_verify_failed | email={key} reason=not_found")
            raise OTPNotFound()

        if record.is_expired(self.clock()):
            self.store.discard(key, record)
            logger.warning(f"otp_verify_failed | email={key} reason=expired")
            raise OTPExpired()

        if not hmac.compare_digest(record.otp_hash, self.hash_otp(str(otp_code))):
            self._register_failed_attempt(key, record)
            raise OTPMismatch()

        if not self.store.discard(key, record):
            # consumed or replaced by a concurrent request
            logger.warning(f"otp_verify_failed | email={key} reason=already_consumed")
            raise OTPNotFound()

        logger.info(f"otp_verified | email={key}")
        return self.token_issuer.issue_email_verification(key)

    def _register_failed_attempt(self, key: str, record: OTPRecord) -> None:
        if self.max_attempts <= 0:
            logger.warning(f"otp_verify_failed | email={key} reason=mismatch")
            return
        attempts = record.attempts + 1
        logger.warning(f"otp_verify_failed | email={key} reason=mismatch attempts={attempts}")
        if attempts >= self.max_attempts:
            self.store.discard(key, record)
            logger.warning(f"otp_attempts_exhausted | email={key} attempts={attempts}")
        else:
            self.store.replace(key, record, record.model_copy(update={"attempts": attempts}))

    def reap(self) -> int:
        removed = self.store.reap(self.clock())
        if removed:
            logger.info(f"otp_reaped | count={removed}")
        return removed

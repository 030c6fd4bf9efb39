import time
from typing import Callable, Dict, Optional

from app.core.exceptions import EmailNotVerified, EmailTaken, InvalidToken, PhoneTaken, ValidationError
from app.core.security import PasswordHasher, TokenIssuer
from app.dto.users import PublicUser, UserRecord
from app.logging.utils import get_app_logger
from app.repository.users import UserRepository
from app.services.otp_service import normalize_email

logger = get_app_logger(__name__)


class RegistrationService:
    """
    Creates users keyed by phone with a unique email.

    Steps, each short-circuiting:
    1. Validate input (and the email verification token when required)
    2. Reject a taken phone
    3. Reject a taken email
    4. Hash the password
    5. Insert the user atomically
    6. Issue an access token
    """

    def __init__(
        self,
        users: UserRepository,
        hasher: PasswordHasher,
        token_issuer: TokenIssuer,
        require_email_verification: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.users = users
        self.hasher = hasher
        self.token_issuer = token_issuer
        self.require_email_verification = require_email_verification
        self.clock = clock

    def _check_email_verified(self, email: str, otp_verified_token: Optional[str]) -> None:
        if not self.require_email_verification:
            return
        try:
            verified_email = self.token_issuer.decode_email_verification(otp_verified_token)
        except InvalidToken:
            logger.warning(f"register_rejected | email={email} reason=email_not_verified")
            raise EmailNotVerified()
        if verified_email != normalize_email(email):
            logger.warning(f"register_rejected | email={email} reason=verification_email_mismatch")
            raise EmailNotVerified()

    def register(
        self,
        name: Optional[str],
        email: Optional[str],
        phone: Optional[str],
        password: Optional[str],
        otp_verified_token: Optional[str] = None,
    ) -> Dict:
        """
        Returns:
            dict: {'token': str, 'user': PublicUser}
        """
        name = (name or "").strip()
        email = (email or "").strip()
        phone = (phone or "").strip()
        if not name or not email or not phone or not password:
            raise ValidationError("All fields required")

        self._check_email_verified(email, otp_verified_token)

        if self.users.get(phone) is not None:
            logger.warning(f"register_rejected | phone={phone} reason=phone_taken")
            raise PhoneTaken()

        if self.users.find_by("email", email):
            logger.warning(f"register_rejected | email={email} reason=email_taken")
            raise EmailTaken()

        record = UserRecord(
            name=name,
            email=email,
            phone=phone,
            password=self.hasher.hash(password),
            created_at=int(self.clock() * 1000),
            online=False,
        )
        # concurrent registrations that passed the checks above are rejected here
        self.users.create(record)

        token = self.token_issuer.issue(subject=phone, email=email)
        logger.info(f"user_registered | phone={phone} email={email}")
        return {"token": token, "user": PublicUser.from_record(record)}

"""
User Repository

Handles user document operations against the Firebase Realtime Database.
Users live at `users/<phone>`; `user_emails/<sha256(email)>` holds the phone
that owns an email and backs the unique-email constraint.
"""
import hashlib
from abc import ABC, abstractmethod
from typing import List, Optional

from firebase_admin import db
from firebase_admin.exceptions import FirebaseError

from app.core.exceptions import EmailTaken, PhoneTaken, StoreUnavailable
from app.dto.users import UserRecord
from app.logging.utils import get_app_logger

logger = get_app_logger("app.users_repository")

QUERYABLE_FIELDS = ("email", "phone")


def email_index_key(email: str) -> str:
    return hashlib.sha256(email.strip().lower().encode("utf-8")).hexdigest()


class UserRepository(ABC):
    """Key/value store of user records keyed by phone, queryable by secondary field."""

    @abstractmethod
    def get(self, phone: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    def find_by(self, field: str, value: str) -> List[UserRecord]:
        """Exact-match query on `field`, in store order."""

    @abstractmethod
    def create(self, record: UserRecord) -> None:
        """
        Insert a new user atomically.

        Raises:
            PhoneTaken: a user already exists under this phone
            EmailTaken: another user already owns this email
        """


class FirebaseUserRepository(UserRepository):

    def __init__(self, firebase_app, users_path: str = "users", email_index_path: str = "user_emails"):
        self.firebase_app = firebase_app
        self.users_path = users_path
        self.email_index_path = email_index_path

    def _users_ref(self):
        return db.reference(self.users_path, app=self.firebase_app)

    def _email_ref(self, email: str):
        return db.reference(f"{self.email_index_path}/{email_index_key(email)}", app=self.firebase_app)

    def get(self, phone: str) -> Optional[UserRecord]:
        try:
            data = self._users_ref().child(phone).get()
        except FirebaseError as e:
            logger.error(f"get_user_error | phone={phone} error={e}", exc_info=True)
            raise StoreUnavailable() from e
        if not data:
            return None
        return UserRecord.model_validate(data)

    def find_by(self, field: str, value: str) -> List[UserRecord]:
        if field not in QUERYABLE_FIELDS:
            raise ValueError(f"Unsupported query field: {field}")
        try:
            # needs ".indexOn": ["email", "phone"] on the users path
            snapshot = self._users_ref().order_by_child(field).equal_to(value).get()
        except FirebaseError as e:
            logger.error(f"find_users_error | field={field} error={e}", exc_info=True)
            raise StoreUnavailable() from e
        users = [UserRecord.model_validate(doc) for doc in (snapshot or {}).values()]
        logger.info(f"find_users | field={field} count={len(users)}")
        return users

    def create(self, record: UserRecord) -> None:
        phone = record.phone
        reservation = {"made": False}

        def reserve_email(current):
            if current is not None and current != phone:
                raise EmailTaken()
            # transactions may be retried, so the flag reflects the last attempt
            reservation["made"] = current is None
            return phone

        def insert_user(current):
            if current is not None:
                raise PhoneTaken()
            return record.to_document()

        try:
            self._email_ref(record.email).transaction(reserve_email)
        except (FirebaseError, db.TransactionAbortedError) as e:
            logger.error(f"create_user_error | phone={phone} error={e}", exc_info=True)
            raise StoreUnavailable() from e

        try:
            self._users_ref().child(phone).transaction(insert_user)
        except PhoneTaken:
            self._release_email(record.email, phone, reservation["made"])
            raise
        except (FirebaseError, db.TransactionAbortedError) as e:
            logger.error(f"create_user_error | phone={phone} error={e}", exc_info=True)
            self._release_email(record.email, phone, reservation["made"])
            raise StoreUnavailable() from e
        logger.info(f"user_created | phone={phone}")

    def _release_email(self, email: str, phone: str, reserved: bool) -> None:
        if not reserved:
            return

        def release(current):
            return None if current == phone else current

        try:
            self._email_ref(email).transaction(release)
        except (FirebaseError, db.TransactionAbortedError) as e:
            logger.error(f"release_email_error | phone={phone} error={e}", exc_info=True)
            raise StoreUnavailable() from e

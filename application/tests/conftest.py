import os
import re
import tempfile
import threading

# configuration is read at import time
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "chatab-auth-test-logs"))
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("SENTRY_ENABLED", "false")
os.environ.setdefault("FIREHOSE_ENABLED", "false")
os.environ.setdefault("OTP_REAP_INTERVAL_SECONDS", "0")

import pytest

from app.core.exceptions import DeliveryFailed, EmailTaken, PhoneTaken
from app.core.security import PasswordHasher, TokenIssuer
from app.repository.users import UserRepository
from app.services.login_service import LoginService
from app.services.otp_service import OTPService
from app.services.otp_store import InMemoryOTPStore
from app.services.registration_service import RegistrationService

JWT_SECRET = "test-secret-key-that-is-long-enough-for-hs256"
OTP_PATTERN = re.compile(r"<h1>(\d{6})</h1>")


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeNotifier:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, subject, html):
        if self.fail:
            raise DeliveryFailed()
        self.sent.append({"to": to, "subject": subject, "html": html})

    def last_code(self) -> str:
        return OTP_PATTERN.search(self.sent[-1]["html"]).group(1)


class FakeUserRepository(UserRepository):
    """Dict-backed user store with the same uniqueness rules as the Firebase one."""

    def __init__(self):
        self.users = {}
        self.extra_matches = []
        self._lock = threading.Lock()

    def get(self, phone):
        return self.users.get(phone)

    def find_by(self, field, value):
        matches = [u for u in self.users.values() if getattr(u, field) == value]
        return matches + [u for u in self.extra_matches if getattr(u, field) == value]

    def create(self, record):
        with self._lock:
            if record.phone in self.users:
                raise PhoneTaken()
            if any(u.email.lower() == record.email.lower() for u in self.users.values()):
                raise EmailTaken()
            self.users[record.phone] = record


class FakeRedisJSONWrapper:
    """Stands in for RedisJSONWrapper; TTLs are recorded but not enforced."""

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.data = {}
        self.ttls = {}

    def set_with_ttl(self, key, data, ttl_seconds):
        self.data[key] = data
        self.ttls[key] = ttl_seconds

    def get(self, key):
        return self.data.get(key)

    def delete_if_field_equals(self, key, field, value):
        current = self.data.get(key)
        if current is None or str(current.get(field)) != value:
            return False
        del self.data[key]
        return True

    def replace_if_field_equals(self, key, field, value, data):
        current = self.data.get(key)
        if current is None or str(current.get(field)) != value:
            return False
        self.data[key] = data
        return True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def token_issuer():
    return TokenIssuer(secret=JWT_SECRET)


@pytest.fixture
def hasher():
    # minimum bcrypt cost keeps the suite fast
    return PasswordHasher(rounds=4)


@pytest.fixture
def otp_store():
    return InMemoryOTPStore()


@pytest.fixture
def otp_service(otp_store, notifier, token_issuer, clock):
    return OTPService(otp_store, notifier, token_issuer, otp_expiry=300, clock=clock)


@pytest.fixture
def users():
    return FakeUserRepository()


@pytest.fixture
def registration_service(users, hasher, token_issuer, clock):
    return RegistrationService(users, hasher, token_issuer, require_email_verification=False, clock=clock)


@pytest.fixture
def login_service(users, hasher, token_issuer):
    return LoginService(users, hasher, token_issuer)

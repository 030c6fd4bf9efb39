"""
OTP storage backends.

`OTPService` only talks to the `OTPStore` interface. Two backends exist:

- `InMemoryOTPStore`: process-local dict guarded by a lock; expired entries
  are removed by `reap()`, which the app lifespan runs periodically.
- `RedisOTPStore`: expiring redis keys; the key TTL does the sweeping.

Writes that follow a read (consume, attempt counting) are compare-and-swap
on the record's `otp_id`, so a code issued in between is never clobbered.
"""
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

from app.connections.redis_wrapper import RedisJSONWrapper
from app.core.exceptions import StoreUnavailable
from app.dto.otp import OTPRecord
from app.logging.utils import get_app_logger

logger = get_app_logger(__name__)


class OTPStore(ABC):

    @abstractmethod
    def put(self, email: str, record: OTPRecord, ttl_seconds: int) -> None:
        """Store `record` for `email`, replacing any previous one."""

    @abstractmethod
    def get(self, email: str) -> Optional[OTPRecord]:
        ...

    @abstractmethod
    def replace(self, email: str, current: OTPRecord, new: OTPRecord) -> bool:
        """Swap `current` for `new`; False if `current` is no longer stored."""

    @abstractmethod
    def discard(self, email: str, current: OTPRecord) -> bool:
        """Delete `current`; True only for the caller that actually removed it."""

    @abstractmethod
    def reap(self, now: float) -> int:
        """Remove expired records, returning how many were dropped."""


class InMemoryOTPStore(OTPStore):

    def __init__(self):
        self._records: Dict[str, OTPRecord] = {}
        self._lock = threading.Lock()

    def put(self, email: str, record: OTPRecord, ttl_seconds: int) -> None:
        with self._lock:
            self._records[email] = record

    def get(self, email: str) -> Optional[OTPRecord]:
        with self._lock:
            return self._records.get(email)

    def replace(self, email: str, current: OTPRecord, new: OTPRecord) -> bool:
        with self._lock:
            stored = self._records.get(email)
            if stored is None or stored.otp_id != current.otp_id:
                return False
            self._records[email] = new
            return True

    def discard(self, email: str, current: OTPRecord) -> bool:
        with self._lock:
            stored = self._records.get(email)
            if stored is None or stored.otp_id != current.otp_id:
                return False
            del self._records[email]
            return True

    def reap(self, now: float) -> int:
        with self._lock:
            expired = [email for email, record in self._records.items() if record.is_expired(now)]
            for email in expired:
                del self._records[email]
        return len(expired)


class RedisOTPStore(OTPStore):
    """
    Redis-backed OTP storage.

    Keys live for the OTP expiry plus `retention_seconds`, so an expired code
    is still reported as expired (not missing) for a while after it lapses.
    """

    CACHE_PREFIX = "auth_otp_"

    def __init__(self, redis_client: RedisJSONWrapper, retention_seconds: int = 3600):
        self.redis_client = redis_client
        self.retention_seconds = retention_seconds

    def get_cache_key(self, email: str) -> str:
        return f"{self.CACHE_PREFIX}{email}"

    def _client(self) -> RedisJSONWrapper:
        if not getattr(self.redis_client, "connected", False):
            logger.error("Redis client unavailable for OTP storage")
            raise StoreUnavailable("OTP service unavailable")
        return self.redis_client

    def put(self, email: str, record: OTPRecord, ttl_seconds: int) -> None:
        self._client().set_with_ttl(self.get_cache_key(email), record.model_dump(), ttl_seconds + self.retention_seconds)

    def get(self, email: str) -> Optional[OTPRecord]:
        data = self._client().get(self.get_cache_key(email))
        if not data:
            return None
        return OTPRecord.model_validate(data)

    def replace(self, email: str, current: OTPRecord, new: OTPRecord) -> bool:
        return self._client().replace_if_field_equals(
            self.get_cache_key(email), "otp_id", current.otp_id, new.model_dump()
        )

    def discard(self, email: str, current: OTPRecord) -> bool:
        return self._client().delete_if_field_equals(self.get_cache_key(email), "otp_id", current.otp_id)

    def reap(self, now: float) -> int:
        # key TTLs handle expiry
        return 0

import json
import redis

# Logger
from app.logging.utils import get_app_logger
logger = get_app_logger("redis_wrapper")

# Settings
from app.config.settings import AuthConfigs
configs = AuthConfigs()

REDIS_URL = configs.REDIS_URL

# Compare-and-delete on one JSON field, so a record replaced in the meantime is left alone
_DELETE_IF_FIELD_EQUALS = """
local current = redis.call('GET', KEYS[1])
if not current then
    return 0
end
if tostring(cjson.decode(current)[ARGV[1]]) == ARGV[2] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""

# Compare-and-set on one JSON field, keeping the key's remaining TTL
_REPLACE_IF_FIELD_EQUALS = """
local current = redis.call('GET', KEYS[1])
if not current then
    return 0
end
if tostring(cjson.decode(current)[ARGV[1]]) == ARGV[2] then
    redis.call('SET', KEYS[1], ARGV[3], 'KEEPTTL')
    return 1
end
return 0
"""


class RedisJSONWrapper:
    def __init__(self, redis_uri=REDIS_URL, database=None):
        if database is not None:
            redis_uri = f"{redis_uri}/{database}"
        try:
            self.redis_client = redis.from_url(redis_uri)
            self.redis_client.ping()
            self.connected = True
        except redis.exceptions.RedisError as e:
            logger.error(f"Failed to connect to Redis at {redis_uri}: {e}")
            self.redis_client = None
            self.connected = False

    def set_with_ttl(self, key, data, ttl_seconds: int):
        """Set a key with a TTL (in seconds). Stores data as JSON string.

        Falls back to non-TTL set if ttl_seconds is invalid (<=0).
        """
        value = json.dumps(data)
        if isinstance(ttl_seconds, int) and ttl_seconds > 0:
            # SETEX attaches the expiry atomically with the value
            self.redis_client.setex(key, ttl_seconds, value)
        else:
            self.redis_client.set(key, value)

    def get(self, key):
        data = self.redis_client.get(key)
        if data:
            return json.loads(data)
        return None

    def delete_if_field_equals(self, key, field: str, value: str) -> bool:
        """Delete `key` only while its JSON `field` still equals `value`.

        Returns:
            True if this call removed the key
        """
        result = self.redis_client.eval(_DELETE_IF_FIELD_EQUALS, 1, key, field, value)
        return int(result) > 0

    def replace_if_field_equals(self, key, field: str, value: str, data) -> bool:
        """Overwrite `key` with `data` only while its JSON `field` still equals `value`."""
        result = self.redis_client.eval(_REPLACE_IF_FIELD_EQUALS, 1, key, field, value, json.dumps(data))
        return int(result) > 0

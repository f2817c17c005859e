from __future__ import annotations

import logging

from redis.exceptions import RedisError

from track_route.cache import keys
from track_route.core.errors import PersistenceError
from track_route.store.base import QuotaStore

log = logging.getLogger(__name__)

# Check-and-increment in one round trip so interleaved reconstructions for
# different users cannot both slip past the limit.
_ACQUIRE_LUA = """
local unlimited = redis.call('GET', KEYS[2])
local count = tonumber(redis.call('GET', KEYS[1]) or '0')
if unlimited ~= '1' and count > tonumber(ARGV[1]) then
  return -1
end
return redis.call('INCR', KEYS[1])
"""


class RedisQuotaStore(QuotaStore):
    def __init__(self, client, device_id: str = "default"):
        self.r = client
        self.device_id = device_id
        self._counter_key = keys.quota_counter(device_id)
        self._unlimited_key = keys.quota_unlimited(device_id)
        self._day_key = keys.quota_day(device_id)
        self._acquire = self.r.register_script(_ACQUIRE_LUA)

    def count(self) -> int:
        try:
            raw = self.r.get(self._counter_key)
        except RedisError as e:
            raise PersistenceError(f"quota read failed: {e}") from e
        return int(raw) if raw is not None else 0

    def is_unlimited(self) -> bool:
        try:
            return self.r.get(self._unlimited_key) == "1"
        except RedisError as e:
            raise PersistenceError(f"unlimited flag read failed: {e}") from e

    def set_unlimited(self, value: bool) -> None:
        try:
            self.r.set(self._unlimited_key, "1" if value else "0")
        except RedisError as e:
            raise PersistenceError(f"unlimited flag write failed: {e}") from e

    def try_acquire(self, limit: int) -> bool:
        try:
            result = self._acquire(keys=[self._counter_key, self._unlimited_key], args=[limit])
        except RedisError as e:
            raise PersistenceError(f"quota increment failed: {e}") from e
        return int(result) >= 0

    def reset(self) -> None:
        try:
            self.r.set(self._counter_key, 0)
        except RedisError as e:
            raise PersistenceError(f"quota reset failed: {e}") from e
        log.info("Directions quota reset for device %s", self.device_id)

    def reset_if_new_day(self, day: int) -> bool:
        try:
            previous = self.r.getset(self._day_key, str(day))
        except RedisError as e:
            raise PersistenceError(f"quota day read failed: {e}") from e
        if previous == str(day):
            return False
        self.reset()
        return True

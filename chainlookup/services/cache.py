import logging
import time

from chainlookup.configuration import config

logger = logging.getLogger(__name__)


class SimpleCache:
    def __init__(self, ttl_seconds=60, clock=time.monotonic):
        self.cache = {}
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def get(self, key):
        if key in self.cache:
            result, timestamp = self.cache[key]
            if self._clock() - timestamp < self.ttl_seconds:
                logger.debug(f"[Cache Hit] Key: {key}")
                return result
            else:
                logger.debug(f"[Cache Miss] Key: {key} (Expired)")
                del self.cache[key]
        else:
            logger.debug(f"[Cache Miss] Key: {key}")
        return None

    def set(self, key, value):
        now = self._clock()
        self.prune(now)
        self.cache[key] = (value, now)
        logger.debug(f"[Cache Set] Key: {key}")

    def prune(self, now=None):
        """만료된 항목 일괄 삭제"""
        now = self._clock() if now is None else now
        expired = [key for key, (_, timestamp) in self.cache.items() if now - timestamp >= self.ttl_seconds]
        for key in expired:
            del self.cache[key]
        if expired:
            logger.debug(f"[Cache Prune] {len(expired)} expired keys")

    def delete(self, key):
        if key in self.cache:
            del self.cache[key]
            logger.debug(f"[Cache Delete] Key: {key}")

    def clear(self):
        self.cache.clear()


cache = SimpleCache(ttl_seconds=config.CACHE_TTL_SECONDS)  # 기본 5분 TTL

"""Redis client for translated entity snapshots.

Every operation is guarded: when redis is not configured, not reachable or
fails mid-call, the error is logged and a neutral value is returned so that
reads degrade to the database and writes/invalidations are skipped.
"""

import json
import logging

import redis
from flask import current_app

from app.services.cache_keys import dependents_key

logger = logging.getLogger(__name__)

# Bump when the shape of cached snapshots changes; older entries become misses
SCHEMA_VERSION = 1


class CacheClient:
    """Thin wrapper around a redis connection with a readiness flag."""

    def __init__(self, url: str = None, ttl: int = 365 * 24 * 60 * 60, client=None):
        self.url = url
        self.ttl = ttl
        self._client = client
        self.ready = client is not None

    def init_app(self, app):
        app.extensions['cache_client'] = self
        if self._client is None:
            self.connect()
        return self

    def connect(self) -> bool:
        if not self.url:
            logger.warning("REDIS_URL not set - translated responses will not be cached")
            self.ready = False
            return False

        try:
            self._client = redis.from_url(self.url, decode_responses=True)
            # Test connection
            self._client.ping()
            self.ready = True
            logger.info("Redis connected successfully")
        except Exception as e:
            logger.error(f"Redis connection failed: {e}")
            self.ready = False
        return self.ready

    def use_client(self, client):
        """Attach an already-built client (a test double or a shared pool)."""
        self._client = client
        self.ready = client is not None
        return self

    @property
    def redis(self):
        return self._client if self.ready else None

    # Raw operations

    def get(self, key: str):
        r = self.redis
        if not r:
            return None
        try:
            return r.get(key)
        except Exception as e:
            logger.error(f"Redis get error for {key}: {e}")
            return None

    def setex(self, key: str, value: str, ttl: int = None) -> bool:
        r = self.redis
        if not r:
            return False
        try:
            r.setex(key, ttl or self.ttl, value)
            return True
        except Exception as e:
            logger.error(f"Redis setex error for {key}: {e}")
            return False

    def delete(self, *keys) -> int:
        keys = [k for k in keys if k]
        r = self.redis
        if not r or not keys:
            return 0
        try:
            return r.delete(*keys)
        except Exception as e:
            logger.error(f"Redis delete error for {keys[:3]}...: {e}")
            return 0

    def keys(self, pattern: str) -> list:
        r = self.redis
        if not r:
            return []
        try:
            return list(r.keys(pattern))
        except Exception as e:
            logger.error(f"Redis keys error for {pattern}: {e}")
            return []

    def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern."""
        matched = self.keys(pattern)
        if not matched:
            return 0
        return self.delete(*matched)

    # Snapshot envelope

    def get_entry(self, key: str, fingerprint: dict = None):
        """
        Return the cached snapshot stored under ``key``.

        A missing key, unreadable JSON, a different schema version or a
        fingerprint that no longer matches the live record all count as a
        miss and return None.
        """
        raw = self.get(key)
        if raw is None:
            return None
        try:
            entry = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Discarding unreadable cache entry {key}")
            return None

        if not isinstance(entry, dict) or entry.get('schema') != SCHEMA_VERSION or 'data' not in entry:
            return None
        if fingerprint is not None and entry.get('fingerprint') != fingerprint:
            logger.debug(f"Stale cache entry {key}: fingerprint changed")
            return None
        return entry['data']

    def set_entry(self, key: str, data, fingerprint: dict = None, depends_on=()) -> bool:
        """
        Store a snapshot and register it in the reverse index of every entity
        it embeds, given as ``(entity_type, entity_id)`` pairs.
        """
        r = self.redis
        if not r:
            return False

        payload = json.dumps(
            {'schema': SCHEMA_VERSION, 'fingerprint': fingerprint, 'data': data},
            ensure_ascii=False, default=str
        )
        lang = key.rsplit(':', 1)[-1]
        try:
            pipe = r.pipeline()
            pipe.setex(key, self.ttl, payload)
            for entity_type, entity_id in depends_on:
                if entity_id is None:
                    continue
                index_key = dependents_key(entity_type, entity_id, lang)
                pipe.sadd(index_key, key)
                pipe.expire(index_key, self.ttl)
            pipe.execute()
            return True
        except Exception as e:
            logger.error(f"Redis set_entry error for {key}: {e}")
            return False

    def invalidate_dependents(self, entity_type: str, entity_id, lang: str) -> int:
        """Delete every cache key registered as embedding the given entity."""
        r = self.redis
        if not r:
            return 0
        index_key = dependents_key(entity_type, entity_id, lang)
        try:
            members = list(r.smembers(index_key))
        except Exception as e:
            logger.error(f"Redis smembers error for {index_key}: {e}")
            return 0
        return self.delete(index_key, *members)


def get_cache() -> CacheClient:
    """Cache client bound to the current app."""
    return current_app.extensions['cache_client']

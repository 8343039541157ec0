import json
import logging
import os
from typing import Any, Optional

import redis

from .storage import KeyValueStore


logger = logging.getLogger(__name__)


class RedisKeyValueStore(KeyValueStore):
    """Durable JSON key-value store backed by Redis"""
    
    def __init__(self, host: Optional[str] = None, port: Optional[int] = None,
                 db: Optional[int] = None, client: Optional[redis.Redis] = None):
        if client is not None:
            self.client = client
            return
        host = host or os.getenv("REDIS_HOST", "localhost")
        port = int(port or os.getenv("REDIS_PORT", 6379))
        db = int(db if db is not None else os.getenv("REDIS_DB_CART", 0))
        try:
            self.client = redis.Redis(host=host, port=port, db=db, decode_responses=True)
            self.client.ping()
            logger.info(f"Connected to Redis for local state at {host}:{port}/{db}")
        except redis.exceptions.ConnectionError as e:
            logger.error(f"Could not connect to Redis: {e}. Local state will not be persisted.")
            self.client = None
    
    @property
    def available(self) -> bool:
        return self.client is not None
    
    def get(self, key: str) -> Optional[Any]:
        if not self.client:
            return None
        raw = self.client.get(key)
        if raw is None:
            return None
        return json.loads(raw)
    
    def set(self, key: str, value: Any, ex: Optional[int] = None):
        if not self.client:
            return
        self.client.set(key, json.dumps(value, default=str), ex=ex)
    
    def delete(self, key: str):
        if not self.client:
            return
        self.client.delete(key)
    
    def exists(self, key: str) -> bool:
        if not self.client:
            return False
        return self.client.exists(key) > 0


_redis_store = None


def get_redis_store() -> RedisKeyValueStore:
    """Return the global RedisKeyValueStore instance, creating it if necessary."""
    global _redis_store
    if _redis_store is None or not _redis_store.client:
        from .config import config
        _redis_store = RedisKeyValueStore(
            host=config.storage.redis_host,
            port=config.storage.redis_port,
            db=config.storage.redis_db
        )
    return _redis_store

"""Key-value stores for locally persisted state"""

import json
import os
import re
import tempfile
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .utils.logger import get_logger

logger = get_logger(__name__)


class KeyValueStore(ABC):
    """Minimal synchronous JSON key-value store"""
    
    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the decoded value for key, or None"""
    
    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value under key"""
    
    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key if present"""


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store; values are JSON round-tripped like a real store would"""
    
    def __init__(self):
        self._data: Dict[str, str] = {}
    
    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None
    
    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value, default=str)
    
    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileKeyValueStore(KeyValueStore):
    """
    One JSON file per key under a directory
    
    Survives restarts without any server. Writes go to a temporary file that
    replaces the old one, so a crash mid-write leaves the previous value.
    """
    
    def __init__(self, path: str):
        self.path = path
        os.makedirs(self.path, exist_ok=True)
    
    def _file_for(self, key: str) -> str:
        safe_key = re.sub(r'[^A-Za-z0-9_.-]', '_', key)
        return os.path.join(self.path, f"{safe_key}.json")
    
    def get(self, key: str) -> Optional[Any]:
        try:
            with open(self._file_for(key), 'r', encoding='utf-8') as f:
                return json.load(f)
        except FileNotFoundError:
            return None
    
    def set(self, key: str, value: Any) -> None:
        target = self._file_for(key)
        fd, tmp_path = tempfile.mkstemp(dir=self.path, prefix='.tmp-')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(value, f, default=str)
            os.replace(tmp_path, target)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
    
    def delete(self, key: str) -> None:
        try:
            os.remove(self._file_for(key))
        except FileNotFoundError:
            pass


# Memory store shared by everything in this process
_memory_store: Optional[MemoryKeyValueStore] = None


def get_memory_store() -> MemoryKeyValueStore:
    """Process-wide memory store; nothing in it survives a restart"""
    global _memory_store
    if _memory_store is None:
        _memory_store = MemoryKeyValueStore()
    return _memory_store


def create_store(store_type: Optional[str] = None) -> KeyValueStore:
    """
    Create the configured key-value store
    
    file (default) and redis survive restarts. memory is process-local and
    only meant for tests and throwaway runs.
    """
    from .config import config
    
    store_type = store_type or config.storage.store_type
    if store_type == "redis":
        from .redis_service import get_redis_store
        return get_redis_store()
    if store_type == "memory":
        return get_memory_store()
    if store_type != "file":
        logger.warning(f"[Storage] Unknown store type '{store_type}', using file store")
    return FileKeyValueStore(config.storage.store_path)

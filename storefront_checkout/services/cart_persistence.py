"""Local persistence for the cart snapshot

The cart is written as one whole snapshot under a fixed key after every
mutation and read back once at startup. Storage failures are logged and
swallowed: the in-memory cart stays authoritative.
"""

import asyncio
import copy
from typing import Dict, Any, Optional

from ..models.cart import CartState
from ..storage import KeyValueStore, create_store
from ..utils.logger import get_logger
from ..config import config

logger = get_logger(__name__)


class CartPersistence:
    """Reads and writes the cart snapshot under a single key"""
    
    def __init__(self, store: Optional[KeyValueStore] = None, key: Optional[str] = None):
        """
        Initialize cart persistence
        
        Args:
            store: Key-value store (defaults to the configured store)
            key: Storage key for the snapshot
        """
        self.store = store if store is not None else create_store()
        self.key = key or config.storage.cart_key
    
    def load_snapshot(self) -> Optional[CartState]:
        """
        Read the persisted cart
        
        Returns:
            Restored cart state, or None if nothing usable is stored
        """
        try:
            data = self.store.get(self.key)
            if not data:
                return None
            state = CartState.from_dict(data)
            logger.info(f"[Cart] Loaded persisted cart with {state.total_items} items")
            return state
        except Exception as e:
            logger.error(f"[Cart] Error loading cart from storage: {e}")
            return None
    
    def save_snapshot(self, snapshot: Dict[str, Any]) -> bool:
        """
        Write a cart snapshot
        
        Args:
            snapshot: Output of CartState.to_dict()
            
        Returns:
            True if the write succeeded
        """
        try:
            self.store.set(self.key, snapshot)
            return True
        except Exception as e:
            logger.error(f"[Cart] Error saving cart to storage: {e}")
            return False
    
    async def save_snapshot_async(self, snapshot: Dict[str, Any]) -> bool:
        """Write a snapshot off the event loop thread"""
        return await asyncio.to_thread(self.save_snapshot, copy.deepcopy(snapshot))

"""Cart store - line items, derived totals and local persistence"""

import asyncio
from dataclasses import replace
from decimal import Decimal
from typing import Dict, List, Optional, Any, Set, Union

from ..models.cart import CartItem, CartState, ProductRef, ProductId
from ..utils.logger import get_logger
from .cart_persistence import CartPersistence

logger = get_logger(__name__)


def _is_quantity(value: Any) -> bool:
    """Whole-number quantity; bools and numeric strings are not quantities"""
    return isinstance(value, int) and not isinstance(value, bool)


class CartStore:
    """
    Owner of the shopping cart.
    
    Every mutation rebuilds the state (items and totals together) and then
    hands a snapshot to persistence without waiting for it. Concurrent edits
    while an order is being submitted are the caller's concern; checkout
    works on a copy taken with snapshot().
    """
    
    def __init__(self, persistence: Optional[CartPersistence] = None):
        """
        Initialize cart store
        
        Args:
            persistence: Snapshot persistence (defaults to the configured store)
        """
        self.persistence = persistence or CartPersistence()
        self._state = CartState()
        self._loaded = False
        self._pending_writes: Set[asyncio.Task] = set()
        self._write_lock: Optional[asyncio.Lock] = None
    
    # ================================
    # READS
    # ================================
    
    @property
    def state(self) -> CartState:
        return self._state
    
    @property
    def items(self) -> List[CartItem]:
        return list(self._state.items)
    
    @property
    def total_items(self) -> int:
        return self._state.total_items
    
    @property
    def total_price(self) -> Decimal:
        return self._state.total_price
    
    @property
    def loaded(self) -> bool:
        return self._loaded
    
    def is_empty(self) -> bool:
        return self._state.is_empty()
    
    def get_item_quantity(self, product_id: ProductId) -> int:
        item = self._state.find_item(product_id)
        return item.quantity if item else 0
    
    def is_in_cart(self, product_id: ProductId) -> bool:
        return self._state.find_item(product_id) is not None
    
    def snapshot(self) -> CartState:
        """Independent copy of the current cart"""
        return self._state.copy()
    
    # ================================
    # MUTATIONS
    # ================================
    
    def add_item(self, product: Union[ProductRef, Dict[str, Any]], quantity: int = 1) -> bool:
        """
        Add a product, or increase its quantity if already in the cart
        
        Args:
            product: Catalog product (ProductRef or catalog dict)
            quantity: Quantity to add, must be at least 1
            
        Returns:
            True if the cart changed
        """
        if not _is_quantity(quantity) or quantity < 1:
            logger.warning(f"[Cart] Ignoring add with invalid quantity: {quantity!r}")
            return False
        
        product_ref = product if isinstance(product, ProductRef) else ProductRef.from_dict(product)
        self._ensure_loaded()
        
        items = list(self._state.items)
        existing = self._state.find_item(product_ref.id)
        if existing:
            items[items.index(existing)] = replace(existing, quantity=existing.quantity + quantity)
        else:
            items.append(CartItem(product=product_ref, quantity=quantity))
        
        self._commit(items)
        logger.info(f"[Cart] Added {quantity}x {product_ref.name} - "
                    f"total: {self.total_items} items, {self.total_price}")
        return True
    
    def remove_item(self, product_id: ProductId) -> bool:
        """
        Remove a product from the cart; unknown ids are ignored
        
        Returns:
            True if an item was removed
        """
        self._ensure_loaded()
        items = [item for item in self._state.items if item.product_id != product_id]
        if len(items) == len(self._state.items):
            return False
        
        self._commit(items)
        logger.info(f"[Cart] Removed product {product_id}")
        return True
    
    def set_quantity(self, product_id: ProductId, quantity: int) -> bool:
        """
        Replace a product's quantity; zero or less removes it
        
        Returns:
            True if the cart changed
        """
        if not _is_quantity(quantity):
            logger.warning(f"[Cart] Ignoring quantity update with invalid quantity: {quantity!r}")
            return False
        
        if quantity <= 0:
            return self.remove_item(product_id)
        
        self._ensure_loaded()
        existing = self._state.find_item(product_id)
        if existing is None:
            return False
        
        items = list(self._state.items)
        items[items.index(existing)] = replace(existing, quantity=quantity)
        self._commit(items)
        logger.info(f"[Cart] Updated product {product_id} quantity to {quantity}")
        return True
    
    def clear(self) -> None:
        """Empty the cart and zero the totals"""
        self._ensure_loaded()
        self._commit([])
        logger.info("[Cart] Cleared")
    
    # ================================
    # PERSISTENCE
    # ================================
    
    def load(self) -> CartState:
        """
        Restore the persisted snapshot; runs once per store
        
        The first mutation loads implicitly, so a change made before load()
        never overwrites the stored cart.
        """
        if self._loaded:
            return self._state
        self._loaded = True
        
        stored = self.persistence.load_snapshot()
        if not stored or stored.is_empty():
            return self._state
        
        # Every mutation loads first, so the in-memory cart is still empty here
        self._state = stored
        return self._state
    
    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()
    
    async def flush(self) -> None:
        """Wait for writes already handed to persistence"""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)
    
    def _commit(self, items: List[CartItem]) -> None:
        self._state = CartState.from_items(items)
        self._persist()
    
    def _persist(self) -> None:
        snapshot = self._state.to_dict()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        
        if loop is None:
            self.persistence.save_snapshot(snapshot)
            return
        
        if self._write_lock is None:
            self._write_lock = asyncio.Lock()
        task = loop.create_task(self._write(snapshot))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)
    
    async def _write(self, snapshot: Dict[str, Any]) -> None:
        # Snapshots are written in mutation order
        async with self._write_lock:
            await self.persistence.save_snapshot_async(snapshot)

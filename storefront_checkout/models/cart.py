"""Cart data models"""

import copy
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Dict, Iterable, Optional, Any, Tuple, Union

from ..utils.pricing import parse_price, ZERO


ProductId = Union[int, str]


@dataclass(frozen=True)
class ProductRef:
    """Catalog product as seen by the cart"""
    id: ProductId
    name: str
    price: str                       # decimal string as served by the catalog
    image: Optional[str] = None
    
    @property
    def unit_price(self) -> Decimal:
        """Parsed unit price, 0 when missing or malformed"""
        return parse_price(self.price)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'price': self.price,
            'image': self.image
        }
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProductRef':
        """Create from a catalog product or a persisted product dict"""
        image = data.get('image')
        if not image and data.get('images'):
            first = data['images'][0]
            image = first.get('src') if isinstance(first, dict) else first
        price = data.get('price')
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            price='' if price is None else str(price),
            image=image
        )


@dataclass(frozen=True)
class CartItem:
    """Product reference plus quantity held in the cart"""
    product: ProductRef
    quantity: int
    
    @property
    def product_id(self) -> ProductId:
        return self.product.id
    
    @property
    def subtotal(self) -> Decimal:
        """Line total for this item"""
        return self.product.unit_price * self.quantity
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            'product': self.product.to_dict(),
            'quantity': self.quantity
        }
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CartItem':
        return cls(
            product=ProductRef.from_dict(data['product']),
            quantity=int(data['quantity'])
        )


@dataclass(frozen=True)
class CartState:
    """
    Items plus derived totals; totals are only ever produced by from_items
    
    Immutable: every cart change builds a new state, so a state handed out
    can never disagree with its own totals.
    """
    items: Tuple[CartItem, ...] = ()
    total_items: int = 0
    total_price: Decimal = ZERO
    
    @classmethod
    def from_items(cls, items: Iterable[CartItem]) -> 'CartState':
        """Build a state whose totals are computed from the given items"""
        items = tuple(items)
        return cls(
            items=items,
            total_items=sum(item.quantity for item in items),
            total_price=sum((item.subtotal for item in items), ZERO)
        )
    
    def find_item(self, product_id: ProductId) -> Optional[CartItem]:
        """Find item in cart by product ID"""
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None
    
    def is_empty(self) -> bool:
        return len(self.items) == 0
    
    def copy(self) -> 'CartState':
        """Deep copy so later cart edits never reach the copy"""
        return copy.deepcopy(self)
    
    def to_dict(self) -> Dict[str, Any]:
        """Snapshot format written to local storage"""
        return {
            'items': [item.to_dict() for item in self.items],
            'totalItems': self.total_items,
            'totalPrice': str(self.total_price)
        }
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CartState':
        """
        Restore from a persisted snapshot.
        
        Stored totals are ignored and recomputed so a stale or hand-edited
        snapshot cannot drift from its items.
        """
        items = []
        for raw in data.get('items', []):
            item = CartItem.from_dict(raw)
            if item.quantity < 1:
                continue
            existing = next((i for i in items if i.product_id == item.product_id), None)
            if existing:
                items[items.index(existing)] = replace(existing, quantity=existing.quantity + item.quantity)
            else:
                items.append(item)
        return cls.from_items(items)

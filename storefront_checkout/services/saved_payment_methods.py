"""Saved payment methods

Cards the customer saved on the device, kept under their own storage key.
Checkout reads them only to pre-select a method; they never decide whether
a payment succeeded.
"""

from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Any, Mapping

from ..config import config
from ..models.payment import PaymentMethod
from ..storage import KeyValueStore, create_store
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SavedPaymentMethod:
    """A saved card; only display data is kept"""
    id: str
    type: str = "card"
    last_four: str = ""
    expiry_date: str = ""
    cardholder_name: str = ""
    is_default: bool = False
    
    @property
    def method(self) -> PaymentMethod:
        """Saved entries are cards unless they name another method"""
        return PaymentMethod.parse(self.type) or PaymentMethod.CARD_GATEWAY
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'SavedPaymentMethod':
        return cls(
            id=str(data.get('id', '')),
            type=data.get('type') or 'card',
            last_four=data.get('lastFour') or '',
            expiry_date=data.get('expiryDate') or '',
            cardholder_name=data.get('cardholderName') or '',
            is_default=bool(data.get('isDefault'))
        )
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'lastFour': self.last_four,
            'expiryDate': self.expiry_date,
            'cardholderName': self.cardholder_name,
            'isDefault': self.is_default
        }


class SavedPaymentMethods:
    """Reads and writes the saved payment-method list"""
    
    def __init__(self, store: Optional[KeyValueStore] = None, key: Optional[str] = None):
        self.store = store if store is not None else create_store()
        self.key = key or config.storage.payment_methods_key
    
    def load(self) -> List[SavedPaymentMethod]:
        """Saved methods; an unreadable list is treated as empty"""
        try:
            stored = self.store.get(self.key)
        except Exception as e:
            logger.error(f"[PaymentMethods] Error loading saved payment methods: {e}")
            return []
        if not isinstance(stored, list):
            return []
        return [SavedPaymentMethod.from_dict(entry) for entry in stored if isinstance(entry, dict)]
    
    def save(self, methods: List[SavedPaymentMethod]) -> bool:
        try:
            self.store.set(self.key, [m.to_dict() for m in methods])
            return True
        except Exception as e:
            logger.error(f"[PaymentMethods] Error saving payment methods: {e}")
            return False
    
    def add(self, method: SavedPaymentMethod) -> List[SavedPaymentMethod]:
        """Append a method; a new default clears the previous one"""
        methods = self.load()
        if method.is_default:
            methods = [replace(m, is_default=False) for m in methods]
        methods.append(method)
        self.save(methods)
        return methods
    
    def set_default(self, method_id: str) -> List[SavedPaymentMethod]:
        methods = [replace(m, is_default=m.id == method_id)
                   for m in self.load()]
        self.save(methods)
        return methods
    
    def remove(self, method_id: str) -> List[SavedPaymentMethod]:
        methods = [m for m in self.load() if m.id != method_id]
        self.save(methods)
        return methods
    
    def default(self) -> Optional[SavedPaymentMethod]:
        return next((m for m in self.load() if m.is_default), None)
    
    def preferred_method(self) -> Optional[PaymentMethod]:
        """Method to pre-select at checkout, from the default saved entry"""
        saved = self.default()
        return saved.method if saved else None

"""Order, address and auth snapshot models"""

from dataclasses import dataclass, field, fields, replace
from decimal import Decimal
from typing import Dict, Optional, Any, Mapping

from .cart import CartState
from .payment import PaymentAttempt
from ..utils.pricing import quantize, parse_price, ZERO


SHIPPING_FIELDS = ('first_name', 'last_name', 'address_1', 'address_2',
                   'city', 'state', 'postcode', 'country')


@dataclass(frozen=True)
class Address:
    """Billing or shipping address form"""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address_1: str = ""
    address_2: str = ""
    city: str = ""
    state: str = ""
    postcode: str = ""
    country: str = "IN"
    
    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
    
    def shipping_fields_from(self, other: 'Address') -> 'Address':
        """Copy the shipping-relevant fields of another address into this one"""
        return replace(self, **{name: getattr(other, name) for name in SHIPPING_FIELDS})
    
    def to_billing_dict(self) -> Dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
    
    def to_shipping_dict(self) -> Dict[str, str]:
        return {name: getattr(self, name) for name in SHIPPING_FIELDS}
    
    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'Address':
        data = data or {}
        known = {f.name for f in fields(cls)}
        values = {k: str(v) for k, v in data.items() if k in known and v is not None}
        if not values.get('country'):
            values['country'] = 'IN'
        return cls(**values)


@dataclass(frozen=True)
class AuthSnapshot:
    """Read-only view of the signed-in customer taken at checkout start"""
    user_id: Optional[int] = None
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    billing: Mapping[str, Any] = field(default_factory=dict)
    shipping: Mapping[str, Any] = field(default_factory=dict)
    
    @property
    def customer_id(self) -> int:
        """Backend customer id; 0 means guest"""
        return int(self.user_id) if self.user_id else 0
    
    @classmethod
    def from_user(cls, user: Optional[Mapping[str, Any]]) -> 'AuthSnapshot':
        """Snapshot a user record (firstName/lastName or first_name/last_name)"""
        if not user:
            return cls()
        return cls(
            user_id=user.get('id'),
            first_name=user.get('firstName') or user.get('first_name') or '',
            last_name=user.get('lastName') or user.get('last_name') or '',
            email=user.get('email') or '',
            billing=dict(user.get('billing') or {}),
            shipping=dict(user.get('shipping') or {})
        )


@dataclass(frozen=True)
class CheckoutTotals:
    """Amounts charged for one checkout"""
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal
    
    @classmethod
    def compute(cls, cart: CartState, tax_rate: Decimal,
                shipping: Decimal = ZERO) -> 'CheckoutTotals':
        """Subtotal from the cart, flat shipping, tax on the subtotal"""
        subtotal = quantize(cart.total_price)
        shipping = quantize(shipping)
        tax = quantize(subtotal * parse_price(tax_rate))
        return cls(subtotal=subtotal, shipping=shipping, tax=tax,
                   total=quantize(subtotal + shipping + tax))
    
    def to_dict(self) -> Dict[str, str]:
        return {
            'subtotal': f"{self.subtotal:.2f}",
            'shipping': f"{self.shipping:.2f}",
            'tax': f"{self.tax:.2f}",
            'total': f"{self.total:.2f}"
        }


@dataclass(frozen=True)
class OrderDraft:
    """Everything needed to build the backend order, captured at submission time"""
    cart_snapshot: CartState
    billing: Address
    shipping: Address
    payment_attempt: PaymentAttempt
    totals: CheckoutTotals
    customer_note: str = ""
    customer_id: int = 0


@dataclass(frozen=True)
class Order:
    """Backend-owned order record"""
    id: Any
    number: str
    status: str
    total: Decimal
    payment_method_title: str = ""
    transaction_id: str = ""
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Order':
        return cls(
            id=data.get('id'),
            number=str(data.get('number') or data.get('id') or ''),
            status=data.get('status') or '',
            total=quantize(data.get('total') or 0),
            payment_method_title=data.get('payment_method_title') or '',
            transaction_id=data.get('transaction_id') or ''
        )


@dataclass(frozen=True)
class OrderReceipt:
    """What the UI shows after an order is created"""
    order: Order
    paid: bool
    payment_method_title: str
    transaction_id: Optional[str] = None
    
    @property
    def payment_status(self) -> str:
        return "Completed" if self.paid else "Pending"
    
    def confirmation_message(self, email: Optional[str] = None) -> str:
        message = (f"Your order #{self.order.number} has been placed successfully.\n\n"
                   f"Order Total: {self.order.total:.2f}")
        message += f"\n\nPayment Method: {self.payment_method_title}"
        if self.transaction_id:
            message += f"\nTransaction ID: {self.transaction_id}\nPayment Status: {self.payment_status}"
        if email:
            message += f"\n\nYou will receive a confirmation email shortly at {email}"
        return message
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            'order_id': self.order.id,
            'number': self.order.number,
            'status': self.order.status,
            'total': f"{self.order.total:.2f}",
            'payment_method_title': self.payment_method_title,
            'transaction_id': self.transaction_id,
            'payment_status': self.payment_status
        }

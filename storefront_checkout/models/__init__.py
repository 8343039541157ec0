"""Data models for the storefront checkout core"""

from .cart import ProductRef, CartItem, CartState
from .payment import (
    PaymentMethod,
    PaymentStatus,
    CheckoutState,
    ExternalRef,
    PaymentAttempt,
    GatewaySuccess,
    GatewayFailure,
    GatewayCancelled,
    NeedsManualConfirmation,
    ExternalLaunch,
    RedirectInitiated,
    GatewayOutcome
)
from .order import (
    Address,
    AuthSnapshot,
    CheckoutTotals,
    OrderDraft,
    Order,
    OrderReceipt
)

__all__ = [
    'ProductRef',
    'CartItem',
    'CartState',
    'PaymentMethod',
    'PaymentStatus',
    'CheckoutState',
    'ExternalRef',
    'PaymentAttempt',
    'GatewaySuccess',
    'GatewayFailure',
    'GatewayCancelled',
    'NeedsManualConfirmation',
    'ExternalLaunch',
    'RedirectInitiated',
    'GatewayOutcome',
    'Address',
    'AuthSnapshot',
    'CheckoutTotals',
    'OrderDraft',
    'Order',
    'OrderReceipt'
]

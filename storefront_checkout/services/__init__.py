"""Services for cart, payment and order business logic"""

from .cart_service import CartStore
from .lifecycle_monitor import AppLifecycleMonitor, AppState, LifecycleSource, ManualLifecycleSource
from .payment_service import PaymentOrchestrator, ConfirmationPrompt
from .order_service import OrderSubmitter
from .checkout_service import CheckoutService, CheckoutRequest, CheckoutResult

__all__ = [
    'CartStore',
    'AppLifecycleMonitor',
    'AppState',
    'LifecycleSource',
    'ManualLifecycleSource',
    'PaymentOrchestrator',
    'ConfirmationPrompt',
    'OrderSubmitter',
    'CheckoutService',
    'CheckoutRequest',
    'CheckoutResult'
]

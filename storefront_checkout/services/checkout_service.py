"""
Checkout service

Facade the checkout screen talks to: pre-fills the address forms, runs one
payment attempt through the orchestrator and, when the payment allows it,
submits the order.
"""

import time
from dataclasses import dataclass
from typing import Dict, Optional, Any, Tuple, Union

from ..commerce_backend_client import CommerceBackendClient
from ..config import config
from ..errors import AuthError, CheckoutError, NetworkError, ValidationError, GatewayUnavailableError
from ..models.cart import CartState
from ..models.order import Address, AuthSnapshot, CheckoutTotals, OrderDraft, OrderReceipt
from ..models.payment import PaymentMethod, PaymentAttempt, PaymentStatus
from ..utils.logger import get_logger
from .cart_service import CartStore
from .gateways import (
    GatewayAdapter,
    LinkOpener,
    CardCheckoutSDK,
    PaymentRequest,
    UpiGatewayAdapter,
    CardGatewayAdapter,
    PayPalGatewayAdapter,
    FallbackGatewayAdapter
)
from .lifecycle_monitor import AppLifecycleMonitor
from .order_service import OrderSubmitter
from .payment_mock_service import create_card_sdk
from .payment_service import PaymentOrchestrator, ConfirmationPrompt
from .saved_payment_methods import SavedPaymentMethods

logger = get_logger(__name__)


UPI_RECOMMENDATION = "\n\nRecommended: Use UPI QR Code for instant payments."


def build_gateway_adapters(
    opener: Optional[LinkOpener] = None,
    card_sdk: Optional[CardCheckoutSDK] = None
) -> Dict[PaymentMethod, GatewayAdapter]:
    """Adapters for every method this device can offer; UPI needs a link opener"""
    adapters: Dict[PaymentMethod, GatewayAdapter] = {
        PaymentMethod.CARD_GATEWAY: CardGatewayAdapter(card_sdk or create_card_sdk()),
        PaymentMethod.PAYPAL: PayPalGatewayAdapter(opener=opener),
        PaymentMethod.FALLBACK_MANUAL: FallbackGatewayAdapter(),
    }
    if opener is not None:
        adapters[PaymentMethod.UPI] = UpiGatewayAdapter(opener)
    return adapters


@dataclass
class CheckoutRequest:
    """Filled-in checkout form"""
    billing: Address
    payment_method: Union[PaymentMethod, str, None]
    shipping: Optional[Address] = None
    same_as_billing: bool = True
    customer_note: str = ""
    gateway_order_id: Optional[str] = None
    paypal_token: Optional[str] = None


@dataclass
class CheckoutResult:
    """Outcome of place_order / resubmit"""
    success: bool
    payment_attempt: Optional[PaymentAttempt] = None
    receipt: Optional[OrderReceipt] = None
    message: str = ""
    error: Optional[CheckoutError] = None
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'message': self.message,
            'payment_attempt': self.payment_attempt.to_dict() if self.payment_attempt else None,
            'order': self.receipt.to_dict() if self.receipt else None,
            'error': self.error.to_dict() if self.error else None
        }


class CheckoutService:
    """Coordinates payment and order submission for the checkout screen"""
    
    def __init__(
        self,
        cart_store: CartStore,
        auth: Optional[AuthSnapshot] = None,
        monitor: Optional[AppLifecycleMonitor] = None,
        prompt: Optional[ConfirmationPrompt] = None,
        adapters: Optional[Dict[PaymentMethod, GatewayAdapter]] = None,
        backend_client: Optional[CommerceBackendClient] = None,
        submitter: Optional[OrderSubmitter] = None,
        saved_methods: Optional[SavedPaymentMethods] = None
    ):
        """
        Initialize checkout service
        
        Args:
            cart_store: Live cart
            auth: Signed-in customer, read only
            monitor: Lifecycle monitor for UPI
            prompt: Manual confirmation dialog for UPI
            adapters: Gateway adapters (defaults to build_gateway_adapters())
            backend_client: Commerce backend client
            submitter: Order submitter (built from cart_store and backend_client)
            saved_methods: Saved payment methods for pre-selection
        """
        self.cart_store = cart_store
        self.auth = auth or AuthSnapshot()
        self.monitor = monitor
        self.prompt = prompt
        self.adapters = adapters if adapters is not None else build_gateway_adapters()
        self.submitter = submitter or OrderSubmitter(cart_store, backend_client)
        self.saved_methods = saved_methods
        
        self.orchestrator: Optional[PaymentOrchestrator] = None
        self._pending_payload: Optional[Dict[str, Any]] = None
        self._pending_email: Optional[str] = None
        self._in_progress = False
        self._needs_reauth = False
    
    # ================================
    # SESSION
    # ================================
    
    @property
    def needs_reauth(self) -> bool:
        return self._needs_reauth
    
    def update_auth(self, auth: AuthSnapshot) -> None:
        """Take a fresh sign-in after the backend rejected the credentials"""
        self.auth = auth
        if self._needs_reauth:
            logger.info("[Checkout] Customer signed in again, checkout unlocked")
        self._needs_reauth = False
    
    # ================================
    # FORM HELPERS
    # ================================
    
    def prefill_addresses(self) -> Tuple[Address, Address]:
        """
        Billing and shipping forms pre-filled from the signed-in customer
        
        Shipping address lines fall back to the billing ones.
        """
        auth = self.auth
        billing_src = auth.billing or {}
        shipping_src = auth.shipping or {}
        
        billing = Address.from_dict({
            **billing_src,
            'first_name': auth.first_name or billing_src.get('first_name', ''),
            'last_name': auth.last_name or billing_src.get('last_name', ''),
            'email': auth.email or billing_src.get('email', ''),
        })
        
        shipping_values = {
            name: shipping_src.get(name) or billing_src.get(name) or ''
            for name in ('address_1', 'address_2', 'city', 'state', 'postcode', 'country')
        }
        shipping = Address.from_dict({
            **shipping_values,
            'first_name': billing.first_name,
            'last_name': billing.last_name,
            'email': billing.email,
            'phone': billing.phone,
        })
        return billing, shipping
    
    def preferred_payment_method(self) -> Optional[PaymentMethod]:
        """Method to pre-select; only offered if a gateway exists for it"""
        if self.saved_methods is None:
            return None
        method = self.saved_methods.preferred_method()
        return method if method in self.adapters else None
    
    def compute_totals(self, cart: Optional[CartState] = None) -> CheckoutTotals:
        cart = cart if cart is not None else self.cart_store.state
        return CheckoutTotals.compute(cart, config.store.tax_rate)
    
    # ================================
    # CHECKOUT
    # ================================
    
    def _new_orchestrator(self) -> PaymentOrchestrator:
        self.orchestrator = PaymentOrchestrator(self.adapters, monitor=self.monitor, prompt=self.prompt)
        return self.orchestrator
    
    async def place_order(self, request: CheckoutRequest) -> CheckoutResult:
        """
        Pay and submit the order
        
        Raises:
            ValidationError: form incomplete, rejected by the backend, another
                checkout running, or a paid order still waiting for resubmit()
            AuthError: credentials rejected, now or by an earlier submission;
                update_auth() unlocks checkout again
            NetworkError, CommerceBackendError: order submission failed;
                after NetworkError resubmit() resends the same order
        """
        self._check_can_start()
        if self._pending_payload is not None:
            raise ValidationError("Your previous order is still being submitted. "
                                  "Please retry submitting it instead of paying again.")
        
        self._in_progress = True
        try:
            return await self._place_order(request)
        finally:
            self._in_progress = False
    
    async def _place_order(self, request: CheckoutRequest) -> CheckoutResult:
        cart = self.cart_store.snapshot()
        billing = request.billing
        shipping = (Address().shipping_fields_from(billing) if request.same_as_billing
                    else request.shipping or Address())
        
        orchestrator = self._new_orchestrator()
        orchestrator.select_method(request.payment_method, cart, billing, shipping,
                                   request.same_as_billing)
        
        totals = self.compute_totals(cart)
        payment_request = PaymentRequest(
            reference=str(int(time.time() * 1000)),
            amount=totals.total,
            currency=config.store.currency,
            billing=billing,
            gateway_order_id=request.gateway_order_id,
            paypal_token=request.paypal_token
        )
        
        attempt = await orchestrator.run(payment_request)
        if attempt.status in (PaymentStatus.FAILED, PaymentStatus.CANCELLED):
            return self._payment_stopped(attempt, orchestrator.last_error)
        
        draft = OrderDraft(
            cart_snapshot=cart,
            billing=billing,
            shipping=shipping,
            payment_attempt=attempt,
            totals=totals,
            customer_note=request.customer_note,
            customer_id=self.auth.customer_id
        )
        self._pending_payload = self.submitter.build_payload(draft)
        self._pending_email = billing.email
        return await self._submit_pending(attempt)
    
    async def resubmit(self) -> CheckoutResult:
        """Resend the order that last failed with a NetworkError or AuthError, unchanged"""
        self._check_can_start()
        if self._pending_payload is None:
            raise ValidationError("There is no order waiting to be resubmitted.")
        attempt = self.orchestrator.attempt if self.orchestrator else None
        
        self._in_progress = True
        try:
            return await self._submit_pending(attempt)
        finally:
            self._in_progress = False
    
    def _check_can_start(self) -> None:
        if self._needs_reauth:
            raise AuthError()
        if self._in_progress:
            raise ValidationError("Your order is already being placed. Please wait.")
    
    async def _submit_pending(self, attempt: Optional[PaymentAttempt]) -> CheckoutResult:
        try:
            receipt = await self.submitter.submit(self._pending_payload)
        except NetworkError:
            logger.warning("[Checkout] Order submission hit a network error; payload kept for resubmit")
            raise
        except AuthError:
            logger.warning("[Checkout] Backend rejected the credentials; payload kept until sign-in")
            self._needs_reauth = True
            raise
        except CheckoutError:
            self._pending_payload = None
            raise
        
        self._pending_payload = None
        return CheckoutResult(
            success=True,
            payment_attempt=attempt,
            receipt=receipt,
            message=receipt.confirmation_message(self._pending_email)
        )
    
    def _payment_stopped(self, attempt: PaymentAttempt,
                         error: Optional[CheckoutError]) -> CheckoutResult:
        logger.info(f"[Checkout] Payment {attempt.status.value}, order not submitted")
        message = attempt.reason or "Payment was not completed."
        if isinstance(error, GatewayUnavailableError):
            message += UPI_RECOMMENDATION
        return CheckoutResult(success=False, payment_attempt=attempt, message=message, error=error)
    
    @property
    def has_pending_submission(self) -> bool:
        return self._pending_payload is not None

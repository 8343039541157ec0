"""
Payment gateway adapters

One adapter per payment method. Each turns a PaymentRequest into a
normalized GatewayOutcome; none of them decides the final payment status on
its own - that is the orchestrator's job.

1. UPI - deep link handed to an installed UPI app
2. Card gateway - native checkout SDK (Razorpay)
3. PayPal - web redirect, resolved outside this core
4. Manual fallback - bank transfer, reconciled by hand
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional, Any, Tuple
from urllib.parse import quote

from ..config import config
from ..errors import GatewayUnavailableError
from ..models.order import Address
from ..models.payment import (
    PaymentMethod,
    ExternalRef,
    GatewayOutcome,
    GatewaySuccess,
    GatewayFailure,
    ExternalLaunch,
    RedirectInitiated
)
from ..utils.logger import get_logger
from ..utils.pricing import format_amount, to_minor_units

logger = get_logger(__name__)


NO_UPI_APP_REASON = "No UPI app found on device"
UPI_OPEN_FAILED_REASON = "Failed to open UPI app"
PAYPAL_INIT_FAILED_REASON = "Failed to initialize PayPal payment"

# Backend gateway id / title per method
GATEWAY_IDS: Dict[PaymentMethod, Tuple[str, str]] = {
    PaymentMethod.UPI: ("upi", "UPI QR Code"),
    PaymentMethod.CARD_GATEWAY: ("razorpay", "Razorpay"),
    PaymentMethod.PAYPAL: ("paypal", "PayPal"),
    PaymentMethod.FALLBACK_MANUAL: ("bacs", "Direct Bank Transfer"),
}


@dataclass(frozen=True)
class PaymentRequest:
    """What a gateway needs to charge the customer"""
    reference: str
    amount: Decimal
    currency: str
    billing: Address
    gateway_order_id: Optional[str] = None
    paypal_token: Optional[str] = None
    
    @property
    def description(self) -> str:
        return f"Order #{self.reference}"


# ================================
# HOST COLLABORATORS
# ================================

class LinkOpener(ABC):
    """Host facility for handing URIs to other installed apps"""
    
    @abstractmethod
    async def can_open(self, url: str) -> bool:
        """Whether any installed app handles this URI"""
    
    @abstractmethod
    async def open(self, url: str) -> None:
        """Hand the URI over; raises if the host cannot open it"""


class CardCheckoutError(Exception):
    """Error reported by the native checkout SDK (dismissal, decline, ...)"""
    
    def __init__(self, description: str, code: Optional[str] = None):
        self.description = description
        self.code = code
        super().__init__(description)


class CardCheckoutSDK(ABC):
    """Native card checkout SDK bridge"""
    
    @abstractmethod
    def is_available(self) -> bool:
        """Whether the SDK is linked into this build"""
    
    @abstractmethod
    async def open(self, options: Dict[str, Any]) -> Dict[str, Any]:
        """Show the checkout sheet; returns razorpay_payment_id / order_id / signature"""


class UnavailableCardCheckoutSDK(CardCheckoutSDK):
    """Stand-in for builds that ship without the native SDK"""
    
    def is_available(self) -> bool:
        return False
    
    async def open(self, options: Dict[str, Any]) -> Dict[str, Any]:
        raise GatewayUnavailableError("Razorpay")


# ================================
# ADAPTERS
# ================================

class GatewayAdapter(ABC):
    """Method-specific payment integration"""
    
    method: PaymentMethod
    
    @property
    def gateway_id(self) -> str:
        return GATEWAY_IDS[self.method][0]
    
    @property
    def title(self) -> str:
        return GATEWAY_IDS[self.method][1]
    
    @abstractmethod
    async def process(self, request: PaymentRequest) -> GatewayOutcome:
        """Start the payment and report a normalized outcome"""


class UpiGatewayAdapter(GatewayAdapter):
    """UPI deep-link payments; the result is never reported back to us"""
    
    method = PaymentMethod.UPI
    
    def __init__(self, opener: LinkOpener, payee_id: Optional[str] = None,
                 merchant_name: Optional[str] = None, currency: Optional[str] = None):
        """
        Initialize UPI adapter
        
        Args:
            opener: Host link opener
            payee_id: Merchant VPA
            merchant_name: Label shown in the UPI app
            currency: Settlement currency
        """
        self.opener = opener
        self.payee_id = payee_id or config.payment.upi_payee_id
        self.merchant_name = merchant_name or config.store.name
        self.currency = currency or config.store.currency
    
    def build_link(self, request: PaymentRequest) -> str:
        """upi://pay URI for the request; currency is always the settlement currency"""
        return (f"upi://pay?pa={quote(self.payee_id, safe='@')}"
                f"&pn={quote(self.merchant_name, safe='')}"
                f"&am={format_amount(request.amount)}"
                f"&cu={self.currency}"
                f"&tn={quote(request.description, safe='')}")
    
    async def process(self, request: PaymentRequest) -> GatewayOutcome:
        url = self.build_link(request)
        logger.info(f"[UPI] Generated payment link for {request.description}")
        
        if not await self.opener.can_open(url):
            logger.warning("[UPI] No app on the device can open upi:// links")
            return GatewayFailure(reason=NO_UPI_APP_REASON)
        
        return ExternalLaunch(url=url)
    
    async def launch(self, url: str) -> None:
        """Hand the deep link to the UPI app"""
        await self.opener.open(url)


class CardGatewayAdapter(GatewayAdapter):
    """Card payments through the native Razorpay checkout"""
    
    method = PaymentMethod.CARD_GATEWAY
    
    def __init__(self, sdk: Optional[CardCheckoutSDK] = None, key_id: Optional[str] = None,
                 merchant_name: Optional[str] = None):
        self.sdk = sdk or UnavailableCardCheckoutSDK()
        self.key_id = key_id or config.payment.razorpay_key_id
        self.merchant_name = merchant_name or config.store.name
    
    def build_options(self, request: PaymentRequest) -> Dict[str, Any]:
        """Checkout sheet options; amount in minor units"""
        options = {
            'description': request.description,
            'currency': request.currency,
            'key': self.key_id,
            'amount': to_minor_units(request.amount),
            'name': self.merchant_name,
            'prefill': {
                'email': request.billing.email or '',
                'contact': request.billing.phone or '',
                'name': request.billing.full_name
            }
        }
        if request.gateway_order_id:
            options['order_id'] = request.gateway_order_id
        return options
    
    async def process(self, request: PaymentRequest) -> GatewayOutcome:
        if not self.sdk.is_available():
            error = GatewayUnavailableError("Razorpay")
            logger.warning("[Payment] Razorpay SDK not available in this build")
            return GatewayFailure(reason=error.message, error=error)
        
        options = self.build_options(request)
        logger.info(f"[Payment] Opening Razorpay checkout for {options['amount']} {options['currency']}")
        
        try:
            data = await self.sdk.open(options)
        except GatewayUnavailableError as e:
            return GatewayFailure(reason=e.message, error=e)
        except CardCheckoutError as e:
            logger.error(f"[Payment] Razorpay payment error: {e.description}")
            return GatewayFailure(reason=e.description or "Payment failed")
        
        payment_id = (data or {}).get('razorpay_payment_id')
        if not payment_id:
            logger.error(f"[Payment] Razorpay returned no payment id: {data}")
            return GatewayFailure(reason="Payment failed")
        
        logger.info(f"[Payment] Razorpay payment completed: {payment_id}")
        return GatewaySuccess(external_ref=ExternalRef(
            payment_id=payment_id,
            order_id=data.get('razorpay_order_id'),
            signature=data.get('razorpay_signature')
        ))


class PayPalGatewayAdapter(GatewayAdapter):
    """PayPal web checkout; completion is tracked elsewhere"""
    
    method = PaymentMethod.PAYPAL
    
    def __init__(self, checkout_url: Optional[str] = None, opener: Optional[LinkOpener] = None):
        self.checkout_url = checkout_url or config.payment.paypal_checkout_url
        self.opener = opener
    
    def build_redirect_url(self, token: str) -> str:
        return f"{self.checkout_url}?token={quote(token, safe='')}"
    
    async def process(self, request: PaymentRequest) -> GatewayOutcome:
        if not request.paypal_token:
            logger.error("[Payment] PayPal checkout requested without an order token")
            return GatewayFailure(reason=PAYPAL_INIT_FAILED_REASON)
        
        url = self.build_redirect_url(request.paypal_token)
        if self.opener is not None:
            try:
                await self.opener.open(url)
            except Exception as e:
                logger.error(f"[Payment] Could not open PayPal checkout: {e}")
                return GatewayFailure(reason=PAYPAL_INIT_FAILED_REASON)
        
        logger.info("[Payment] Redirecting to PayPal...")
        return RedirectInitiated(url=url)


class FallbackGatewayAdapter(GatewayAdapter):
    """Bank transfer - nothing to call, the order is settled by hand later"""
    
    method = PaymentMethod.FALLBACK_MANUAL
    
    async def process(self, request: PaymentRequest) -> GatewayOutcome:
        logger.info(f"[Payment] Manual payment selected for {request.description}")
        return GatewaySuccess()

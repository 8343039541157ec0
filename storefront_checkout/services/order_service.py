"""
Order submission

Turns an OrderDraft into the backend order payload and submits it. The cart
is cleared only after the backend has acknowledged the order; any failure
leaves it untouched so the customer can fix the problem and try again.
"""

from decimal import Decimal
from typing import Dict, List, Optional, Any, Union

from ..commerce_backend_client import CommerceBackendClient
from ..config import config, StoreConfig, PaymentConfig
from ..errors import CheckoutError, CommerceBackendError
from ..models.cart import CartState
from ..models.order import OrderDraft, Order, OrderReceipt
from ..models.payment import PaymentMethod, PaymentAttempt
from ..utils.logger import get_logger, get_payment_audit_logger, PaymentAuditLogger
from ..utils.pricing import format_amount, parse_price, quantize
from .cart_service import CartStore
from .gateways import GATEWAY_IDS

logger = get_logger(__name__)


def _line_item_product_id(product_id: Union[int, str]) -> Union[int, str]:
    try:
        return int(product_id)
    except (TypeError, ValueError):
        return product_id


class OrderSubmitter:
    """Builds and submits backend orders"""
    
    def __init__(
        self,
        cart_store: CartStore,
        backend_client: Optional[CommerceBackendClient] = None,
        store_config: Optional[StoreConfig] = None,
        payment_config: Optional[PaymentConfig] = None,
        audit: Optional[PaymentAuditLogger] = None
    ):
        """
        Initialize order submitter
        
        Args:
            cart_store: Cart to clear once an order is created
            backend_client: Commerce backend client
            store_config: Order source and app version
            payment_config: Bank transfer paid flag
            audit: Structured order event logger
        """
        self.cart_store = cart_store
        self.backend_client = backend_client or CommerceBackendClient()
        self.store_config = store_config or config.store
        self.payment_config = payment_config or config.payment
        self.audit = audit or get_payment_audit_logger()
    
    # ================================
    # PAYLOAD
    # ================================
    
    def is_paid(self, attempt: PaymentAttempt) -> bool:
        """Only a successful attempt marks the order paid; bank transfers are configurable"""
        if not attempt.succeeded:
            return False
        if attempt.method == PaymentMethod.FALLBACK_MANUAL:
            return self.payment_config.fallback_set_paid
        return True
    
    def build_line_items(self, cart: CartState) -> List[Dict[str, Any]]:
        return [
            {
                'product_id': _line_item_product_id(item.product_id),
                'quantity': item.quantity,
                'price': float(item.product.unit_price)
            }
            for item in cart.items
        ]
    
    def build_payload(self, draft: OrderDraft) -> Dict[str, Any]:
        """
        Build the order creation payload
        
        Args:
            draft: Cart snapshot, addresses, payment attempt and totals
            
        Returns:
            Payload for CommerceBackendClient.create_order
        """
        attempt = draft.payment_attempt
        gateway_id, gateway_title = GATEWAY_IDS[attempt.method]
        external_ref = attempt.external_ref
        transaction_id = (external_ref.payment_id if external_ref and external_ref.payment_id else '')
        
        meta_data = [
            {'key': '_order_source', 'value': self.store_config.order_source},
            {'key': '_app_version', 'value': self.store_config.app_version},
            {'key': '_order_subtotal', 'value': format_amount(draft.totals.subtotal)},
            {'key': '_order_tax', 'value': format_amount(draft.totals.tax)},
            {'key': '_order_total', 'value': format_amount(draft.totals.total)},
            {'key': '_payment_attempt_id', 'value': attempt.attempt_id},
        ]
        if external_ref:
            meta_data.extend(external_ref.to_meta_data())
        
        return {
            'payment_method': gateway_id,
            'payment_method_title': gateway_title,
            'set_paid': self.is_paid(attempt),
            'status': 'processing' if attempt.succeeded else 'pending',
            'currency': self.store_config.currency,
            'transaction_id': transaction_id,
            'customer_id': draft.customer_id,
            'billing': draft.billing.to_billing_dict(),
            'shipping': draft.shipping.to_shipping_dict(),
            'line_items': self.build_line_items(draft.cart_snapshot),
            'shipping_lines': [
                {
                    'method_id': 'free_shipping',
                    'method_title': 'Free Shipping',
                    'total': format_amount(draft.totals.shipping)
                }
            ],
            'fee_lines': [],
            'coupon_lines': [],
            'customer_note': draft.customer_note,
            'meta_data': meta_data
        }
    
    @staticmethod
    def expected_total(payload: Dict[str, Any]) -> Optional[Decimal]:
        for entry in payload.get('meta_data', []):
            if entry.get('key') == '_order_total':
                return quantize(parse_price(entry.get('value')))
        return None
    
    # ================================
    # SUBMISSION
    # ================================
    
    async def submit(self, payload: Dict[str, Any]) -> OrderReceipt:
        """
        Create the order and clear the cart
        
        A single request is made. On NetworkError the caller may resend the
        identical payload; other errors need the input or session fixed first.
        
        Raises:
            CheckoutError: classified backend failure; the cart is unchanged
        """
        logger.info(f"[Order] Submitting order with {len(payload.get('line_items', []))} line items "
                    f"via {payload.get('payment_method')}")
        
        try:
            response = await self.backend_client.create_order(payload)
        except CheckoutError as e:
            logger.error(f"[Order] Order creation failed: {type(e).__name__}: {e.message}")
            self.audit.log_order_event("order_failed", {
                'error': type(e).__name__,
                'message': e.message,
                'retryable': e.retryable
            })
            raise
        except Exception as e:
            logger.error(f"[Order] Unexpected error creating order: {e}")
            raise CommerceBackendError() from e
        
        if not isinstance(response, dict) or response.get('id') is None:
            logger.error(f"[Order] Backend acknowledged order without an id: {response!r}")
            raise CommerceBackendError()
        
        order = Order.from_dict(response)
        
        expected = self.expected_total(payload)
        if expected is not None and order.total != expected:
            logger.warning(f"[Order] Backend total {order.total} differs from checkout total {expected} "
                           f"for order {order.number}")
        
        self.cart_store.clear()
        
        receipt = OrderReceipt(
            order=order,
            paid=bool(payload.get('set_paid')),
            payment_method_title=payload.get('payment_method_title', ''),
            transaction_id=payload.get('transaction_id') or None
        )
        self.audit.log_order_event("order_created", receipt.to_dict())
        logger.info(f"[Order] Order {order.number} created, status {order.status}")
        return receipt

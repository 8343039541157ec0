"""
MOCK CARD CHECKOUT SDK - FOR DEVELOPMENT BUILDS ONLY
====================================================

Simulates the native Razorpay checkout sheet so the card flow can be driven
end to end on builds that do not link the real SDK. Enabled with
PAYMENT_MOCK_MODE=true.
"""

import hashlib
import hmac
import uuid
from datetime import datetime
from typing import Dict, Any, Optional

from ..config import config
from ..utils.logger import get_logger
from .gateways import CardCheckoutSDK, CardCheckoutError

logger = get_logger(__name__)


class MockCardCheckoutSDK(CardCheckoutSDK):
    """
    MOCK SDK - returns Razorpay-shaped checkout results
    
    Args:
        payment_id: Payment id to report (defaults to MOCK_RAZORPAY_PAYMENT_ID)
        fail_with: If set, every checkout fails with this description
    """
    
    def __init__(self, payment_id: Optional[str] = None, fail_with: Optional[str] = None):
        self.payment_id = payment_id or config.payment.mock_razorpay_payment_id
        self.fail_with = fail_with
        self.calls = []
        logger.info(f"[MOCK CARD SDK] Initialized with payment ID: {self.payment_id}")
    
    def is_available(self) -> bool:
        return True
    
    async def open(self, options: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(options)
        
        if self.fail_with:
            logger.info(f"[MOCK CARD SDK] Simulating failure: {self.fail_with}")
            raise CardCheckoutError(self.fail_with, code="BAD_REQUEST_ERROR")
        
        order_id = options.get('order_id') or f"order_{uuid.uuid4().hex[:14]}"
        signature = hmac.new(
            (options.get('key') or 'mock_secret').encode(),
            f"{order_id}|{self.payment_id}".encode(),
            hashlib.sha256
        ).hexdigest()
        
        logger.info(f"[MOCK CARD SDK] Paid {options.get('amount')} {options.get('currency')} "
                    f"at {datetime.now().isoformat()}")
        return {
            'razorpay_payment_id': self.payment_id,
            'razorpay_order_id': order_id,
            'razorpay_signature': signature
        }


def create_card_sdk() -> CardCheckoutSDK:
    """Card SDK for this build: mock in mock mode, otherwise unavailable"""
    if config.payment.mock_mode:
        return MockCardCheckoutSDK()
    from .gateways import UnavailableCardCheckoutSDK
    return UnavailableCardCheckoutSDK()

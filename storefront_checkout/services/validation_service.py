"""Checkout form validation"""

import re
from typing import List, Optional

from ..errors import ValidationError
from ..models.cart import CartState
from ..models.order import Address
from ..models.payment import PaymentMethod
from ..utils.logger import get_logger

logger = get_logger(__name__)


REQUIRED_BILLING_FIELDS = ['first_name', 'last_name', 'email', 'phone',
                           'address_1', 'city', 'state', 'postcode']
REQUIRED_SHIPPING_FIELDS = ['first_name', 'last_name', 'address_1',
                            'city', 'state', 'postcode']
EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


class CheckoutValidationService:
    """Checks the preconditions for leaving IDLE; raises on the first problem"""
    
    def missing_fields(self, address: Address, required: List[str]) -> List[str]:
        return [name for name in required if not str(getattr(address, name, '') or '').strip()]
    
    def validate_address(self, address: Address, kind: str, required: List[str]) -> None:
        """
        Check required fields of one address
        
        Raises:
            ValidationError: naming the first empty field
        """
        missing = self.missing_fields(address, required)
        if missing:
            field = missing[0]
            raise ValidationError(f"Please fill in the {kind} {field.replace('_', ' ')}.",
                                  field=f"{kind}.{field}")
    
    def validate_email(self, email: str) -> None:
        if not EMAIL_PATTERN.match(email or ''):
            raise ValidationError("Please enter a valid email address.", field="billing.email")
    
    def validate_checkout(
        self,
        cart: CartState,
        billing: Address,
        shipping: Optional[Address],
        same_as_billing: bool,
        method: Optional[PaymentMethod]
    ) -> None:
        """
        Validate everything required before a payment method can be committed
        
        Args:
            cart: Cart snapshot
            billing: Billing address form
            shipping: Shipping address form (ignored when same_as_billing)
            same_as_billing: Ship to the billing address
            method: Selected payment method
            
        Raises:
            ValidationError: for the first failing check
        """
        if cart.is_empty():
            raise ValidationError("Your cart is empty. Please add some items first.", field="cart")
        
        self.validate_address(billing, "billing", REQUIRED_BILLING_FIELDS)
        
        if not same_as_billing:
            self.validate_address(shipping or Address(), "shipping", REQUIRED_SHIPPING_FIELDS)
        
        self.validate_email(billing.email)
        
        if method is None:
            raise ValidationError("Please select a payment method to continue.",
                                  field="payment_method")
        
        logger.debug(f"[Validation] Checkout form valid for {method.value}")


_validation_service = None


def get_validation_service() -> CheckoutValidationService:
    global _validation_service
    if _validation_service is None:
        _validation_service = CheckoutValidationService()
    return _validation_service

"""Utility modules for the checkout core"""

from .logger import get_logger, setup_logging, get_payment_audit_logger, PaymentAuditLogger
from .decorators import with_retry
from .pricing import parse_price, quantize, format_amount, to_minor_units

__all__ = [
    "get_logger",
    "setup_logging",
    "get_payment_audit_logger",
    "PaymentAuditLogger",
    "with_retry",
    "parse_price",
    "quantize",
    "format_amount",
    "to_minor_units"
]

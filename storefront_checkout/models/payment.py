"""Payment data models: methods, attempt lifecycle and gateway outcomes"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Any, Union

from ..errors import CheckoutError, InvalidTransitionError


class PaymentMethod(Enum):
    """Payment methods offered at checkout"""
    UPI = "upi"
    CARD_GATEWAY = "card_gateway"
    PAYPAL = "paypal"
    FALLBACK_MANUAL = "fallback_manual"
    
    @classmethod
    def parse(cls, value: Union[str, 'PaymentMethod', None]) -> Optional['PaymentMethod']:
        """Accept enum members, enum values and legacy selection ids"""
        if value is None or value == "":
            return None
        if isinstance(value, cls):
            return value
        aliases = {
            "upi_qr": cls.UPI,
            "razorpay": cls.CARD_GATEWAY,
            "card": cls.CARD_GATEWAY,
            "credit_debit_cards": cls.CARD_GATEWAY,
            "bacs": cls.FALLBACK_MANUAL,
            "cod": cls.FALLBACK_MANUAL,
        }
        normalized = str(value).strip().lower()
        if normalized in aliases:
            return aliases[normalized]
        for member in cls:
            if member.value == normalized or member.name.lower() == normalized:
                return member
        return None


class PaymentStatus(Enum):
    """Status of a single payment attempt"""
    PENDING = "pending"
    AWAITING_EXTERNAL = "awaiting_external"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    
    @property
    def is_terminal(self) -> bool:
        return self in (PaymentStatus.SUCCESS, PaymentStatus.FAILED, PaymentStatus.CANCELLED)


class CheckoutState(Enum):
    """Payment orchestrator states"""
    IDLE = "idle"
    METHOD_SELECTED = "method_selected"
    AWAITING_EXTERNAL = "awaiting_external"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    
    @property
    def is_terminal(self) -> bool:
        return self in (CheckoutState.SUCCESS, CheckoutState.FAILED, CheckoutState.CANCELLED)


@dataclass(frozen=True)
class ExternalRef:
    """Gateway-issued references for a payment"""
    payment_id: Optional[str] = None
    order_id: Optional[str] = None
    signature: Optional[str] = None
    redirect_url: Optional[str] = None
    
    def to_meta_data(self) -> List[Dict[str, str]]:
        """Order meta_data entries for the references that are present"""
        entries = []
        if self.payment_id:
            entries.append({'key': '_transaction_id', 'value': self.payment_id})
        if self.order_id:
            entries.append({'key': '_payment_order_id', 'value': self.order_id})
        if self.signature:
            entries.append({'key': '_payment_signature', 'value': self.signature})
        if self.redirect_url:
            entries.append({'key': '_paypal_redirect_url', 'value': self.redirect_url})
        return entries
    
    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            'payment_id': self.payment_id,
            'order_id': self.order_id,
            'signature': self.signature,
            'redirect_url': self.redirect_url
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PaymentAttempt:
    """One attempt to pay with a chosen method; frozen once terminal"""
    method: PaymentMethod
    status: PaymentStatus = PaymentStatus.PENDING
    external_ref: Optional[ExternalRef] = None
    reason: Optional[str] = None
    attempt_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: datetime = field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    
    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal
    
    @property
    def succeeded(self) -> bool:
        return self.status == PaymentStatus.SUCCESS
    
    @property
    def redirect_pending(self) -> bool:
        """A web redirect was handed off and is resolved elsewhere"""
        return (self.status == PaymentStatus.AWAITING_EXTERNAL
                and self.external_ref is not None
                and self.external_ref.redirect_url is not None)
    
    def awaiting_external(self, external_ref: Optional[ExternalRef] = None) -> 'PaymentAttempt':
        """Return a copy marked as handed off to an external app or site"""
        if self.is_terminal:
            raise InvalidTransitionError(self.status.value, PaymentStatus.AWAITING_EXTERNAL.value)
        return replace(self, status=PaymentStatus.AWAITING_EXTERNAL,
                       external_ref=external_ref or self.external_ref)
    
    def complete(self, status: PaymentStatus, external_ref: Optional[ExternalRef] = None,
                 reason: Optional[str] = None) -> 'PaymentAttempt':
        """Return a terminal copy of this attempt"""
        if self.is_terminal:
            raise InvalidTransitionError(self.status.value, status.value,
                                         "Payment attempt is already complete")
        if not status.is_terminal:
            raise InvalidTransitionError(self.status.value, status.value,
                                         f"{status.value} is not a terminal payment status")
        return replace(self, status=status, external_ref=external_ref or self.external_ref,
                       reason=reason, completed_at=_utcnow())
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            'attempt_id': self.attempt_id,
            'method': self.method.value,
            'status': self.status.value,
            'external_ref': self.external_ref.to_dict() if self.external_ref else None,
            'reason': self.reason,
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None
        }


# ================================
# GATEWAY OUTCOMES
# ================================

@dataclass(frozen=True)
class GatewaySuccess:
    """Gateway reported a completed payment"""
    external_ref: ExternalRef = field(default_factory=ExternalRef)


@dataclass(frozen=True)
class GatewayFailure:
    """Gateway could not take the payment"""
    reason: str
    error: Optional[CheckoutError] = None


@dataclass(frozen=True)
class GatewayCancelled:
    """User backed out before paying"""
    reason: str


@dataclass(frozen=True)
class NeedsManualConfirmation:
    """Result cannot be observed - the user has to say whether they paid"""
    elapsed_seconds: float


@dataclass(frozen=True)
class ExternalLaunch:
    """Deep link is ready and openable; launching hands control to another app"""
    url: str


@dataclass(frozen=True)
class RedirectInitiated:
    """Web checkout was started; its result arrives through another channel"""
    url: str


GatewayOutcome = Union[
    GatewaySuccess,
    GatewayFailure,
    GatewayCancelled,
    NeedsManualConfirmation,
    ExternalLaunch,
    RedirectInitiated,
]

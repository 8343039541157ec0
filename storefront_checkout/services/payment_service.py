"""
Payment orchestration

Drives one checkout attempt through an explicit state machine:

    IDLE -> METHOD_SELECTED -> AWAITING_EXTERNAL (UPI, PayPal) -> SUCCESS | FAILED | CANCELLED

Terminal states are absorbing. A UPI payment cannot be observed directly, so
its result is inferred from how long the app spent in the background and,
when that is inconclusive, from the customer's own answer.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Union, Any

from ..config import config
from ..errors import (
    CheckoutError,
    ValidationError,
    InvalidTransitionError,
    ExternalPaymentAmbiguous
)
from ..models.cart import CartState
from ..models.order import Address
from ..models.payment import (
    PaymentMethod,
    PaymentStatus,
    CheckoutState,
    ExternalRef,
    PaymentAttempt,
    GatewayOutcome,
    GatewaySuccess,
    GatewayFailure,
    GatewayCancelled,
    NeedsManualConfirmation,
    ExternalLaunch,
    RedirectInitiated
)
from ..utils.logger import get_logger, get_payment_audit_logger, PaymentAuditLogger
from .gateways import GatewayAdapter, PaymentRequest, UpiGatewayAdapter, UPI_OPEN_FAILED_REASON
from .lifecycle_monitor import AppLifecycleMonitor, ForegroundWaitResult
from .validation_service import CheckoutValidationService, get_validation_service

logger = get_logger(__name__)


ALLOWED_TRANSITIONS = {
    CheckoutState.IDLE: {CheckoutState.METHOD_SELECTED, CheckoutState.CANCELLED},
    CheckoutState.METHOD_SELECTED: {CheckoutState.AWAITING_EXTERNAL, CheckoutState.SUCCESS,
                                    CheckoutState.FAILED, CheckoutState.CANCELLED},
    CheckoutState.AWAITING_EXTERNAL: {CheckoutState.SUCCESS, CheckoutState.FAILED,
                                      CheckoutState.CANCELLED},
    CheckoutState.SUCCESS: set(),
    CheckoutState.FAILED: set(),
    CheckoutState.CANCELLED: set(),
}

STATUS_TO_STATE = {
    PaymentStatus.SUCCESS: CheckoutState.SUCCESS,
    PaymentStatus.FAILED: CheckoutState.FAILED,
    PaymentStatus.CANCELLED: CheckoutState.CANCELLED,
}

UPI_TOO_QUICK_REASON = "Payment cancelled - insufficient time spent in UPI app"
UPI_TIMEOUT_REASON = "UPI payment could not be confirmed in time. Please retry."
UPI_DECLINED_REASON = "UPI payment was not completed"
UPI_CONFIRM_MESSAGE = ("Please confirm if your payment was successful in the UPI app.\n\n"
                       "Note: Only confirm if payment was actually completed.")


class ConfirmationPrompt(ABC):
    """Host dialog asking the customer whether an external payment went through"""
    
    @abstractmethod
    async def confirm_payment(self, question: ExternalPaymentAmbiguous) -> bool:
        """
        Show "Payment Completed" / "Payment Failed"
        
        Args:
            question: Ambiguity being resolved; its message is the prompt text
            
        Returns:
            True for "Payment Completed"
        """


class PaymentOrchestrator:
    """State machine for a single payment attempt"""
    
    def __init__(
        self,
        adapters: Dict[PaymentMethod, GatewayAdapter],
        monitor: Optional[AppLifecycleMonitor] = None,
        prompt: Optional[ConfirmationPrompt] = None,
        validator: Optional[CheckoutValidationService] = None,
        return_timeout: Optional[float] = None,
        min_background_seconds: Optional[float] = None,
        audit: Optional[PaymentAuditLogger] = None
    ):
        """
        Initialize payment orchestrator
        
        Args:
            adapters: Gateway adapter per supported method
            monitor: Lifecycle monitor, required for UPI
            prompt: Confirmation dialog, required for UPI
            validator: Checkout form validator
            return_timeout: Seconds to wait for the return from the UPI app
            min_background_seconds: Shorter background stays count as cancelled
            audit: Structured transition logger
        """
        self.adapters = adapters
        self.monitor = monitor
        self.prompt = prompt
        self.validator = validator or get_validation_service()
        self.return_timeout = (return_timeout if return_timeout is not None
                               else config.payment.upi_return_timeout_seconds)
        self.min_background_seconds = (min_background_seconds if min_background_seconds is not None
                                       else config.payment.upi_min_background_seconds)
        self.audit = audit or get_payment_audit_logger()
        
        self.state = CheckoutState.IDLE
        self.attempt: Optional[PaymentAttempt] = None
        self.last_error: Optional[CheckoutError] = None
    
    @property
    def method(self) -> Optional[PaymentMethod]:
        return self.attempt.method if self.attempt else None
    
    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal
    
    # ================================
    # TRANSITIONS
    # ================================
    
    def _transition(self, target: CheckoutState, reason: Optional[str] = None) -> None:
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state.value, target.value)
        
        previous = self.state
        self.state = target
        self.audit.log_transition(
            attempt_id=self.attempt.attempt_id if self.attempt else "-",
            method=self.method.value if self.method else None,
            from_state=previous.value,
            to_state=target.value,
            reason=reason
        )
    
    def _finish(self, status: PaymentStatus, external_ref: Optional[ExternalRef] = None,
                reason: Optional[str] = None) -> PaymentAttempt:
        self._transition(STATUS_TO_STATE[status], reason)
        self.attempt = self.attempt.complete(status, external_ref=external_ref, reason=reason)
        logger.info(f"[Payment] Attempt {self.attempt.attempt_id} {status.value}"
                    + (f": {reason}" if reason else ""))
        return self.attempt
    
    def select_method(
        self,
        method: Union[PaymentMethod, str, None],
        cart: CartState,
        billing: Address,
        shipping: Optional[Address] = None,
        same_as_billing: bool = True
    ) -> PaymentAttempt:
        """
        Commit to a payment method (IDLE -> METHOD_SELECTED)
        
        Raises:
            ValidationError: empty cart, bad address, or no/unsupported method;
                the orchestrator stays IDLE
            InvalidTransitionError: if not IDLE
        """
        if self.state != CheckoutState.IDLE:
            raise InvalidTransitionError(self.state.value, CheckoutState.METHOD_SELECTED.value)
        
        parsed = PaymentMethod.parse(method)
        if parsed is None and method not in (None, ""):
            raise ValidationError("Unsupported payment method", field="payment_method")
        
        self.validator.validate_checkout(cart, billing, shipping, same_as_billing, parsed)
        
        if parsed not in self.adapters:
            raise ValidationError("Unsupported payment method", field="payment_method")
        
        self.attempt = PaymentAttempt(method=parsed)
        self._transition(CheckoutState.METHOD_SELECTED)
        return self.attempt
    
    def cancel(self, reason: str = "Payment cancelled by user") -> Optional[PaymentAttempt]:
        """
        Abandon the attempt before anything external was started
        
        Raises:
            InvalidTransitionError: once the external app has been launched, or
                when the attempt is already finished
        """
        if self.state == CheckoutState.AWAITING_EXTERNAL:
            raise InvalidTransitionError(
                self.state.value, CheckoutState.CANCELLED.value,
                "Payment is in progress in another app and cannot be cancelled from here"
            )
        if self.state == CheckoutState.IDLE:
            self._transition(CheckoutState.CANCELLED, reason)
            return None
        return self._finish(PaymentStatus.CANCELLED, reason=reason)
    
    # ================================
    # EXECUTION
    # ================================
    
    async def run(self, request: PaymentRequest) -> PaymentAttempt:
        """
        Run the selected gateway to a result
        
        Returns:
            Terminal attempt, or an AWAITING_EXTERNAL attempt for a PayPal redirect
        """
        if self.state != CheckoutState.METHOD_SELECTED:
            raise InvalidTransitionError(self.state.value, "run",
                                         "Select a payment method before paying")
        
        adapter = self.adapters[self.method]
        outcome = await adapter.process(request)
        
        if isinstance(outcome, ExternalLaunch):
            return await self._run_external_app(adapter, outcome)
        if isinstance(outcome, RedirectInitiated):
            return self._hand_off_redirect(outcome)
        return self._resolve(outcome)
    
    def _resolve(self, outcome: GatewayOutcome) -> PaymentAttempt:
        if isinstance(outcome, GatewaySuccess):
            return self._finish(PaymentStatus.SUCCESS, external_ref=outcome.external_ref)
        if isinstance(outcome, GatewayCancelled):
            return self._finish(PaymentStatus.CANCELLED, reason=outcome.reason)
        if isinstance(outcome, GatewayFailure):
            self.last_error = outcome.error
            return self._finish(PaymentStatus.FAILED, reason=outcome.reason)
        raise TypeError(f"Unhandled gateway outcome: {outcome!r}")
    
    def _hand_off_redirect(self, outcome: RedirectInitiated) -> PaymentAttempt:
        self._transition(CheckoutState.AWAITING_EXTERNAL, "redirect initiated")
        self.attempt = self.attempt.awaiting_external(ExternalRef(redirect_url=outcome.url))
        return self.attempt
    
    async def _run_external_app(self, adapter: GatewayAdapter, launch: ExternalLaunch) -> PaymentAttempt:
        if self.monitor is None or self.prompt is None or not isinstance(adapter, UpiGatewayAdapter):
            return self._finish(PaymentStatus.FAILED,
                                reason="UPI payments are not supported on this device")
        
        self._transition(CheckoutState.AWAITING_EXTERNAL, "deep link opened")
        self.attempt = self.attempt.awaiting_external()
        
        try:
            result = await self.monitor.wait_for_foreground(
                self.return_timeout,
                before_wait=lambda: adapter.launch(launch.url)
            )
        except Exception as e:
            logger.error(f"[UPI] Error opening UPI app: {e}")
            return self._finish(PaymentStatus.FAILED, reason=UPI_OPEN_FAILED_REASON)
        
        outcome = self.classify_return(result)
        if isinstance(outcome, NeedsManualConfirmation):
            outcome = await self._confirm_with_customer(outcome)
        return self._resolve(outcome)
    
    def classify_return(self, result: ForegroundWaitResult) -> GatewayOutcome:
        """
        Apply the UPI timing heuristic
        
        - no return before the timeout: failed, customer should retry
        - back in under min_background_seconds: cancelled, too quick to have paid
        - otherwise: ask the customer
        """
        if result.timed_out:
            logger.warning("[UPI] No return from UPI app before timeout")
            return GatewayFailure(reason=UPI_TIMEOUT_REASON)
        
        elapsed = result.background_seconds
        logger.info(f"[UPI] Time spent in UPI app: {elapsed:.1f}s")
        if elapsed < self.min_background_seconds:
            return GatewayCancelled(reason=UPI_TOO_QUICK_REASON)
        return NeedsManualConfirmation(elapsed_seconds=elapsed)
    
    async def _confirm_with_customer(self, pending: NeedsManualConfirmation) -> GatewayOutcome:
        question = ExternalPaymentAmbiguous(pending.elapsed_seconds, UPI_CONFIRM_MESSAGE)
        try:
            confirmed = await self.prompt.confirm_payment(question)
        except Exception as e:
            logger.error(f"[UPI] Confirmation prompt failed: {e}")
            return GatewayFailure(reason=UPI_DECLINED_REASON, error=question)
        
        logger.info(f"[UPI] Customer reported payment {'completed' if confirmed else 'failed'}")
        if confirmed:
            return GatewaySuccess()
        return GatewayFailure(reason=UPI_DECLINED_REASON)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'attempt': self.attempt.to_dict() if self.attempt else None,
            'error': self.last_error.to_dict() if self.last_error else None
        }

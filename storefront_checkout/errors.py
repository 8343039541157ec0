"""
Checkout Error Handling

Error taxonomy for checkout, payment orchestration and order submission.
Every error carries a numeric code, a user-presentable message and whether
the same request may be resent unchanged.
"""

from typing import Optional, Any, Dict
from enum import IntEnum


class ErrorCode(IntEnum):
    """Checkout error codes"""
    
    # Caller must edit input and resubmit
    VALIDATION = 1000
    
    # Session level
    AUTH = 2000
    
    # Transport level - resend identical payload
    NETWORK = 3000
    
    # Payment gateways
    GATEWAY_UNAVAILABLE = 4000
    PAYMENT_AMBIGUOUS = 4001
    INVALID_TRANSITION = 4002
    
    # Anything else from the backend
    BACKEND = 5000
    UNKNOWN = 5999


class CheckoutError(Exception):
    """Base class for all checkout errors"""
    
    retryable = False
    
    def __init__(
        self,
        code: int,
        message: str,
        data: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize checkout error
        
        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            data: Optional additional error data
        """
        self.code = code
        self.message = message
        self.data = data or {}
        super().__init__(message)
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert error to a response-friendly dict"""
        error_dict = {
            "code": int(self.code),
            "type": type(self).__name__,
            "message": self.message,
            "retryable": self.retryable
        }
        if self.data:
            error_dict["data"] = self.data
        return error_dict


class ValidationError(CheckoutError):
    """Invalid or missing checkout input, or a backend validation rejection"""
    
    def __init__(self, message: str, field: Optional[str] = None,
                 status: Optional[int] = None, data: Optional[Dict] = None):
        payload = dict(data or {})
        if field:
            payload["field"] = field
        if status is not None:
            payload["status"] = status
        self.field = field
        self.status = status
        super().__init__(ErrorCode.VALIDATION, message, payload)


class AuthError(CheckoutError):
    """Credentials rejected - the session must re-authenticate before retrying"""
    
    def __init__(self, message: str = "Please log in again and try placing your order.",
                 status: Optional[int] = None, data: Optional[Dict] = None):
        self.status = status
        super().__init__(ErrorCode.AUTH, message,
                         data or ({"status": status} if status is not None else None))


class NetworkError(CheckoutError):
    """Transport failure or timeout - the identical request may be resent"""
    
    retryable = True
    
    def __init__(self, message: str = "Please check your internet connection and try again.",
                 data: Optional[Dict] = None):
        super().__init__(ErrorCode.NETWORK, message, data)


class GatewayUnavailableError(CheckoutError):
    """Native payment SDK is missing from this build"""
    
    def __init__(self, gateway: str, message: Optional[str] = None):
        self.gateway = gateway
        super().__init__(
            ErrorCode.GATEWAY_UNAVAILABLE,
            message or (f"{gateway} requires a development build. "
                        f"Please use UPI or other payment methods."),
            {"gateway": gateway, "suggested_method": "UPI"}
        )


class ExternalPaymentAmbiguous(CheckoutError):
    """External payment app gave no verifiable result - needs manual confirmation"""
    
    def __init__(self, elapsed_seconds: float, message: Optional[str] = None):
        self.elapsed_seconds = elapsed_seconds
        super().__init__(
            ErrorCode.PAYMENT_AMBIGUOUS,
            message or "Please confirm if your payment was successful in the UPI app.",
            {"elapsed_seconds": round(elapsed_seconds, 3)}
        )


class InvalidTransitionError(CheckoutError):
    """Payment state machine was asked for a move it does not allow"""
    
    def __init__(self, from_state: str, to_state: str, message: Optional[str] = None):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            ErrorCode.INVALID_TRANSITION,
            message or f"Cannot move payment from {from_state} to {to_state}",
            {"from": from_state, "to": to_state}
        )


class CommerceBackendError(CheckoutError):
    """Any backend failure that is not validation, auth or transport"""
    
    def __init__(self, message: str = "There was an error placing your order. Please try again.",
                 status: Optional[int] = None, data: Optional[Dict] = None):
        self.status = status
        payload = dict(data or {})
        if status is not None:
            payload["status"] = status
        super().__init__(ErrorCode.BACKEND, message, payload)


class ErrorHandler:
    """Utility class for handling and formatting errors"""
    
    @staticmethod
    def handle_exception(e: Exception) -> Dict[str, Any]:
        """
        Convert any exception to an error response dict
        
        Args:
            e: Exception to handle
            
        Returns:
            Dict with success=False and the error details
        """
        if isinstance(e, CheckoutError):
            return {"success": False, "error": e.to_dict()}
        
        unknown = CheckoutError(
            ErrorCode.UNKNOWN,
            str(e) or "An unexpected error occurred",
            {"exception_type": type(e).__name__}
        )
        return {"success": False, "error": unknown.to_dict()}
    
    @staticmethod
    def error_title(e: Exception) -> str:
        """Short title for an error dialog"""
        if isinstance(e, ValidationError):
            return "Validation Error"
        if isinstance(e, AuthError):
            return "Authentication Error"
        if isinstance(e, NetworkError):
            return "Network Error"
        if isinstance(e, GatewayUnavailableError):
            return "Payment Method Unavailable"
        return "Order Failed"

"""Configuration management for the storefront checkout core"""

import os
import sys
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Dict, Any
from dotenv import load_dotenv
import logging

# Load environment variables
load_dotenv()


@dataclass
class APIConfig:
    """Commerce backend configuration"""
    base_url: str
    consumer_key: Optional[str] = None
    consumer_secret: Optional[str] = None
    api_path: str = "/wp-json/wc/v3"
    timeout: float = 30.0
    retry_attempts: int = 3
    retry_delay: float = 1.0
    debug_curl: bool = False
    
    @property
    def endpoint(self) -> str:
        """Full REST endpoint root"""
        return f"{self.base_url.rstrip('/')}{self.api_path}"
    
    @property
    def default_headers(self) -> Dict[str, str]:
        """Default headers for API requests"""
        return {
            "Content-Type": "application/json",
            "Accept": "application/json"
        }


@dataclass
class StoreConfig:
    """Merchant and pricing configuration"""
    name: str = "Ophtho India"
    currency: str = "INR"
    tax_rate: Decimal = Decimal("0.10")
    app_version: str = "1.0.0"
    order_source: str = "mobile_app"


@dataclass
class PaymentConfig:
    """Payment gateway configuration"""
    upi_payee_id: str = "merchant@paytm"
    upi_return_timeout_seconds: float = 300.0
    upi_min_background_seconds: float = 5.0
    razorpay_key_id: Optional[str] = None
    paypal_checkout_url: str = "https://www.paypal.com/checkoutnow"
    
    # Mock Mode Settings - FOR DEVELOPMENT BUILDS ONLY
    mock_mode: bool = False
    mock_razorpay_payment_id: str = "pay_RFWPuAV50T2Qnj"
    
    # Bank transfer orders are reconciled by hand
    fallback_set_paid: bool = False


@dataclass
class StorageConfig:
    """Local persisted state configuration"""
    store_type: str = "file"  # file, redis, memory (tests only)
    store_path: str = "./storefront_store"
    cart_key: str = "cart"
    payment_methods_key: str = "paymentMethods"
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    file: Optional[str] = None
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Config:
    """Main configuration class"""
    
    def __init__(self):
        self.api = APIConfig(
            base_url=os.getenv("COMMERCE_BASE_URL", "https://ophthoindia.in"),
            consumer_key=os.getenv("COMMERCE_CONSUMER_KEY"),
            consumer_secret=os.getenv("COMMERCE_CONSUMER_SECRET"),
            api_path=os.getenv("COMMERCE_API_PATH", "/wp-json/wc/v3"),
            timeout=float(os.getenv("COMMERCE_TIMEOUT", "30")),
            retry_attempts=int(os.getenv("COMMERCE_RETRY_ATTEMPTS", "3")),
            retry_delay=float(os.getenv("COMMERCE_RETRY_DELAY", "1.0")),
            debug_curl=os.getenv("DEBUG_CURL_LOGGING", "false").lower() == "true"
        )
        
        self.store = StoreConfig(
            name=os.getenv("STORE_NAME", "Ophtho India"),
            currency=os.getenv("STORE_CURRENCY", "INR"),
            tax_rate=Decimal(os.getenv("STORE_TAX_RATE", "0.10")),
            app_version=os.getenv("APP_VERSION", "1.0.0"),
            order_source=os.getenv("ORDER_SOURCE", "mobile_app")
        )
        
        self.payment = PaymentConfig(
            upi_payee_id=os.getenv("UPI_PAYEE_ID", "merchant@paytm"),
            upi_return_timeout_seconds=float(os.getenv("UPI_RETURN_TIMEOUT_SECONDS", "300")),
            upi_min_background_seconds=float(os.getenv("UPI_MIN_BACKGROUND_SECONDS", "5")),
            razorpay_key_id=os.getenv("RAZORPAY_KEY_ID"),
            paypal_checkout_url=os.getenv("PAYPAL_CHECKOUT_URL", "https://www.paypal.com/checkoutnow"),
            mock_mode=os.getenv("PAYMENT_MOCK_MODE", "false").lower() == "true",
            mock_razorpay_payment_id=os.getenv("MOCK_RAZORPAY_PAYMENT_ID", "pay_RFWPuAV50T2Qnj"),
            fallback_set_paid=os.getenv("FALLBACK_SET_PAID", "false").lower() == "true"
        )
        
        self.storage = StorageConfig(
            store_type=os.getenv("CART_STORE", "file"),  # Default to file for persistence
            store_path=os.path.expanduser(os.getenv("CART_STORE_PATH", "~/.storefront-checkout/store")),
            cart_key=os.getenv("CART_STORAGE_KEY", "cart"),
            payment_methods_key=os.getenv("PAYMENT_METHODS_STORAGE_KEY", "paymentMethods"),
            redis_host=os.getenv("REDIS_HOST", "localhost"),
            redis_port=int(os.getenv("REDIS_PORT", "6379")),
            redis_db=int(os.getenv("REDIS_DB_CART", "0"))
        )
        
        self.logging = LoggingConfig(
            level=os.getenv("LOG_LEVEL", "INFO"),
            file=os.getenv("LOG_FILE")
        )
        
        self._configure_logging()
    
    def _configure_logging(self):
        """Configure logging based on settings"""
        log_level = getattr(logging, self.logging.level.upper(), logging.INFO)
        
        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)
        
        # Console handler on stderr, added once
        if not any(getattr(h, "_storefront_handler", False) for h in root_logger.handlers):
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(log_level)
            console_handler.setFormatter(logging.Formatter(self.logging.format))
            console_handler._storefront_handler = True
            root_logger.addHandler(console_handler)
        
        if self.logging.file:
            try:
                log_dir = os.path.dirname(self.logging.file)
                if log_dir and not os.path.exists(log_dir):
                    os.makedirs(log_dir, exist_ok=True)
                
                file_handler = logging.FileHandler(self.logging.file)
                file_handler.setLevel(log_level)
                file_handler.setFormatter(logging.Formatter(self.logging.format))
                root_logger.addHandler(file_handler)
            except (OSError, PermissionError) as e:
                logging.warning(f"Could not create log file {self.logging.file}: {e}")
    
    def validate(self) -> bool:
        """Validate configuration"""
        errors = []
        
        if not self.api.base_url:
            errors.append("COMMERCE_BASE_URL is required")
        if not self.api.consumer_key or not self.api.consumer_secret:
            errors.append("COMMERCE_CONSUMER_KEY and COMMERCE_CONSUMER_SECRET are required")
        if not self.payment.upi_payee_id:
            errors.append("UPI_PAYEE_ID is required")
        if self.storage.store_type not in ("file", "redis", "memory"):
            errors.append(f"CART_STORE must be 'file', 'redis' or 'memory', got '{self.storage.store_type}'")
        
        if errors:
            for error in errors:
                logging.error(f"Configuration error: {error}")
            return False
            
        return True
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary (no secrets)"""
        return {
            "api": {
                "endpoint": self.api.endpoint,
                "timeout": self.api.timeout,
                "retry_attempts": self.api.retry_attempts,
                "retry_delay": self.api.retry_delay
            },
            "store": {
                "name": self.store.name,
                "currency": self.store.currency,
                "tax_rate": str(self.store.tax_rate),
                "app_version": self.store.app_version
            },
            "payment": {
                "upi_payee_id": self.payment.upi_payee_id,
                "upi_return_timeout_seconds": self.payment.upi_return_timeout_seconds,
                "upi_min_background_seconds": self.payment.upi_min_background_seconds,
                "mock_mode": self.payment.mock_mode,
                "fallback_set_paid": self.payment.fallback_set_paid
            },
            "storage": {
                "store_type": self.storage.store_type,
                "store_path": self.storage.store_path,
                "cart_key": self.storage.cart_key,
                "payment_methods_key": self.storage.payment_methods_key
            },
            "logging": {
                "level": self.logging.level,
                "file": self.logging.file
            }
        }


# Global configuration instance
config = Config()

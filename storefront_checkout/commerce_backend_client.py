"""
Commerce Backend Client

REST client for the store's order backend (WooCommerce-style /wp-json/wc/v3).
Order creation is a single POST that is never retried here: a retry after a
lost response could create a duplicate order. Reads retry with exponential
backoff on timeouts and gateway errors.
"""

import httpx
import json
import shlex
from typing import Dict, List, Optional, Any
from urllib.parse import urlencode

from .config import config
from .errors import (
    CheckoutError,
    ValidationError,
    AuthError,
    NetworkError,
    CommerceBackendError
)
from .utils.decorators import with_retry
from .utils.logger import get_logger

logger = get_logger(__name__)


RETRYABLE_STATUS_CODES = (502, 503, 504)

DEFAULT_PAYMENT_GATEWAYS = [
    {"id": "upi", "title": "UPI QR Code", "enabled": True},
    {"id": "razorpay", "title": "Razorpay", "enabled": True},
    {"id": "paypal", "title": "PayPal", "enabled": True},
    {"id": "bacs", "title": "Direct Bank Transfer", "enabled": True},
]


def is_retryable_read_error(error: BaseException) -> bool:
    """Timeouts, connection drops and 502/503/504 may be retried for reads"""
    if isinstance(error, NetworkError):
        return True
    return isinstance(error, CommerceBackendError) and error.status in RETRYABLE_STATUS_CODES


class CommerceBackendClient:
    """Client for the commerce backend order APIs"""
    
    def __init__(
        self,
        base_url: str = None,
        consumer_key: str = None,
        consumer_secret: str = None,
        timeout: float = None,
        retry_attempts: int = None,
        retry_delay: float = None,
        debug_curl: bool = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the commerce backend client
        
        Args:
            base_url: Backend REST root (defaults to COMMERCE_BASE_URL + COMMERCE_API_PATH)
            consumer_key: REST API consumer key
            consumer_secret: REST API consumer secret
            timeout: Request timeout in seconds
            retry_attempts: Total attempts for read requests
            retry_delay: Delay before the first read retry in seconds
            debug_curl: Enable CURL command logging for debugging
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = (base_url or config.api.endpoint).rstrip('/')
        self.consumer_key = consumer_key if consumer_key is not None else config.api.consumer_key
        self.consumer_secret = (consumer_secret if consumer_secret is not None
                                else config.api.consumer_secret)
        self.retry_attempts = retry_attempts if retry_attempts is not None else config.api.retry_attempts
        self.retry_delay = retry_delay if retry_delay is not None else config.api.retry_delay
        self.debug_curl = debug_curl if debug_curl is not None else config.api.debug_curl
        self.transport = transport
        
        # HTTP client configuration
        self.timeout = httpx.Timeout(timeout if timeout is not None else config.api.timeout)
        self.limits = httpx.Limits(max_keepalive_connections=5, max_connections=10)
        
        logger.info(f"CommerceBackendClient initialized with base_url: {self.base_url}")
        if self.debug_curl:
            logger.info("CURL logging enabled for API calls")
    
    @property
    def auth(self) -> Optional[httpx.BasicAuth]:
        if self.consumer_key and self.consumer_secret:
            return httpx.BasicAuth(self.consumer_key, self.consumer_secret)
        return None
    
    def _generate_curl_command(self, method: str, url: str, headers: Dict,
                               params: Optional[Dict], json_data: Optional[Dict]) -> str:
        """Generate curl command for debugging; credentials are redacted"""
        curl_parts = ['curl', '-X', method.upper()]
        
        for key, value in headers.items():
            if key.lower() not in ['content-length', 'host', 'user-agent']:
                curl_parts.extend(['-H', shlex.quote(f'{key}: {value}')])
        
        if self.auth is not None:
            curl_parts.extend(['-u', shlex.quote(f'{self.consumer_key}:***')])
        
        if json_data:
            curl_parts.extend(['-d', shlex.quote(json.dumps(json_data, separators=(',', ':')))])
        
        if params:
            url = f"{url}?{urlencode(params)}"
        
        curl_parts.append(shlex.quote(url))
        return ' '.join(curl_parts)
    
    @staticmethod
    def _error_message(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict):
            return body.get("message") or None
        return None
    
    def _classify_response(self, response: httpx.Response, endpoint: str) -> CheckoutError:
        """Map a non-2xx response to the checkout error taxonomy"""
        status = response.status_code
        server_message = self._error_message(response)
        
        if status in (400, 422):
            logger.error(f"HTTP {status} for {endpoint}: {response.text}")
            return ValidationError(
                server_message or "Invalid order data. Please check your information.",
                status=status
            )
        if status == 401:
            logger.error(f"Unauthorized access to {endpoint}. Check consumer key and secret.")
            return AuthError(status=status)
        if status == 403:
            logger.error(f"Forbidden access to {endpoint}")
            return AuthError("You do not have permission to place orders. Please contact support.",
                             status=status)
        if status >= 500:
            logger.error(f"HTTP {status} for {endpoint}: Server error. {response.text}")
            return CommerceBackendError("Server error. Please try again later.", status=status)
        
        logger.error(f"HTTP {status} for {endpoint}: {response.text}")
        return CommerceBackendError(server_message or f"Request failed with status {status}",
                                    status=status)
    
    async def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict] = None,
        json_data: Optional[Dict] = None
    ) -> Any:
        """
        Make HTTP request to the commerce backend
        
        Returns:
            Decoded JSON body
            
        Raises:
            NetworkError: timeout or transport failure
            ValidationError: 400/422
            AuthError: 401/403
            CommerceBackendError: anything else
        """
        url = f"{self.base_url}{endpoint}"
        request_headers = config.api.default_headers
        
        if self.debug_curl:
            curl_cmd = self._generate_curl_command(method, url, request_headers, params, json_data)
            logger.info(f"CURL: {curl_cmd}")
        
        logger.info(f"[REQUEST] {method.upper()} {url}")
        if params:
            logger.debug(f"[REQUEST] Params: {params}")
        
        try:
            async with httpx.AsyncClient(timeout=self.timeout, limits=self.limits,
                                         auth=self.auth, transport=self.transport) as client:
                response = await client.request(
                    method=method.upper(),
                    url=url,
                    params=params,
                    json=json_data,
                    headers=request_headers
                )
        except httpx.TimeoutException as e:
            logger.error(f"Timeout for {endpoint}: {e}")
            raise NetworkError("Request timed out. Please check your internet connection and try again.",
                               data={"timeout": True}) from e
        except httpx.TransportError as e:
            logger.error(f"Network/connection error for {endpoint}: {e}. Check backend availability.")
            raise NetworkError() from e
        
        logger.debug(f"{method.upper()} {url} -> {response.status_code}")
        if self.debug_curl:
            logger.info(f"[CURL RESPONSE] Status: {response.status_code}")
            logger.info(f"[CURL RESPONSE] Body:\n{response.text[:1000]}")
        
        if not response.is_success:
            raise self._classify_response(response, endpoint)
        
        try:
            return response.json()
        except ValueError:
            return {"data": response.text}
    
    async def _get(self, endpoint: str, params: Optional[Dict] = None) -> Any:
        """GET with exponential backoff on retryable failures"""
        request = with_retry(
            max_attempts=self.retry_attempts,
            initial_delay=self.retry_delay,
            retry_on=(NetworkError, CommerceBackendError),
            should_retry=is_retryable_read_error
        )(self._make_request)
        return await request("GET", endpoint, params=params)
    
    # ================================
    # ORDER APIs
    # ================================
    
    async def create_order(self, order_data: Dict) -> Dict:
        """
        Create an order - single attempt, never retried
        
        Args:
            order_data: Order payload
            
        Returns:
            Created order as returned by the backend
        """
        return await self._make_request("POST", "/orders", json_data=order_data)
    
    async def get_order(self, order_id: int) -> Dict:
        """Get a single order"""
        return await self._get(f"/orders/{order_id}")
    
    async def get_orders(self, customer_id: Optional[int] = None, **params) -> List[Dict]:
        """List orders, optionally for one customer"""
        if customer_id:
            params["customer"] = customer_id
        result = await self._get("/orders", params=params or None)
        return result if isinstance(result, list) else []
    
    # ================================
    # PAYMENT GATEWAY APIs
    # ================================
    
    async def get_payment_gateways(self) -> List[Dict]:
        """
        Enabled payment gateways, falling back to the built-in list
        
        The gateway list only drives the method picker, so a backend failure
        here should not block checkout.
        """
        try:
            gateways = await self._get("/payment_gateways")
        except CheckoutError as e:
            logger.warning(f"[Gateways] Could not fetch payment gateways, using defaults: {e.message}")
            return [dict(g) for g in DEFAULT_PAYMENT_GATEWAYS]
        
        if not isinstance(gateways, list):
            return [dict(g) for g in DEFAULT_PAYMENT_GATEWAYS]
        return [g for g in gateways if g.get("enabled")]
    
    async def health_check(self) -> bool:
        """Check whether the backend answers at all"""
        try:
            await self._make_request("GET", "/system_status")
            return True
        except CheckoutError as e:
            logger.warning(f"[Health] Backend health check failed: {e.message}")
            return False

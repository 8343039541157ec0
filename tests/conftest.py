"""
Shared test fixtures and fakes for the checkout core test suite.
"""

import json
from typing import Callable, List, Optional

import httpx
import pytest

from storefront_checkout.commerce_backend_client import CommerceBackendClient
from storefront_checkout.models.cart import ProductRef
from storefront_checkout.models.order import Address
from storefront_checkout.services.cart_persistence import CartPersistence
from storefront_checkout.services.cart_service import CartStore
from storefront_checkout.services.gateways import LinkOpener
from storefront_checkout.services.lifecycle_monitor import (
    AppLifecycleMonitor,
    AppState,
    ManualLifecycleSource,
)
from storefront_checkout.services.payment_service import ConfirmationPrompt
from storefront_checkout.storage import MemoryKeyValueStore


BASE_URL = "https://shop.test/wp-json/wc/v3"


# ============================================================================
# Fakes
# ============================================================================


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingLifecycleSource(ManualLifecycleSource):
    """Lifecycle source that remembers how often it was subscribed to."""

    def __init__(self):
        super().__init__()
        self.subscribe_calls = 0

    def subscribe(self, handler):
        self.subscribe_calls += 1
        return super().subscribe(handler)


class FakeLinkOpener(LinkOpener):
    """
    Link opener that simulates the trip to a UPI app.

    When ``background_seconds`` is set, opening a link sends the app to the
    background, advances the clock and brings it back. With
    ``returns=False`` the app never comes back.
    """

    def __init__(
        self,
        source: Optional[ManualLifecycleSource] = None,
        clock: Optional[FakeClock] = None,
        can_open: bool = True,
        background_seconds: Optional[float] = None,
        returns: bool = True,
        fail_with: Optional[Exception] = None,
    ):
        self.source = source
        self.clock = clock
        self._can_open = can_open
        self.background_seconds = background_seconds
        self.returns = returns
        self.fail_with = fail_with
        self.checked: List[str] = []
        self.opened: List[str] = []

    async def can_open(self, url: str) -> bool:
        self.checked.append(url)
        return self._can_open

    async def open(self, url: str) -> None:
        self.opened.append(url)
        if self.fail_with is not None:
            raise self.fail_with
        if self.source is None or self.background_seconds is None:
            return
        self.source.emit(AppState.BACKGROUND)
        self.clock.advance(self.background_seconds)
        if self.returns:
            self.source.emit(AppState.ACTIVE)


class ScriptedPrompt(ConfirmationPrompt):
    """Confirmation dialog that always gives the same answer."""

    def __init__(self, answer: bool = True):
        self.answer = answer
        self.questions = []

    async def confirm_payment(self, question) -> bool:
        self.questions.append(question)
        return self.answer


class FailingKeyValueStore(MemoryKeyValueStore):
    """Store whose writes always fail."""

    def set(self, key, value):
        raise OSError("disk full")


# ============================================================================
# Helpers
# ============================================================================


def make_product(product_id=1, price="100.00", name=None) -> ProductRef:
    return ProductRef(id=product_id, name=name or f"Product {product_id}", price=price)


def make_billing(**overrides) -> Address:
    values = {
        "first_name": "Asha",
        "last_name": "Rao",
        "email": "asha@example.com",
        "phone": "9876543210",
        "address_1": "12 MG Road",
        "city": "Bengaluru",
        "state": "KA",
        "postcode": "560001",
        "country": "IN",
    }
    values.update(overrides)
    return Address(**values)


def make_backend_client(handler: Callable[[httpx.Request], httpx.Response], **overrides) -> CommerceBackendClient:
    """Backend client wired to an in-process httpx.MockTransport."""
    options = {
        "base_url": BASE_URL,
        "consumer_key": "ck_test",
        "consumer_secret": "cs_secret",
        "retry_attempts": 3,
        "retry_delay": 0,
        "debug_curl": False,
    }
    options.update(overrides)
    return CommerceBackendClient(transport=httpx.MockTransport(handler), **options)


def order_response(order_id=501, total="220.00", status="processing", **extra) -> dict:
    body = {
        "id": order_id,
        "number": str(order_id),
        "status": status,
        "total": total,
        "payment_method_title": "Razorpay",
        "transaction_id": "",
    }
    body.update(extra)
    return body


def request_json(request: httpx.Request) -> dict:
    return json.loads(request.content.decode())


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def memory_store():
    return MemoryKeyValueStore()


@pytest.fixture
def cart_store(memory_store):
    return CartStore(CartPersistence(store=memory_store, key="cart"))


@pytest.fixture
def filled_cart(cart_store):
    """Two units at 100.00 each."""
    cart_store.add_item(make_product(1, "100.00"), 2)
    return cart_store


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def lifecycle_source():
    return CountingLifecycleSource()


@pytest.fixture
def monitor(lifecycle_source, clock):
    return AppLifecycleMonitor(lifecycle_source, clock=clock, poll_interval=0.001)


@pytest.fixture
def billing():
    return make_billing()

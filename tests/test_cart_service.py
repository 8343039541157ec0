"""
Tests for the cart store - mutations, derived totals and persistence.
"""

import asyncio
import dataclasses
from decimal import Decimal

import pytest

from storefront_checkout.services.cart_persistence import CartPersistence
from storefront_checkout.services.cart_service import CartStore

from conftest import FailingKeyValueStore, make_product


def _assert_totals_consistent(store: CartStore):
    assert store.total_items == sum(item.quantity for item in store.items)
    assert store.total_price == sum(
        (item.product.unit_price * item.quantity for item in store.items), Decimal("0")
    )
    assert all(item.quantity >= 1 for item in store.items)
    ids = [item.product_id for item in store.items]
    assert len(ids) == len(set(ids))


class TestCartMutations:
    """add / remove / set quantity / clear."""

    def test_add_new_item(self, cart_store):
        assert cart_store.add_item(make_product(1, "100.00"), 2) is True
        assert cart_store.total_items == 2
        assert cart_store.total_price == Decimal("200.00")

    def test_add_existing_item_increments_quantity(self, cart_store):
        product = make_product(1, "100.00")
        cart_store.add_item(product, 1)
        cart_store.add_item(product, 2)

        assert len(cart_store.items) == 1
        assert cart_store.get_item_quantity(1) == 3
        assert cart_store.total_price == Decimal("300.00")

    def test_add_accepts_catalog_dict(self, cart_store):
        cart_store.add_item({"id": 7, "name": "Lens", "price": "49.50",
                             "images": [{"src": "https://img.test/lens.png"}]})
        item = cart_store.items[0]
        assert item.product.image == "https://img.test/lens.png"
        assert cart_store.total_price == Decimal("49.50")

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True, "2"])
    def test_add_with_invalid_quantity_is_ignored(self, cart_store, quantity):
        assert cart_store.add_item(make_product(1), quantity) is False
        assert cart_store.is_empty()
        assert cart_store.total_items == 0

    def test_missing_price_counts_as_zero(self, cart_store):
        cart_store.add_item(make_product(1, ""), 3)
        assert cart_store.total_items == 3
        assert cart_store.total_price == Decimal("0")

    def test_remove_unknown_item_is_noop(self, filled_cart):
        before = filled_cart.state
        assert filled_cart.remove_item(999) is False
        assert filled_cart.state is before

    def test_remove_item(self, filled_cart):
        assert filled_cart.remove_item(1) is True
        assert filled_cart.is_empty()
        assert filled_cart.total_price == Decimal("0")

    def test_set_quantity_replaces(self, filled_cart):
        assert filled_cart.set_quantity(1, 5) is True
        assert filled_cart.get_item_quantity(1) == 5
        assert filled_cart.total_price == Decimal("500.00")

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_set_quantity_non_positive_removes(self, filled_cart, quantity):
        assert filled_cart.set_quantity(1, quantity) is True
        assert not filled_cart.is_in_cart(1)

    def test_set_quantity_unknown_item_is_noop(self, filled_cart):
        assert filled_cart.set_quantity(42, 3) is False
        assert filled_cart.total_items == 2

    @pytest.mark.parametrize("quantity", [2.5, "3", None, True])
    def test_set_quantity_with_invalid_quantity_is_ignored(self, filled_cart, quantity):
        assert filled_cart.set_quantity(1, quantity) is False
        assert filled_cart.get_item_quantity(1) == 2
        assert filled_cart.total_price == Decimal("200.00")

    def test_items_cannot_be_edited_behind_the_store(self, filled_cart):
        item = filled_cart.items[0]
        with pytest.raises(dataclasses.FrozenInstanceError):
            item.quantity = 9
        with pytest.raises(dataclasses.FrozenInstanceError):
            filled_cart.state.total_items = 9

        filled_cart.items.clear()
        _assert_totals_consistent(filled_cart)
        assert filled_cart.total_items == 2

    def test_clear_zeroes_totals(self, filled_cart):
        filled_cart.clear()
        assert filled_cart.items == []
        assert filled_cart.total_items == 0
        assert filled_cart.total_price == Decimal("0")

    def test_totals_stay_consistent_across_operations(self, cart_store):
        a, b, c = make_product(1, "100.00"), make_product(2, "19.99"), make_product("sku-3", "0.10")
        operations = [
            lambda: cart_store.add_item(a, 2),
            lambda: cart_store.add_item(b, 3),
            lambda: cart_store.add_item(a, 1),
            lambda: cart_store.set_quantity(2, 1),
            lambda: cart_store.add_item(c, 7),
            lambda: cart_store.remove_item(404),
            lambda: cart_store.set_quantity(1, 0),
            lambda: cart_store.add_item(b, 0),
            lambda: cart_store.remove_item("sku-3"),
        ]
        for operation in operations:
            operation()
            _assert_totals_consistent(cart_store)

        assert cart_store.total_items == 1
        assert cart_store.total_price == Decimal("19.99")

    def test_snapshot_is_independent(self, filled_cart):
        snapshot = filled_cart.snapshot()
        filled_cart.add_item(make_product(2, "5.00"))
        filled_cart.set_quantity(1, 9)

        assert snapshot.total_items == 2
        assert snapshot.find_item(1).quantity == 2
        assert snapshot.find_item(2) is None


class TestCartPersistence:
    """Snapshot writes and the one-time load."""

    def test_mutation_writes_snapshot(self, memory_store, filled_cart):
        stored = memory_store.get("cart")
        assert stored["totalItems"] == 2
        assert stored["totalPrice"] == "200.00"
        assert stored["items"][0]["product"]["id"] == 1

    def test_load_restores_snapshot(self, memory_store, filled_cart):
        restored = CartStore(CartPersistence(store=memory_store, key="cart"))
        restored.load()

        assert restored.loaded is True
        assert restored.total_items == 2
        assert restored.total_price == Decimal("200.00")

    def test_load_recomputes_stale_totals(self, memory_store):
        memory_store.set("cart", {
            "items": [{"product": {"id": 1, "name": "A", "price": "10.00"}, "quantity": 2}],
            "totalItems": 99,
            "totalPrice": "0",
        })
        store = CartStore(CartPersistence(store=memory_store, key="cart"))
        store.load()

        assert store.total_items == 2
        assert store.total_price == Decimal("20.00")

    def test_change_before_load_keeps_persisted_items(self, memory_store):
        previous = CartStore(CartPersistence(store=memory_store, key="cart"))
        previous.add_item(make_product(2, "1.00"), 3)

        store = CartStore(CartPersistence(store=memory_store, key="cart"))
        store.add_item(make_product(1, "10.00"), 1)
        store.load()

        assert store.get_item_quantity(1) == 1
        assert store.get_item_quantity(2) == 3
        assert memory_store.get("cart")["totalItems"] == 4

    def test_first_change_adds_to_persisted_quantity(self, memory_store):
        previous = CartStore(CartPersistence(store=memory_store, key="cart"))
        previous.add_item(make_product(1, "10.00"), 4)

        store = CartStore(CartPersistence(store=memory_store, key="cart"))
        store.add_item(make_product(1, "10.00"), 1)

        assert store.loaded is True
        assert store.get_item_quantity(1) == 5
        assert store.total_price == Decimal("50.00")

    def test_load_runs_once(self, memory_store, filled_cart):
        store = CartStore(CartPersistence(store=memory_store, key="cart"))
        store.load()
        store.clear()
        store.load()
        assert store.is_empty()

    def test_corrupt_snapshot_loads_empty(self, memory_store):
        memory_store._data["cart"] = "{not json"
        store = CartStore(CartPersistence(store=memory_store, key="cart"))
        store.load()

        assert store.loaded is True
        assert store.is_empty()

    def test_write_failure_keeps_in_memory_cart(self):
        store = CartStore(CartPersistence(store=FailingKeyValueStore(), key="cart"))
        assert store.add_item(make_product(1, "100.00"), 1) is True
        assert store.total_items == 1

    @pytest.mark.asyncio
    async def test_writes_in_event_loop_are_flushed(self, memory_store):
        store = CartStore(CartPersistence(store=memory_store, key="cart"))
        store.add_item(make_product(1, "100.00"), 1)
        store.add_item(make_product(1, "100.00"), 1)
        await store.flush()

        assert memory_store.get("cart")["totalItems"] == 2

    @pytest.mark.asyncio
    async def test_async_write_failure_is_not_raised(self):
        store = CartStore(CartPersistence(store=FailingKeyValueStore(), key="cart"))
        store.add_item(make_product(1, "100.00"), 1)
        await store.flush()
        await asyncio.sleep(0)

        assert store.total_items == 1

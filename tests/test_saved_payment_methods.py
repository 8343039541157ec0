"""
Tests for saved payment methods.
"""

from storefront_checkout.models.payment import PaymentMethod
from storefront_checkout.services.saved_payment_methods import SavedPaymentMethod, SavedPaymentMethods
from storefront_checkout.storage import MemoryKeyValueStore


def _make_saved(store=None) -> SavedPaymentMethods:
    return SavedPaymentMethods(store=store or MemoryKeyValueStore(), key="paymentMethods")


class TestSavedPaymentMethods:

    def test_empty_store(self):
        saved = _make_saved()
        assert saved.load() == []
        assert saved.preferred_method() is None

    def test_reads_stored_cards(self):
        store = MemoryKeyValueStore()
        store.set("paymentMethods", [
            {"id": "1", "type": "visa", "lastFour": "4242", "expiryDate": "12/27",
             "cardholderName": "Asha Rao", "isDefault": False},
            {"id": "2", "type": "mastercard", "lastFour": "4444", "isDefault": True},
        ])
        saved = _make_saved(store)

        methods = saved.load()
        assert [m.last_four for m in methods] == ["4242", "4444"]
        assert saved.default().id == "2"
        assert saved.preferred_method() == PaymentMethod.CARD_GATEWAY

    def test_new_default_replaces_old(self):
        saved = _make_saved()
        saved.add(SavedPaymentMethod(id="1", is_default=True))
        saved.add(SavedPaymentMethod(id="2", is_default=True))

        assert [m.is_default for m in saved.load()] == [False, True]

    def test_set_default_and_remove(self):
        saved = _make_saved()
        saved.add(SavedPaymentMethod(id="1"))
        saved.add(SavedPaymentMethod(id="2"))

        saved.set_default("1")
        assert saved.default().id == "1"

        saved.remove("1")
        assert [m.id for m in saved.load()] == ["2"]
        assert saved.preferred_method() is None

    def test_unreadable_list_is_empty(self):
        store = MemoryKeyValueStore()
        store._data["paymentMethods"] = "not json"
        assert _make_saved(store).load() == []

    def test_non_card_entry_keeps_its_method(self):
        store = MemoryKeyValueStore()
        store.set("paymentMethods", [{"id": "u", "type": "upi", "isDefault": True}])
        assert _make_saved(store).preferred_method() == PaymentMethod.UPI

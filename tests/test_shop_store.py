"""
tests/test_shop_store.py -- Unit tests for shop/store.py ShopStore.

Covers:
  - cart add merges quantities and recomputes the total
  - single-restaurant rule, and an emptied cart switching restaurant
  - remove item / clear cart, including the no-cart cases
  - place_order: cart -> pending order, empty or missing cart -> None
  - payments: IdRef by default, Expanded when asked, missing records stay IdRef
"""

from __future__ import annotations

import pytest

from auth.models import User
from core.models import Expanded, IdRef
from shop.models import CartItem, Order, Payment
from shop.store import CartRestaurantMismatch, ShopStore


@pytest.fixture
def shop(request):
    s = ShopStore(db_url=f"sqlite:///file:test_shopstore_{request.node.name}?mode=memory&cache=shared&uri=true")
    yield s
    s.close()


def _item(menu_id: int = 1, price: float = 4.5, quantity: int = 1) -> CartItem:
    return CartItem(menu_id=menu_id, name=f"Item {menu_id}", price=price, quantity=quantity)


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------


def test_no_cart_initially(shop):
    assert shop.get_cart("u1") is None


def test_add_to_cart_creates_cart(shop):
    cart = shop.add_to_cart("u1", 3, _item(price=4.5, quantity=2))
    assert cart.restaurant_id == 3
    assert cart.total_amount == 9.0
    stored = shop.get_cart("u1")
    assert [i.menu_id for i in stored.items] == [1]
    assert stored.total_amount == 9.0


def test_add_same_item_merges_quantity(shop):
    shop.add_to_cart("u1", 3, _item(quantity=2))
    cart = shop.add_to_cart("u1", 3, _item(quantity=3))
    assert len(cart.items) == 1
    assert cart.items[0].quantity == 5
    assert shop.get_cart("u1").items[0].quantity == 5


def test_total_is_rounded(shop):
    shop.add_to_cart("u1", 3, _item(1, price=0.1, quantity=1))
    cart = shop.add_to_cart("u1", 3, _item(2, price=0.2, quantity=1))
    assert cart.total_amount == 0.3


def test_other_restaurant_rejected(shop):
    shop.add_to_cart("u1", 3, _item())
    with pytest.raises(CartRestaurantMismatch):
        shop.add_to_cart("u1", 4, _item(2))
    cart = shop.get_cart("u1")
    assert cart.restaurant_id == 3
    assert [i.menu_id for i in cart.items] == [1]


def test_emptied_cart_can_switch_restaurant(shop):
    shop.add_to_cart("u1", 3, _item())
    shop.remove_item("u1", 1)
    cart = shop.add_to_cart("u1", 4, _item(2))
    assert cart.restaurant_id == 4
    assert shop.get_cart("u1").restaurant_id == 4


def test_carts_are_per_user(shop):
    shop.add_to_cart("u1", 3, _item())
    shop.add_to_cart("u2", 4, _item())
    assert shop.get_cart("u1").restaurant_id == 3
    assert shop.get_cart("u2").restaurant_id == 4


def test_remove_item(shop):
    shop.add_to_cart("u1", 3, _item(1, price=2.0))
    shop.add_to_cart("u1", 3, _item(2, price=3.0))
    cart = shop.remove_item("u1", 1)
    assert [i.menu_id for i in cart.items] == [2]
    assert cart.total_amount == 3.0


def test_remove_item_without_cart(shop):
    assert shop.remove_item("u1", 1) is None


def test_clear_cart(shop):
    shop.add_to_cart("u1", 3, _item())
    assert shop.clear_cart("u1") is True
    assert shop.get_cart("u1") is None
    assert shop.clear_cart("u1") is False


# ---------------------------------------------------------------------------
# Orders & payments
# ---------------------------------------------------------------------------


def test_place_order_consumes_cart(shop):
    shop.add_to_cart("u1", 3, _item(1, price=4.5, quantity=2))
    shop.add_to_cart("u1", 3, _item(2, price=1.0, quantity=1))
    order = shop.place_order("u1")
    assert (order.user_id, order.restaurant_id, order.total_amount, order.status) == ("u1", 3, 10.0, "pending")
    assert shop.get_order(order.id) == order
    assert shop.get_cart("u1") is None
    assert shop.place_order("u1") is None


def test_place_order_without_items(shop):
    assert shop.place_order("u1") is None
    shop.add_to_cart("u1", 3, _item(1))
    shop.remove_item("u1", 1)
    assert shop.place_order("u1") is None


def _seed_payment(shop: ShopStore, user_id: str = "u1") -> tuple[str, str]:
    order_id = shop.create_order(Order(user_id=user_id, restaurant_id=3, total_amount=20.0))
    payment_id = shop.create_payment(
        Payment(user=IdRef(user_id), order=IdRef(order_id), amount=20.0, method="upi", gateway_order_id="order_XYZ")
    )
    return order_id, payment_id


def test_create_and_get_order(shop):
    order_id = shop.create_order(Order(user_id="u1", restaurant_id=3, total_amount=20.0))
    order = shop.get_order(order_id)
    assert order.status == "pending"
    assert order.total_amount == 20.0
    assert shop.get_order("ghost") is None


def test_get_payment_returns_id_refs_by_default(shop):
    order_id, payment_id = _seed_payment(shop)
    payment = shop.get_payment(payment_id)
    assert payment.user == IdRef("u1")
    assert payment.order == IdRef(order_id)
    assert payment.status == "created"
    assert shop.get_payment("ghost") is None


def test_get_payment_expanded(shop):
    order_id, payment_id = _seed_payment(shop)
    asha = User(id="u1", name="Asha", email="asha@mail.com", hashed_password="x")
    payment = shop.get_payment(payment_id, expand=True, expand_users=lambda ids: {"u1": asha} if "u1" in ids else {})
    assert isinstance(payment.user, Expanded)
    assert payment.user.record is asha
    assert isinstance(payment.order, Expanded)
    assert payment.order.id == order_id


def test_expansion_keeps_id_ref_for_missing_records(shop):
    _order_id, payment_id = _seed_payment(shop, user_id="ghost")
    payment = shop.get_payment(payment_id, expand=True, expand_users=lambda ids: {})
    assert payment.user == IdRef("ghost")
    assert isinstance(payment.order, Expanded)


def test_list_payments_filters_by_user(shop):
    _seed_payment(shop, "u1")
    _seed_payment(shop, "u1")
    _seed_payment(shop, "u2")
    mine = shop.list_payments(user_id="u1")
    assert mine.total == 2
    assert all(p.user.id == "u1" for p in mine.data)
    everyone = shop.list_payments(page=1, limit=2)
    assert everyone.total == 3
    assert len(everyone.data) == 2

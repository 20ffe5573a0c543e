"""
tests/test_dto.py -- Unit tests for the response mappers in api/dto.py.

Covers:
  - None in -> None out for single mappers
  - array mappers return [] for non-sequences and skip None elements
  - paginated mappers pass total/page/limit through
  - no password or internal field ever appears in a user view
  - admin payment view nests user/order only for Expanded references
  - camelCase keys on the wire
"""

from __future__ import annotations

import pytest

from api.dto import (
    AdminPaymentView,
    PaymentView,
    UserView,
    cart_to_view,
    payment_to_admin_view,
    payment_to_view,
    payments_to_admin_paginated_view,
    payments_to_admin_view_array,
    payments_to_paginated_view,
    payments_to_view_array,
    user_to_auth_view,
    user_to_view,
    users_to_paginated_view,
    users_to_view_array,
)
from auth.models import User
from core.models import Expanded, IdRef, Page
from shop.models import Cart, CartItem, Order, Payment


def _user(uid: str = "u1", **kw) -> User:
    defaults = dict(
        id=uid,
        name="Asha",
        email=f"{uid}@mail.com",
        hashed_password="$2b$12$secret",
        role="customer",
        created_at="2026-01-01T00:00:00+00:00",
        updated_at="2026-01-02T00:00:00+00:00",
    )
    defaults.update(kw)
    return User(**defaults)


def _order(oid: str = "o1") -> Order:
    return Order(id=oid, user_id="u1", restaurant_id=3, total_amount=42.5, status="confirmed")


def _payment(user=None, order=None, **kw) -> Payment:
    defaults = dict(
        id="p1",
        user=user if user is not None else IdRef("u1"),
        order=order if order is not None else IdRef("o1"),
        amount=42.5,
        method="card",
        status="paid",
        gateway_order_id="order_ABC1234",
        created_at="2026-01-01T00:00:00+00:00",
        updated_at="2026-01-01T00:00:00+00:00",
    )
    defaults.update(kw)
    return Payment(**defaults)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def test_user_to_view_none():
    assert user_to_view(None) is None


def test_user_to_view_projects_public_fields_only():
    view = user_to_view(_user())
    dumped = view.model_dump(by_alias=True)
    assert dumped == {
        "id": "u1",
        "name": "Asha",
        "email": "u1@mail.com",
        "role": "customer",
        "createdAt": "2026-01-01T00:00:00+00:00",
        "updatedAt": "2026-01-02T00:00:00+00:00",
    }


@pytest.mark.parametrize("dump_kwargs", [{}, {"by_alias": True}, {"mode": "json", "by_alias": True}])
def test_user_view_never_contains_password(dump_kwargs):
    dumped = user_to_view(_user()).model_dump(**dump_kwargs)
    assert not any("password" in key.lower() for key in dumped)
    assert "is_active" not in dumped and "isActive" not in dumped


@pytest.mark.parametrize("bad", [None, "users", 42, {"id": "u1"}])
def test_users_to_view_array_non_sequence(bad):
    assert users_to_view_array(bad) == []


def test_users_to_view_array_empty_and_none_elements():
    assert users_to_view_array([]) == []
    views = users_to_view_array([_user("u1"), None, _user("u2")])
    assert [v.id for v in views] == ["u1", "u2"]
    assert all(isinstance(v, UserView) for v in views)


def test_users_to_paginated_view_passes_metadata_through():
    page = Page(total=41, page=3, limit=20, data=[_user("u1")])
    view = users_to_paginated_view(page)
    assert (view.total, view.page, view.limit) == (41, 3, 20)
    assert [u.email for u in view.data] == ["u1@mail.com"]


def test_user_to_auth_view_shape():
    dumped = user_to_auth_view(_user(), "access.jwt").model_dump(by_alias=True)
    assert set(dumped) == {"user", "accessToken"}
    assert dumped["accessToken"] == "access.jwt"
    assert "refreshToken" not in dumped


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


def test_payment_to_view_none():
    assert payment_to_view(None) is None
    assert payment_to_admin_view(None) is None


def test_payment_to_view_id_references():
    dumped = payment_to_view(_payment()).model_dump(by_alias=True)
    assert dumped["userId"] == "u1"
    assert dumped["orderId"] == "o1"
    assert dumped["gatewayOrderId"] == "order_ABC1234"
    assert "user" not in dumped and "order" not in dumped


def test_payment_to_view_expanded_references_still_yield_ids():
    payment = _payment(user=Expanded(_user("u9")), order=Expanded(_order("o9")))
    view = payment_to_view(payment)
    assert isinstance(view, PaymentView)
    assert view.user_id == "u9"
    assert view.order_id == "o9"


def test_admin_view_with_expanded_references_nests_summaries():
    payment = _payment(user=Expanded(_user("u9", name="Ravi")), order=Expanded(_order("o9")))
    dumped = payment_to_admin_view(payment).model_dump(mode="json", by_alias=True)
    assert dumped["user"] == {"id": "u9", "name": "Ravi", "email": "u9@mail.com"}
    assert dumped["order"] == {"id": "o9", "totalAmount": 42.5, "status": "confirmed"}
    assert "hashedPassword" not in dumped["user"]


def test_admin_view_with_id_references_omits_nesting():
    view = payment_to_admin_view(_payment())
    assert isinstance(view, AdminPaymentView)
    dumped = view.model_dump(by_alias=True)
    assert "user" not in dumped
    assert "order" not in dumped
    assert dumped["userId"] == "u1"


def test_admin_view_with_mixed_references():
    payment = _payment(user=IdRef("u1"), order=Expanded(_order("o1")))
    dumped = payment_to_admin_view(payment).model_dump(by_alias=True)
    assert "user" not in dumped
    assert dumped["order"]["id"] == "o1"


def test_payment_arrays_and_pages():
    assert payments_to_view_array("nope") == []
    assert payments_to_admin_view_array(None) == []
    assert len(payments_to_view_array([_payment(), None])) == 1

    page = Page(total=1, page=1, limit=10, data=[_payment(user=Expanded(_user()))])
    plain = payments_to_paginated_view(page)
    admin = payments_to_admin_paginated_view(page)
    assert plain.total == admin.total == 1
    assert admin.data[0].user is not None
    assert admin.data[0].order is None


def test_views_are_frozen():
    view = user_to_view(_user())
    with pytest.raises(Exception):
        view.name = "Changed"


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------


def test_cart_to_view_none_is_empty_cart():
    dumped = cart_to_view(None).model_dump(by_alias=True)
    assert dumped == {"restaurantId": None, "items": [], "totalAmount": 0.0}


def test_cart_to_view_camel_case_items():
    cart = Cart(
        user_id="u1",
        restaurant_id=3,
        items=[CartItem(menu_id=7, name="Dosa", price=4.25, quantity=2)],
        total_amount=8.5,
    )
    dumped = cart_to_view(cart).model_dump(by_alias=True)
    assert dumped["restaurantId"] == 3
    assert dumped["items"] == [{"menuId": 7, "name": "Dosa", "price": 4.25, "quantity": 2}]
    assert dumped["totalAmount"] == 8.5
    assert "userId" not in dumped

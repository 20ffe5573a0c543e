"""
api/dto.py -- Client-facing views and the pure functions that build them.

Every response that carries a User or a Payment goes through a mapper in this
module. The views are the allowlist: a field reaches the client only if the
view declares it, so hashed_password and is_active can never leak through a
forgotten exclude.

Shapes:
  single      -- user_to_view / payment_to_view: None in, None out.
  collection  -- *_to_view_array: anything that is not a list or tuple maps
                 to [], None elements are skipped.
  paginated   -- *_to_paginated_view: total/page/limit pass through, only
                 data is mapped.
  admin       -- payment_to_admin_view: the standard view plus nested user /
                 order summaries when the store returned Expanded references.

JSON keys are camelCase (createdAt, userId, totalAmount) via the pydantic
alias generator; Python code uses the snake_case field names.
"""

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, model_serializer
from pydantic.alias_generators import to_camel

from auth.models import User
from core.models import Expanded, Page, reference_id
from shop.models import Cart, Order, Payment

V = TypeVar("V")


class _View(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


class UserView(_View):
    id: Optional[str]
    name: str
    email: str
    role: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class AuthView(_View):
    """Body of signup / login / refresh responses. The refresh token is cookie-only."""

    user: UserView
    access_token: str


class PaymentView(_View):
    id: Optional[str]
    user_id: str
    order_id: str
    amount: float
    method: str
    status: str
    # Exposed verbatim. See DESIGN.md, open question on gateway id masking.
    gateway_order_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class UserSummary(_View):
    id: str
    name: str
    email: str


class OrderSummary(_View):
    id: str
    total_amount: float
    status: str


class AdminPaymentView(PaymentView):
    """PaymentView plus nested summaries for expanded references.

    user / order are omitted from the serialized output (not null) when the
    reference was not expanded.
    """

    user: Optional[UserSummary] = None
    order: Optional[OrderSummary] = None

    @model_serializer(mode="wrap")
    def _drop_unexpanded(self, handler) -> dict[str, Any]:
        data = handler(self)
        for key in ("user", "order"):
            if data.get(key) is None:
                data.pop(key, None)
        return data


class PaginatedView(_View, Generic[V]):
    total: int
    page: int
    limit: int
    data: list[V]


class CartItemView(_View):
    menu_id: int
    name: str
    price: float
    quantity: int


class CartView(_View):
    restaurant_id: Optional[int]
    items: list[CartItemView]
    total_amount: float


class OrderView(_View):
    id: Optional[str]
    restaurant_id: int
    total_amount: float
    status: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# ---------------------------------------------------------------------------
# User mappers
# ---------------------------------------------------------------------------


def user_to_view(user: Optional[User]) -> Optional[UserView]:
    if user is None:
        return None
    return UserView(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def users_to_view_array(users: Any) -> list[UserView]:
    if not isinstance(users, (list, tuple)):
        return []
    return [user_to_view(u) for u in users if u is not None]


def users_to_paginated_view(page: Page[User]) -> PaginatedView[UserView]:
    return PaginatedView[UserView](
        total=page.total,
        page=page.page,
        limit=page.limit,
        data=users_to_view_array(page.data),
    )


def user_to_auth_view(user: User, access_token: str) -> AuthView:
    return AuthView(user=user_to_view(user), access_token=access_token)


# ---------------------------------------------------------------------------
# Payment mappers
# ---------------------------------------------------------------------------


def payment_to_view(payment: Optional[Payment]) -> Optional[PaymentView]:
    if payment is None:
        return None
    return PaymentView(
        id=payment.id,
        user_id=reference_id(payment.user),
        order_id=reference_id(payment.order),
        amount=payment.amount,
        method=payment.method,
        status=payment.status,
        gateway_order_id=payment.gateway_order_id,
        created_at=payment.created_at or None,
        updated_at=payment.updated_at or None,
    )


def payments_to_view_array(payments: Any) -> list[PaymentView]:
    if not isinstance(payments, (list, tuple)):
        return []
    return [payment_to_view(p) for p in payments if p is not None]


def payments_to_paginated_view(page: Page[Payment]) -> PaginatedView[PaymentView]:
    return PaginatedView[PaymentView](
        total=page.total,
        page=page.page,
        limit=page.limit,
        data=payments_to_view_array(page.data),
    )


def _user_summary(user: User) -> UserSummary:
    return UserSummary(id=user.id, name=user.name, email=user.email)


def _order_summary(order: Order) -> OrderSummary:
    return OrderSummary(id=order.id, total_amount=order.total_amount, status=order.status)


def payment_to_admin_view(payment: Optional[Payment]) -> Optional[AdminPaymentView]:
    """Standard view plus user/order summaries for Expanded references only."""
    view = payment_to_view(payment)
    if view is None:
        return None
    nested: dict[str, Any] = {}
    if isinstance(payment.user, Expanded):
        nested["user"] = _user_summary(payment.user.record)
    if isinstance(payment.order, Expanded):
        nested["order"] = _order_summary(payment.order.record)
    return AdminPaymentView(**view.model_dump(), **nested)


def payments_to_admin_view_array(payments: Any) -> list[AdminPaymentView]:
    if not isinstance(payments, (list, tuple)):
        return []
    return [payment_to_admin_view(p) for p in payments if p is not None]


def payments_to_admin_paginated_view(page: Page[Payment]) -> PaginatedView[AdminPaymentView]:
    return PaginatedView[AdminPaymentView](
        total=page.total,
        page=page.page,
        limit=page.limit,
        data=payments_to_admin_view_array(page.data),
    )


# ---------------------------------------------------------------------------
# Cart mapper
# ---------------------------------------------------------------------------


def cart_to_view(cart: Optional[Cart]) -> CartView:
    """An absent cart is rendered as an empty one."""
    if cart is None:
        return CartView(restaurant_id=None, items=[], total_amount=0.0)
    return CartView(
        restaurant_id=cart.restaurant_id,
        items=[
            CartItemView(menu_id=i.menu_id, name=i.name, price=i.price, quantity=i.quantity) for i in cart.items
        ],
        total_amount=cart.total_amount,
    )


# ---------------------------------------------------------------------------
# Order mapper
# ---------------------------------------------------------------------------


def order_to_view(order: Optional[Order]) -> Optional[OrderView]:
    if order is None:
        return None
    return OrderView(
        id=order.id,
        restaurant_id=order.restaurant_id,
        total_amount=order.total_amount,
        status=order.status,
        created_at=order.created_at or None,
        updated_at=order.updated_at or None,
    )

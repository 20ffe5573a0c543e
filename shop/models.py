"""
shop/models.py -- Domain dataclasses for carts, orders and payments.

These are pure data containers with zero logic. Cart rules (single restaurant,
quantity merge, total recomputation) live in shop/store.py.

Payment.user and Payment.order are References: the store returns IdRef for
plain listings and Expanded when the caller asked for the referenced records
(admin views).
"""

from dataclasses import dataclass, field
from typing import Optional

from auth.models import User
from core.models import Reference


@dataclass
class CartItem:
    menu_id: int
    name: str
    price: float
    quantity: int


@dataclass
class Cart:
    """A user's cart. Every item belongs to restaurant_id."""

    user_id: str
    restaurant_id: int
    items: list[CartItem] = field(default_factory=list)
    total_amount: float = 0.0
    updated_at: str = ""


@dataclass
class Order:
    user_id: str
    restaurant_id: int
    total_amount: float
    status: str = "pending"  # "pending", "confirmed", "preparing", "delivered", "cancelled"
    id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Payment:
    """A payment attempt for an order.

    gateway_order_id is the payment gateway's order handle, None until the
    gateway order is created.
    """

    user: Reference[User]
    order: Reference[Order]
    amount: float
    method: str  # "card", "upi", "netbanking", "cod"
    status: str = "created"  # "created", "paid", "failed", "refunded"
    gateway_order_id: Optional[str] = None
    id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

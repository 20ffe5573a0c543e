"""
shop/store.py -- SQLAlchemy-backed persistence for carts, orders and payments.

Uses SQLAlchemy Core (not ORM) so the dataclasses in shop/models.py remain the
authoritative domain representation.

Pattern: Repository + Data Mapper. ShopStore is the repository; the _row_to_*
functions are the mappers. Route handlers never touch SQL directly.

Cart rules:
  - A cart holds items from exactly one restaurant. Adding an item from a
    different restaurant raises CartRestaurantMismatch while the cart still
    has items; an emptied cart adopts the new restaurant.
  - Adding a menu item already in the cart increases its quantity.
  - total_amount is recomputed from the items after every change.

Payment references:
  list_payments() / get_payment() return Payment.user and Payment.order as
  IdRef by default. With expand=True the order is loaded from this store and
  the user through the expand_users callback (UserStore.get_many), producing
  Expanded references. A reference whose record cannot be found stays an IdRef.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = ShopStore()                                # SQLite default
    cart = store.add_to_cart(user_id, 7, CartItem(menu_id=3, name="Dosa", price=120.0, quantity=2))
    page = store.list_payments(page=1, limit=20, expand=True, expand_users=user_store.get_many)
    store.close()
"""

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from sqlalchemy import (
    Column,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine

from auth.models import User
from core.models import Expanded, IdRef, Page, Reference
from shop.models import Cart, CartItem, Order, Payment

logger = logging.getLogger("foodorder.shop")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'foodorder_shop.db'}"


class CartRestaurantMismatch(ValueError):
    """The item belongs to a different restaurant than the rest of the cart."""


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_carts = Table(
    "carts",
    metadata,
    Column("user_id", String(32), primary_key=True),
    Column("restaurant_id", Integer, nullable=False),
    Column("total_amount", Float, nullable=False, server_default="0"),
    Column("updated_at", String(32), nullable=False),
)

_cart_items = Table(
    "cart_items",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(32), nullable=False),
    Column("menu_id", Integer, nullable=False),
    Column("name", String(255), nullable=False),
    Column("price", Float, nullable=False),
    Column("quantity", Integer, nullable=False),
    UniqueConstraint("user_id", "menu_id", name="uq_cart_menu_item"),
)

_orders = Table(
    "orders",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("user_id", String(32), nullable=False),
    Column("restaurant_id", Integer, nullable=False),
    Column("total_amount", Float, nullable=False),
    Column("status", String(30), nullable=False, server_default="pending"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_payments = Table(
    "payments",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("user_id", String(32), nullable=False),
    Column("order_id", String(32), nullable=False),
    Column("amount", Float, nullable=False),
    Column("method", String(30), nullable=False),
    Column("status", String(30), nullable=False, server_default="created"),
    Column("gateway_order_id", String(64)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _cart_total(items: list[CartItem]) -> float:
    return round(sum(i.price * i.quantity for i in items), 2)


class ShopStore:
    """Repository for Cart, Order and Payment entities."""

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Cart
    # ------------------------------------------------------------------

    def get_cart(self, user_id: str) -> Optional[Cart]:
        """Return the user's cart with items, or None if no cart exists."""
        with self.engine.connect() as conn:
            return self._load_cart(conn, user_id)

    def add_to_cart(self, user_id: str, restaurant_id: int, item: CartItem) -> Cart:
        """Add item (or merge its quantity) and return the updated cart.

        Raises CartRestaurantMismatch if the cart holds items from another restaurant.
        """
        with self.engine.connect() as conn:
            cart = self._load_cart(conn, user_id)
            if cart is None:
                conn.execute(
                    _carts.insert().values(
                        user_id=user_id, restaurant_id=restaurant_id, total_amount=0, updated_at=_now_iso()
                    )
                )
                cart = Cart(user_id=user_id, restaurant_id=restaurant_id)
            elif cart.restaurant_id != restaurant_id:
                if cart.items:
                    logger.warning(
                        "Cart of user %s holds restaurant %s, rejected item from %s", user_id, cart.restaurant_id, restaurant_id
                    )
                    raise CartRestaurantMismatch("You can order from only one restaurant at a time")
                conn.execute(_carts.update().where(_carts.c.user_id == user_id).values(restaurant_id=restaurant_id))
                cart.restaurant_id = restaurant_id

            existing = next((i for i in cart.items if i.menu_id == item.menu_id), None)
            if existing is not None:
                existing.quantity += item.quantity
                conn.execute(
                    _cart_items.update()
                    .where((_cart_items.c.user_id == user_id) & (_cart_items.c.menu_id == item.menu_id))
                    .values(quantity=existing.quantity)
                )
            else:
                cart.items.append(item)
                conn.execute(
                    _cart_items.insert().values(
                        user_id=user_id,
                        menu_id=item.menu_id,
                        name=item.name,
                        price=item.price,
                        quantity=item.quantity,
                    )
                )
            self._save_total(conn, cart)
            conn.commit()
        return cart

    def remove_item(self, user_id: str, menu_id: int) -> Optional[Cart]:
        """Remove one menu item. Returns the updated cart, or None if the user has no cart."""
        with self.engine.connect() as conn:
            cart = self._load_cart(conn, user_id)
            if cart is None:
                return None
            conn.execute(
                _cart_items.delete().where((_cart_items.c.user_id == user_id) & (_cart_items.c.menu_id == menu_id))
            )
            cart.items = [i for i in cart.items if i.menu_id != menu_id]
            self._save_total(conn, cart)
            conn.commit()
        return cart

    def clear_cart(self, user_id: str) -> bool:
        """Delete the cart and its items. Returns True if a cart existed."""
        with self.engine.connect() as conn:
            conn.execute(_cart_items.delete().where(_cart_items.c.user_id == user_id))
            result = conn.execute(_carts.delete().where(_carts.c.user_id == user_id))
            conn.commit()
        return result.rowcount > 0

    def _load_cart(self, conn, user_id: str) -> Optional[Cart]:
        row = conn.execute(_carts.select().where(_carts.c.user_id == user_id)).fetchone()
        if row is None:
            return None
        item_rows = conn.execute(
            _cart_items.select().where(_cart_items.c.user_id == user_id).order_by(_cart_items.c.id)
        ).fetchall()
        return Cart(
            user_id=row.user_id,
            restaurant_id=row.restaurant_id,
            items=[_row_to_cart_item(r) for r in item_rows],
            total_amount=row.total_amount,
            updated_at=row.updated_at,
        )

    def _save_total(self, conn, cart: Cart) -> None:
        cart.total_amount = _cart_total(cart.items)
        cart.updated_at = _now_iso()
        conn.execute(
            _carts.update()
            .where(_carts.c.user_id == cart.user_id)
            .values(total_amount=cart.total_amount, updated_at=cart.updated_at)
        )

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def create_order(self, order: Order) -> str:
        """Insert an order and return its generated ID."""
        order_id = uuid.uuid4().hex
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _orders.insert().values(
                    id=order_id,
                    user_id=order.user_id,
                    restaurant_id=order.restaurant_id,
                    total_amount=order.total_amount,
                    status=order.status,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        logger.info("Order %s created for user %s", order_id, order.user_id)
        return order_id

    def place_order(self, user_id: str) -> Optional[Order]:
        """Turn the user's cart into a pending order and empty the cart.

        Returns None when there is no cart or it has no items. The cart is
        deleted before the order is written; a second checkout of the same
        cart finds nothing to delete and places no order.
        """
        with self.engine.connect() as conn:
            cart = self._load_cart(conn, user_id)
            if cart is None or not cart.items:
                return None
            conn.execute(_cart_items.delete().where(_cart_items.c.user_id == user_id))
            deleted = conn.execute(_carts.delete().where(_carts.c.user_id == user_id)).rowcount
            conn.commit()
        if not deleted:
            return None
        order_id = self.create_order(
            Order(user_id=user_id, restaurant_id=cart.restaurant_id, total_amount=cart.total_amount)
        )
        return self.get_order(order_id)

    def get_order(self, order_id: str) -> Optional[Order]:
        with self.engine.connect() as conn:
            row = conn.execute(_orders.select().where(_orders.c.id == order_id)).fetchone()
        return _row_to_order(row) if row is not None else None

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def create_payment(self, payment: Payment) -> str:
        """Insert a payment and return its generated ID. References are stored by id."""
        payment_id = uuid.uuid4().hex
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _payments.insert().values(
                    id=payment_id,
                    user_id=payment.user.id,
                    order_id=payment.order.id,
                    amount=payment.amount,
                    method=payment.method,
                    status=payment.status,
                    gateway_order_id=payment.gateway_order_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        logger.info("Payment %s created for order %s", payment_id, payment.order.id)
        return payment_id

    def get_payment(
        self,
        payment_id: str,
        expand: bool = False,
        expand_users: Optional[Callable[[set[str]], dict[str, User]]] = None,
    ) -> Optional[Payment]:
        with self.engine.connect() as conn:
            row = conn.execute(_payments.select().where(_payments.c.id == payment_id)).fetchone()
            if row is None:
                return None
            return self._to_payments(conn, [row], expand, expand_users)[0]

    def list_payments(
        self,
        user_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        expand: bool = False,
        expand_users: Optional[Callable[[set[str]], dict[str, User]]] = None,
    ) -> Page[Payment]:
        """Return one page of payments (newest first), optionally for one user only."""
        query = _payments.select()
        count = select(func.count()).select_from(_payments)
        if user_id is not None:
            query = query.where(_payments.c.user_id == user_id)
            count = count.where(_payments.c.user_id == user_id)
        query = query.order_by(_payments.c.created_at.desc()).limit(limit).offset((page - 1) * limit)
        with self.engine.connect() as conn:
            total = conn.execute(count).scalar() or 0
            rows = conn.execute(query).fetchall()
            data = self._to_payments(conn, rows, expand, expand_users)
        return Page(total=total, page=page, limit=limit, data=data)

    def _to_payments(self, conn, rows, expand: bool, expand_users) -> list[Payment]:
        if not expand:
            return [_row_to_payment(r, IdRef(r.user_id), IdRef(r.order_id)) for r in rows]

        order_ids = {r.order_id for r in rows}
        orders: dict[str, Order] = {}
        if order_ids:
            order_rows = conn.execute(_orders.select().where(_orders.c.id.in_(order_ids))).fetchall()
            orders = {o.id: _row_to_order(o) for o in order_rows}
        users = expand_users({r.user_id for r in rows}) if expand_users is not None else {}

        payments = []
        for r in rows:
            user_ref: Reference[User] = Expanded(users[r.user_id]) if r.user_id in users else IdRef(r.user_id)
            order_ref: Reference[Order] = Expanded(orders[r.order_id]) if r.order_id in orders else IdRef(r.order_id)
            payments.append(_row_to_payment(r, user_ref, order_ref))
        return payments

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_cart_item(row) -> CartItem:
    return CartItem(menu_id=row.menu_id, name=row.name, price=row.price, quantity=row.quantity)


def _row_to_order(row) -> Order:
    return Order(
        id=row.id,
        user_id=row.user_id,
        restaurant_id=row.restaurant_id,
        total_amount=row.total_amount,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_payment(row, user: Reference[User], order: Reference[Order]) -> Payment:
    return Payment(
        id=row.id,
        user=user,
        order=order,
        amount=row.amount,
        method=row.method,
        status=row.status,
        gateway_order_id=row.gateway_order_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )

"""
api/routes/v1/orders.py -- Checkout and order lookup.

Routes:
  POST /api/v1/orders             -- place an order from the caller's cart (requires auth)
  GET  /api/v1/orders/{order_id}  -- one order; owner or admin only

Placing an order empties the cart. Payments for the order are created through
POST /api/v1/payments.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from api.dto import OrderView, order_to_view
from auth.dependencies import get_current_user, is_admin
from auth.models import User
from shop.store import ShopStore

logger = logging.getLogger("foodorder.orders")

router = APIRouter()


@router.post("/orders", response_model=OrderView, status_code=201)
def place_order(request: Request, current_user: User = Depends(get_current_user)) -> OrderView:
    shop: ShopStore = request.app.state.shop
    order = shop.place_order(current_user.id)
    if order is None:
        logger.warning("Checkout rejected for user %s: cart is empty", current_user.id)
        raise HTTPException(
            status_code=400,
            detail={"code": "cart_empty", "message": "Cart is empty."},
        )
    return order_to_view(order)


@router.get("/orders/{order_id}", response_model=OrderView)
def get_order(
    request: Request,
    order_id: str,
    current_user: User = Depends(get_current_user),
) -> OrderView:
    """Return one order. Someone else's order is reported as 404, not 403."""
    shop: ShopStore = request.app.state.shop
    order = shop.get_order(order_id)
    if order is None or (order.user_id != current_user.id and not is_admin(current_user)):
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Order not found."},
        )
    return order_to_view(order)

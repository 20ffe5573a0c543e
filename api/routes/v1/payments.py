"""
api/routes/v1/payments.py -- Payment history and admin listings.

Routes:
  GET  /api/v1/payments                          -- caller's payments, paginated (requires auth)
  POST /api/v1/payments                          -- start a payment for one of the caller's orders
  GET  /api/v1/payments/{payment_id}             -- one payment; owner or admin only
  GET  /api/v1/admin/payments                    -- all payments with user/order summaries (admin)
  GET  /api/v1/admin/users                       -- all users, paginated (admin)
  POST /api/v1/admin/users/{user_id}/deactivate  -- disable an account and end its sessions (admin)

Every record leaves through a mapper in api/dto.py. Customer routes read
payments with plain IdRef references; the admin listing asks the store to
expand them so payment_to_admin_view can attach user and order summaries.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.dto import (
    AdminPaymentView,
    PaginatedView,
    PaymentView,
    UserView,
    payment_to_view,
    payments_to_admin_paginated_view,
    payments_to_paginated_view,
    user_to_view,
    users_to_paginated_view,
)
from api.models import CreatePaymentRequest
from api.validation import validated_body
from auth.dependencies import get_current_user, is_admin, require_admin
from auth.models import User
from auth.store import UserStore
from core.models import IdRef
from shop.models import Payment
from shop.store import ShopStore

logger = logging.getLogger("foodorder.payments")

router = APIRouter()


@router.get("/payments", response_model=PaginatedView[PaymentView])
def list_my_payments(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
) -> PaginatedView[PaymentView]:
    shop: ShopStore = request.app.state.shop
    return payments_to_paginated_view(shop.list_payments(user_id=current_user.id, page=page, limit=limit))


@router.post("/payments", response_model=PaymentView, status_code=201)
def create_payment(
    request: Request,
    current_user: User = Depends(get_current_user),
    body: CreatePaymentRequest = Depends(validated_body(CreatePaymentRequest)),
) -> PaymentView:
    """Create a payment for the full amount of one of the caller's pending orders."""
    shop: ShopStore = request.app.state.shop
    order = shop.get_order(body.order_id)
    if order is None or order.user_id != current_user.id:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Order not found."},
        )
    if order.status != "pending":
        raise HTTPException(
            status_code=409,
            detail={"code": "order_not_payable", "message": f"Order is {order.status}."},
        )
    payment_id = shop.create_payment(
        Payment(
            user=IdRef(current_user.id),
            order=IdRef(order.id),
            amount=order.total_amount,
            method=body.method,
        )
    )
    return payment_to_view(shop.get_payment(payment_id))


@router.get("/payments/{payment_id}", response_model=PaymentView)
def get_payment(
    request: Request,
    payment_id: str,
    current_user: User = Depends(get_current_user),
) -> PaymentView:
    """Return one payment. Someone else's payment is reported as 404, not 403."""
    shop: ShopStore = request.app.state.shop
    payment = shop.get_payment(payment_id)
    if payment is None or (payment.user.id != current_user.id and not is_admin(current_user)):
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Payment not found."},
        )
    return payment_to_view(payment)


@router.get("/admin/payments", response_model=PaginatedView[AdminPaymentView])
def list_all_payments(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_admin),
) -> PaginatedView[AdminPaymentView]:
    shop: ShopStore = request.app.state.shop
    user_store: UserStore = request.app.state.user_store
    payments = shop.list_payments(page=page, limit=limit, expand=True, expand_users=user_store.get_many)
    return payments_to_admin_paginated_view(payments)


@router.get("/admin/users", response_model=PaginatedView[UserView])
def list_users(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_admin),
) -> PaginatedView[UserView]:
    user_store: UserStore = request.app.state.user_store
    return users_to_paginated_view(user_store.list_users(page=page, limit=limit))


@router.post("/admin/users/{user_id}/deactivate", response_model=UserView)
def deactivate_user(
    request: Request,
    user_id: str,
    current_user: User = Depends(require_admin),
) -> UserView:
    """Mark the account inactive and revoke every refresh session it holds.

    Outstanding access tokens stop working on the next request because
    get_current_user re-reads the user.
    """
    user_store: UserStore = request.app.state.user_store
    if user_id == current_user.id:
        raise HTTPException(
            status_code=400,
            detail={"code": "self_deactivation", "message": "Admins cannot deactivate themselves."},
        )
    if not user_store.update_user(user_id, is_active=False):
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    revoked = user_store.revoke_all_refresh_sessions(user_id)
    logger.info("User %s deactivated by %s; %d session(s) revoked", user_id, current_user.id, revoked)
    return user_to_view(user_store.get_by_id(user_id))

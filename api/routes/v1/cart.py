"""
api/routes/v1/cart.py -- Shopping cart endpoints.

Routes:
  GET    /api/v1/cart                  -- current user's cart (empty cart if none)
  POST   /api/v1/cart                  -- add an item (AddToCartRequest)
  DELETE /api/v1/cart/items/{menuId}   -- remove one item (CartItemParams)
  DELETE /api/v1/cart                  -- clear the cart

All routes require auth. The cart is always the caller's own; there is no
user id in any path, so one user cannot address another user's cart.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.dto import CartView, cart_to_view
from api.models import AddToCartRequest, CartItemParams
from api.validation import validated_body, validated_params
from auth.dependencies import get_current_user
from auth.models import User
from shop.models import CartItem
from shop.store import CartRestaurantMismatch, ShopStore

router = APIRouter()


@router.get("/cart", response_model=CartView)
def get_cart(request: Request, current_user: User = Depends(get_current_user)) -> CartView:
    shop: ShopStore = request.app.state.shop
    return cart_to_view(shop.get_cart(current_user.id))


@router.post("/cart", response_model=CartView)
def add_to_cart(
    request: Request,
    current_user: User = Depends(get_current_user),
    body: AddToCartRequest = Depends(validated_body(AddToCartRequest)),
) -> CartView:
    """Add a menu item to the cart, merging quantities for repeated items."""
    shop: ShopStore = request.app.state.shop
    item = CartItem(
        menu_id=body.menu_id,
        name=body.name,
        price=body.price,
        quantity=body.quantity,
    )
    try:
        cart = shop.add_to_cart(current_user.id, body.restaurant_id, item)
    except CartRestaurantMismatch as exc:
        raise HTTPException(
            status_code=400,
            detail={"code": "cart_restaurant_mismatch", "message": str(exc)},
        ) from exc
    return cart_to_view(cart)


@router.delete("/cart/items/{menuId}", response_model=CartView)
def remove_cart_item(
    request: Request,
    current_user: User = Depends(get_current_user),
    params: CartItemParams = Depends(validated_params(CartItemParams)),
) -> CartView:
    shop: ShopStore = request.app.state.shop
    cart = shop.remove_item(current_user.id, params.menu_id)
    if cart is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Cart not found."},
        )
    return cart_to_view(cart)


@router.delete("/cart", status_code=204)
def clear_cart(request: Request, current_user: User = Depends(get_current_user)) -> Response:
    shop: ShopStore = request.app.state.shop
    shop.clear_cart(current_user.id)
    return Response(status_code=204)

"""
API envelope and request models for the REST endpoints.

Client-facing projections of domain records (users, payments, carts, orders)
live in api/dto.py. This module holds the envelopes shared across routes (the
error body, health and the small auth acknowledgements) and the pydantic
models that validate incoming bodies and path params.
"""

from typing import Annotated, ClassVar, Literal, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, StringConstraints
from pydantic.alias_generators import to_camel

from core.validation import Id, Price, Quantity, RequestModel, normalize_email, strip_str


class FieldErrorDetail(BaseModel):
    """One failed field check, in field order."""

    model_config = ConfigDict(frozen=True)

    field: str
    message: str
    location: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload.

    fields / errors are only present on validation failures: fields maps each
    failing field to its first message, errors lists every failed check.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    fields: Optional[dict[str, str]] = None
    errors: Optional[list[FieldErrorDetail]] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class LogoutAllResponse(BaseModel):
    """Response for POST /api/v1/auth/logout-all."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    message: str
    devices_logged_out: int = Field(ge=0)


# ---------------------------------------------------------------------------
# Request models
#
# Parsed by api/validation.py through RequestModel.parse(), so failures come
# back as 400 validation_error with the field_messages below rather than
# FastAPI's own 422.
# ---------------------------------------------------------------------------

_Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=50)]
_ItemName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
_OrderId = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^[0-9a-f]{32}$")]

# Stripped, checked by email-validator, then normalized so the UNIQUE
# constraint on users.email compares canonical addresses.
_Email = Annotated[EmailStr, BeforeValidator(strip_str), AfterValidator(normalize_email)]


class SignupRequest(RequestModel):
    """Request body for POST /api/v1/auth/signup. The password is never trimmed."""

    field_messages: ClassVar[dict[str, tuple[str, str]]] = {
        "name": ("Name is required", "Name must be 2-50 characters"),
        "email": ("Email is required", "Invalid email format"),
        "password": ("Password is required", "Password must be at least 8 characters"),
    }

    name: _Name
    email: _Email
    password: str = Field(min_length=8)


class LoginRequest(RequestModel):
    """Request body for POST /api/v1/auth/login."""

    field_messages: ClassVar[dict[str, tuple[str, str]]] = {
        "email": ("Email is required", "Invalid email format"),
        "password": ("Password is required", "Password is required"),
    }

    email: _Email
    password: str = Field(min_length=1)


class AddToCartRequest(RequestModel):
    """Request body for POST /api/v1/cart."""

    field_messages: ClassVar[dict[str, tuple[str, str]]] = {
        "menuId": ("Menu ID is required", "Invalid menu ID"),
        "name": ("Item name is required", "Item name is required"),
        "price": ("Price is required", "Price must be positive"),
        "quantity": ("Quantity is required", "Quantity must be 1-50"),
        "restaurantId": ("Restaurant ID is required", "Invalid restaurant ID"),
    }

    menu_id: Id
    name: _ItemName
    price: Price
    quantity: Quantity
    restaurant_id: Id


class CartItemParams(RequestModel):
    """Path params of DELETE /api/v1/cart/items/{menuId}."""

    field_messages: ClassVar[dict[str, tuple[str, str]]] = {
        "menuId": ("Invalid menu ID", "Invalid menu ID"),
    }

    menu_id: Id


class CreatePaymentRequest(RequestModel):
    """Request body for POST /api/v1/payments."""

    field_messages: ClassVar[dict[str, tuple[str, str]]] = {
        "orderId": ("Order ID is required", "Invalid order ID"),
        "method": ("Payment method is required", "Invalid payment method"),
    }

    order_id: _OrderId
    method: Literal["card", "upi", "netbanking", "cod"] = "card"

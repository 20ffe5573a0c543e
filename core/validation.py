"""
core/validation.py -- Pydantic request-model base and field-error mapping.

Request bodies and path params are validated by pydantic models deriving from
RequestModel (see api/models.py). Pydantic checks every field and reports
every failing one; RequestModel.parse() turns its ValidationError into a
ValidationFailed carrying one FieldError per failure, with user-facing
messages taken from the model's field_messages table:

    class LoginRequest(RequestModel):
        field_messages = {"email": ("Email is required", "Invalid email format")}
        email: EmailStr

Each field maps to (required message, invalid message). The required message
is used when the value is missing, null or blank; any other failure of that
field uses the invalid message.

Shared field types:
  Id        -- integer >= 1 that fits a signed 64-bit column.
  Quantity  -- integer 1..50.
  Price     -- finite float >= 0.
All three accept numeric strings ("7", "12.50") and reject booleans.

Layer rule: core/ is the kernel. No imports from api/, auth/ or shop/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, ClassVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

DEFAULT_MESSAGE = "Invalid value"

MAX_ID = 2**63 - 1


class Location(str, Enum):
    body = "body"
    params = "params"


@dataclass(frozen=True)
class FieldError:
    location: Location
    field: str
    message: str


class ValidationFailed(Exception):
    """Raised by RequestModel.parse(); carries every FieldError in field order."""

    def __init__(self, model: str, failures: list[FieldError]) -> None:
        super().__init__(f"{model}: {len(failures)} validation error(s)")
        self.model = model
        self.failures = failures

    @property
    def errors(self) -> dict[str, str]:
        """field -> first failure message."""
        mapped: dict[str, str] = {}
        for failure in self.failures:
            mapped.setdefault(failure.field, failure.message)
        return mapped


# ---------------------------------------------------------------------------
# Field types
# ---------------------------------------------------------------------------


def _reject_bool(value: Any) -> Any:
    # Lax int/float would accept True as 1.
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    return value


Id = Annotated[int, BeforeValidator(_reject_bool), Field(ge=1, le=MAX_ID)]
Quantity = Annotated[int, BeforeValidator(_reject_bool), Field(ge=1, le=50)]
Price = Annotated[float, BeforeValidator(_reject_bool), Field(ge=0, allow_inf_nan=False)]


# Provider-specific normalization, applied after lower-casing.
_GMAIL_DOMAINS = {"gmail.com", "googlemail.com"}
_ICLOUD_DOMAINS = {"icloud.com", "me.com", "mac.com"}
_OUTLOOK_DOMAINS = {"hotmail.com", "live.com", "outlook.com", "msn.com", "passport.com", "hotmail.co.uk", "live.co.uk"}
_YAHOO_DOMAINS = {"yahoo.com", "ymail.com", "rocketmail.com", "yahoo.co.uk", "yahoo.co.in"}


def normalize_email(address: str) -> str:
    """Canonicalize an already validated email address.

    Lower-cases the whole address. Gmail addresses also drop dots and +tags
    in the local part and fold googlemail.com into gmail.com. iCloud and
    Outlook family addresses drop +tags; Yahoo family addresses drop -tags.
    """
    local, _, domain = address.strip().lower().rpartition("@")
    if domain in _GMAIL_DOMAINS:
        local = local.split("+", 1)[0].replace(".", "")
        domain = "gmail.com"
    elif domain in _ICLOUD_DOMAINS or domain in _OUTLOOK_DOMAINS:
        local = local.split("+", 1)[0]
    elif domain in _YAHOO_DOMAINS:
        local = local.split("-", 1)[0]
    if not local:
        return address.lower()
    return f"{local}@{domain}"


def strip_str(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Request model base
# ---------------------------------------------------------------------------


def _is_blank(error: dict) -> bool:
    if error["type"] == "missing":
        return True
    value = error.get("input")
    return value is None or (isinstance(value, str) and not value.strip())


class RequestModel(BaseModel):
    """Base for validated request bodies and path params (camelCase on the wire)."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    # wire field name -> (required message, invalid message)
    field_messages: ClassVar[dict[str, tuple[str, str]]] = {}

    @classmethod
    def parse(cls, data: Any, location: Location = Location.body):
        """Validate data (a non-dict counts as {}); raise ValidationFailed on any error."""
        try:
            return cls.model_validate(data if isinstance(data, dict) else {})
        except ValidationError as exc:
            raise ValidationFailed(cls.__name__, cls.field_errors(exc, location)) from exc

    @classmethod
    def field_errors(cls, exc: ValidationError, location: Location) -> list[FieldError]:
        failures: list[FieldError] = []
        for error in exc.errors():
            field = str(error["loc"][0]) if error["loc"] else cls.__name__
            required, invalid = cls.field_messages.get(field, (DEFAULT_MESSAGE, DEFAULT_MESSAGE))
            failures.append(FieldError(location, field, required if _is_blank(error) else invalid))
        return failures

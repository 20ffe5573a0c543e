"""
api/validation.py -- FastAPI glue for the request models in api/models.py.

validated_body(model) and validated_params(model) return dependencies that
parse the JSON body or the path params into model before the route body
executes:

    @router.post("/cart")
    def add_item(body: AddToCartRequest = Depends(validated_body(AddToCartRequest))): ...

On failure RequestModel.parse() raises ValidationFailed, which api/main.py
renders as a 400 with the field -> message mapping.

Routes using these dependencies must not also declare the validated fields as
typed path/body parameters -- FastAPI would reject bad input with its own
422 before the model gets a chance to report it.
"""

from __future__ import annotations

from typing import Any, Callable

from fastapi import HTTPException, Request

from core.validation import Location, RequestModel

_BODY_METHODS = {"POST", "PUT", "PATCH"}


async def _read_json_body(request: Request) -> Any:
    if request.method not in _BODY_METHODS:
        return {}
    raw = await request.body()
    if not raw:
        return {}
    try:
        return await request.json()
    except ValueError as exc:
        raise HTTPException(
            status_code=400,
            detail={"code": "invalid_json", "message": "Request body must be valid JSON."},
        ) from exc


def validated_body(model: type[RequestModel]) -> Callable:
    """Build a dependency that parses the JSON body into model."""

    async def dependency(request: Request) -> RequestModel:
        return model.parse(await _read_json_body(request), Location.body)

    dependency.__name__ = f"validate_{model.__name__}"
    return dependency


def validated_params(model: type[RequestModel]) -> Callable:
    """Build a dependency that parses the path params into model."""

    def dependency(request: Request) -> RequestModel:
        return model.parse(dict(request.path_params), Location.params)

    dependency.__name__ = f"validate_{model.__name__}_params"
    return dependency

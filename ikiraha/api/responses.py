"""Helpers that render the ``{success, message, data?, errors?}`` envelope."""

from typing import Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from ikiraha.models.base import CamelModel


def envelope(
    message: str,
    data: Optional[CamelModel] = None,
    status_code: int = 200,
) -> JSONResponse:
    """Successful response; ``data`` is dumped with camelCase keys."""
    content = {"success": True, "message": message}
    if data is not None:
        content["data"] = data.to_json()
    return JSONResponse(status_code=status_code, content=content)


def error_envelope(
    status_code: int,
    message: str,
    errors: Optional[list] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    """Failed response; ``errors`` holds per-field validation details."""
    content = {"success": False, "message": message}
    if errors:
        content["errors"] = jsonable_encoder(errors)
    return JSONResponse(status_code=status_code, content=content, headers=headers)

"""Response envelope shared by every endpoint."""

from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class FieldError(BaseModel):
    """One failed validation rule.

    Attributes:
        field: Name of the offending request field (camelCase)
        message: Human-readable rule description
        value: The rejected value, when there was one
    """

    field: str
    message: str
    value: Optional[Any] = None


class ApiResponse(BaseModel, Generic[T]):
    """Uniform envelope ``{success, message, data?, errors?}``."""

    success: bool
    message: str
    data: Optional[T] = None
    errors: Optional[List[FieldError]] = None

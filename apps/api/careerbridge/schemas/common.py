"""Response envelope shared by every endpoint."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Successful responses are wrapped as {"data": ...}."""
    data: T


class ErrorResponse(BaseModel):
    """Error envelope rendered by the global exception handlers."""
    error: str
    code: str

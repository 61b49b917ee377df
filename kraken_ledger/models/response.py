"""Response envelope shared by every API endpoint."""

from typing import Generic, Optional, TypeVar
from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """
    `{"error": [...], "result": ...}` body.

    Successful responses carry an empty error list; failures carry one or
    more messages and usually a null result.
    """

    error: list[str] = Field(default_factory=list)
    result: Optional[T] = None

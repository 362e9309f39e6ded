"""Response envelopes shared by every endpoint."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class ApiResponse(BaseModel):
    """Success envelope.

    Attributes:
        status_code: HTTP status echoed in the body
        data: Operation payload
        message: Human-readable summary
        success: True when status_code < 400
    """

    status_code: int = Field(..., alias="statusCode")
    data: Any = None
    message: str = "Success"
    success: bool = True

    model_config = {"populate_by_name": True}


class ErrorResponse(BaseModel):
    """Error envelope.

    Attributes:
        message: Stable human-readable message (no internals)
        errors: Field-level detail map for validation failures
        correlation_id: Request tracking ID
    """

    success: bool = False
    message: str
    errors: dict[str, list[str]] = Field(default_factory=dict)
    correlation_id: Optional[str] = None

"""
Response envelope shared by every /api/v1 endpoint
"""

from typing import Any, Dict, Generic, Optional, TypeVar
from pydantic import BaseModel, Field

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Successful response: {success: true, data, message?}"""
    success: bool = Field(True, description="Always true for successful responses")
    data: Optional[T] = Field(None, description="Response payload")
    message: Optional[str] = Field(None, description="Optional human-readable message")


class ErrorEnvelope(BaseModel):
    """Failed response: {success: false, error, message, details?, trace_id?}"""
    success: bool = Field(False, description="Always false for errors")
    error: str = Field(..., description="Error kind (VALIDATION_ERROR, NOT_FOUND, STATE_ERROR, ...)")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Any] = Field(None, description="Structured error details")
    trace_id: Optional[str] = Field(None, description="Request trace id")

    class Config:
        json_schema_extra = {
            "example": {
                "success": False,
                "error": "STATE_ERROR",
                "message": "Member has already voted on this request",
                "details": {"request_id": "123e4567-e89b-12d3-a456-426614174000"},
                "trace_id": "a1b2c3d4-e5f6-7890-abcd-ef1234567890",
            }
        }


def error_body(
    code: str,
    message: str,
    details: Optional[Any] = None,
    trace_id: Optional[str] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "error": code, "message": message}
    if details:
        body["details"] = details
    if trace_id:
        body["trace_id"] = trace_id
    return body

"""
Error envelope documented on every router's non-2xx responses.
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """`{code, message, details}` as produced by the EcoHunt exception handlers."""
    model_config = ConfigDict(from_attributes=True)

    code: str = Field(examples=["PROCESS_NOT_FOUND"])
    message: str
    details: Optional[dict[str, Any]] = Field(
        default=None,
        description="Omitted when empty. Request validation puts field errors under `errors`.",
    )

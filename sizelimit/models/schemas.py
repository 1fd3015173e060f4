"""
Pydantic models for response validation.

These models serve 2 purposes:
1. Serialize outgoing response data
2. Generate OpenAPI documentation automatically.
"""

from pydantic import BaseModel, Field

# ============================================================
# RESPONSE MODELS (what we send back to the client)
# ============================================================

class LimitsInfo(BaseModel):
    """
    Active request body limits.
    """

    max_body_bytes: int = Field(..., description="Largest request body accepted, in bytes")
    read_chunk_size: int = Field(..., description="Bytes handed to the app per body message")

class HealthResponse(BaseModel):
    """
    Response for the health check.
    """

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Service version")
    mode: str = Field(..., description="Application mode")
    limits: LimitsInfo

class UploadResponse(BaseModel):
    """
    Response for a successful upload.
    """

    success: bool = Field(default=True)
    message: str = Field(..., description="Human-readable result")
    filename: str = Field(..., description="Name of the uploaded file")
    size: int = Field(..., description="Size of the uploaded file in bytes")

class ErrorResponse(BaseModel):
    """
    Error body written by the size limit middleware.

    Example:
    {"error": "request too large"}
    """

    error: str = Field(..., description="Error message")

    model_config = {
        "json_schema_extra": {
            "examples": [{"error": "request too large"}]
        }
    }

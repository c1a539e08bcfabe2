"""
Pydantic schemas for the cached record and the HTTP API.

This module contains:
- SmsRecord, the unit stored in the cache (its JSON shape is the cache payload)
- Request models for incoming data validation
- Response models for API responses
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from sms_relay.extractor import MAX_CODE_LENGTH, MIN_CODE_LENGTH

# received_at is a signed 64-bit millisecond count
INT64_MIN = -2**63
INT64_MAX = 2**63 - 1


# =============================================================================
# Cached Record
# =============================================================================

class SmsRecord(BaseModel):
    """
    A normalized SMS: the sender, the extracted code and the receipt time.

    Serialized by alias, the payload is exactly
    {"from": ..., "content": ..., "received_at": ...}; external tooling reads
    the cache directly and depends on these field names.
    """
    sender: str = Field(
        ...,
        alias="from",
        min_length=1,
        description="Sender identifier, used verbatim in cache keys"
    )
    code: str = Field(
        ...,
        alias="content",
        min_length=MIN_CODE_LENGTH,
        max_length=MAX_CODE_LENGTH,
        pattern=r"^[0-9]+$",
        description="Extracted verification code (ASCII digits)"
    )
    # Older payloads carried received_at as a quoted number; lax mode accepts both
    received_at: int = Field(
        ...,
        ge=INT64_MIN,
        le=INT64_MAX,
        description="Receipt time in milliseconds since epoch, supplied by the caller"
    )

    model_config = {"populate_by_name": True, "frozen": True}

    def received_at_display(self) -> str:
        """
        Receipt time as a UTC wall-clock string, for log lines.

        Timestamps outside the datetime range are shown as the raw millisecond value.
        """
        try:
            ts = datetime.fromtimestamp(self.received_at / 1000, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return f"{self.received_at} ms"
        return ts.strftime("%Y-%m-%d %H:%M:%S")


# =============================================================================
# Pydantic Request Models
# =============================================================================

class ReceiveSmsRequest(BaseModel):
    """
    Pydantic model for validating POST /api/receive_sms bodies.

    Validates:
    - from: non-empty string
    - content: non-empty string
    - received_at: integer milliseconds, given as a number or a numeric string
    """
    sender: str = Field(
        ...,
        alias="from",
        description="Sender phone number or identifier"
    )
    content: str = Field(
        ...,
        min_length=1,
        description="Raw SMS text"
    )
    received_at: int = Field(
        ...,
        ge=INT64_MIN,
        le=INT64_MAX,
        description="Receipt time in milliseconds since epoch"
    )

    @field_validator("sender")
    @classmethod
    def validate_sender(cls, v: str) -> str:
        """Sender is used as a key component, so it must carry something."""
        if not v.strip():
            raise ValueError("from must not be empty")
        return v

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "examples": [
                {
                    "from": "15900000000",
                    "content": "您的验证码是：123456，5分钟内有效",
                    "received_at": 1700000000000
                }
            ]
        }
    }


# =============================================================================
# Pydantic Response Models
# =============================================================================

class ReceiveSmsData(BaseModel):
    """Public fields of a stored record, plus the historic key it lives under."""
    cache_key: str = Field(..., description="Historic cache key")
    sender: str = Field(
        ...,
        alias="from",
        serialization_alias="from",
        description="Sender identifier"
    )
    timestamp: int = Field(..., description="Receipt time in milliseconds since epoch")
    code: str = Field(..., description="Extracted verification code")

    model_config = {"populate_by_name": True}


class ReceiveSmsResponse(BaseModel):
    """Response model for successful SMS ingestion."""
    status: str = Field(default="success", description="Operation status")
    message: str = Field(default="SMS received", description="Human-readable outcome")
    data: ReceiveSmsData


class LatestSmsResponse(BaseModel):
    """Response model for GET /api/latest_sms/{phone}."""
    status: str = Field(default="success", description="Operation status")
    data: SmsRecord


class ErrorResponse(BaseModel):
    """Response model for error responses."""
    detail: str = Field(..., description="Error description")


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")

"""
Pydantic schemas for the seismic monitor backend.
"""

from __future__ import annotations

import re
from typing import Literal, Optional

from pydantic import BaseModel, Field, HttpUrl, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from shared.types import RiskLevel

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

_http_url = TypeAdapter(HttpUrl)


class AnalysisResult(BaseModel):
    """Situation report produced by the model; also its structured-output schema."""

    summary: str = Field(..., description="2-3 sentence summary of recent activity.")
    riskLevel: RiskLevel
    advice: str = Field(..., description="One concise sentence of safety advice.")
    hotspots: list[str] = Field(
        ...,
        description="List of 1-3 specific regions or cities most affected recently.",
    )
    depthTrend: str = Field(
        ...,
        description=(
            "Analysis of depth patterns (e.g., 'Mostly shallow events implying "
            "felt tremors')."
        ),
    )
    seasonalContext: str = Field(
        ...,
        description="Context regarding frequency compared to typical norms.",
    )


class AnalyzeRequest(BaseModel):
    quakes: Optional[list[dict]] = None


class AlertPreferencePayload(BaseModel):
    """Incoming subscription write. Empty strings mean "not provided"."""

    locationName: Optional[str] = None
    phoneNumber: Optional[str] = None
    email: Optional[str] = None
    discordWebhook: Optional[str] = None
    minMagnitude: float = Field(..., ge=0, le=10, strict=True)
    notificationsEnabled: bool = Field(..., strict=True)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: Optional[str]) -> Optional[str]:
        if value and not EMAIL_PATTERN.match(value):
            raise ValueError("Invalid email")
        return value

    @field_validator("discordWebhook")
    @classmethod
    def _check_webhook(cls, value: Optional[str]) -> Optional[str]:
        if value:
            try:
                _http_url.validate_python(value)
            except PydanticValidationError:
                raise ValueError("Invalid url") from None
        return value


class AlertPreferenceResponse(BaseModel):
    success: Literal[True] = True
    id: str
    message: Optional[str] = None

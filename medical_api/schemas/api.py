"""Pydantic models for API request/response serialization."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from medical_api.services.policy import Purpose


# ---------------------------------------------------------------------------
# Patient access
# ---------------------------------------------------------------------------

class ConsentStatus(BaseModel):
    verified: bool = True
    consent_id: str | None = None
    expires_at: datetime | None = None
    justification: str | None = None


class PatientAccessResponse(BaseModel):
    """Minimized patient view plus the consent it was released under."""
    data: dict[str, Any]
    consent: ConsentStatus


class PatientSummaryResponse(BaseModel):
    data: dict[str, str]


# ---------------------------------------------------------------------------
# Consent management
# ---------------------------------------------------------------------------

class ConsentGrantRequest(BaseModel):
    purpose: Purpose
    granted_by: str = Field(..., min_length=1)
    expires_at: datetime | None = None


class ConsentGrantResponse(BaseModel):
    message: str = "Consent recorded successfully"
    consent_id: str


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: str = "healthy"
    service: str = "medical-api"
    environment: str
    database: str = "connected"

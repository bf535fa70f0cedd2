"""
FastAPI routes – the patient record API surface.

Every patient read goes through AccessService, which authorizes, checks
consent, minimizes fields, and audits. Denials and storage failures are
raised as service exceptions and mapped to responses in ``main``.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medical_api.api.dependencies import (
    get_access_service,
    get_current_actor,
    get_request_metadata,
    require_role,
)
from medical_api.config import settings
from medical_api.models.database import get_db
from medical_api.schemas.api import (
    ConsentGrantRequest,
    ConsentGrantResponse,
    ConsentStatus,
    ErrorResponse,
    HealthResponse,
    MessageResponse,
    PatientAccessResponse,
    PatientSummaryResponse,
)
from medical_api.services.access import AccessService, Actor
from medical_api.services.audit import RequestMetadata
from medical_api.services.policy import CONSENT_RECORDER_ROLES, Purpose

logger = logging.getLogger(__name__)

router = APIRouter()

# Documented error bodies; produced by the handlers in main.
ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (401, 403, 404, 500)
}


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@router.get("/health", response_model=HealthResponse)
def health_check(db: Session = Depends(get_db)):
    """Basic health endpoint – verifies DB connectivity."""
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError:
        logger.exception("Health check could not reach the database")
        db_status = "disconnected"
    return HealthResponse(environment=settings.ENVIRONMENT, database=db_status)


# ---------------------------------------------------------------------------
# Patient access (role, consent, minimization, audit)
# ---------------------------------------------------------------------------

@router.get(
    "/patients/{patient_id}",
    response_model=PatientAccessResponse,
    responses=ERROR_RESPONSES,
)
def get_patient(
    patient_id: str,
    purpose: Purpose,
    actor: Actor = Depends(get_current_actor),
    metadata: RequestMetadata = Depends(get_request_metadata),
    service: AccessService = Depends(get_access_service),
):
    """Return only the fields the caller's role may see for ``purpose``."""
    grant = service.request_access(patient_id, purpose, actor, metadata)
    return PatientAccessResponse(
        data=grant.data.disclosed(),
        consent=ConsentStatus(
            consent_id=grant.consent.consent_id,
            expires_at=grant.consent.expires_at,
            justification=grant.consent.reason,
        ),
    )


@router.get(
    "/patients/{patient_id}/summary",
    response_model=PatientSummaryResponse,
    responses=ERROR_RESPONSES,
)
def get_patient_summary(
    patient_id: str,
    actor: Actor = Depends(get_current_actor),
    metadata: RequestMetadata = Depends(get_request_metadata),
    service: AccessService = Depends(get_access_service),
):
    """Minimal lookup for identity verification: id, initials, date of birth."""
    summary = service.summarize(patient_id, actor, metadata)
    return PatientSummaryResponse(data=summary.model_dump())


# ---------------------------------------------------------------------------
# Consent management
# ---------------------------------------------------------------------------

@router.post(
    "/patients/{patient_id}/consent",
    response_model=ConsentGrantResponse,
    status_code=201,
    responses=ERROR_RESPONSES,
)
def grant_consent(
    patient_id: str,
    request: ConsentGrantRequest,
    actor: Actor = Depends(require_role(CONSENT_RECORDER_ROLES)),
    metadata: RequestMetadata = Depends(get_request_metadata),
    service: AccessService = Depends(get_access_service),
):
    consent_id = service.grant_consent(
        patient_id,
        request.purpose,
        request.granted_by,
        actor,
        expires_at=request.expires_at,
        metadata=metadata,
    )
    return ConsentGrantResponse(consent_id=consent_id)


@router.delete(
    "/patients/{patient_id}/consent/{consent_id}",
    response_model=MessageResponse,
    responses=ERROR_RESPONSES,
)
def withdraw_consent(
    patient_id: str,
    consent_id: str,
    actor: Actor = Depends(get_current_actor),
    metadata: RequestMetadata = Depends(get_request_metadata),
    service: AccessService = Depends(get_access_service),
):
    """Patients may withdraw consent at any time; the grant is kept, not deleted."""
    service.withdraw_consent(consent_id, actor, subject_id=patient_id, metadata=metadata)
    return MessageResponse(message="Consent withdrawn successfully")

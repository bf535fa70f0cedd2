"""
Access request pipeline.

    START -> AUTHORIZED -> CONSENTED -> FILTERED -> AUDITED (success)
    START -> DENIED_ROLE -> AUDITED (denial)
    AUTHORIZED -> DENIED_CONSENT -> AUDITED (denial)

Stages run strictly in order and stop at the first denial. Whatever the
outcome, exactly one audit entry is written and committed before the call
returns or raises, so no data leaves without a trail.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import NoReturn

from medical_api.errors import (
    AccessDenied,
    AuditWriteFailure,
    AuthorizationDenied,
    ConsentDenied,
    ConsentNotFound,
    StorageFailure,
    SubjectNotFound,
)
from medical_api.schemas.patient import DisclosedPatient, PatientSummary
from medical_api.services.audit import AuditAction, AuditEntry, RequestMetadata, record_audit
from medical_api.services.authorization import authorize
from medical_api.services.consent import ConsentResult, verify_consent
from medical_api.services.disclosure import filter_fields
from medical_api.services.policy import Purpose, Role
from medical_api.services.store import RecordStore

logger = logging.getLogger(__name__)

ROLE_DENIED_REASON = "Your role does not permit access for this purpose"
SUMMARY_FIELDS = ("id", "initials", "date_of_birth")


class AccessState(str, Enum):
    START = "start"
    AUTHORIZED = "authorized"
    DENIED_ROLE = "denied_role"
    CONSENTED = "consented"
    DENIED_CONSENT = "denied_consent"
    FILTERED = "filtered"
    AUDITED = "audited"


@dataclass(frozen=True)
class Actor:
    """Authenticated caller, resolved before the service is invoked."""

    id: str
    role: Role
    department: str | None = None


@dataclass(frozen=True)
class AccessGrant:
    data: DisclosedPatient
    consent: ConsentResult
    accessed_fields: tuple[str, ...]


class AccessService:
    """Public entry points for reading patients and managing consent."""

    def __init__(self, store: RecordStore):
        self.store = store

    def _audit(self, entry: AuditEntry) -> None:
        record_audit(self.store, entry)
        try:
            self.store.commit()
        except StorageFailure as exc:
            logger.critical(
                "AUDIT WRITE FAILED at commit: %s %s/%s by %s",
                entry.action.value,
                entry.resource_type,
                entry.resource_id,
                entry.user_id,
            )
            raise AuditWriteFailure("Audit entry could not be committed") from exc

    def _deny(
        self,
        subject_id: str,
        purpose: Purpose,
        actor: Actor,
        metadata: RequestMetadata,
        error: AccessDenied | SubjectNotFound,
        state: AccessState,
    ) -> NoReturn:
        logger.info(
            "Access to patient/%s denied for %s at %s", subject_id, actor.id, state.value
        )
        self._audit(
            AuditEntry(
                action=AuditAction.ACCESS_DENIED,
                resource_type="patient",
                resource_id=subject_id,
                user_id=actor.id,
                purpose=purpose.value,
                fields_accessed=(),
                metadata=metadata,
                detail={"stage": state.value, "reason": str(error)},
            )
        )
        raise error

    # -----------------------------------------------------------------------
    # Patient access
    # -----------------------------------------------------------------------

    def request_access(
        self,
        subject_id: str,
        purpose: Purpose,
        actor: Actor,
        metadata: RequestMetadata | None = None,
    ) -> AccessGrant:
        metadata = metadata or RequestMetadata()

        if not authorize(actor.role, purpose):
            self._deny(
                subject_id, purpose, actor, metadata,
                AuthorizationDenied(ROLE_DENIED_REASON), AccessState.DENIED_ROLE,
            )

        consent = verify_consent(self.store, subject_id, purpose, actor.id)
        if not consent.valid:
            self._deny(
                subject_id, purpose, actor, metadata,
                ConsentDenied(f"Consent verification failed: {consent.reason}"),
                AccessState.DENIED_CONSENT,
            )

        subject = self.store.get_patient(subject_id)
        if subject is None:
            # No PHI was touched, but the attempt still leaves a trail.
            self._deny(
                subject_id, purpose, actor, metadata,
                SubjectNotFound(subject_id), AccessState.CONSENTED,
            )

        disclosure = filter_fields(subject, purpose, actor.role)
        self._audit(
            AuditEntry(
                action=AuditAction.PATIENT_ACCESS,
                resource_type="patient",
                resource_id=subject_id,
                user_id=actor.id,
                purpose=purpose.value,
                fields_accessed=disclosure.accessed_fields,
                metadata=metadata,
            )
        )
        return AccessGrant(
            data=disclosure.filtered,
            consent=consent,
            accessed_fields=disclosure.accessed_fields,
        )

    def summarize(
        self,
        subject_id: str,
        actor: Actor,
        metadata: RequestMetadata | None = None,
    ) -> PatientSummary:
        """Minimal identity-verification view; audited like any other access."""
        subject = self.store.get_patient(subject_id)
        if subject is None:
            raise SubjectNotFound(subject_id)

        self._audit(
            AuditEntry(
                action=AuditAction.PATIENT_ACCESS,
                resource_type="patient_summary",
                resource_id=subject_id,
                user_id=actor.id,
                purpose="verification",
                fields_accessed=SUMMARY_FIELDS,
                metadata=metadata or RequestMetadata(),
            )
        )
        return PatientSummary.from_record(subject)

    # -----------------------------------------------------------------------
    # Consent management
    # -----------------------------------------------------------------------

    def grant_consent(
        self,
        subject_id: str,
        purpose: Purpose,
        granted_by: str,
        actor: Actor,
        expires_at: datetime | None = None,
        metadata: RequestMetadata | None = None,
    ) -> str:
        if self.store.get_patient(subject_id) is None:
            raise SubjectNotFound(subject_id)

        consent_id = self.store.insert_consent(subject_id, purpose, granted_by, expires_at)
        self._audit(
            AuditEntry(
                action=AuditAction.CONSENT_GRANTED,
                resource_type="consent",
                resource_id=consent_id,
                user_id=actor.id,
                purpose=purpose.value,
                metadata=metadata or RequestMetadata(),
            )
        )
        return consent_id

    def withdraw_consent(
        self,
        consent_id: str,
        actor: Actor,
        subject_id: str | None = None,
        metadata: RequestMetadata | None = None,
    ) -> None:
        grant = self.store.get_consent(consent_id)
        if grant is None or (subject_id is not None and grant.patient_id != subject_id):
            raise ConsentNotFound(consent_id)

        self.store.mark_consent_withdrawn(consent_id, datetime.now(timezone.utc))
        self._audit(
            AuditEntry(
                action=AuditAction.CONSENT_WITHDRAWN,
                resource_type="consent",
                resource_id=consent_id,
                user_id=actor.id,
                purpose=grant.purpose.value,
                metadata=metadata or RequestMetadata(),
            )
        )

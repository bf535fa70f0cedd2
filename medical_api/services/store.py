"""
Record store: the only module that talks to the database.

Wraps a SQLAlchemy session behind the handful of operations the access
pipeline needs. Every database error is rolled back and re-raised as
``StorageFailure``; nothing is retried here.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medical_api.errors import StorageFailure
from medical_api.models.patient import AuditLog, ConsentRecord, Patient
from medical_api.schemas.patient import PatientRecord
from medical_api.services.audit import AuditEntry
from medical_api.services.encryption import EncryptionService
from medical_api.services.policy import Purpose

logger = logging.getLogger(__name__)

encryption = EncryptionService()

_PLAIN_COLUMNS = (
    "first_name",
    "last_name",
    "date_of_birth",
    "address",
    "city",
    "province",
    "postal_code",
    "phone_number",
    "email",
    "medical_history",
    "medications",
    "allergies",
    "insurance_info",
    "emergency_contacts",
)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps (SQLite drops the offset)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class ConsentGrant:
    id: str
    patient_id: str
    purpose: Purpose
    granted_by: str
    granted_at: datetime
    expires_at: datetime | None
    withdrawn_at: datetime | None
    is_active: bool

    @classmethod
    def from_row(cls, row: ConsentRecord) -> ConsentGrant:
        return cls(
            id=row.id,
            patient_id=row.patient_id,
            purpose=Purpose(row.purpose),
            granted_by=row.granted_by,
            granted_at=as_utc(row.granted_at),
            expires_at=as_utc(row.expires_at),
            withdrawn_at=as_utc(row.withdrawn_at),
            is_active=row.is_active,
        )


class RecordStore:
    def __init__(self, db: Session, cipher: EncryptionService | None = None):
        self.db = db
        self.cipher = cipher or encryption

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Record store operation '%s' failed: %s", operation, exc)
            raise StorageFailure(f"{operation} failed") from exc

    # -- patients ----------------------------------------------------------

    def get_patient(self, patient_id: str) -> PatientRecord | None:
        with self._guard("get_patient"):
            row = self.db.get(Patient, patient_id)
            if row is None:
                return None
            plain = {name: getattr(row, name) for name in _PLAIN_COLUMNS}
        return PatientRecord(
            id=row.id,
            social_insurance_number=self.cipher.decrypt(row.encrypted_sin),
            health_card_number=self.cipher.decrypt(row.encrypted_health_card_number),
            **plain,
        )

    def add_patient(self, data: Mapping[str, Any]) -> str:
        """Insert a validated patient record, encrypting its identifiers."""
        row = Patient(
            encrypted_sin=self.cipher.encrypt(data.get("social_insurance_number")),
            encrypted_health_card_number=self.cipher.encrypt(data.get("health_card_number")),
            **{name: data.get(name) for name in _PLAIN_COLUMNS},
        )
        if data.get("id"):
            row.id = data["id"]
        with self._guard("add_patient"):
            self.db.add(row)
            self.db.flush()
        return row.id

    # -- consent -----------------------------------------------------------

    def find_active_consent(self, patient_id: str, purpose: Purpose) -> ConsentGrant | None:
        """Most recently granted active consent for (patient, purpose)."""
        stmt = (
            select(ConsentRecord)
            .where(
                ConsentRecord.patient_id == patient_id,
                ConsentRecord.purpose == purpose.value,
                ConsentRecord.is_active.is_(True),
            )
            .order_by(ConsentRecord.granted_at.desc())
            .limit(1)
        )
        with self._guard("find_active_consent"):
            row = self.db.execute(stmt).scalars().first()
        return ConsentGrant.from_row(row) if row else None

    def get_consent(self, consent_id: str) -> ConsentGrant | None:
        with self._guard("get_consent"):
            row = self.db.get(ConsentRecord, consent_id)
        return ConsentGrant.from_row(row) if row else None

    def insert_consent(
        self,
        patient_id: str,
        purpose: Purpose,
        granted_by: str,
        expires_at: datetime | None = None,
        granted_at: datetime | None = None,
    ) -> str:
        row = ConsentRecord(
            patient_id=patient_id,
            purpose=purpose.value,
            granted_by=granted_by,
            granted_at=as_utc(granted_at) or datetime.now(timezone.utc),
            expires_at=as_utc(expires_at),
            is_active=True,
        )
        with self._guard("insert_consent"):
            self.db.add(row)
            self.db.flush()
        return row.id

    def mark_consent_withdrawn(self, consent_id: str, when: datetime) -> ConsentGrant | None:
        with self._guard("mark_consent_withdrawn"):
            row = self.db.get(ConsentRecord, consent_id)
            if row is None:
                return None
            if row.withdrawn_at is None:
                row.withdrawn_at = when
            row.is_active = False
            self.db.flush()
        return ConsentGrant.from_row(row)

    # -- audit -------------------------------------------------------------

    def append_audit(self, entry: AuditEntry) -> str:
        row = AuditLog(
            action=entry.action.value,
            resource_type=entry.resource_type,
            resource_id=entry.resource_id,
            user_id=entry.user_id,
            purpose=entry.purpose,
            fields_accessed=list(entry.fields_accessed) if entry.fields_accessed is not None else None,
            ip_address=entry.metadata.ip_address,
            user_agent=entry.metadata.user_agent,
            detail=entry.detail,
        )
        with self._guard("append_audit"):
            self.db.add(row)
            self.db.flush()
        return row.id

    def commit(self) -> None:
        with self._guard("commit"):
            self.db.commit()

"""
Data models for the healthcare record store.

- Patient rows hold PHI; the SIN and health card number are encrypted at rest
- Consent grants are mutated only by withdrawal and never deleted
- The audit log stores identifiers and field names only, never values
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB

from medical_api.models.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite for local runs and tests).
JSONDocument = JSON().with_variant(JSONB(), "postgresql")

PURPOSES = ("treatment", "billing", "referral", "research", "emergency")
AUDIT_ACTIONS = (
    "PATIENT_ACCESS",
    "PATIENT_UPDATE",
    "ACCESS_DENIED",
    "CONSENT_GRANTED",
    "CONSENT_WITHDRAWN",
)


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Patient – the record owner (contains PHI)
# ---------------------------------------------------------------------------
class Patient(Base):
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=_new_id)
    first_name = Column(Text, nullable=False)
    last_name = Column(Text, nullable=False)
    date_of_birth = Column(String(10), nullable=False, comment="ISO date string")
    encrypted_sin = Column(Text, nullable=True, comment="Fernet-encrypted Social Insurance Number")
    encrypted_health_card_number = Column(
        Text, nullable=True, comment="Fernet-encrypted Personal Health Number"
    )
    address = Column(Text)
    city = Column(Text)
    province = Column(String(2))
    postal_code = Column(String(16))
    phone_number = Column(String(32))
    email = Column(Text)
    medical_history = Column(JSONDocument)
    medications = Column(JSONDocument)
    allergies = Column(JSONDocument)
    insurance_info = Column(JSONDocument)
    emergency_contacts = Column(JSONDocument)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


# ---------------------------------------------------------------------------
# Consent – a patient's authorization for one purpose
# ---------------------------------------------------------------------------
class ConsentRecord(Base):
    __tablename__ = "consent_records"

    id = Column(String(36), primary_key=True, default=_new_id)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False)
    purpose = Column(Enum(*PURPOSES, name="consent_purpose_enum"), nullable=False)
    granted_by = Column(Text, nullable=False, comment="Who authorized the consent")
    granted_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    withdrawn_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("ix_consent_patient_purpose", "patient_id", "purpose"),
    )


# ---------------------------------------------------------------------------
# Audit Log – immutable compliance trail (metadata only)
# ---------------------------------------------------------------------------
class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=_new_id)
    action = Column(Enum(*AUDIT_ACTIONS, name="audit_action_enum"), nullable=False)
    resource_type = Column(String(64), nullable=False)
    resource_id = Column(Text, nullable=False, comment="Identifier, never the data")
    user_id = Column(Text, nullable=False, comment="Who performed the action")
    purpose = Column(String(32))
    fields_accessed = Column(JSONDocument, comment="Field names only, never values")
    ip_address = Column(String(64))
    user_agent = Column(Text)
    detail = Column(JSONDocument, comment="Non-PHI context, e.g. the denial reason")
    timestamp = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_audit_timestamp", "timestamp"),
        Index("ix_audit_resource", "resource_type", "resource_id"),
    )

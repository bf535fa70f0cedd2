"""Pydantic models for patient records and their disclosed views."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class PatientRecord(BaseModel):
    """Full, decrypted patient record. Only ever handled inside the service."""

    model_config = ConfigDict(frozen=True)

    id: str
    first_name: str
    last_name: str
    date_of_birth: str
    social_insurance_number: str | None = None
    health_card_number: str | None = None
    address: str | None = None
    city: str | None = None
    province: str | None = None
    postal_code: str | None = None
    phone_number: str | None = None
    email: str | None = None
    medical_history: list[dict[str, Any]] | None = None
    medications: list[dict[str, Any]] | None = None
    allergies: list[str] | None = None
    insurance_info: dict[str, Any] | None = None
    emergency_contacts: list[dict[str, Any]] | None = None


class DisclosedPatient(BaseModel):
    """
    The redacted view returned to a caller.

    Every disclosable field is declared here and nothing else is accepted, so
    a field missing from this model cannot be disclosed by accident. Which of
    them are actually set is decided by the disclosure rules.
    The SIN is deliberately absent: no purpose discloses it.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: str | None = None
    health_card_number: str | None = None
    address: str | None = None
    city: str | None = None
    province: str | None = None
    postal_code: str | None = None
    phone_number: str | None = None
    email: str | None = None
    medical_history: list[dict[str, Any]] | None = None
    medications: list[dict[str, Any]] | None = None
    allergies: list[str] | None = None
    insurance_info: dict[str, Any] | None = None
    emergency_contacts: list[dict[str, Any]] | None = None

    def disclosed(self) -> dict[str, Any]:
        """Only the fields that were explicitly disclosed."""
        return self.model_dump(exclude_unset=True)


class PatientSummary(BaseModel):
    """Minimal identity-verification view."""

    id: str
    initials: str
    date_of_birth: str

    @classmethod
    def from_record(cls, record: PatientRecord) -> PatientSummary:
        return cls(
            id=record.id,
            initials=f"{record.first_name[:1]}{record.last_name[:1]}",
            date_of_birth=record.date_of_birth,
        )

"""
Error taxonomy for the PHI disclosure pipeline.

Denials carry a reason string that is safe to show to the caller: it never
contains field values or internal detail. Storage errors are the opposite,
they carry full detail for the logs and map to a generic message at the edge.
"""

from __future__ import annotations


class MedicalApiError(Exception):
    """Base class for all errors raised by the service layer."""


class AccessDenied(MedicalApiError):
    """Access request refused at one of the pipeline gates."""

    stage = "denied"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class AuthorizationDenied(AccessDenied):
    stage = "role"


class ConsentDenied(AccessDenied):
    stage = "consent"


class NotFound(MedicalApiError):
    pass


class SubjectNotFound(NotFound):
    def __init__(self, subject_id: str):
        super().__init__("Patient not found")
        self.subject_id = subject_id


class ConsentNotFound(NotFound):
    def __init__(self, consent_id: str):
        super().__init__("Consent record not found")
        self.consent_id = consent_id


class StorageFailure(MedicalApiError):
    """Any error raised by the record store. Never retried here."""


class AuditWriteFailure(StorageFailure):
    """The audit trail for an operation could not be persisted."""

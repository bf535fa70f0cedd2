"""
Consent verification.

A grant is valid when it is active, has not been withdrawn, and has not
expired. Emergency access is a policy exception: it is always permitted
without a lookup, and is still audited by the caller.

A missing or invalid consent is an expected outcome and is reported in the
result, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from medical_api.services.policy import Purpose
from medical_api.services.store import ConsentGrant

EMERGENCY_JUSTIFICATION = "Emergency access permitted without consent (PIPA BC s.18)"
REASON_NOT_FOUND = "No active consent found for this purpose"
REASON_WITHDRAWN = "Consent has been withdrawn"
REASON_EXPIRED = "Consent has expired"


class ConsentLookup(Protocol):
    def find_active_consent(self, patient_id: str, purpose: Purpose) -> ConsentGrant | None: ...


@dataclass(frozen=True)
class ConsentResult:
    valid: bool
    consent_id: str | None = None
    expires_at: datetime | None = None
    reason: str | None = None


def verify_consent(
    store: ConsentLookup,
    subject_id: str,
    purpose: Purpose,
    actor_id: str,
    now: datetime | None = None,
) -> ConsentResult:
    """Check for a valid consent grant covering (subject, purpose).

    ``actor_id`` is accepted for symmetry with the audit trail; the decision
    does not depend on who is asking.
    """
    if purpose == Purpose.EMERGENCY:
        return ConsentResult(valid=True, reason=EMERGENCY_JUSTIFICATION)

    grant = store.find_active_consent(subject_id, purpose)
    if grant is None:
        return ConsentResult(valid=False, reason=REASON_NOT_FOUND)

    # Withdrawal already clears is_active; checked again in case a row was
    # withdrawn without the flag being flipped.
    if grant.withdrawn_at is not None:
        return ConsentResult(valid=False, reason=REASON_WITHDRAWN)

    now = now or datetime.now(timezone.utc)
    if grant.expires_at is not None and grant.expires_at < now:
        return ConsentResult(valid=False, reason=REASON_EXPIRED)

    return ConsentResult(valid=True, consent_id=grant.id, expires_at=grant.expires_at)

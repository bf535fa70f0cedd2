"""
Audit recorder for the compliance trail.

Entries describe who touched which resource, for what purpose, and which
field *names* were involved. Values never belong in an entry. Before each
write the field-name list is scanned for value-shaped strings as a tripwire
against a caller passing data instead of names. The scan is a heuristic: it
cannot recognise free-text values such as names or street addresses.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from medical_api.errors import AuditWriteFailure, StorageFailure

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    PATIENT_ACCESS = "PATIENT_ACCESS"
    PATIENT_UPDATE = "PATIENT_UPDATE"
    ACCESS_DENIED = "ACCESS_DENIED"
    CONSENT_GRANTED = "CONSENT_GRANTED"
    CONSENT_WITHDRAWN = "CONSENT_WITHDRAWN"


@dataclass(frozen=True)
class RequestMetadata:
    ip_address: str = "unknown"
    user_agent: str = "unknown"


@dataclass(frozen=True)
class AuditEntry:
    action: AuditAction
    resource_type: str
    resource_id: str
    user_id: str
    purpose: str | None = None
    fields_accessed: tuple[str, ...] | None = None
    metadata: RequestMetadata = field(default_factory=RequestMetadata)
    detail: dict[str, Any] | None = None


class AuditSink(Protocol):
    def append_audit(self, entry: AuditEntry) -> str: ...


SUSPICIOUS_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\d{3}-\d{3}-\d{3}"),  # SIN
    re.compile(r"\d{10}"),  # PHN
    re.compile(r"@.*\.(com|ca|org)"),  # email
)


def scan_for_phi(fields_accessed: tuple[str, ...] | list[str] | None) -> list[str]:
    """Return the patterns that match the serialized field-name list."""
    if not fields_accessed:
        return []
    serialized = json.dumps(list(fields_accessed))
    return [p.pattern for p in SUSPICIOUS_PATTERNS if p.search(serialized)]


def record_audit(store: AuditSink, entry: AuditEntry) -> str:
    """Append ``entry`` to the audit trail and return its id.

    Storage errors are not swallowed: a lost audit entry is raised as
    ``AuditWriteFailure`` after being logged at critical level.
    """
    matches = scan_for_phi(entry.fields_accessed)
    if matches:
        logger.warning(
            "SECURITY WARNING: possible PHI in audit fields for %s/%s (patterns: %s)",
            entry.resource_type,
            entry.resource_id,
            ", ".join(matches),
        )

    try:
        entry_id = store.append_audit(entry)
    except StorageFailure as exc:
        logger.critical(
            "AUDIT WRITE FAILED: %s %s/%s by %s",
            entry.action.value,
            entry.resource_type,
            entry.resource_id,
            entry.user_id,
        )
        raise AuditWriteFailure("Audit entry could not be persisted") from exc

    logger.info(
        "AUDIT: %s %s %s/%s purpose=%s",
        entry.user_id,
        entry.action.value,
        entry.resource_type,
        entry.resource_id,
        entry.purpose,
    )
    return entry_id

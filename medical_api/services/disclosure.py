"""
Field disclosure filter (data minimization).

Given a purpose and a role, copy exactly the fields enumerated for that
(purpose, role) pair in the disclosure rules onto a ``DisclosedPatient`` and
report which field names were copied. The identifier is always copied and is
not counted as an accessed field; the audit entry already records it as the
resource id.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from medical_api.schemas.patient import DisclosedPatient, PatientRecord
from medical_api.services.policy import DISCLOSURE_RULES, Purpose, Role


@dataclass(frozen=True)
class Disclosure:
    filtered: DisclosedPatient
    accessed_fields: tuple[str, ...]


def allowed_fields(
    purpose: Purpose,
    role: Role,
    rules: Mapping[Purpose, Mapping[Role, tuple[str, ...]]] = DISCLOSURE_RULES,
) -> tuple[str, ...]:
    """Field names disclosable for (purpose, role); empty means identifier only."""
    return rules.get(purpose, {}).get(role, ())


def filter_fields(
    subject: PatientRecord,
    purpose: Purpose,
    role: Role,
    rules: Mapping[Purpose, Mapping[Role, tuple[str, ...]]] = DISCLOSURE_RULES,
) -> Disclosure:
    """Return the minimized view of ``subject`` and the field names it exposes."""
    fields = allowed_fields(purpose, role, rules)
    values = {name: getattr(subject, name) for name in fields}
    # DisclosedPatient forbids extra keys, so a rule naming an undeclared
    # field fails here instead of leaking.
    filtered = DisclosedPatient(id=subject.id, **values)
    return Disclosure(filtered=filtered, accessed_fields=tuple(fields))

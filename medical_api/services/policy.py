"""
Static access policy: roles, purposes, and the tables that relate them.

Both tables are read-only mappings built once at import. Components take them
as default arguments so tests can pass a substitute table.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType


class Role(str, Enum):
    PHYSICIAN = "physician"
    NURSE = "nurse"
    ADMIN = "admin"
    BILLING = "billing"
    RECEPTIONIST = "receptionist"


class Purpose(str, Enum):
    TREATMENT = "treatment"
    BILLING = "billing"
    REFERRAL = "referral"
    RESEARCH = "research"
    EMERGENCY = "emergency"


# ---------------------------------------------------------------------------
# Role -> purposes a role may request data for
# ---------------------------------------------------------------------------

ROLE_PERMISSIONS: Mapping[Role, frozenset[Purpose]] = MappingProxyType(
    {
        Role.PHYSICIAN: frozenset({Purpose.TREATMENT, Purpose.REFERRAL, Purpose.EMERGENCY}),
        Role.NURSE: frozenset({Purpose.TREATMENT, Purpose.EMERGENCY}),
        Role.ADMIN: frozenset({Purpose.BILLING}),
        Role.BILLING: frozenset({Purpose.BILLING}),
        Role.RECEPTIONIST: frozenset({Purpose.EMERGENCY}),
    }
)

# Roles allowed to record a new consent grant.
CONSENT_RECORDER_ROLES: frozenset[Role] = frozenset({Role.PHYSICIAN, Role.NURSE, Role.ADMIN})


# ---------------------------------------------------------------------------
# Purpose x Role -> disclosable fields (the identifier is always disclosed)
# ---------------------------------------------------------------------------

NAME_FIELDS = ("first_name", "last_name")

_TREATMENT_NURSE = NAME_FIELDS + ("date_of_birth", "medical_history", "medications", "allergies")
_TREATMENT_PHYSICIAN = _TREATMENT_NURSE + ("health_card_number",)

_BILLING = NAME_FIELDS + (
    "address",
    "city",
    "province",
    "postal_code",
    "phone_number",
    "email",
    "insurance_info",
)

_REFERRAL = NAME_FIELDS + ("date_of_birth", "health_card_number", "medical_history")

_EMERGENCY_STAFF = NAME_FIELDS + ("date_of_birth", "allergies", "emergency_contacts")
_EMERGENCY_CLINICAL = _EMERGENCY_STAFF + ("medications",)

# De-identification is not implemented; research stays restricted to DOB.
_RESEARCH = ("date_of_birth",)

DISCLOSURE_RULES: Mapping[Purpose, Mapping[Role, tuple[str, ...]]] = MappingProxyType(
    {
        Purpose.TREATMENT: MappingProxyType(
            {
                Role.PHYSICIAN: _TREATMENT_PHYSICIAN,
                Role.NURSE: _TREATMENT_NURSE,
            }
        ),
        Purpose.BILLING: MappingProxyType(
            {
                Role.BILLING: _BILLING,
                Role.ADMIN: _BILLING,
            }
        ),
        Purpose.REFERRAL: MappingProxyType(
            {
                Role.PHYSICIAN: _REFERRAL,
            }
        ),
        Purpose.EMERGENCY: MappingProxyType(
            {
                Role.PHYSICIAN: _EMERGENCY_CLINICAL,
                Role.NURSE: _EMERGENCY_CLINICAL,
                Role.ADMIN: _EMERGENCY_STAFF,
                Role.BILLING: _EMERGENCY_STAFF,
                Role.RECEPTIONIST: _EMERGENCY_STAFF,
            }
        ),
        Purpose.RESEARCH: MappingProxyType({role: _RESEARCH for role in Role}),
    }
)

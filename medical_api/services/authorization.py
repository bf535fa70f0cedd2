"""Role-purpose authorization."""

from __future__ import annotations

from collections.abc import Mapping

from medical_api.services.policy import ROLE_PERMISSIONS, Purpose, Role


def authorize(
    role: Role,
    purpose: Purpose,
    permissions: Mapping[Role, frozenset[Purpose]] = ROLE_PERMISSIONS,
) -> bool:
    """True iff ``role`` may request data for ``purpose``. Anything unlisted is denied."""
    return purpose in permissions.get(role, frozenset())

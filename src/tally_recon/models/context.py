"""Business context passed explicitly into every engine call."""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

ROLE_PRIORITY = ("owner", "super")


@dataclass(frozen=True)
class BusinessContext:
    """The business an operation runs against."""

    business_id: str
    role: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.business_id or not str(self.business_id).strip():
            raise ValueError("business_id must be a non-empty string")

    @property
    def is_personal(self) -> bool:
        return is_personal_business(self.business_id)


def is_personal_business(business_id: str) -> bool:
    """Personal workspaces carry 'personal' somewhere in their id."""
    return "personal" in business_id.lower()


def resolve_business_context(
    memberships: Mapping[str, Mapping[str, Any]],
    preferred_id: Optional[str] = None,
) -> Optional[BusinessContext]:
    """
    Pick the business to operate on from a user's memberships.

    The primary membership is the first with role "owner", else the first
    with role "super", else the first entry. If the chosen id (or the
    explicitly preferred one) is a personal workspace, the first
    non-personal membership is used instead, falling back to the first
    membership when every workspace is personal.

    Args:
        memberships: Mapping of business id to membership data (with "role")
        preferred_id: Business id the caller would like to use

    Returns:
        BusinessContext, or None when there are no memberships
    """
    if not memberships:
        return None

    ids = list(memberships.keys())

    if preferred_id and preferred_id in memberships:
        candidate = preferred_id
    else:
        candidate = _primary_membership(memberships)

    if is_personal_business(candidate):
        non_personal = next((b for b in ids if not is_personal_business(b)), None)
        candidate = non_personal or ids[0]

    role = memberships[candidate].get("role") if isinstance(memberships[candidate], Mapping) else None
    return BusinessContext(business_id=candidate, role=role)


def _primary_membership(memberships: Mapping[str, Mapping[str, Any]]) -> str:
    roles = {
        business_id: (m.get("role") if isinstance(m, Mapping) else None)
        for business_id, m in memberships.items()
    }
    for wanted in ROLE_PRIORITY:
        for business_id, role in roles.items():
            if role == wanted:
                return business_id
    return next(iter(memberships))

"""
ROLE TAXONOMY

Closed set of canonical role identifiers plus the one total normalization
function every guard goes through.

Rules:
- Guards compare against these constants only, never raw strings
- normalize_role never raises
- normalize_role(normalize_role(x)) == normalize_role(x)
"""

import re
from typing import Literal, Optional

# Role definitions
INWARD_USER: Literal["inward_user"] = "inward_user"
OUTWARD_USER: Literal["outward_user"] = "outward_user"
HEAD: Literal["head"] = "head"
SP: Literal["sp"] = "sp"
ADMIN: Literal["admin"] = "admin"
OUTSIDE_POLICE_STATION: Literal["outside_police_station"] = "outside_police_station"
DM: Literal["dm"] = "dm"
DG_OTHER: Literal["dg_other"] = "dg_other"
HOME: Literal["home"] = "home"
IG_NASHIK_OTHER: Literal["ig_nashik_other"] = "ig_nashik_other"
SHANIK_LOCAL: Literal["shanik_local"] = "shanik_local"

# Returned when no role is present at all
DEFAULT_ROLE: Literal["user"] = "user"

# All roles
ALL_ROLES: frozenset[str] = frozenset({
    INWARD_USER,
    OUTWARD_USER,
    HEAD,
    SP,
    ADMIN,
    OUTSIDE_POLICE_STATION,
    DM,
    DG_OTHER,
    HOME,
    IG_NASHIK_OTHER,
    SHANIK_LOCAL,
})

# Legacy and alternate spellings seen on the wire
ROLE_SYNONYMS: dict[str, str] = {
    "inward": INWARD_USER,
    "inward_staff": INWARD_USER,
    "inwarduser": INWARD_USER,
    "outward": OUTWARD_USER,
    "outward_staff": OUTWARD_USER,
    "outwarduser": OUTWARD_USER,
    "hod": HEAD,
    "head_of_department": HEAD,
    "department_head": HEAD,
    "superintendent": SP,
    "superintendent_of_police": SP,
    "police_superintendent": SP,
    "administrator": ADMIN,
    "police_station": OUTSIDE_POLICE_STATION,
    "outside_station": OUTSIDE_POLICE_STATION,
    "outside_police": OUTSIDE_POLICE_STATION,
    "district_magistrate": DM,
    "collector": DM,
    "dg": DG_OTHER,
    "dg_office": DG_OTHER,
    "home_department": HOME,
    "ig_nashik": IG_NASHIK_OTHER,
    "ig": IG_NASHIK_OTHER,
    "shanik": SHANIK_LOCAL,
    "local": SHANIK_LOCAL,
}

_SEPARATORS = re.compile(r"[\s\-]+")


def normalize_role(raw: Optional[object]) -> str:
    """
    Map a raw/legacy role string to its canonical RoleId.

    Unmapped values fall back to the raw lowercase string; a missing or
    blank value becomes DEFAULT_ROLE.
    """
    if raw is None:
        return DEFAULT_ROLE

    key = str(raw).strip().lower()
    if not key:
        return DEFAULT_ROLE

    slug = _SEPARATORS.sub("_", key)
    if slug in ALL_ROLES:
        return slug
    if slug in ROLE_SYNONYMS:
        return ROLE_SYNONYMS[slug]

    return key


def is_canonical_role(role: Optional[str]) -> bool:
    return role in ALL_ROLES

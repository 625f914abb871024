"""
Role slugs and their synonyms.

Historical profiles carry Spanish and English slugs for the same role
(`evaluador` / `evaluator`, ...). Every authorization decision compares
canonical roles, never raw slugs.
"""

from __future__ import annotations

import re
from typing import FrozenSet, Iterable, Optional

ADMIN = "admin"
RECEPTION = "recepcion"
ANALYST = "analyst"
EVALUATOR = "evaluator"

ROLE_SYNONYMS = {
    "admin": ADMIN,
    "recepcion": RECEPTION,
    "recepcionista": RECEPTION,
    "reception": RECEPTION,
    "analista": ANALYST,
    "analyst": ANALYST,
    "evaluador": EVALUATOR,
    "evaluator": EVALUATOR,
}

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """'Quality Supervisor!!' -> 'quality-supervisor'"""
    slug = _NON_ALNUM.sub("-", (value or "").lower().strip())
    return slug.strip("-")


def normalize_role(slug: Optional[str]) -> Optional[str]:
    """Map a stored slug to its canonical role. Custom roles map to themselves."""
    if not slug:
        return None
    slug = slug.strip().lower()
    return ROLE_SYNONYMS.get(slug, slug)


def synonyms_of(role: str) -> FrozenSet[str]:
    """All stored slugs that normalize to the same canonical role."""
    canonical = normalize_role(role)
    found = {slug for slug, target in ROLE_SYNONYMS.items() if target == canonical}
    found.add(canonical)
    return frozenset(found)


def canonical_set(slugs: Iterable[str]) -> FrozenSet[str]:
    return frozenset(r for r in (normalize_role(s) for s in slugs) if r)

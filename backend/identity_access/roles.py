"""
Grade → role classification.

Rules are data: an ordered list of (keywords, role). The first rule with a
keyword contained in the upper-cased grade wins, so precedence is the list
order (admin before rh before employee). Unmatched grades fall back to
`visitor`.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple
import unicodedata

from identity_access.domain import Role

RoleRule = Tuple[Tuple[str, ...], Role]

ROLE_RULES: Sequence[RoleRule] = (
    (("PATRON", "CO PATRON"), Role.ADMIN),
    (("DRH", "RH"), Role.RH),
    (
        ("RESPONSABLE", "CHEF", "CONFIRMÉ", "MÉCANO", "APPRENTI", "STAGIAIRE"),
        Role.EMPLOYEE,
    ),
)

DEFAULT_ROLE = Role.VISITOR


def _normalize(grade: str) -> str:
    # Sheets may deliver decomposed accents ("E" + combining acute).
    return unicodedata.normalize("NFC", grade).upper()


def resolve_role(grade: Optional[str], rules: Iterable[RoleRule] = ROLE_RULES) -> Role:
    """Return the role for a free-text grade.

    Matching is a case-insensitive substring test; the first matching rule
    in `rules` decides.
    """
    if not grade:
        return DEFAULT_ROLE
    normalized = _normalize(str(grade))
    for keywords, role in rules:
        if any(_normalize(k) in normalized for k in keywords):
            return role
    return DEFAULT_ROLE


__all__ = ["DEFAULT_ROLE", "ROLE_RULES", "RoleRule", "resolve_role"]

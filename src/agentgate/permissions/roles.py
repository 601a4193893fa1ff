"""Role hierarchy: a total order over administrative roles.

Ordering: ``user`` < ``network_admin`` < ``company_admin`` < ``super_admin``.
``creator`` sits outside the ordering and ranks like ``user``; it only gates
agent-submission capabilities. Unknown or missing roles rank 0 so every
check is deny-by-default.
"""

from __future__ import annotations

from typing import Iterable, Optional, Union

from ..models import Role

# ── Ranks ───────────────────────────────────────────────

ROLE_RANKS: dict[Role, int] = {
    Role.USER: 0,
    Role.NETWORK_ADMIN: 1,
    Role.COMPANY_ADMIN: 2,
    Role.SUPER_ADMIN: 3,
}

ADMIN_ROLES = frozenset({Role.NETWORK_ADMIN, Role.COMPANY_ADMIN, Role.SUPER_ADMIN})

RoleLike = Union[Role, str, None]


def _coerce(role: RoleLike) -> Optional[Role]:
    if role is None or isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        return None


def rank(role: RoleLike) -> int:
    """Numeric rank of a role. Unknown, orthogonal or missing roles rank 0.

    Example::

        rank(Role.COMPANY_ADMIN)  # 2
        rank("network_admin")     # 1
        rank("janitor")           # 0
    """
    coerced = _coerce(role)
    if coerced is None:
        return 0
    return ROLE_RANKS.get(coerced, 0)


def satisfies(subject_role: RoleLike, required: Union[RoleLike, Iterable[RoleLike]]) -> bool:
    """Check a subject role against one required role or a list of them.

    A list is disjunctive and rank-based: the subject satisfies it when its
    rank is at least the lowest rank named. A higher role therefore satisfies
    a check that only names a lower one (``super_admin`` passes a check for
    ``network_admin``). An empty list is satisfied by everyone.

    Example::

        satisfies(Role.SUPER_ADMIN, [Role.NETWORK_ADMIN])  # True
        satisfies(Role.USER, Role.NETWORK_ADMIN)           # False
    """
    if required is None or isinstance(required, (Role, str)):
        return rank(subject_role) >= rank(required)

    ranks = [rank(r) for r in required]
    if not ranks:
        return True
    return rank(subject_role) >= min(ranks)


def is_admin(role: RoleLike) -> bool:
    return _coerce(role) in ADMIN_ROLES


def is_creator(role: RoleLike) -> bool:
    """Whether the role may submit agents for review."""
    return _coerce(role) is Role.CREATOR


def max_role(*roles: Role) -> Role:
    """Highest-ranked of the given roles (first wins on ties)."""
    if not roles:
        raise ValueError("max_role() requires at least one role")
    best = roles[0]
    for role in roles[1:]:
        if rank(role) > rank(best):
            best = role
    return best


__all__ = [
    "ADMIN_ROLES",
    "ROLE_RANKS",
    "is_admin",
    "is_creator",
    "max_role",
    "rank",
    "satisfies",
]

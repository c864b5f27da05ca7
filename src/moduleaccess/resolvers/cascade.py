"""Cascading direct-grant resolution.

A grant anchored at a node authorizes that node and every descendant,
never a sibling or an ancestor. Resolution walks the resolved chain from
the target outward to its module and stops at the first (deepest) node
carrying a grant for the role.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

from pydantic import BaseModel, PrivateAttr

from ..hierarchy.constants import DecisionReason, HierarchyLevel, Scope
from ..hierarchy.models import AccessDecision, Grant, HierarchyNode

logger = logging.getLogger(__name__)


class RoleGrantIndex(BaseModel):
    """A role's grants keyed by ``(level, node_id)`` for O(depth) lookups."""

    model_config = {"frozen": True}

    role_id: str
    grants: tuple[Grant, ...] = ()

    _by_anchor: dict[tuple[HierarchyLevel, str], Grant] = PrivateAttr(default_factory=dict)

    def model_post_init(self, context: Any) -> None:
        for grant in self.grants:
            if grant.role_id == self.role_id:
                self._by_anchor[grant.anchor] = grant

    def __len__(self) -> int:
        return len(self._by_anchor)

    def lookup(self, level: HierarchyLevel, node_id: str) -> Grant | None:
        return self._by_anchor.get((level, node_id))


def resolve_cascade(
    chain: Sequence[HierarchyNode],
    index: RoleGrantIndex,
    full_access: bool = False,
) -> AccessDecision:
    """Decide one role's access to the last node of ``chain``.

    Checks in order:
    1. Full-access role → Allow, scope ``all``, no matched level.
    2. Grant anchored at the target, then its parent, ... up to the module.
       The first match supplies scope and matched level.
    3. No grant along the chain → Deny ``NoGrant``.

    Args:
        chain: Resolved nodes, module first, target last.
        index: The role's grant index.
        full_access: Whether the role bypasses grant lookup.

    Returns:
        AccessDecision with ``role_id`` set to the evaluated role.

    Example::

        # manager holds a grant at hrm.attendance with scope=team
        resolve_cascade(chain_for("hrm.attendance.punch.create"), manager_index)
        # allowed=True, scope=team, matched_level=submodule
    """
    if full_access:
        return AccessDecision(
            allowed=True,
            reason=DecisionReason.FULL_ACCESS,
            scope=Scope.ALL,
            message=f"Role '{index.role_id}' has full access",
            role_id=index.role_id,
        )

    for node in reversed(chain):
        grant = index.lookup(node.level, node.id)
        if grant is not None:
            return AccessDecision(
                allowed=True,
                reason=DecisionReason.GRANT_MATCHED,
                scope=grant.scope,
                matched_level=grant.level,
                message=f"Role '{index.role_id}' granted at {grant.level.value} '{node.code}'",
                role_id=index.role_id,
            )

    return AccessDecision.deny(
        DecisionReason.NO_GRANT,
        f"Role '{index.role_id}' has no grant on this path",
        role_id=index.role_id,
    )


def resolve_cascade_for_roles(
    chain: Sequence[HierarchyNode],
    indexes: Iterable[RoleGrantIndex],
    full_access_roles: Iterable[str] = (),
) -> AccessDecision:
    """Combine the cascade decisions of every role an actor holds.

    Allowed if any role is allowed. Among allowing roles the broadest scope
    wins (``all`` > ``department`` > ``team`` > ``own``); on equal scope the
    deeper matched level wins, and a full-access role beats everything.
    """
    full = set(full_access_roles)
    best: AccessDecision | None = None
    evaluated: list[str] = []

    for index in indexes:
        evaluated.append(index.role_id)
        decision = resolve_cascade(chain, index, full_access=index.role_id in full)
        if not decision.allowed:
            continue
        if decision.reason == DecisionReason.FULL_ACCESS:
            return decision
        if best is None or _rank(decision) > _rank(best):
            best = decision

    if best is not None:
        return best

    if not evaluated:
        return AccessDecision.deny(DecisionReason.NO_GRANT, "Actor holds no roles")
    logger.debug("No cascade grant for roles %s", evaluated)
    return AccessDecision.deny(
        DecisionReason.NO_GRANT,
        f"None of the roles {evaluated} has a grant on this path",
    )


def _rank(decision: AccessDecision) -> tuple[int, int]:
    scope = decision.scope.breadth if decision.scope else -1
    depth = decision.matched_level.depth if decision.matched_level else -1
    return (scope, depth)


__all__ = [
    "RoleGrantIndex",
    "resolve_cascade",
    "resolve_cascade_for_roles",
]

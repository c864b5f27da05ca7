"""Grouped permission-requirement resolution.

Each node may carry requirement groups. A group combines its permission
refs with its aggregation:

- ``REQUIRED`` / ``ALL`` → every ref must be held
- ``ANY`` → at least one ref must be held

All groups of a node must pass. The chain is evaluated from the module
down to the target; the first failing level denies, so a blocked module
blocks everything beneath it. Nodes without groups pass.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Sequence

from pydantic import BaseModel, PrivateAttr

from ..exceptions import PermissionLookupFailure
from ..hierarchy.constants import Aggregation, DecisionReason
from ..hierarchy.models import AccessDecision, HierarchyNode, PermissionRequirement, RequirementGroup
from ..interfaces import PermissionPredicate

logger = logging.getLogger(__name__)


def all_of(results: Iterable[bool]) -> bool:
    return all(results)


def any_of(results: Iterable[bool]) -> bool:
    return any(results)


AGGREGATORS: dict[Aggregation, Callable[[Iterable[bool]], bool]] = {
    Aggregation.REQUIRED: all_of,
    Aggregation.ALL: all_of,
    Aggregation.ANY: any_of,
}


def group_requirements(rows: Iterable[PermissionRequirement]) -> list[RequirementGroup]:
    """Fold requirement rows into groups keyed by ``(node_id, group_key)``.

    Groups keep first-seen order and take the aggregation of their first
    row. Mixed aggregations inside a group are rejected at write time.
    """
    order: list[tuple[str, str]] = []
    aggregation: dict[tuple[str, str], Aggregation] = {}
    refs: dict[tuple[str, str], list[str]] = {}

    for row in rows:
        key = (row.node_id, row.group_key)
        if key not in aggregation:
            order.append(key)
            aggregation[key] = row.aggregation
            refs[key] = []
        refs[key].append(row.permission_ref)

    return [
        RequirementGroup(
            node_id=node_id,
            group_key=group_key,
            aggregation=aggregation[(node_id, group_key)],
            permission_refs=tuple(refs[(node_id, group_key)]),
        )
        for node_id, group_key in order
    ]


class RequirementSet(BaseModel):
    """Requirement rows of one module subtree, grouped per node."""

    model_config = {"frozen": True}

    rows: tuple[PermissionRequirement, ...] = ()

    _by_node: dict[str, list[RequirementGroup]] = PrivateAttr(default_factory=dict)

    def model_post_init(self, context: Any) -> None:
        for group in group_requirements(self.rows):
            self._by_node.setdefault(group.node_id, []).append(group)

    def groups_for(self, node_id: str) -> list[RequirementGroup]:
        return list(self._by_node.get(node_id, ()))


def evaluate_group(group: RequirementGroup, actor_id: str, has_permission: PermissionPredicate) -> bool:
    """Evaluate one group, short-circuiting on the first deciding ref.

    Raises:
        PermissionLookupFailure: if the predicate raises.
    """
    aggregate = AGGREGATORS[group.aggregation]
    return aggregate(_lookup(actor_id, ref, has_permission) for ref in group.permission_refs)


def resolve_requirements(
    chain: Sequence[HierarchyNode],
    requirements: RequirementSet,
    actor_id: str,
    has_permission: PermissionPredicate,
) -> AccessDecision:
    """Decide access to the last node of ``chain`` from requirement groups.

    Args:
        chain: Resolved nodes, module first, target last.
        requirements: Requirement groups covering the chain's nodes.
        actor_id: Passed through to ``has_permission``.
        has_permission: ``(actor_id, permission_ref) -> bool``.

    Returns:
        AccessDecision without scope: ``RequirementsMet`` or
        ``RequirementFailed`` naming the first failing group.

    Raises:
        PermissionLookupFailure: if the predicate raises. Never treated
            as Allow.

    Example::

        # crm carries group g1 = ANY(view-leads, view-deals)
        resolve_requirements(crm_chain, reqs, "u1", holds({"view-deals"}))
        # allowed=True, reason="RequirementsMet"
    """
    for node in chain:
        for group in requirements.groups_for(node.id):
            if evaluate_group(group, actor_id, has_permission):
                continue
            refs = ", ".join(group.permission_refs)
            logger.debug("Requirement group %s failed on %s %s", group.group_key, node.level.value, node.code)
            return AccessDecision.deny(
                DecisionReason.REQUIREMENT_FAILED,
                f"Group '{group.group_key}' ({group.aggregation.value}: {refs}) "
                f"on {node.level.value} '{node.code}' is not satisfied",
                failed_group=group.group_key,
                matched_level=node.level,
            )

    return AccessDecision(
        allowed=True,
        reason=DecisionReason.REQUIREMENTS_MET,
        message="All requirement groups on the path are satisfied",
    )


def _lookup(actor_id: str, permission_ref: str, has_permission: PermissionPredicate) -> bool:
    try:
        return bool(has_permission(actor_id, permission_ref))
    except Exception as e:
        raise PermissionLookupFailure(
            f"Permission lookup for '{permission_ref}' failed: {e}",
            actor_id=actor_id,
            permission_ref=permission_ref,
        ) from e


__all__ = [
    "AGGREGATORS",
    "RequirementSet",
    "all_of",
    "any_of",
    "evaluate_group",
    "group_requirements",
    "resolve_requirements",
]

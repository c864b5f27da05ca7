"""Write-side validators for hierarchy, grant and requirement invariants.

Every administrative write goes through one of these functions before it
is applied. Violations raise :class:`InvariantViolation`; nothing here is
consulted at read time.
"""

from __future__ import annotations

import logging
from typing import Iterable

from .exceptions import InvariantViolation
from .hierarchy.constants import HierarchyLevel
from .hierarchy.models import Grant, HierarchyNode, PermissionRequirement
from .hierarchy.tree import HierarchyTree

logger = logging.getLogger(__name__)


def validate_node(tree: HierarchyTree, node: HierarchyNode) -> None:
    """Check parent linkage, level and sibling code uniqueness of a node.

    Raises:
        InvariantViolation: if the parent is missing or at the wrong level,
            or a sibling already uses the node's code.
    """
    if node.level is not HierarchyLevel.MODULE:
        parent = tree.get(node.parent_id or "")
        if parent is None:
            raise InvariantViolation(
                f"Parent '{node.parent_id}' of {node.level.value} '{node.code}' does not exist",
                node_id=node.id,
                parent_id=node.parent_id,
            )
        if parent.level.child is not node.level:
            raise InvariantViolation(
                f"A {node.level.value} cannot be placed under a {parent.level.value}",
                node_id=node.id,
                parent_id=parent.id,
            )

    sibling = tree.find_child(node.parent_id, node.code)
    if sibling is not None and sibling.id != node.id:
        raise InvariantViolation(
            f"Code '{node.code}' is already used by a sibling node",
            node_id=node.id,
            conflicting_node_id=sibling.id,
        )


def validate_grant(tree: HierarchyTree, existing: Iterable[Grant], grant: Grant) -> None:
    """Check that a grant has one valid anchor and no ancestor conflict.

    A role may not hold two grants where one anchor is an ancestor of the
    other. Replacing the grant on the same node is allowed.

    Raises:
        InvariantViolation: on an unknown anchor, a level mismatch, or an
            ancestor/descendant conflict within the role's grant set.
    """
    node = tree.get(grant.node_id)
    if node is None:
        raise InvariantViolation(
            f"Grant for role '{grant.role_id}' references unknown node '{grant.node_id}'",
            role_id=grant.role_id,
            node_id=grant.node_id,
        )
    if node.level is not grant.level:
        raise InvariantViolation(
            f"Grant level '{grant.level.value}' does not match node level '{node.level.value}'",
            role_id=grant.role_id,
            node_id=grant.node_id,
        )

    for other in existing:
        if other.role_id != grant.role_id or other.node_id == grant.node_id:
            continue
        if tree.is_ancestor(other.node_id, grant.node_id) or tree.is_ancestor(grant.node_id, other.node_id):
            raise InvariantViolation(
                f"Role '{grant.role_id}' already holds a grant on "
                f"'{'.'.join(tree.full_path(other.node_id))}', which overlaps "
                f"'{'.'.join(tree.full_path(grant.node_id))}'",
                role_id=grant.role_id,
                node_id=grant.node_id,
                conflicting_node_id=other.node_id,
            )


def validate_requirement(
    tree: HierarchyTree,
    existing: Iterable[PermissionRequirement],
    row: PermissionRequirement,
) -> None:
    """Check a requirement row's node and its group's aggregation.

    Raises:
        InvariantViolation: on an unknown node, or when the row's
            aggregation differs from rows already in the same group.
    """
    if row.node_id not in tree:
        raise InvariantViolation(
            f"Requirement references unknown node '{row.node_id}'",
            node_id=row.node_id,
            group_key=row.group_key,
        )
    for other in existing:
        if other.node_id == row.node_id and other.group_key == row.group_key:
            if other.aggregation is not row.aggregation:
                raise InvariantViolation(
                    f"Group '{row.group_key}' already uses aggregation "
                    f"{other.aggregation.value}, cannot add a {row.aggregation.value} row",
                    node_id=row.node_id,
                    group_key=row.group_key,
                )
            # Same aggregation: the first row is enough to decide
            return


def find_grant_conflicts(tree: HierarchyTree, grants: Iterable[Grant]) -> list[tuple[Grant, Grant]]:
    """List (ancestor_grant, descendant_grant) pairs within each role.

    Meant for auditing imported data that bypassed :func:`validate_grant`.
    """
    by_role: dict[str, list[Grant]] = {}
    for grant in grants:
        by_role.setdefault(grant.role_id, []).append(grant)

    conflicts: list[tuple[Grant, Grant]] = []
    for role_grants in by_role.values():
        for upper in role_grants:
            for lower in role_grants:
                if upper.node_id != lower.node_id and tree.is_ancestor(upper.node_id, lower.node_id):
                    conflicts.append((upper, lower))
    if conflicts:
        logger.warning("Found %d ancestor/descendant grant conflicts", len(conflicts))
    return conflicts


__all__ = [
    "find_grant_conflicts",
    "validate_grant",
    "validate_node",
    "validate_requirement",
]

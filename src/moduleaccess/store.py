"""In-memory reference implementation of the access repository.

``InMemoryAccessStore`` holds the three tables the engine reads (hierarchy
nodes, role grants, requirement rows) and exposes the administrative write
side. Every write is validated by :mod:`moduleaccess.validation` and
applied atomically under a lock.

Writes never touch the façade's cache. After a write completes, callers
must invalidate the affected key themselves::

    store.assign_grant("manager", attendance.id, Scope.TEAM)
    facade.invalidate(CacheKeys.role_grants("manager"))
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Mapping, Optional, Union
from uuid import uuid4

from .exceptions import InvariantViolation
from .hierarchy.constants import Aggregation, HierarchyLevel, Scope
from .hierarchy.models import Grant, HierarchyNode, PermissionRequirement
from .hierarchy.tree import HierarchyTree
from .interfaces import AccessRepository
from .validation import validate_grant, validate_node, validate_requirement

logger = logging.getLogger(__name__)

# Fields of a node that update_node() may change
_MUTABLE_NODE_FIELDS = frozenset({"code", "name", "active", "priority", "description"})


class InMemoryAccessStore(AccessRepository):
    """Thread-safe in-memory hierarchy, grant and requirement tables."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._nodes: dict[str, HierarchyNode] = {}
        self._grants: dict[tuple[str, str], Grant] = {}
        self._requirements: list[PermissionRequirement] = []

    # ── Read side ─────────────────────────────────────────────────

    def tree(self) -> HierarchyTree:
        """Snapshot of the whole hierarchy."""
        with self._lock:
            return HierarchyTree(nodes=tuple(self._nodes.values()))

    def get_node(self, node_id: str) -> HierarchyNode | None:
        with self._lock:
            return self._nodes.get(node_id)

    def list_modules(self) -> list[HierarchyNode]:
        with self._lock:
            return [n for n in self._nodes.values() if n.level is HierarchyLevel.MODULE]

    def load_module(self, module_code: str) -> list[HierarchyNode]:
        with self._lock:
            tree = self.tree()
            module = tree.find_child(None, module_code)
            if module is None:
                return []
            return [module, *tree.descendants(module.id)]

    def grants_for_role(self, role_id: str) -> list[Grant]:
        with self._lock:
            return [g for (rid, _), g in self._grants.items() if rid == role_id]

    def all_grants(self) -> list[Grant]:
        with self._lock:
            return list(self._grants.values())

    def requirements_for_nodes(self, node_ids: Iterable[str]) -> list[PermissionRequirement]:
        wanted = set(node_ids)
        with self._lock:
            return [r for r in self._requirements if r.node_id in wanted]

    # ── Hierarchy writes ──────────────────────────────────────────

    def add_node(
        self,
        level: HierarchyLevel,
        code: str,
        name: str = "",
        parent_id: Optional[str] = None,
        *,
        active: bool = True,
        priority: int = 0,
        description: str = "",
        node_id: Optional[str] = None,
    ) -> HierarchyNode:
        """Create a node under ``parent_id`` (None for modules)."""
        node = HierarchyNode(
            id=node_id or uuid4().hex,
            parent_id=parent_id,
            level=level,
            code=code,
            name=name or code,
            active=active,
            priority=priority,
            description=description,
        )
        with self._lock:
            if node.id in self._nodes:
                raise InvariantViolation(f"Node id '{node.id}' already exists", node_id=node.id)
            validate_node(self.tree(), node)
            self._nodes[node.id] = node
        logger.debug("Created %s '%s' (%s)", level.value, code, node.id)
        return node

    def update_node(self, node_id: str, **changes) -> HierarchyNode:
        """Change code, name, active flag, priority or description of a node."""
        unknown = set(changes) - _MUTABLE_NODE_FIELDS
        if unknown:
            raise InvariantViolation(
                f"Cannot update node fields: {', '.join(sorted(unknown))}",
                node_id=node_id,
            )
        with self._lock:
            current = self._require_node(node_id)
            updated = current.model_copy(update=changes)
            # model_copy skips validation; rebuild to re-run field checks
            updated = HierarchyNode.model_validate(updated.model_dump())
            validate_node(self.tree(), updated)
            self._nodes[node_id] = updated
        return updated

    def deactivate_node(self, node_id: str) -> HierarchyNode:
        """Soft-delete: the node and everything below it stop resolving."""
        return self.update_node(node_id, active=False)

    def delete_node(self, node_id: str, force: bool = False) -> list[str]:
        """Hard-delete a node with its descendants, grants and requirements.

        Subtrees that still carry grants are only deleted with ``force=True``;
        otherwise deactivate them instead.

        Returns:
            Ids of the deleted nodes, the target first.
        """
        with self._lock:
            self._require_node(node_id)
            tree = self.tree()
            doomed = [node_id, *(n.id for n in tree.descendants(node_id))]
            doomed_set = set(doomed)

            live = [g for g in self._grants.values() if g.node_id in doomed_set]
            if live and not force:
                raise InvariantViolation(
                    f"Node '{'.'.join(tree.full_path(node_id))}' has {len(live)} live grant(s); "
                    "deactivate it or delete with force=True",
                    node_id=node_id,
                    grant_count=len(live),
                )

            for node in doomed:
                del self._nodes[node]
            self._grants = {k: g for k, g in self._grants.items() if g.node_id not in doomed_set}
            self._requirements = [r for r in self._requirements if r.node_id not in doomed_set]

        logger.info("Deleted %d node(s) under %s (%d grant(s) removed)", len(doomed), node_id, len(live))
        return doomed

    # ── Grant writes ──────────────────────────────────────────────

    def assign_grant(self, role_id: str, node_id: str, scope: Scope = Scope.ALL) -> Grant:
        """Anchor ``role_id`` at ``node_id``; re-assigning replaces the scope."""
        with self._lock:
            node = self.get_node(node_id)
            level = node.level if node else HierarchyLevel.MODULE
            grant = Grant(role_id=role_id, node_id=node_id, level=level, scope=Scope(scope))
            validate_grant(self.tree(), self._grants.values(), grant)
            self._grants[(role_id, node_id)] = grant
        logger.debug("Granted role %s at %s (%s, scope=%s)", role_id, node_id, level.value, grant.scope.value)
        return grant

    def revoke_grant(self, role_id: str, node_id: str) -> bool:
        with self._lock:
            return self._grants.pop((role_id, node_id), None) is not None

    def sync_role_grants(self, role_id: str, grants: Mapping[str, Union[Scope, str]]) -> list[Grant]:
        """Replace a role's whole grant set with ``{node_id: scope}``.

        The new set is validated as a whole before anything changes; on
        an unknown node or an ancestor/descendant pair the role keeps its
        previous grants. An empty mapping revokes everything.

        Raises:
            InvariantViolation: if the new set breaks a grant invariant.

        Example::

            store.sync_role_grants("manager", {attendance.id: Scope.TEAM, crm.id: Scope.ALL})
            facade.invalidate(CacheKeys.role_grants("manager"))
        """
        with self._lock:
            tree = self.tree()
            accepted: list[Grant] = []
            for node_id, scope in grants.items():
                node = tree.get(node_id)
                level = node.level if node else HierarchyLevel.MODULE
                grant = Grant(role_id=role_id, node_id=node_id, level=level, scope=Scope(scope))
                validate_grant(tree, accepted, grant)
                accepted.append(grant)

            kept = {k: g for k, g in self._grants.items() if k[0] != role_id}
            kept.update({(role_id, g.node_id): g for g in accepted})
            self._grants = kept

        logger.info("Synced %d grant(s) for role %s", len(accepted), role_id)
        return accepted

    # ── Requirement writes ────────────────────────────────────────

    def add_requirement(
        self,
        node_id: str,
        permission_ref: str,
        group_key: str = "default",
        aggregation: Aggregation = Aggregation.REQUIRED,
    ) -> PermissionRequirement:
        """Append a permission ref to a node's requirement group."""
        row = PermissionRequirement(
            node_id=node_id,
            group_key=group_key,
            aggregation=Aggregation(aggregation),
            permission_ref=permission_ref,
        )
        with self._lock:
            validate_requirement(self.tree(), self._requirements, row)
            self._requirements.append(row)
        return row

    def remove_requirement_group(self, node_id: str, group_key: str) -> int:
        """Drop every row of a group. Returns the number of rows removed."""
        with self._lock:
            before = len(self._requirements)
            self._requirements = [
                r for r in self._requirements if not (r.node_id == node_id and r.group_key == group_key)
            ]
            return before - len(self._requirements)

    def _require_node(self, node_id: str) -> HierarchyNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise InvariantViolation(f"Node '{node_id}' does not exist", node_id=node_id)
        return node


__all__ = ["InMemoryAccessStore"]

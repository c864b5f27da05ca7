"""Declarative module definitions and their sync into a store.

Packages describe their feature tree as nested dictionaries::

    {
        "code": "hrm",
        "name": "Human Resources",
        "priority": 10,
        "submodules": [
            {
                "code": "attendance",
                "components": [
                    {"code": "punch", "actions": [{"code": "create"}, {"code": "view"}]},
                ],
            },
        ],
    }

``sync_definitions()`` upserts such definitions into an
:class:`~moduleaccess.store.InMemoryAccessStore`. Nodes are matched by
``(parent, code)`` so their ids, and therefore existing grants, survive
re-syncs.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Union

from pydantic import BaseModel, Field

from .constants import HierarchyLevel

if TYPE_CHECKING:
    from ..store import InMemoryAccessStore

logger = logging.getLogger(__name__)


class _NodeDefinition(BaseModel):
    model_config = {"extra": "ignore", "populate_by_name": True}

    code: str = Field(min_length=1)
    name: str = ""
    description: str = ""
    priority: int = 0
    active: bool = Field(default=True, alias="is_active")


class ActionDefinition(_NodeDefinition):
    pass


class ComponentDefinition(_NodeDefinition):
    actions: list[ActionDefinition] = Field(default_factory=list)


class SubModuleDefinition(_NodeDefinition):
    components: list[ComponentDefinition] = Field(default_factory=list)


class ModuleDefinition(_NodeDefinition):
    submodules: list[SubModuleDefinition] = Field(default_factory=list)


_CHILDREN_FIELD = {
    HierarchyLevel.MODULE: "submodules",
    HierarchyLevel.SUBMODULE: "components",
    HierarchyLevel.COMPONENT: "actions",
}


class SyncStats(BaseModel):
    """Created / updated / removed counters per hierarchy level."""

    created: dict[str, int] = Field(default_factory=dict)
    updated: dict[str, int] = Field(default_factory=dict)
    removed: dict[str, int] = Field(default_factory=dict)

    def bump(self, bucket: str, level: HierarchyLevel, n: int = 1) -> None:
        counters = getattr(self, bucket)
        counters[level.value] = counters.get(level.value, 0) + n

    @property
    def total_changes(self) -> int:
        return sum(self.created.values()) + sum(self.updated.values()) + sum(self.removed.values())


def sync_definitions(
    store: InMemoryAccessStore,
    definitions: Iterable[Union[ModuleDefinition, Mapping[str, Any]]],
    prune: bool = False,
) -> SyncStats:
    """Upsert module definitions into ``store``.

    Args:
        store: Target store.
        definitions: ``ModuleDefinition`` objects or raw dictionaries.
        prune: Remove nodes that no longer appear in the definitions.
            Pruned subtrees are force-deleted together with their grants.

    Nodes are matched by parent and code. A code repeated among siblings
    of one definition does not raise: later entries update the node the
    first one created.

    Returns:
        SyncStats with per-level counters.

    Raises:
        InvariantViolation: if a stored node rejects an update, e.g. a
            level that cannot sit under its parent.
    """
    stats = SyncStats()
    modules = [d if isinstance(d, ModuleDefinition) else ModuleDefinition.model_validate(d) for d in definitions]

    seen: set[str] = set()
    for module in modules:
        _sync_node(store, module, HierarchyLevel.MODULE, None, stats, seen)

    if prune:
        tree = store.tree()
        for node in list(tree.iter_nodes()):
            # Parents are removed with their subtree; skip nodes already gone
            if node.id in seen or store.get_node(node.id) is None:
                continue
            removed = store.delete_node(node.id, force=True)
            for node_id in removed:
                stats.bump("removed", tree.level_of(node_id) or node.level)

    logger.info(
        "Module hierarchy sync finished: created=%s updated=%s removed=%s",
        stats.created,
        stats.updated,
        stats.removed,
    )
    return stats


def _sync_node(
    store: InMemoryAccessStore,
    definition: _NodeDefinition,
    level: HierarchyLevel,
    parent_id: Optional[str],
    stats: SyncStats,
    seen: set[str],
) -> None:
    attrs = {
        "name": definition.name or definition.code,
        "description": definition.description,
        "priority": definition.priority,
        "active": definition.active,
    }
    existing = store.tree().find_child(parent_id, definition.code)
    if existing is None:
        node = store.add_node(level, definition.code, parent_id=parent_id, **attrs)
        stats.bump("created", level)
    else:
        changes = {k: v for k, v in attrs.items() if getattr(existing, k) != v}
        node = store.update_node(existing.id, **changes) if changes else existing
        if changes:
            stats.bump("updated", level)
    seen.add(node.id)

    children_field = _CHILDREN_FIELD.get(level)
    if children_field is None:
        return
    for child in getattr(definition, children_field):
        _sync_node(store, child, level.child, node.id, stats, seen)


__all__ = [
    "ActionDefinition",
    "ComponentDefinition",
    "ModuleDefinition",
    "SubModuleDefinition",
    "SyncStats",
    "sync_definitions",
]

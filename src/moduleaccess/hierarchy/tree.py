"""Hierarchy read model: a flat node table indexed by id.

``HierarchyTree`` is an immutable snapshot of (part of) the feature tree.
Nodes are stored flat with a ``parent_id``; lookups go through three
indexes built once per snapshot:

- id → node
- (parent_id, code) → node, used to walk a ``FullPath``
- parent_id → children, sorted by ``priority`` then ``name``

Unknown or inactive path segments resolve to ``None``. Callers treat that
as Deny; it is never an exception.
"""

from __future__ import annotations

from typing import Any, Iterator, Optional

from pydantic import BaseModel, PrivateAttr

from .constants import HierarchyLevel
from .models import FullPath, HierarchyNode, PathLike, normalize_path, validate_depth


class HierarchyTree(BaseModel):
    """Immutable snapshot of hierarchy nodes with O(1) id and path lookups."""

    model_config = {"frozen": True}

    nodes: tuple[HierarchyNode, ...] = ()

    _by_id: dict[str, HierarchyNode] = PrivateAttr(default_factory=dict)
    _by_parent_code: dict[tuple[Optional[str], str], HierarchyNode] = PrivateAttr(default_factory=dict)
    _children: dict[Optional[str], list[HierarchyNode]] = PrivateAttr(default_factory=dict)

    def model_post_init(self, context: Any) -> None:
        for node in self.nodes:
            self._by_id[node.id] = node
            self._by_parent_code[(node.parent_id, node.code)] = node
            self._children.setdefault(node.parent_id, []).append(node)
        for siblings in self._children.values():
            siblings.sort(key=lambda n: n.sort_key)

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._by_id

    def iter_nodes(self) -> Iterator[HierarchyNode]:
        return iter(self._by_id.values())

    def get(self, node_id: str) -> HierarchyNode | None:
        return self._by_id.get(node_id)

    def find_child(self, parent_id: Optional[str], code: str) -> HierarchyNode | None:
        """Child of ``parent_id`` with ``code``, active or not."""
        return self._by_parent_code.get((parent_id, code))

    def resolve_path(self, path: PathLike) -> list[HierarchyNode] | None:
        """Resolve a full path to the ordered chain Module..target.

        Returns None if the path is empty, deeper than four levels, or if
        any segment is missing or inactive.

        Example::

            chain = tree.resolve_path(["hrm", "attendance", "punch"])
            [n.level for n in chain]
            # [MODULE, SUBMODULE, COMPONENT]
        """
        codes = normalize_path(path)
        if not validate_depth(codes):
            return None

        chain: list[HierarchyNode] = []
        parent_id: Optional[str] = None
        for code in codes:
            node = self._by_parent_code.get((parent_id, code))
            if node is None or not node.active:
                return None
            chain.append(node)
            parent_id = node.id
        return chain

    def children(self, node_id: Optional[str], include_inactive: bool = False) -> list[HierarchyNode]:
        """Direct children ordered by priority then name.

        ``node_id=None`` lists the modules.
        """
        siblings = self._children.get(node_id, [])
        if include_inactive:
            return list(siblings)
        return [n for n in siblings if n.active]

    def modules(self, include_inactive: bool = False) -> list[HierarchyNode]:
        return self.children(None, include_inactive=include_inactive)

    def ancestors(self, node_id: str) -> list[HierarchyNode]:
        """Ancestors of a node, nearest first. Empty for modules and unknown ids."""
        result: list[HierarchyNode] = []
        node = self._by_id.get(node_id)
        while node is not None and node.parent_id is not None:
            node = self._by_id.get(node.parent_id)
            if node is None:
                break
            result.append(node)
        return result

    def descendants(self, node_id: str, include_inactive: bool = True) -> list[HierarchyNode]:
        """All nodes below ``node_id`` in depth-first, priority order."""
        result: list[HierarchyNode] = []
        stack = list(reversed(self.children(node_id, include_inactive=include_inactive)))
        while stack:
            node = stack.pop()
            result.append(node)
            stack.extend(reversed(self.children(node.id, include_inactive=include_inactive)))
        return result

    def is_ancestor(self, ancestor_id: str, node_id: str) -> bool:
        """True if ``ancestor_id`` is a strict ancestor of ``node_id``."""
        return any(a.id == ancestor_id for a in self.ancestors(node_id))

    def full_path(self, node_id: str) -> FullPath:
        node = self._by_id.get(node_id)
        if node is None:
            return ()
        chain = [node, *self.ancestors(node_id)]
        return tuple(n.code for n in reversed(chain))

    def level_of(self, node_id: str) -> HierarchyLevel | None:
        node = self._by_id.get(node_id)
        return node.level if node else None


__all__ = ["HierarchyTree"]

"""Enumerations shared by the hierarchy, the stores and the resolvers.

Provides:
- ``HierarchyLevel``: the four tree levels (module → action).
- ``Scope``: breadth of data an authorized actor may act on.
- ``Aggregation``: how a requirement group combines its permission checks.
- ``AccessMode``: which resolver(s) the façade consults.
- ``DecisionReason``: stable reason codes carried by an ``AccessDecision``.
"""

from __future__ import annotations

from enum import Enum


class HierarchyLevel(str, Enum):
    """Level of a node in the feature tree.

    The depth of a level equals the length of the node's parent chain:
    module=0, submodule=1, component=2, action=3.
    """

    MODULE = "module"
    SUBMODULE = "submodule"
    COMPONENT = "component"
    ACTION = "action"

    @property
    def depth(self) -> int:
        return _LEVEL_ORDER.index(self)

    @property
    def child(self) -> HierarchyLevel | None:
        """Level directly below this one, or None for actions."""
        idx = self.depth + 1
        return _LEVEL_ORDER[idx] if idx < len(_LEVEL_ORDER) else None

    @classmethod
    def from_depth(cls, depth: int) -> HierarchyLevel:
        if not 0 <= depth < len(_LEVEL_ORDER):
            raise ValueError(f"Hierarchy depth must be 0-3, got {depth}")
        return _LEVEL_ORDER[depth]


_LEVEL_ORDER: tuple[HierarchyLevel, ...] = (
    HierarchyLevel.MODULE,
    HierarchyLevel.SUBMODULE,
    HierarchyLevel.COMPONENT,
    HierarchyLevel.ACTION,
)

MAX_DEPTH = len(_LEVEL_ORDER)


class Scope(str, Enum):
    """Data breadth granted alongside access.

    Breadth order: ``all`` > ``department`` > ``team`` > ``own``.
    """

    ALL = "all"
    OWN = "own"
    TEAM = "team"
    DEPARTMENT = "department"

    @property
    def breadth(self) -> int:
        return SCOPE_BREADTH.index(self)


# Narrowest first
SCOPE_BREADTH: tuple[Scope, ...] = (Scope.OWN, Scope.TEAM, Scope.DEPARTMENT, Scope.ALL)


def broadest_scope(scopes) -> Scope | None:
    """Return the broadest scope of an iterable, or None if it is empty."""
    return max(scopes, key=lambda s: s.breadth, default=None)


class Aggregation(str, Enum):
    """How the permission refs of one requirement group are combined.

    ``REQUIRED`` and ``ALL`` evaluate identically (every ref must be held).
    They are kept as distinct members because stored rules use both names.
    """

    REQUIRED = "REQUIRED"
    ANY = "ANY"
    ALL = "ALL"


class AccessMode(str, Enum):
    """Which resolver(s) ``AccessFacade.check`` consults."""

    CASCADE_ONLY = "cascade_only"
    REQUIREMENT_ONLY = "requirement_only"
    EITHER = "either"  # allow if either resolver allows
    BOTH = "both"  # allow only if both resolvers allow


class DecisionReason:
    """Stable reason codes for access decisions."""

    FULL_ACCESS = "FullAccess"
    GRANT_MATCHED = "GrantMatched"
    NO_GRANT = "NoGrant"
    REQUIREMENTS_MET = "RequirementsMet"
    REQUIREMENT_FAILED = "RequirementFailed"
    NODE_NOT_FOUND = "NodeNotFound"
    PERMISSION_LOOKUP_FAILURE = "PermissionLookupFailure"
    CACHE_REFRESH_FAILURE = "CacheRefreshFailure"

    ALL = frozenset(
        {
            "FullAccess",
            "GrantMatched",
            "NoGrant",
            "RequirementsMet",
            "RequirementFailed",
            "NodeNotFound",
            "PermissionLookupFailure",
            "CacheRefreshFailure",
        }
    )


__all__ = [
    "MAX_DEPTH",
    "SCOPE_BREADTH",
    "AccessMode",
    "Aggregation",
    "DecisionReason",
    "HierarchyLevel",
    "Scope",
    "broadest_scope",
]

"""Core data models for the feature hierarchy and access decisions.

These are frozen Pydantic models: snapshots handed to the resolvers are
never mutated, so concurrent checks can share them without locking.
"""

from __future__ import annotations

from typing import Optional, Sequence, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import MAX_DEPTH, Aggregation, HierarchyLevel, Scope

FullPath = tuple[str, ...]
PathLike = Union[str, Sequence[str]]


def normalize_path(path: PathLike) -> FullPath:
    """Turn a dotted string or a sequence of codes into a ``FullPath``.

    Example::

        normalize_path("hrm.attendance")         # ("hrm", "attendance")
        normalize_path(["hrm", "attendance"])   # ("hrm", "attendance")
    """
    if isinstance(path, str):
        parts = path.split(".") if path else []
    else:
        parts = list(path)
    return tuple(str(p).strip() for p in parts)


class HierarchyNode(BaseModel):
    """One node of the Module → SubModule → Component → Action tree."""

    model_config = {"frozen": True}

    id: str
    parent_id: Optional[str] = None
    level: HierarchyLevel
    code: str = Field(min_length=1)
    name: str = ""
    active: bool = True
    priority: int = 0
    description: str = ""

    @model_validator(mode="after")
    def _check_parent(self) -> HierarchyNode:
        if self.level is HierarchyLevel.MODULE and self.parent_id is not None:
            raise ValueError(f"Module '{self.code}' cannot have a parent")
        if self.level is not HierarchyLevel.MODULE and self.parent_id is None:
            raise ValueError(f"{self.level.value} '{self.code}' must have a parent")
        return self

    @property
    def sort_key(self) -> tuple[int, str]:
        return (self.priority, self.name)


class Grant(BaseModel):
    """Cascading role → node assignment carrying an access scope."""

    model_config = {"frozen": True}

    role_id: str
    node_id: str
    level: HierarchyLevel
    scope: Scope = Scope.ALL

    @property
    def anchor(self) -> tuple[HierarchyLevel, str]:
        return (self.level, self.node_id)


class PermissionRequirement(BaseModel):
    """One stored requirement row: a permission ref inside a node's group."""

    model_config = {"frozen": True}

    node_id: str
    group_key: str = "default"
    aggregation: Aggregation = Aggregation.REQUIRED
    permission_ref: str = Field(min_length=1)


class RequirementGroup(BaseModel):
    """All requirement rows sharing ``(node_id, group_key)``, evaluated as one."""

    model_config = {"frozen": True}

    node_id: str
    group_key: str
    aggregation: Aggregation
    permission_refs: tuple[str, ...] = ()


class Actor(BaseModel):
    """The subject of an access check: an actor id plus its roles."""

    model_config = {"frozen": True}

    actor_id: str
    role_ids: tuple[str, ...] = ()

    @field_validator("role_ids", mode="before")
    @classmethod
    def _coerce_roles(cls, v):
        if isinstance(v, str):
            return (v,)
        return tuple(v or ())

    @classmethod
    def for_role(cls, role_id: str) -> Actor:
        """Actor standing in for a bare role (its id is the role id)."""
        return cls(actor_id=role_id, role_ids=(role_id,))


class AccessDecision(BaseModel):
    """Outcome of an access check. Computed, never persisted."""

    model_config = {"frozen": True}

    allowed: bool
    reason: str
    scope: Optional[Scope] = None
    matched_level: Optional[HierarchyLevel] = None
    message: str = ""
    failed_group: Optional[str] = None
    role_id: Optional[str] = None
    path: FullPath = ()

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def deny(cls, reason: str, message: str = "", **kwargs) -> AccessDecision:
        return cls(allowed=False, reason=reason, message=message, **kwargs)

    def with_path(self, path: FullPath) -> AccessDecision:
        return self.model_copy(update={"path": path})


def validate_depth(path: FullPath) -> bool:
    """True if a path has between one and four non-empty segments."""
    return 0 < len(path) <= MAX_DEPTH and all(path)


__all__ = [
    "AccessDecision",
    "Actor",
    "FullPath",
    "Grant",
    "HierarchyNode",
    "PathLike",
    "PermissionRequirement",
    "RequirementGroup",
    "normalize_path",
    "validate_depth",
]

"""Access resolvers: cascading grants and grouped permission requirements."""

from .cascade import RoleGrantIndex, resolve_cascade, resolve_cascade_for_roles
from .requirements import (
    AGGREGATORS,
    RequirementSet,
    evaluate_group,
    group_requirements,
    resolve_requirements,
)

__all__ = [
    "AGGREGATORS",
    "RequirementSet",
    "RoleGrantIndex",
    "evaluate_group",
    "group_requirements",
    "resolve_cascade",
    "resolve_cascade_for_roles",
    "resolve_requirements",
]

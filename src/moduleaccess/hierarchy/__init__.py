"""Feature hierarchy model: Module → SubModule → Component → Action.

Defines:
- Level, scope, aggregation and mode enumerations
- Frozen node / grant / requirement / decision models
- HierarchyTree: flat, id-indexed read model with path resolution
- Module definitions and their sync into a store
"""

from .constants import (
    SCOPE_BREADTH,
    AccessMode,
    Aggregation,
    DecisionReason,
    HierarchyLevel,
    Scope,
    broadest_scope,
)
from .definitions import (
    ActionDefinition,
    ComponentDefinition,
    ModuleDefinition,
    SubModuleDefinition,
    SyncStats,
    sync_definitions,
)
from .models import (
    AccessDecision,
    Actor,
    FullPath,
    Grant,
    HierarchyNode,
    PermissionRequirement,
    RequirementGroup,
    normalize_path,
)
from .tree import HierarchyTree

__all__ = [
    "SCOPE_BREADTH",
    "AccessDecision",
    "AccessMode",
    "ActionDefinition",
    "Actor",
    "Aggregation",
    "ComponentDefinition",
    "DecisionReason",
    "FullPath",
    "Grant",
    "HierarchyLevel",
    "HierarchyNode",
    "HierarchyTree",
    "ModuleDefinition",
    "PermissionRequirement",
    "RequirementGroup",
    "Scope",
    "SubModuleDefinition",
    "SyncStats",
    "broadest_scope",
    "normalize_path",
    "sync_definitions",
]

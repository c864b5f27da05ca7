from .cache import CacheKeys, MemoryCacheBackend, RedisCacheBackend, SnapshotCache
from .config import AccessConfig, LogLevel, load_access_config_from_env
from .exceptions import (
    CacheRefreshFailure,
    ConfigurationError,
    InvariantViolation,
    ModuleAccessError,
    PermissionLookupFailure,
    StorageError,
    error_registry,
    register_error,
)
from .facade import AccessFacade
from .hierarchy import (
    AccessDecision,
    AccessMode,
    Actor,
    Aggregation,
    DecisionReason,
    Grant,
    HierarchyLevel,
    HierarchyNode,
    HierarchyTree,
    ModuleDefinition,
    PermissionRequirement,
    RequirementGroup,
    Scope,
    SyncStats,
    normalize_path,
    sync_definitions,
)
from .interfaces import AccessRepository, FullAccessPredicate, PermissionPredicate
from .logging import (
    AccessLogFormatter,
    AccessLoggerAdapter,
    get_access_logger,
    safe_preview,
    setup_logging,
)
from .resolvers import (
    RequirementSet,
    RoleGrantIndex,
    evaluate_group,
    group_requirements,
    resolve_cascade,
    resolve_cascade_for_roles,
    resolve_requirements,
)
from .store import InMemoryAccessStore
from .validation import find_grant_conflicts, validate_grant, validate_node, validate_requirement

__all__ = [
    'AccessConfig',
    'AccessDecision',
    'AccessFacade',
    'AccessLogFormatter',
    'AccessLoggerAdapter',
    'AccessMode',
    'AccessRepository',
    'Actor',
    'Aggregation',
    'CacheKeys',
    'CacheRefreshFailure',
    'ConfigurationError',
    'DecisionReason',
    'FullAccessPredicate',
    'Grant',
    'HierarchyLevel',
    'HierarchyNode',
    'HierarchyTree',
    'InMemoryAccessStore',
    'InvariantViolation',
    'LogLevel',
    'MemoryCacheBackend',
    'ModuleAccessError',
    'ModuleDefinition',
    'PermissionLookupFailure',
    'PermissionPredicate',
    'PermissionRequirement',
    'RedisCacheBackend',
    'RequirementGroup',
    'RequirementSet',
    'RoleGrantIndex',
    'Scope',
    'SnapshotCache',
    'StorageError',
    'SyncStats',
    'error_registry',
    'evaluate_group',
    'find_grant_conflicts',
    'get_access_logger',
    'group_requirements',
    'load_access_config_from_env',
    'normalize_path',
    'register_error',
    'resolve_cascade',
    'resolve_cascade_for_roles',
    'resolve_requirements',
    'safe_preview',
    'setup_logging',
    'sync_definitions',
    'validate_grant',
    'validate_node',
    'validate_requirement',
]

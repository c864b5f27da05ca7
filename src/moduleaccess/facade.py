"""Access façade: the single entry point used by controllers and UI guards.

``AccessFacade`` unifies the cascade and requirement resolvers behind
``check()``, caches hierarchy / grant / requirement snapshots, and exposes
``invalidate()`` for administrative write paths.

Access formula per mode::

    cascade_only      →  Cascade
    requirement_only  →  Requirements
    either            →  Cascade OR Requirements
    both              →  Cascade AND Requirements

Full-access roles are allowed with scope ``all`` in every mode once the
path resolves. Unknown or inactive paths are denied with ``NodeNotFound``.
Any failure to prove access is a Deny; the façade never fails open.

Usage::

    facade = AccessFacade(
        repository=store,
        has_permission=rbac.user_has_permission,
        config=AccessConfig(full_access_roles=["super-admin"]),
    )
    decision = facade.check(Actor(actor_id="u-17", role_ids=["manager"]), "hrm.attendance.punch.create")
    if not decision:
        raise Forbidden(decision.message)
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from .cache import CacheKeys, RedisCacheBackend, SnapshotCache
from .config import AccessConfig
from .exceptions import CacheRefreshFailure, PermissionLookupFailure
from .hierarchy.constants import AccessMode, DecisionReason, HierarchyLevel, Scope
from .hierarchy.models import (
    AccessDecision,
    Actor,
    FullPath,
    HierarchyNode,
    PathLike,
    normalize_path,
    validate_depth,
)
from .hierarchy.tree import HierarchyTree
from .interfaces import AccessRepository, FullAccessPredicate, PermissionPredicate
from .logging import get_access_logger
from .resolvers.cascade import RoleGrantIndex, resolve_cascade_for_roles
from .resolvers.requirements import RequirementSet, resolve_requirements

logger = logging.getLogger(__name__)

ActorLike = Union[Actor, str]


class AccessFacade:
    """Hierarchical access resolution over injected collaborators.

    Args:
        repository: Read access to nodes, grants and requirements.
        has_permission: ``(actor_id, permission_ref) -> bool`` from the
            flat-permission subsystem.
        is_full_access_role: ``role_id -> bool``. Defaults to membership
            in ``config.full_access_roles``.
        config: Engine settings (default: ``AccessConfig()``).
        cache: Snapshot cache. Built from ``config`` when omitted, backed
            by Redis if ``config.redis_url`` is set.
    """

    def __init__(
        self,
        repository: AccessRepository,
        has_permission: PermissionPredicate,
        is_full_access_role: Optional[FullAccessPredicate] = None,
        config: Optional[AccessConfig] = None,
        cache: Optional[SnapshotCache] = None,
    ) -> None:
        self.config = config or AccessConfig()
        self.repository = repository
        self._has_permission = has_permission

        if is_full_access_role is None:
            full_access_roles = frozenset(self.config.full_access_roles)
            is_full_access_role = full_access_roles.__contains__
        self._is_full_access_role = is_full_access_role

        if cache is None:
            backend = None
            if self.config.redis_url:
                backend = RedisCacheBackend(self.config.redis_url, prefix=self.config.cache_key_prefix)
                logger.info("Using Redis snapshot cache (prefix=%s)", self.config.cache_key_prefix)
            cache = SnapshotCache(
                ttl_seconds=self.config.cache_ttl_seconds,
                stale_grace_seconds=self.config.cache_stale_grace_seconds,
                backend=backend,
            )
        self.cache = cache

    # ── Snapshots ─────────────────────────────────────────────────

    def _module_list(self) -> HierarchyTree:
        return self.cache.get_or_load(
            CacheKeys.MODULE_LIST,
            lambda: HierarchyTree(nodes=tuple(self.repository.list_modules())),
            HierarchyTree,
        )

    def _module_tree(self, module_code: str) -> HierarchyTree:
        return self.cache.get_or_load(
            CacheKeys.module(module_code),
            lambda: HierarchyTree(nodes=tuple(self.repository.load_module(module_code))),
            HierarchyTree,
        )

    def _role_index(self, role_id: str) -> RoleGrantIndex:
        return self.cache.get_or_load(
            CacheKeys.role_grants(role_id),
            lambda: RoleGrantIndex(role_id=role_id, grants=tuple(self.repository.grants_for_role(role_id))),
            RoleGrantIndex,
        )

    def _requirement_set(self, module_code: str) -> RequirementSet:
        def load() -> RequirementSet:
            # Node ids come from the repository: the cached tree may predate new nodes
            node_ids = [n.id for n in self.repository.load_module(module_code)]
            return RequirementSet(rows=tuple(self.repository.requirements_for_nodes(node_ids)))

        return self.cache.get_or_load(CacheKeys.module_requirements(module_code), load, RequirementSet)

    # ── Hierarchy reads ───────────────────────────────────────────

    def resolve_path(self, path: PathLike) -> list[HierarchyNode] | None:
        """Ordered chain Module..target, or None if any segment is missing or inactive.

        Raises:
            CacheRefreshFailure: if the module snapshot cannot be loaded.
        """
        codes = normalize_path(path)
        if not validate_depth(codes):
            return None
        # Unknown module codes never get a cache entry of their own
        module = self._module_list().find_child(None, codes[0])
        if module is None or not module.active:
            return None
        return self._module_tree(codes[0]).resolve_path(codes)

    def children(self, path: PathLike = ()) -> list[HierarchyNode]:
        """Active children of a node ordered by priority then name.

        An empty path lists the active modules.
        """
        codes = normalize_path(path)
        if not codes:
            return self._module_list().modules()
        chain = self.resolve_path(codes)
        if chain is None:
            return []
        return self._module_tree(codes[0]).children(chain[-1].id)

    # ── Checks ────────────────────────────────────────────────────

    def check(self, actor: ActorLike, path: PathLike, mode: Optional[AccessMode] = None) -> AccessDecision:
        """Decide whether ``actor`` may access the node at ``path``.

        Args:
            actor: An ``Actor`` or a bare role id.
            path: Full path as codes or a dotted string.
            mode: Resolver combination (default: ``config.default_mode``).

        Returns:
            AccessDecision; never raises for unknown paths or failing
            collaborators.
        """
        subject = _as_actor(actor)
        codes = normalize_path(path)
        mode = AccessMode(mode or self.config.default_mode)
        log = get_access_logger(__name__, actor_id=subject.actor_id, path=codes)

        try:
            decision = self._decide(subject, codes, mode)
        except PermissionLookupFailure as e:
            log.error("Permission lookup failed, denying: %s", e.message)
            decision = AccessDecision.deny(DecisionReason.PERMISSION_LOOKUP_FAILURE, e.message)
        except CacheRefreshFailure as e:
            log.error("Snapshot refresh failed, denying: %s", e.message)
            decision = AccessDecision.deny(DecisionReason.CACHE_REFRESH_FAILURE, e.message)

        if not decision.allowed:
            log.debug("Access denied (%s, mode=%s): %s", decision.reason, mode.value, decision.message)
        return decision.with_path(codes)

    def _decide(self, actor: Actor, codes: FullPath, mode: AccessMode) -> AccessDecision:
        chain = self.resolve_path(codes)
        if chain is None:
            return AccessDecision.deny(
                DecisionReason.NODE_NOT_FOUND,
                f"Path '{'.'.join(codes)}' does not exist or is inactive",
            )

        for role_id in actor.role_ids:
            if self._is_full_access_role(role_id):
                return AccessDecision(
                    allowed=True,
                    reason=DecisionReason.FULL_ACCESS,
                    scope=Scope.ALL,
                    message=f"Role '{role_id}' has full access",
                    role_id=role_id,
                )

        if mode is AccessMode.CASCADE_ONLY:
            return self._cascade(actor, chain)
        if mode is AccessMode.REQUIREMENT_ONLY:
            return self._requirements(actor, chain)

        cascade = self._cascade(actor, chain)
        if mode is AccessMode.EITHER:
            if cascade.allowed:
                return cascade
            requirements = self._requirements(actor, chain)
            if requirements.allowed:
                return requirements
            return requirements.model_copy(update={"message": f"{cascade.message}; {requirements.message}"})

        # BOTH
        if not cascade.allowed:
            return cascade
        requirements = self._requirements(actor, chain)
        if not requirements.allowed:
            return requirements
        return cascade

    def _cascade(self, actor: Actor, chain: list[HierarchyNode]) -> AccessDecision:
        indexes = [self._role_index(role_id) for role_id in actor.role_ids]
        return resolve_cascade_for_roles(chain, indexes)

    def _requirements(self, actor: Actor, chain: list[HierarchyNode]) -> AccessDecision:
        requirements = self._requirement_set(chain[0].code)
        return resolve_requirements(chain, requirements, actor.actor_id, self._has_permission)

    def access_scope(self, actor: ActorLike, path: PathLike) -> Scope | None:
        """Broadest cascade scope the actor holds on ``path``, or None."""
        decision = self.check(actor, path, AccessMode.CASCADE_ONLY)
        return decision.scope if decision.allowed else None

    def accessible_modules(self, actor: ActorLike, mode: Optional[AccessMode] = None) -> list[HierarchyNode]:
        """Active modules the actor passes ``check`` on, ordered by priority then name."""
        return [m for m in self._module_list().modules() if self.check(actor, (m.code,), mode).allowed]

    def role_access_tree(self, role_id: str) -> dict[str, list[FullPath]]:
        """Granted full paths of a role grouped by hierarchy level.

        Example::

            facade.role_access_tree("manager")
            # {"module": [], "submodule": [("hrm", "attendance")],
            #  "component": [], "action": []}
        """
        tree: dict[str, list[FullPath]] = {level.value: [] for level in HierarchyLevel}
        grants = list(self._role_index(role_id).grants)
        if not grants:
            return tree

        for module in self._module_list().modules(include_inactive=True):
            subtree = self._module_tree(module.code)
            for grant in grants:
                if grant.node_id in subtree:
                    tree[grant.level.value].append(subtree.full_path(grant.node_id))
        for paths in tree.values():
            paths.sort()
        return tree

    # ── Invalidation ──────────────────────────────────────────────

    def invalidate(self, scope_key: str) -> int:
        """Drop cached snapshots at or below ``scope_key``.

        Call after any write to nodes, grants or requirements; there is no
        implicit invalidation. Idempotent.

        Example::

            store.assign_grant("manager", node.id, Scope.TEAM)
            facade.invalidate(CacheKeys.role_grants("manager"))
        """
        return self.cache.invalidate(scope_key)

    def invalidate_all(self) -> None:
        self.cache.clear()


def _as_actor(actor: ActorLike) -> Actor:
    if isinstance(actor, Actor):
        return actor
    return Actor.for_role(str(actor))


__all__ = ["AccessFacade", "ActorLike"]

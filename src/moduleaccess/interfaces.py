from abc import ABC, abstractmethod
from typing import Callable, Iterable, List

from .hierarchy.models import Grant, HierarchyNode, PermissionRequirement

# (actor_id, permission_ref) -> held?
PermissionPredicate = Callable[[str, str], bool]

# role_id -> bypasses all resolution?
FullAccessPredicate = Callable[[str], bool]


class AccessRepository(ABC):
    """Read side of the persistence layer consumed by the engine.

    Implementations may hit a database or any other store; every call may
    fail with an exception, which the snapshot cache turns into
    ``CacheRefreshFailure`` unless a stale value is still usable.
    """

    @abstractmethod
    def list_modules(self) -> List[HierarchyNode]:
        """All module nodes, active or not."""
        raise NotImplementedError

    @abstractmethod
    def load_module(self, module_code: str) -> List[HierarchyNode]:
        """The module with ``module_code`` and all its descendants.

        Inactive nodes are included. Unknown codes return an empty list.
        """
        raise NotImplementedError

    @abstractmethod
    def grants_for_role(self, role_id: str) -> List[Grant]:
        raise NotImplementedError

    @abstractmethod
    def requirements_for_nodes(self, node_ids: Iterable[str]) -> List[PermissionRequirement]:
        """Requirement rows attached to any of ``node_ids``, in stored order."""
        raise NotImplementedError


__all__ = [
    "AccessRepository",
    "FullAccessPredicate",
    "PermissionPredicate",
]

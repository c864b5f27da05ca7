"""Shared fixtures: a small HRM / CRM feature tree and fake collaborators."""

from __future__ import annotations

import copy

import pytest

from moduleaccess import AccessConfig, AccessFacade, InMemoryAccessStore, sync_definitions

HRM = {
    "code": "hrm",
    "name": "Human Resources",
    "priority": 10,
    "submodules": [
        {
            "code": "attendance",
            "name": "Attendance",
            "priority": 2,
            "components": [
                {
                    "code": "punch",
                    "name": "Punch Clock",
                    "actions": [{"code": "create", "name": "Punch In"}, {"code": "view", "name": "View Punches"}],
                },
                {
                    "code": "reports",
                    "name": "Attendance Reports",
                    "actions": [{"code": "view"}, {"code": "export"}],
                },
            ],
        },
        {
            "code": "employees",
            "name": "Employees",
            "priority": 1,
            "components": [
                {
                    "code": "directory",
                    "name": "Employee Directory",
                    "actions": [{"code": "view"}, {"code": "create"}, {"code": "delete"}],
                },
            ],
        },
    ],
}

CRM = {
    "code": "crm",
    "name": "CRM",
    "priority": 20,
    "submodules": [
        {
            "code": "leads",
            "name": "Leads",
            "components": [{"code": "pipeline", "name": "Pipeline", "actions": [{"code": "view"}]}],
        },
    ],
}


class FakePermissions:
    """Flat permission predicate backed by a dict, recording every lookup."""

    def __init__(self) -> None:
        self.held: dict[str, set[str]] = {}
        self.calls: list[tuple[str, str]] = []

    def give(self, actor_id: str, *refs: str) -> None:
        self.held.setdefault(actor_id, set()).update(refs)

    def __call__(self, actor_id: str, permission_ref: str) -> bool:
        self.calls.append((actor_id, permission_ref))
        return permission_ref in self.held.get(actor_id, set())


@pytest.fixture
def store() -> InMemoryAccessStore:
    s = InMemoryAccessStore()
    sync_definitions(s, [HRM, CRM])
    return s


@pytest.fixture
def node_id(store):
    """Look up a node id by dotted path."""

    def _lookup(path: str) -> str:
        chain = store.tree().resolve_path(path)
        assert chain is not None, f"fixture path {path} missing"
        return chain[-1].id

    return _lookup


@pytest.fixture
def permissions() -> FakePermissions:
    return FakePermissions()


@pytest.fixture
def facade(store, permissions) -> AccessFacade:
    return AccessFacade(
        repository=store,
        has_permission=permissions,
        config=AccessConfig(full_access_roles=["super-admin"]),
    )


@pytest.fixture
def definitions() -> tuple[dict, dict]:
    """Fresh copies of the HRM and CRM definitions, safe to modify."""
    return copy.deepcopy(HRM), copy.deepcopy(CRM)

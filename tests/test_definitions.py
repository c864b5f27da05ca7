"""Tests for syncing declarative module definitions into a store."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from moduleaccess import (
    HierarchyLevel,
    InMemoryAccessStore,
    InvariantViolation,
    ModuleDefinition,
    Scope,
    sync_definitions,
)


class TestSyncDefinitions:
    """Tests for sync_definitions."""

    def test_initial_sync_creates_every_level(self, definitions) -> None:
        store = InMemoryAccessStore()
        stats = sync_definitions(store, definitions)

        assert stats.created == {"module": 2, "submodule": 3, "component": 4, "action": 8}
        assert stats.updated == {}
        assert stats.total_changes == 17
        assert len(store.tree()) == 17

    def test_resync_is_a_no_op(self, store, definitions) -> None:
        stats = sync_definitions(store, definitions)
        assert stats.total_changes == 0

    def test_resync_keeps_ids_and_grants(self, store, node_id, definitions) -> None:
        attendance = node_id("hrm.attendance")
        store.assign_grant("manager", attendance, Scope.TEAM)

        hrm, crm = definitions
        hrm["submodules"][0]["name"] = "Time & Attendance"
        stats = sync_definitions(store, [hrm, crm])

        assert stats.updated == {"submodule": 1}
        assert node_id("hrm.attendance") == attendance
        assert store.get_node(attendance).name == "Time & Attendance"
        assert store.grants_for_role("manager")[0].node_id == attendance

    def test_is_active_alias(self, store, definitions) -> None:
        hrm, crm = definitions
        crm["submodules"][0]["is_active"] = False
        sync_definitions(store, [hrm, crm])
        assert store.tree().resolve_path("crm.leads") is None

    def test_name_defaults_to_code(self, store) -> None:
        assert store.tree().resolve_path("hrm.attendance.reports.export")[-1].name == "export"

    def test_new_nodes_added_on_resync(self, store, definitions) -> None:
        hrm, crm = definitions
        crm["submodules"].append({"code": "deals", "components": [{"code": "board"}]})
        stats = sync_definitions(store, [hrm, crm])
        assert stats.created == {"submodule": 1, "component": 1}
        assert store.tree().resolve_path("crm.deals.board") is not None

    def test_without_prune_missing_nodes_stay(self, store, definitions) -> None:
        sync_definitions(store, definitions[:1])
        assert store.tree().resolve_path("crm") is not None

    def test_prune_removes_missing_subtrees(self, store, node_id, definitions) -> None:
        store.assign_grant("sales", node_id("crm.leads"))
        hrm, _ = definitions
        del hrm["submodules"][0]["components"][1]  # reports

        stats = sync_definitions(store, [hrm], prune=True)

        assert stats.removed == {"module": 1, "submodule": 1, "component": 2, "action": 3}
        assert store.tree().resolve_path("crm") is None
        assert store.tree().resolve_path("hrm.attendance.reports") is None
        assert store.grants_for_role("sales") == []

    def test_model_input(self) -> None:
        store = InMemoryAccessStore()
        sync_definitions(store, [ModuleDefinition(code="ops", name="Operations")])
        assert store.list_modules()[0].level is HierarchyLevel.MODULE

    def test_repeated_sibling_code_updates_first(self) -> None:
        bad = {"code": "ops", "submodules": [{"code": "a"}, {"code": "a", "name": "Again"}]}
        stats = sync_definitions(InMemoryAccessStore(), [bad])
        # The second entry matches the first by code and updates it
        assert stats.created == {"module": 1, "submodule": 1}
        assert stats.updated == {"submodule": 1}

    def test_invalid_definition(self) -> None:
        with pytest.raises(ValidationError):
            sync_definitions(InMemoryAccessStore(), [{"name": "no code"}])

    def test_resync_preserves_grant_invariants(self, store, node_id, definitions) -> None:
        """Sync only touches nodes; existing grant invariants still hold afterwards."""
        store.assign_grant("manager", node_id("hrm"))
        sync_definitions(store, definitions)
        with pytest.raises(InvariantViolation):
            store.assign_grant("manager", node_id("hrm.attendance"))

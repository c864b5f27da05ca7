"""Tests for cascading grant resolution."""

from __future__ import annotations

import pytest

from moduleaccess import (
    DecisionReason,
    Grant,
    HierarchyLevel,
    RoleGrantIndex,
    Scope,
    resolve_cascade,
    resolve_cascade_for_roles,
)


@pytest.fixture
def chain(store):
    def _chain(path: str):
        nodes = store.tree().resolve_path(path)
        assert nodes is not None
        return nodes

    return _chain


def _grant(role_id: str, node, scope: Scope = Scope.ALL) -> Grant:
    return Grant(role_id=role_id, node_id=node.id, level=node.level, scope=scope)


class TestResolveCascade:
    """Tests for single-role cascade decisions."""

    def test_grant_covers_descendants(self, chain) -> None:
        attendance = chain("hrm.attendance")[-1]
        index = RoleGrantIndex(role_id="manager", grants=(_grant("manager", attendance, Scope.TEAM),))

        for path in ("hrm.attendance", "hrm.attendance.punch", "hrm.attendance.punch.create"):
            decision = resolve_cascade(chain(path), index)
            assert decision.allowed, path
            assert decision.reason == DecisionReason.GRANT_MATCHED
            assert decision.scope is Scope.TEAM
            assert decision.matched_level is HierarchyLevel.SUBMODULE
            assert decision.role_id == "manager"

    def test_grant_does_not_leak_to_siblings_or_ancestors(self, chain) -> None:
        attendance = chain("hrm.attendance")[-1]
        index = RoleGrantIndex(role_id="manager", grants=(_grant("manager", attendance),))

        for path in ("hrm", "hrm.employees", "hrm.employees.directory.view", "crm"):
            decision = resolve_cascade(chain(path), index)
            assert not decision.allowed, path
            assert decision.reason == DecisionReason.NO_GRANT

    def test_deepest_grant_wins(self, chain) -> None:
        """Conflicting imported grants: the one nearest the target decides."""
        full = chain("hrm.attendance.punch.create")
        index = RoleGrantIndex(
            role_id="manager",
            grants=(
                _grant("manager", full[0], Scope.ALL),
                _grant("manager", full[2], Scope.OWN),
            ),
        )

        decision = resolve_cascade(full, index)
        assert decision.scope is Scope.OWN
        assert decision.matched_level is HierarchyLevel.COMPONENT

        sibling = resolve_cascade(chain("hrm.attendance.reports.view"), index)
        assert sibling.scope is Scope.ALL
        assert sibling.matched_level is HierarchyLevel.MODULE

    def test_action_grant(self, chain) -> None:
        target = chain("hrm.employees.directory.delete")
        index = RoleGrantIndex(role_id="hr", grants=(_grant("hr", target[-1], Scope.DEPARTMENT),))
        decision = resolve_cascade(target, index)
        assert decision.matched_level is HierarchyLevel.ACTION
        assert not resolve_cascade(chain("hrm.employees.directory.view"), index).allowed

    def test_full_access(self, chain) -> None:
        decision = resolve_cascade(chain("crm.leads"), RoleGrantIndex(role_id="root"), full_access=True)
        assert decision.allowed
        assert decision.reason == DecisionReason.FULL_ACCESS
        assert decision.scope is Scope.ALL
        assert decision.matched_level is None

    def test_foreign_grants_ignored(self, chain) -> None:
        module = chain("crm")[-1]
        index = RoleGrantIndex(role_id="manager", grants=(_grant("clerk", module),))
        assert len(index) == 0
        assert not resolve_cascade(chain("crm"), index).allowed


class TestResolveCascadeForRoles:
    """Tests for merging decisions across an actor's roles."""

    def test_broadest_scope_wins(self, chain) -> None:
        target = chain("hrm.attendance.punch.create")
        team = RoleGrantIndex(role_id="lead", grants=(_grant("lead", target[2], Scope.TEAM),))
        dept = RoleGrantIndex(role_id="head", grants=(_grant("head", target[0], Scope.DEPARTMENT),))

        decision = resolve_cascade_for_roles(target, [team, dept])
        assert decision.allowed
        assert decision.scope is Scope.DEPARTMENT
        assert decision.role_id == "head"

    def test_equal_scope_prefers_deeper_match(self, chain) -> None:
        target = chain("hrm.attendance.punch.create")
        upper = RoleGrantIndex(role_id="a", grants=(_grant("a", target[0], Scope.TEAM),))
        lower = RoleGrantIndex(role_id="b", grants=(_grant("b", target[3], Scope.TEAM),))

        decision = resolve_cascade_for_roles(target, [upper, lower])
        assert decision.role_id == "b"
        assert decision.matched_level is HierarchyLevel.ACTION

    def test_any_role_allows(self, chain) -> None:
        target = chain("crm.leads")
        none = RoleGrantIndex(role_id="guest")
        some = RoleGrantIndex(role_id="sales", grants=(_grant("sales", target[0], Scope.OWN),))
        assert resolve_cascade_for_roles(target, [none, some]).allowed

    def test_full_access_role_short_circuits(self, chain) -> None:
        target = chain("crm.leads")
        some = RoleGrantIndex(role_id="sales", grants=(_grant("sales", target[0], Scope.OWN),))
        decision = resolve_cascade_for_roles(target, [some, RoleGrantIndex(role_id="root")], ["root"])
        assert decision.reason == DecisionReason.FULL_ACCESS
        assert decision.role_id == "root"

    def test_no_roles(self, chain) -> None:
        decision = resolve_cascade_for_roles(chain("crm"), [])
        assert not decision.allowed
        assert decision.reason == DecisionReason.NO_GRANT
        assert "no roles" in decision.message

    def test_all_roles_denied(self, chain) -> None:
        decision = resolve_cascade_for_roles(chain("crm"), [RoleGrantIndex(role_id="a"), RoleGrantIndex(role_id="b")])
        assert not decision.allowed
        assert "'a'" in decision.message and "'b'" in decision.message

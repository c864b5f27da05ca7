"""Tests for hierarchy models and the HierarchyTree read model."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from moduleaccess import (
    HierarchyLevel,
    HierarchyNode,
    HierarchyTree,
    Scope,
    normalize_path,
)
from moduleaccess.hierarchy import broadest_scope


def _node(node_id: str, level: HierarchyLevel, code: str, parent_id: str | None = None, **kw) -> HierarchyNode:
    kw.setdefault("name", code)
    return HierarchyNode(id=node_id, parent_id=parent_id, level=level, code=code, **kw)


@pytest.fixture
def tree() -> HierarchyTree:
    return HierarchyTree(
        nodes=(
            _node("m1", HierarchyLevel.MODULE, "hrm"),
            _node("s1", HierarchyLevel.SUBMODULE, "attendance", "m1", priority=2),
            _node("s2", HierarchyLevel.SUBMODULE, "employees", "m1", priority=1),
            _node("s3", HierarchyLevel.SUBMODULE, "archive", "m1", active=False),
            _node("c1", HierarchyLevel.COMPONENT, "punch", "s1"),
            _node("a1", HierarchyLevel.ACTION, "create", "c1"),
            _node("a2", HierarchyLevel.ACTION, "view", "c1", active=False),
        )
    )


class TestHierarchyLevel:
    """Tests for level ordering helpers."""

    def test_depths(self) -> None:
        assert [lvl.depth for lvl in HierarchyLevel] == [0, 1, 2, 3]

    def test_child_levels(self) -> None:
        assert HierarchyLevel.MODULE.child is HierarchyLevel.SUBMODULE
        assert HierarchyLevel.COMPONENT.child is HierarchyLevel.ACTION
        assert HierarchyLevel.ACTION.child is None

    def test_from_depth_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            HierarchyLevel.from_depth(4)


class TestScope:
    """Tests for scope breadth ordering."""

    def test_breadth_order(self) -> None:
        assert Scope.ALL.breadth > Scope.DEPARTMENT.breadth > Scope.TEAM.breadth > Scope.OWN.breadth

    def test_broadest_scope(self) -> None:
        assert broadest_scope([Scope.OWN, Scope.DEPARTMENT, Scope.TEAM]) is Scope.DEPARTMENT
        assert broadest_scope([]) is None


class TestHierarchyNode:
    """Tests for node validation."""

    def test_module_cannot_have_parent(self) -> None:
        with pytest.raises(ValidationError, match="cannot have a parent"):
            _node("x", HierarchyLevel.MODULE, "hrm", parent_id="p")

    def test_non_module_needs_parent(self) -> None:
        with pytest.raises(ValidationError, match="must have a parent"):
            _node("x", HierarchyLevel.ACTION, "view")

    def test_nodes_are_frozen(self) -> None:
        node = _node("m1", HierarchyLevel.MODULE, "hrm")
        with pytest.raises(ValidationError):
            node.active = False  # type: ignore[misc]


class TestNormalizePath:
    """Tests for FullPath normalization."""

    def test_dotted_string(self) -> None:
        assert normalize_path("hrm.attendance.punch") == ("hrm", "attendance", "punch")

    def test_sequence(self) -> None:
        assert normalize_path(["hrm", "attendance"]) == ("hrm", "attendance")

    def test_empty(self) -> None:
        assert normalize_path("") == ()
        assert normalize_path([]) == ()


class TestResolvePath:
    """Tests for HierarchyTree.resolve_path."""

    def test_full_chain(self, tree: HierarchyTree) -> None:
        chain = tree.resolve_path(["hrm", "attendance", "punch", "create"])
        assert chain is not None
        assert [n.id for n in chain] == ["m1", "s1", "c1", "a1"]
        assert [n.level for n in chain] == list(HierarchyLevel)

    def test_module_only(self, tree: HierarchyTree) -> None:
        chain = tree.resolve_path("hrm")
        assert chain is not None and [n.id for n in chain] == ["m1"]

    def test_unknown_segment_is_none(self, tree: HierarchyTree) -> None:
        assert tree.resolve_path(["hrm", "payroll"]) is None
        assert tree.resolve_path(["nope"]) is None

    def test_inactive_segment_is_none(self, tree: HierarchyTree) -> None:
        assert tree.resolve_path(["hrm", "archive"]) is None
        assert tree.resolve_path(["hrm", "attendance", "punch", "view"]) is None

    def test_empty_and_too_deep(self, tree: HierarchyTree) -> None:
        assert tree.resolve_path([]) is None
        assert tree.resolve_path(["hrm", "attendance", "punch", "create", "extra"]) is None

    def test_code_under_wrong_parent(self, tree: HierarchyTree) -> None:
        """A code only resolves under its own parent."""
        assert tree.resolve_path(["hrm", "employees", "punch"]) is None


class TestTreeNavigation:
    """Tests for children, ancestors, descendants and full paths."""

    def test_children_ordered_by_priority(self, tree: HierarchyTree) -> None:
        assert [n.code for n in tree.children("m1")] == ["employees", "attendance"]

    def test_children_include_inactive(self, tree: HierarchyTree) -> None:
        codes = [n.code for n in tree.children("m1", include_inactive=True)]
        assert codes == ["archive", "employees", "attendance"]

    def test_children_tie_broken_by_name(self) -> None:
        tree = HierarchyTree(
            nodes=(
                _node("m", HierarchyLevel.MODULE, "hrm"),
                _node("b", HierarchyLevel.SUBMODULE, "b", "m", name="Beta"),
                _node("a", HierarchyLevel.SUBMODULE, "a", "m", name="Alpha"),
            )
        )
        assert [n.name for n in tree.children("m")] == ["Alpha", "Beta"]

    def test_modules(self, tree: HierarchyTree) -> None:
        assert [n.code for n in tree.modules()] == ["hrm"]

    def test_ancestors_nearest_first(self, tree: HierarchyTree) -> None:
        assert [n.id for n in tree.ancestors("a1")] == ["c1", "s1", "m1"]
        assert tree.ancestors("m1") == []
        assert tree.ancestors("missing") == []

    def test_descendants(self, tree: HierarchyTree) -> None:
        assert {n.id for n in tree.descendants("s1")} == {"c1", "a1", "a2"}
        assert {n.id for n in tree.descendants("s1", include_inactive=False)} == {"c1", "a1"}

    def test_is_ancestor(self, tree: HierarchyTree) -> None:
        assert tree.is_ancestor("m1", "a1")
        assert tree.is_ancestor("s1", "c1")
        assert not tree.is_ancestor("a1", "m1")
        assert not tree.is_ancestor("s2", "a1")
        assert not tree.is_ancestor("a1", "a1")

    def test_full_path(self, tree: HierarchyTree) -> None:
        assert tree.full_path("a1") == ("hrm", "attendance", "punch", "create")
        assert tree.full_path("missing") == ()

    def test_contains_and_len(self, tree: HierarchyTree) -> None:
        assert "c1" in tree
        assert "zz" not in tree
        assert len(tree) == 7

    def test_json_roundtrip_rebuilds_indexes(self, tree: HierarchyTree) -> None:
        """Snapshots restored from JSON (Redis cache) resolve paths again."""
        restored = HierarchyTree.model_validate_json(tree.model_dump_json())
        chain = restored.resolve_path("hrm.attendance.punch.create")
        assert chain is not None and chain[-1].id == "a1"

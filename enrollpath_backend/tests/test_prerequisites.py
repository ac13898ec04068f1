import pytest

from app.core.errors import NotFoundError
from app.services.catalog import Catalog
from app.services.prerequisites import check_eligibility, resolve_prerequisites
from factories import make_course


def _leaves(node):
    if not node.children:
        return [node]
    result = []
    for child in node.children:
        result.extend(_leaves(child))
    return result


class TestResolvePrerequisites:
    def test_tree_shape_follows_expression_order(self, catalog):
        root = resolve_prerequisites(catalog, "CS301")
        assert root.code == "CS301"
        assert root.requirement == "all"
        cs201, group = root.children
        assert cs201.code == "CS201"
        assert [c.code for c in cs201.children] == ["CS101"]
        assert group.kind == "any"
        assert [c.code for c in group.children] == ["MATH210", "MATH220"]

    def test_dangling_reference_is_not_found_leaf(self, catalog):
        root = resolve_prerequisites(catalog, "CS301")
        math220 = root.children[1].children[1]
        assert math220.found is False
        assert math220.course is None
        assert math220.children == []

    def test_either_of(self, catalog):
        root = resolve_prerequisites(catalog, "CS350")
        assert root.requirement == "either"
        assert [c.code for c in root.children] == ["CS301", "CS320"]

    def test_root_lookup_is_normalized(self, catalog):
        assert resolve_prerequisites(catalog, "cs 201").code == "CS201"

    def test_unknown_root_raises(self, catalog):
        with pytest.raises(NotFoundError):
            resolve_prerequisites(catalog, "XX999")

    def test_course_without_prereqs_is_resolved_leaf(self, catalog):
        root = resolve_prerequisites(catalog, "CS101")
        assert root.children == []
        assert root.found and not root.cycle and not root.depth_limited

    def test_every_leaf_is_complete(self, catalog):
        for leaf in _leaves(resolve_prerequisites(catalog, "CS350")):
            assert leaf.kind in ("course", "raw")
            if leaf.kind == "course":
                assert (not leaf.found) or leaf.depth_limited or leaf.cycle or leaf.course.prerequisites is None

    def test_idempotent(self, catalog):
        assert resolve_prerequisites(catalog, "CS350") == resolve_prerequisites(catalog, "CS350")


class TestCycles:
    def test_two_course_cycle(self):
        catalog = Catalog([make_course("CS100", "CS200"), make_course("CS200", "CS100")])
        root = resolve_prerequisites(catalog, "CS100")
        assert root.cycle is False
        cs200 = root.children[0]
        assert cs200.code == "CS200" and cs200.cycle is False
        repeated = cs200.children[0]
        assert repeated.code == "CS100"
        assert repeated.cycle is True
        assert repeated.children == []

    def test_self_reference(self):
        catalog = Catalog([make_course("CS100", "CS100 or CS050"), make_course("CS050")])
        root = resolve_prerequisites(catalog, "CS100")
        assert root.children[0].cycle is True
        assert root.children[1].code == "CS050"

    def test_shared_prereq_on_separate_paths_is_not_a_cycle(self):
        catalog = Catalog(
            [
                make_course("CS100"),
                make_course("CS200", "CS100"),
                make_course("CS300", "CS100 and CS200"),
            ]
        )
        root = resolve_prerequisites(catalog, "CS300")
        assert not any(leaf.cycle for leaf in _leaves(root))


class TestDepthLimit:
    def _chain(self, length):
        courses = [make_course("CS100")]
        for i in range(1, length):
            courses.append(make_course(f"CS{100 + i}", f"CS{100 + i - 1}"))
        return Catalog(courses)

    def test_truncated_branch_is_flagged(self):
        catalog = self._chain(10)
        root = resolve_prerequisites(catalog, "CS109", max_depth=3)
        node = root
        for _ in range(3):
            node = node.children[0]
        assert node.code == "CS106"
        assert node.depth_limited is True
        assert node.children == []

    def test_zero_depth_limits_root_only(self):
        root = resolve_prerequisites(self._chain(3), "CS102", max_depth=0)
        assert root.depth_limited is True
        assert root.found is True

    def test_long_chain_within_default_limit(self):
        root = resolve_prerequisites(self._chain(40), "CS139")
        assert not any(leaf.depth_limited for leaf in _leaves(root))


class TestRawRequirement:
    def test_raw_leaf(self):
        catalog = Catalog([make_course("CS400", "Consent of instructor")])
        root = resolve_prerequisites(catalog, "CS400")
        assert root.children[0].kind == "raw"
        assert root.children[0].text == "Consent of instructor"


class TestEligibility:
    def test_satisfied(self, catalog):
        result = check_eligibility(catalog, "CS301", ["cs201", "MATH 210"])
        assert result.eligible is True
        assert result.missing == []

    def test_missing(self, catalog):
        result = check_eligibility(catalog, "CS301", ["CS201"])
        assert result.eligible is False
        assert result.missing == ["MATH210", "MATH220"]

    def test_no_prereqs(self, catalog):
        assert check_eligibility(catalog, "CS101", []).eligible is True

    def test_raw_needs_review(self):
        catalog = Catalog([make_course("CS400", "Consent of instructor")])
        result = check_eligibility(catalog, "CS400", [])
        assert result.eligible is False
        assert result.needs_review == ["Consent of instructor"]

    def test_unknown_course(self, catalog):
        with pytest.raises(NotFoundError):
            check_eligibility(catalog, "XX999", [])

import logging
from dataclasses import dataclass, field
from typing import Iterable

from app.core.errors import NotFoundError
from app.services.catalog import Catalog, Course
from app.services.prereq_parser import (
    AllOf,
    AnyOf,
    CourseTerm,
    EitherOf,
    PrereqExpr,
    RawRequirement,
    normalize_code,
    prereq_course_codes,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 50


@dataclass
class PrerequisiteNode:
    kind: str  # course / all / any / either / raw
    code: str | None = None
    course: Course | None = None
    found: bool = True
    requirement: str | None = None  # how a course node's children combine
    children: list["PrerequisiteNode"] = field(default_factory=list)
    cycle: bool = False
    depth_limited: bool = False
    text: str | None = None


@dataclass
class Eligibility:
    course_code: str
    eligible: bool
    missing: list[str]
    needs_review: list[str]


def resolve_prerequisites(
    catalog: Catalog, course_code: str, max_depth: int = DEFAULT_MAX_DEPTH
) -> PrerequisiteNode:
    """Expand ``course_code`` into its prerequisite tree.

    Cycles, unknown codes and depth truncation are marked on the affected
    nodes. Only an unknown root course raises.
    """
    root = catalog.get_course(course_code)
    if root is None:
        raise NotFoundError("Course", course_code)
    if max_depth < 0:
        raise ValueError("max_depth must be >= 0")
    return _expand_course(catalog, root.code, frozenset(), 0, max_depth)


def _expand_course(
    catalog: Catalog, code: str, path: frozenset[str], depth: int, max_depth: int
) -> PrerequisiteNode:
    course = catalog.get_course(code)
    if course is None:
        return PrerequisiteNode(kind="course", code=code, found=False)

    node = PrerequisiteNode(kind="course", code=course.code, course=course)
    if course.code in path:
        logger.debug("Prerequisite cycle at %s", course.code)
        node.cycle = True
        return node

    expr = course.prerequisites
    if expr is None:
        return node
    if depth >= max_depth:
        logger.debug("Depth limit %d reached at %s", max_depth, course.code)
        node.depth_limited = True
        return node

    on_path = path | {course.code}
    node.requirement, node.children = _group(catalog, expr, on_path, depth + 1, max_depth)
    return node


def _group(catalog, expr: PrereqExpr, path, depth, max_depth):
    # A course node's direct requirement; a lone term is an "all" of one.
    if isinstance(expr, AllOf):
        return "all", [_expand_expr(catalog, t, path, depth, max_depth) for t in expr.terms]
    if isinstance(expr, AnyOf):
        return "any", [_expand_expr(catalog, t, path, depth, max_depth) for t in expr.terms]
    if isinstance(expr, EitherOf):
        return "either", [_expand_expr(catalog, t, path, depth, max_depth) for t in expr.terms]
    if isinstance(expr, (CourseTerm, RawRequirement)):
        return "all", [_expand_expr(catalog, expr, path, depth, max_depth)]
    raise TypeError(f"Unknown prerequisite expression: {expr!r}")


def _expand_expr(catalog, expr: PrereqExpr, path, depth, max_depth) -> PrerequisiteNode:
    if isinstance(expr, CourseTerm):
        return _expand_course(catalog, expr.code, path, depth, max_depth)
    if isinstance(expr, RawRequirement):
        return PrerequisiteNode(kind="raw", text=expr.text)
    if isinstance(expr, (AllOf, AnyOf, EitherOf)):
        kind, children = _group(catalog, expr, path, depth, max_depth)
        return PrerequisiteNode(kind=kind, children=children)
    raise TypeError(f"Unknown prerequisite expression: {expr!r}")


def check_eligibility(catalog: Catalog, course_code: str, completed: Iterable[str]) -> Eligibility:
    """Whether the completed courses satisfy ``course_code``'s direct prerequisites."""
    course = catalog.get_course(course_code)
    if course is None:
        raise NotFoundError("Course", course_code)
    done = {code for code in (normalize_code(c) for c in completed) if code}
    expr = course.prerequisites
    review: list[str] = []
    eligible = _satisfied(expr, done, review) if expr is not None else True
    missing = []
    if not eligible:
        missing = [c for c in dict.fromkeys(prereq_course_codes(expr)) if c not in done]
    return Eligibility(
        course_code=course.code, eligible=eligible, missing=missing, needs_review=review
    )


def _satisfied(expr: PrereqExpr, done: set[str], review: list[str]) -> bool:
    if isinstance(expr, CourseTerm):
        return expr.code in done
    if isinstance(expr, RawRequirement):
        review.append(expr.text)
        return False
    if isinstance(expr, AllOf):
        results = [_satisfied(t, done, review) for t in expr.terms]
        return all(results)
    if isinstance(expr, (AnyOf, EitherOf)):
        results = [_satisfied(t, done, review) for t in expr.terms]
        return any(results)
    raise TypeError(f"Unknown prerequisite expression: {expr!r}")

from app.services.prereq_parser import (
    AllOf,
    AnyOf,
    CourseTerm,
    EitherOf,
    RawRequirement,
    expression_to_dict,
    normalize_code,
    parse_prereqs,
    prereq_course_codes,
)


class TestNormalizeCode:
    def test_variants(self):
        assert normalize_code("CS301") == "CS301"
        assert normalize_code("cs 301") == "CS301"
        assert normalize_code("CSCI-1230") == "CSCI1230"

    def test_not_a_code(self):
        assert normalize_code("Junior standing") is None
        assert normalize_code("") is None


class TestParsePrereqs:
    def test_none(self):
        assert parse_prereqs(None) is None
        assert parse_prereqs("None") is None
        assert parse_prereqs("  ") is None

    def test_single(self):
        assert parse_prereqs("CS 201") == CourseTerm("CS201")

    def test_and(self):
        assert parse_prereqs("CS201 and MATH210") == AllOf((CourseTerm("CS201"), CourseTerm("MATH210")))

    def test_semicolons_and_commas_are_and(self):
        result = parse_prereqs("CS101; CS102, CS103")
        assert result == AllOf((CourseTerm("CS101"), CourseTerm("CS102"), CourseTerm("CS103")))

    def test_or(self):
        assert parse_prereqs("CS201 or CS202") == AnyOf((CourseTerm("CS201"), CourseTerm("CS202")))

    def test_and_binds_tighter_than_or(self):
        result = parse_prereqs("CS101 and CS102 or CS103")
        assert result == AnyOf(
            (AllOf((CourseTerm("CS101"), CourseTerm("CS102"))), CourseTerm("CS103"))
        )

    def test_parentheses(self):
        result = parse_prereqs("CS201 and (MATH210 or MATH220)")
        assert result == AllOf(
            (CourseTerm("CS201"), AnyOf((CourseTerm("MATH210"), CourseTerm("MATH220"))))
        )

    def test_either(self):
        assert parse_prereqs("Either CS301 or CS320.") == EitherOf(
            (CourseTerm("CS301"), CourseTerm("CS320"))
        )

    def test_either_needs_two_alternatives(self):
        assert parse_prereqs("either CS301") == RawRequirement("either CS301")

    def test_free_text_kept_raw(self):
        assert parse_prereqs("Consent of instructor") == RawRequirement("Consent of instructor")

    def test_partially_readable_kept_raw(self):
        text = "CS201 with a grade of C or better"
        assert parse_prereqs(text) == RawRequirement(text)

    def test_unbalanced_parenthesis_kept_raw(self):
        assert isinstance(parse_prereqs("(CS201 or CS202"), RawRequirement)


class TestHelpers:
    def test_codes_in_order(self):
        expr = parse_prereqs("CS201 and (MATH210 or MATH220)")
        assert prereq_course_codes(expr) == ["CS201", "MATH210", "MATH220"]

    def test_raw_has_no_codes(self):
        assert prereq_course_codes(RawRequirement("Senior standing")) == []

    def test_to_dict(self):
        expr = parse_prereqs("either CS301 or Dept approval")
        assert expression_to_dict(expr) == {"type": "raw", "text": "either CS301 or Dept approval"}
        assert expression_to_dict(parse_prereqs("CS1 or CS101")) == {
            "type": "raw",
            "text": "CS1 or CS101",
        }
        assert expression_to_dict(parse_prereqs("CS101 or CS102")) == {
            "type": "any",
            "terms": [{"type": "course", "code": "CS101"}, {"type": "course", "code": "CS102"}],
        }

"""Tests for suggestion localization."""

from __future__ import annotations

from tfcompliance.suggestions.locator import LocatorConfig, SuggestionLocator, locate, snippet_lines
from tfcompliance.suggestions.models import LocatedSuggestion

from conftest import make_suggestion


def _security_group(name: str, port: int) -> list[str]:
    return [
        f'resource "aws_security_group_rule" "{name}" {{',
        '  type        = "ingress"',
        f"  from_port   = {port}",
        '  cidr_blocks = ["10.0.0.0/8"]',
        "}",
    ]


def _two_block_document() -> list[str]:
    lines = [f"# header {index}" for index in range(10)]
    lines += _security_group("web", 8080)
    lines += [f"# spacer {index}" for index in range(5)]
    lines += _security_group("web", 443)
    lines += ["# footer"]
    return lines


class TestExactMatch:
    def test_prefers_the_block_that_matches_fully(self) -> None:
        lines = _two_block_document()
        snippet = "\n".join(_security_group("web", 443))

        location = locate(lines, make_suggestion(original=snippet, line_number=1))

        assert (location.start_line, location.end_line, location.found) == (20, 24, True)
        assert location.strategy == "exact"

    def test_partial_match_still_qualifies_when_alone(self) -> None:
        lines = _two_block_document()[:16]
        snippet = "\n".join(_security_group("web", 443))

        location = locate(lines, make_suggestion(original=snippet))

        assert (location.start_line, location.end_line) == (10, 14)

    def test_indentation_is_ignored(self) -> None:
        lines = ["module \"x\" {", "      source  = \"./x\"", "      version = \"1.0\"", "}"]
        snippet = "source  = \"./x\"\n  version = \"1.0\"\n"

        location = locate(lines, make_suggestion(original=snippet, line_number=40))

        assert (location.start_line, location.end_line, location.found) == (1, 2, True)
        assert location.match_range.end.column == len(lines[2])

    def test_single_line_snippet(self, main_tf, public_acl_suggestion) -> None:
        location = locate(main_tf.split("\n"), public_acl_suggestion)

        assert (location.start_line, location.end_line) == (6, 6)

    def test_snippet_longer_than_document(self) -> None:
        locator = SuggestionLocator()
        assert locator.match_exact(["a"], "a\nb\nc") is None

    def test_snippet_lines_drop_blank_lines(self) -> None:
        assert snippet_lines("  a \n\n   \n b") == ["a", "b"]


class TestStructuralMatch:
    def test_matches_enclosing_resource_block(self) -> None:
        lines = [
            "# storage",
            'resource "aws_s3_bucket" "data" {',
            '  bucket = "data"',
            "  versioning {",
            "    enabled = false",
            "  }",
            "}",
        ]
        snippet = 'resource "aws_s3_bucket" "data" {\n  bucket = "data"\n  acl = "private"\n}'

        location = locate(lines, make_suggestion(original=snippet, line_number=99))

        assert location.strategy == "structural"
        assert (location.start_line, location.end_line, location.found) == (1, 6, True)

    def test_dissimilar_block_is_rejected(self) -> None:
        locator = SuggestionLocator()
        lines = ['resource "aws_s3_bucket" "data" {', "  alpha beta gamma delta epsilon zeta", "}"]
        snippet = 'resource "aws_s3_bucket" "data" {\n one two three four five six seven\n}'

        assert locator.match_structural(lines, snippet) is None


class TestFuzzyMatch:
    def test_whitespace_variants_are_found(self) -> None:
        lines = [
            'resource "aws_db_instance" "main" {',
            '  engine = "postgres"',
            "  storage_encrypted   =   false",
            "  publicly_accessible   =   true",
            "  kms_key_id   =   aws_kms_key.db.arn",
            "}",
        ]
        snippet = (
            "storage_encrypted = false\n"
            "publicly_accessible = true\n"
            "kms_key_id = aws_kms_key.db.arn"
        )

        location = locate(lines, make_suggestion(original=snippet, line_number=1))

        assert location.strategy == "fuzzy"
        assert (location.start_line, location.end_line, location.found) == (2, 4, True)

    def test_threshold_blocks_weak_windows(self) -> None:
        locator = SuggestionLocator(LocatorConfig(fuzzy_threshold=1_000.0))
        assert locator.match_fuzzy(["a = 1", "b = 2"], "a = 1\nb = 2") is None


class TestInsertionAndFallback:
    def test_new_block_goes_after_last_block(self, main_tf) -> None:
        suggestion = make_suggestion(
            suggested='resource "aws_s3_bucket_public_access_block" "logs" {\n}',
            line_number=2,
        )

        location = locate(main_tf.split("\n"), suggestion)

        assert location.strategy == "insertion"
        assert location.found is True
        assert (location.start_line, location.end_line) == (13, 13)
        assert location.match_range.is_caret

    def test_plain_insertion_uses_clamped_hint(self, main_tf) -> None:
        lines = main_tf.split("\n")

        assert locate(lines, make_suggestion(suggested="# note", line_number=3)).start_line == 2
        assert locate(lines, make_suggestion(suggested="# note", line_number=500)).start_line == len(lines)

    def test_whitespace_only_original_is_an_insertion(self) -> None:
        location = locate(["a", "b"], make_suggestion(original="  \n ", suggested="c", line_number=2))
        assert location.strategy == "insertion"
        assert location.start_line == 1

    def test_unmatched_snippet_falls_back_to_hint(self, main_tf) -> None:
        lines = main_tf.split("\n")
        suggestion = make_suggestion(original="zzz qqq\nxxx yyy", line_number=500)

        location = locate(lines, suggestion)

        assert location.found is False
        assert location.strategy == "fallback"
        assert (location.start_line, location.end_line) == (12, 12)

    def test_fallback_on_empty_document(self) -> None:
        location = locate([""], make_suggestion(original="zzz", line_number=7))

        assert (location.start_line, location.found) == (0, False)
        assert location.match_range.end.column == 0


class TestLocatedSuggestion:
    def test_found_location_corrects_line_number(self, main_tf, public_acl_suggestion) -> None:
        [located] = SuggestionLocator().locate_all(main_tf.split("\n"), [public_acl_suggestion])

        assert located.line_number == 7
        assert located.raw.line_number == 3
        assert located.matches(public_acl_suggestion)
        assert located.matches(public_acl_suggestion.with_line_number(7))

    def test_fallback_keeps_original_line_number(self) -> None:
        suggestion = make_suggestion(original="zzz", line_number=4)
        located = LocatedSuggestion.build(suggestion, locate(["a"], suggestion))

        assert located.suggestion is suggestion
        assert located.found is False

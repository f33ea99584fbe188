"""Tests for prompt building and response parsing."""

import json

import pytest

from conftest import comments_response


class TestParseFindingsResponse:
    """Tests for parse_findings_response."""

    def test_parses_comments(self):
        from history_reviewer.models.findings import Severity
        from history_reviewer.prompts import parse_findings_response

        content = comments_response(
            {"file": "src/auth.rs", "line": 21, "severity": "bug", "message": "unwrap panics", "confidence": 95},
            {"file": "src/auth.rs", "line": None, "severity": "suggestion", "message": "extract helper"},
        )
        findings = parse_findings_response(content)

        assert len(findings) == 2
        assert findings[0].severity is Severity.BUG
        assert findings[0].confidence == 0.95
        assert findings[1].line is None
        assert findings[1].confidence == 0.5

    def test_strips_code_fences(self):
        from history_reviewer.prompts import parse_findings_response

        content = "```json\n" + comments_response(
            {"file": "a.py", "line": 1, "severity": "warning", "message": "m"}
        ) + "\n```"

        assert len(parse_findings_response(content)) == 1

    def test_accepts_findings_key(self):
        from history_reviewer.prompts import parse_findings_response

        content = json.dumps({"findings": [{"file": "a.py", "line": 2, "severity": "info", "message": "m"}]})

        assert parse_findings_response(content)[0].line == 2

    def test_skips_invalid_entries(self):
        from history_reviewer.prompts import parse_findings_response

        content = comments_response(
            {"file": "a.py", "line": 0, "severity": "bug", "message": "zero line"},
            {"file": "a.py", "line": 3, "severity": "critical", "message": "unknown severity"},
            {"file": "", "line": 3, "severity": "bug", "message": "no file"},
            {"file": "a.py", "line": "7", "severity": "bug", "message": "string line"},
            {"file": "a.py", "line": 4, "severity": "bug", "message": "kept"},
        )

        assert [f.message for f in parse_findings_response(content)] == ["kept"]

    def test_non_json_raises(self):
        from history_reviewer.prompts import parse_findings_response

        with pytest.raises(ValueError):
            parse_findings_response("I could not find any issues.")


class TestParseReflectionResponse:
    """Tests for parse_reflection_response."""

    def test_full_reply(self):
        from history_reviewer.models.findings import Severity
        from history_reviewer.prompts import parse_reflection_response

        content = json.dumps({"evaluations": [{"index": 0, "score": 9}, {"index": 1, "score": 4, "severity": "info"}]})
        evaluations, ambiguous = parse_reflection_response(content, 2)

        assert not ambiguous
        assert evaluations[0].score == 9
        assert evaluations[1].severity is Severity.INFO

    def test_missing_index_is_ambiguous(self):
        from history_reviewer.prompts import parse_reflection_response

        evaluations, ambiguous = parse_reflection_response(json.dumps({"evaluations": [{"index": 0, "score": 9}]}), 2)

        assert ambiguous
        assert set(evaluations) == {0}

    def test_duplicate_and_out_of_range_are_discarded(self):
        from history_reviewer.prompts import parse_reflection_response

        content = json.dumps(
            {
                "evaluations": [
                    {"index": 0, "score": 9},
                    {"index": 0, "score": 2},
                    {"index": 1, "score": 8},
                    {"index": 5, "score": 1},
                ]
            }
        )
        evaluations, ambiguous = parse_reflection_response(content, 2)

        assert ambiguous
        assert set(evaluations) == {1}

    @pytest.mark.parametrize("score", ["NaN", "Infinity", "-Infinity", "0", "11", "10.5"])
    def test_non_finite_or_out_of_scale_scores_are_discarded(self, score):
        from history_reviewer.prompts import parse_reflection_response

        content = '{"evaluations": [{"index": 0, "score": %s}, {"index": 1, "score": 8}]}' % score
        evaluations, ambiguous = parse_reflection_response(content, 2)

        assert ambiguous
        assert set(evaluations) == {1}

    def test_scale_bounds_are_accepted(self):
        from history_reviewer.prompts import parse_reflection_response

        content = json.dumps({"evaluations": [{"index": 0, "score": 1}, {"index": 1, "score": 10.0}]})
        evaluations, ambiguous = parse_reflection_response(content, 2)

        assert not ambiguous
        assert evaluations[0].score == 1
        assert evaluations[1].score == 10

    def test_unreadable_raises(self):
        from history_reviewer.errors import ReflectionAmbiguous
        from history_reviewer.prompts import parse_reflection_response

        with pytest.raises(ReflectionAmbiguous):
            parse_reflection_response("not json", 1)
        with pytest.raises(ReflectionAmbiguous):
            parse_reflection_response(json.dumps({"scores": [9]}), 1)


class TestPromptBuilding:
    """Tests for the prompt builders."""

    def test_review_prompt_includes_history_and_cross_file_note(self, sample_multi_file_diff):
        from history_reviewer.models.context import ReviewRequest
        from history_reviewer.prompts import build_review_prompt

        request = ReviewRequest(diff=sample_multi_file_diff, custom_instructions="Focus on SQL.")
        prompt = build_review_prompt(request, "### Hotspots (highest change risk)\n- auth/login.py")

        assert "## Git History Context" in prompt
        assert "Focus on SQL." in prompt
        assert "cross-file issues" in prompt
        assert prompt.index("## Git History Context") < prompt.index("```diff")

    def test_system_prompt_lists_noisy_examples(self):
        from history_reviewer.prompts import build_system_prompt

        prompt = build_system_prompt(max_findings=3, noisy_examples=["consider adding a docstring"])

        assert "Maximum 3 comments" in prompt
        assert "- consider adding a docstring" in prompt

    def test_reflection_prompt_numbers_findings(self):
        from history_reviewer.models.findings import Finding, Severity
        from history_reviewer.prompts import build_reflection_prompt

        findings = [
            Finding(file_path="a.py", line=3, severity=Severity.BUG, message="first"),
            Finding(file_path="b.py", line=None, severity=Severity.INFO, message="second"),
        ]
        prompt = build_reflection_prompt(findings, "diff")

        assert "0. a.py:3 [bug] first" in prompt
        assert "1. b.py [info] second" in prompt

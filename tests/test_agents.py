"""Tests for the generation and self-reflection stages."""

import pytest

from conftest import comments_response, evaluations_response, large_two_file_diff, scripted_client


def _findings(count):
    from history_reviewer.models.findings import Finding, Severity

    return [
        Finding(file_path="src/auth.rs", line=10 + i * 10, severity=Severity.WARNING, message=f"issue number {i}")
        for i in range(count)
    ]


class TestFindingGenerator:
    """Tests for FindingGenerator."""

    @pytest.mark.asyncio
    async def test_generate_parses_reply(self, sample_auth_diff):
        from history_reviewer.agents import FindingGenerator
        from history_reviewer.models.context import ReviewRequest
        from history_reviewer.providers.retry import RetryTelemetry

        client, provider = scripted_client(
            [comments_response({"file": "src/auth.rs", "line": 21, "severity": "bug", "message": "unwrap panics"})]
        )
        telemetry = RetryTelemetry()

        output = await FindingGenerator(client).generate(
            ReviewRequest(diff=sample_auth_diff), telemetry, history_text="- src/auth.rs: HOTSPOT 1.00"
        )

        assert len(output.findings) == 1
        assert output.warnings == []
        assert telemetry.provider_calls == 1
        assert "HOTSPOT 1.00" in provider.prompts[0].user

    @pytest.mark.asyncio
    async def test_unparseable_reply_yields_warning(self, sample_auth_diff):
        from history_reviewer.agents import FindingGenerator
        from history_reviewer.models.context import ReviewRequest
        from history_reviewer.providers.retry import RetryTelemetry

        client, _ = scripted_client(["Sorry, I cannot help with that."])

        output = await FindingGenerator(client).generate(ReviewRequest(diff=sample_auth_diff), RetryTelemetry())

        assert output.findings == []
        assert "Failed to parse generation response" in output.warnings[0]

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, sample_auth_diff):
        from history_reviewer.agents import FindingGenerator
        from history_reviewer.errors import ProviderRejected
        from history_reviewer.models.context import ReviewRequest
        from history_reviewer.providers.retry import RetryTelemetry

        client, _ = scripted_client([ProviderRejected("HTTP 401", status_code=401)])

        with pytest.raises(ProviderRejected):
            await FindingGenerator(client).generate(ReviewRequest(diff=sample_auth_diff), RetryTelemetry())

    @pytest.mark.asyncio
    async def test_truncated_diff_names_cut_files(self):
        from history_reviewer.agents import FindingGenerator
        from history_reviewer.models.context import ReviewRequest
        from history_reviewer.providers.retry import RetryTelemetry

        client, provider = scripted_client([comments_response()])

        output = await FindingGenerator(client, max_diff_chars=50000).generate(
            ReviewRequest(diff=large_two_file_diff()), RetryTelemetry()
        )

        assert "SECRET_BUG" not in provider.prompts[0].user
        assert len(output.warnings) == 1
        assert "Diff truncated at 50000 characters" in output.warnings[0]
        assert output.warnings[0].endswith("a.py, z.py")


class TestSelfReflectionFilter:
    """Tests for SelfReflectionFilter."""

    @pytest.mark.asyncio
    async def test_scenario_c_threshold_seven(self):
        """Scores [9, 8, 3, 7, 2] at threshold 7 keep the 9, 8 and 7."""
        from history_reviewer.agents import SelfReflectionFilter
        from history_reviewer.providers.retry import RetryTelemetry

        findings = _findings(5)
        client, provider = scripted_client([evaluations_response([9, 8, 3, 7, 2])])

        outcome = await SelfReflectionFilter(client, threshold=7).reflect(findings, "diff", RetryTelemetry())

        assert [f.message for f in outcome.kept] == ["issue number 0", "issue number 1", "issue number 3"]
        assert outcome.dropped == 2
        assert not outcome.ambiguous
        assert len(provider.prompts) == 1

    @pytest.mark.asyncio
    async def test_revised_severity_records_provenance(self):
        from history_reviewer.agents import SelfReflectionFilter
        from history_reviewer.models.findings import Severity
        from history_reviewer.providers.retry import RetryTelemetry

        client, _ = scripted_client([evaluations_response([9], severities={0: "bug"})])

        outcome = await SelfReflectionFilter(client).reflect(_findings(1), "diff", RetryTelemetry())

        assert outcome.kept[0].severity is Severity.BUG
        assert outcome.kept[0].provenance == ["generate", "reflect"]

    @pytest.mark.asyncio
    async def test_unreadable_reply_keeps_everything(self):
        from history_reviewer.agents import SelfReflectionFilter
        from history_reviewer.providers.retry import RetryTelemetry

        findings = _findings(3)
        client, _ = scripted_client(["these all look fine"])

        outcome = await SelfReflectionFilter(client).reflect(findings, "diff", RetryTelemetry())

        assert outcome.kept == findings
        assert outcome.ambiguous
        assert outcome.warnings

    @pytest.mark.asyncio
    async def test_partial_reply_keeps_unscored(self):
        from history_reviewer.agents import SelfReflectionFilter
        from history_reviewer.providers.retry import RetryTelemetry

        findings = _findings(3)
        client, _ = scripted_client(['{"evaluations": [{"index": 0, "score": 2}]}'])

        outcome = await SelfReflectionFilter(client).reflect(findings, "diff", RetryTelemetry())

        assert [f.message for f in outcome.kept] == ["issue number 1", "issue number 2"]
        assert outcome.dropped == 1
        assert outcome.ambiguous

    @pytest.mark.asyncio
    async def test_provider_failure_keeps_everything(self):
        from history_reviewer.agents import SelfReflectionFilter
        from history_reviewer.errors import ProviderError
        from history_reviewer.providers.retry import RetryTelemetry

        findings = _findings(2)
        client, _ = scripted_client([ProviderError("HTTP 500")])

        outcome = await SelfReflectionFilter(client).reflect(findings, "diff", RetryTelemetry())

        assert outcome.kept == findings
        assert outcome.ambiguous

    @pytest.mark.asyncio
    async def test_no_findings_makes_no_call(self):
        from history_reviewer.agents import SelfReflectionFilter
        from history_reviewer.providers.retry import RetryTelemetry

        client, provider = scripted_client([])

        outcome = await SelfReflectionFilter(client).reflect([], "diff", RetryTelemetry())

        assert outcome.kept == []
        assert provider.prompts == []

    @pytest.mark.asyncio
    async def test_per_finding_threshold(self):
        from history_reviewer.agents import SelfReflectionFilter
        from history_reviewer.providers.retry import RetryTelemetry

        findings = _findings(2)
        client, _ = scripted_client([evaluations_response([8, 8])])

        def threshold_for(finding):
            return 9 if finding.message == "issue number 1" else 7

        outcome = await SelfReflectionFilter(client).reflect(findings, "diff", RetryTelemetry(), threshold_for)

        assert [f.message for f in outcome.kept] == ["issue number 0"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("score", range(1, 11))
    async def test_every_score_against_threshold_seven(self, score):
        from history_reviewer.agents import SelfReflectionFilter
        from history_reviewer.providers.retry import RetryTelemetry

        findings = _findings(1)
        client, _ = scripted_client([evaluations_response([score])])

        outcome = await SelfReflectionFilter(client, threshold=7).reflect(findings, "diff", RetryTelemetry())

        assert len(outcome.kept) == (1 if score >= 7 else 0)
        assert outcome.dropped == (0 if score >= 7 else 1)
        assert not outcome.ambiguous

    @pytest.mark.asyncio
    async def test_rejection_propagates(self):
        from history_reviewer.agents import SelfReflectionFilter
        from history_reviewer.errors import ProviderRejected
        from history_reviewer.providers.retry import RetryTelemetry

        client, _ = scripted_client([ProviderRejected("HTTP 401", status_code=401)])
        telemetry = RetryTelemetry()

        with pytest.raises(ProviderRejected):
            await SelfReflectionFilter(client).reflect(_findings(2), "diff", telemetry)

        assert telemetry.provider_calls == 1

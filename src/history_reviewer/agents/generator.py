"""Finding generation: the first provider pass over the diff."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from history_reviewer.agents.base import ProviderAgent
from history_reviewer.models.context import ReviewRequest
from history_reviewer.models.findings import Finding
from history_reviewer.prompts import (
    DIFF_MAX_CHARS,
    build_review_prompt,
    build_system_prompt,
    parse_findings_response,
)
from history_reviewer.providers.base import Prompt, ProviderClient
from history_reviewer.providers.retry import RetryTelemetry

logger = logging.getLogger(__name__)


@dataclass
class GenerationOutput:
    findings: list[Finding]
    warnings: list[str] = field(default_factory=list)


def truncated_files(request: ReviewRequest, max_chars: int) -> list[str]:
    """Files whose diff text extends past ``max_chars``."""
    cut: list[str] = []
    offset = 0
    for file_diff in request.file_diffs:
        if offset + len(file_diff.text) > max_chars:
            cut.append(file_diff.path)
        offset += len(file_diff.text)
    return cut


class FindingGenerator(ProviderAgent):
    """Produces raw findings from diff, collaborator context and history."""

    AGENT_TYPE = "generate"

    def __init__(
        self,
        client: ProviderClient,
        max_findings: int = 10,
        max_diff_chars: int = DIFF_MAX_CHARS,
    ) -> None:
        super().__init__(client)
        self.max_findings = max_findings
        self.max_diff_chars = max_diff_chars

    def build_prompt(
        self,
        request: ReviewRequest,
        history_text: str = "",
        noisy_examples: Sequence[str] = (),
    ) -> Prompt:
        return Prompt(
            system=build_system_prompt(self.max_findings, noisy_examples),
            user=build_review_prompt(request, history_text, max_diff_chars=self.max_diff_chars),
        )

    async def generate(
        self,
        request: ReviewRequest,
        telemetry: RetryTelemetry,
        history_text: str = "",
        noisy_examples: Sequence[str] = (),
    ) -> GenerationOutput:
        """Run the generation call.

        An unreadable reply yields no findings and a warning; provider
        failures propagate to the caller. A diff longer than
        ``max_diff_chars`` is cut, and the warning names the files that
        were not fully sent.

        Args:
            request: Diff and opaque collaborator context
            telemetry: Per-run provider counters
            history_text: Rendered history context
            noisy_examples: Patterns users marked as noise

        Returns:
            Parsed findings plus any warnings

        Raises:
            ProviderError: If the provider call fails after retries
        """
        warnings: list[str] = []
        if len(request.diff) > self.max_diff_chars:
            cut = truncated_files(request, self.max_diff_chars) or ["(unknown file)"]
            message = (
                f"Diff truncated at {self.max_diff_chars} characters; "
                f"not fully reviewed: {', '.join(cut)}"
            )
            logger.warning(message)
            warnings.append(message)

        prompt = self.build_prompt(request, history_text, noisy_examples)
        content = await self._complete(prompt, telemetry)

        try:
            findings = parse_findings_response(content)
        except ValueError as e:
            message = f"Failed to parse generation response: {e}"
            logger.warning(message)
            return GenerationOutput(findings=[], warnings=[*warnings, message])

        logger.info(f"Generated {len(findings)} findings")
        return GenerationOutput(findings=findings, warnings=warnings)

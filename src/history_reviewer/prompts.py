"""Prompt text and response parsing for generation and self-reflection.

Severity semantics (embedded in the system prompt):
- bug: will produce incorrect behavior in a concrete scenario.
- warning: could produce incorrect behavior under specific conditions.
- suggestion: improvement that doesn't affect correctness.
- info: observation only.
"""

import json
import logging
import math
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from history_reviewer.errors import ReflectionAmbiguous
from history_reviewer.models.context import ReviewRequest
from history_reviewer.models.findings import Finding, Severity

logger = logging.getLogger(__name__)

DIFF_MAX_CHARS = 50000
MIN_SCORE = 1
MAX_SCORE = 10
_REFLECTION_DIFF_MAX_CHARS = 15000


def build_system_prompt(max_findings: int = 10, noisy_examples: Sequence[str] = ()) -> str:
    """System prompt for the generation call."""
    prompt = f"""You are an expert code reviewer specializing in detecting genuine defects in code changes.

RULES:
1. Only comment on issues you are CERTAIN about. If confidence is below 90%, do not include it.
2. Reference EXACT line numbers from the new side of the diff.
3. Do NOT speculate about code behavior you cannot verify from the diff and the context given.
4. Do NOT comment on style, formatting, naming conventions, missing comments or documentation.
5. Focus on bugs, security vulnerabilities, logic errors, race conditions, resource leaks, null dereferences and off-by-one errors.
6. For each issue, explain WHY it's a problem with a concrete scenario.
7. Use the git history context: files marked HOTSPOT, files that usually change together and knowledge silos deserve extra scrutiny.
8. Maximum {max_findings} comments. Prioritize by severity (bug > warning > suggestion).

SEVERITY DEFINITIONS:
- bug: Code that WILL produce incorrect behavior in a concrete scenario you can describe
- warning: Code that COULD produce incorrect behavior under specific conditions
- suggestion: Improvement that doesn't affect correctness
- info: Observation only

Respond with a single JSON object, no markdown fences:
{{"comments": [
  {{
    "file": "exact/path/from/diff.py",
    "line": 42,
    "severity": "bug|warning|suggestion|info",
    "message": "Concrete explanation with scenario",
    "confidence": 95,
    "suggestion": "Optional concrete fix",
    "patch": "Optional replacement code"
  }}
]}}

If you find no issues worth reporting, return: {{"comments": []}}"""

    if noisy_examples:
        examples = "\n".join(f"- {example}" for example in noisy_examples)
        prompt += (
            "\n\n## Comments reviewers marked as not useful\n"
            "Do NOT report comments like these:\n" + examples
        )
    return prompt


def build_review_prompt(
    request: ReviewRequest,
    history_text: str = "",
    max_diff_chars: int = DIFF_MAX_CHARS,
) -> str:
    """User prompt: collaborator context, history context, then the diff.

    The diff is cut at ``max_diff_chars``; callers split oversized diffs
    before they get here and warn about anything still cut off.
    """
    parts = []
    context = request.to_prompt_context()
    if context:
        parts.append(context)
    if history_text:
        parts.append("## Git History Context\n" + history_text.rstrip() + "\n")
    parts.append(f"Review the following code changes:\n\n```diff\n{request.diff[:max_diff_chars]}\n```\n")
    if len(request.changed_files) > 1:
        parts.append(
            "IMPORTANT: These files are part of the same change and may be related.\n"
            "Look for cross-file issues: signature changes not reflected in callers, "
            "inconsistent error handling and missing updates in related files.\n"
        )
    return "\n".join(parts)


REFLECTION_SYSTEM_PROMPT = (
    "You are a senior code reviewer evaluating AI-generated review comments. "
    "Be critical: only high-quality, verifiable issues should pass."
)


def build_reflection_prompt(findings: Sequence[Finding], diff: str) -> str:
    """Ask for a 1-10 score (and optional revised severity) per finding."""
    lines = []
    for i, f in enumerate(findings):
        location = f"{f.file_path}:{f.line}" if f.line else f.file_path
        lines.append(f"{i}. {location} [{f.severity.value}] {f.message}")
    findings_text = "\n".join(lines)

    return f"""Evaluate each review comment below against the diff.

## Code diff
```diff
{diff[:_REFLECTION_DIFF_MAX_CHARS]}
```

## Comments
{findings_text}

For each comment give:
- "index": the comment number from the list
- "score": integer 1-10 (10 = certainly a real, actionable issue; 1 = false positive or noise)
- "severity": optional corrected severity (bug|warning|suggestion|info) if the original is wrong

Respond with a single JSON object, no markdown fences:
{{"evaluations": [{{"index": 0, "score": 8, "severity": "warning"}}]}}

Include every comment index exactly once."""


def strip_code_fences(content: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    content = content.strip()
    if "```json" in content:
        match = re.search(r"```json\s*([\s\S]*?)```", content)
        if match:
            return match.group(1).strip()
    elif "```" in content:
        match = re.search(r"```\s*([\s\S]*?)```", content)
        if match:
            return match.group(1).strip()
    return content


def _load_object(content: str, key: str) -> dict[str, Any]:
    content = strip_code_fences(content)
    json_match = re.search(r'\{[\s\S]*"' + key + r'"[\s\S]*\}', content)
    if json_match:
        content = json_match.group(0)
    data = json.loads(content)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def _parse_confidence(value: Any) -> float:
    """Accept 0-1 or 0-100 scales; default to 0.5 when missing."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.5
    value = float(value)
    if value > 1.0:
        value /= 100.0
    return min(1.0, max(0.0, value))


def parse_findings_response(content: str) -> list[Finding]:
    """Parse a generation reply into findings.

    Entries missing a file, message or valid severity are skipped. A line of 0
    or a non-integer line drops the entry.

    Raises:
        ValueError: If the reply is not a JSON object with a findings list
    """
    data = _load_object(content, "comments")
    raw_findings = data.get("comments", data.get("findings"))
    if not isinstance(raw_findings, list):
        raise ValueError("response has no 'comments' list")

    findings = []
    for raw in raw_findings:
        if not isinstance(raw, dict):
            continue
        try:
            line = raw.get("line")
            if line is not None:
                if isinstance(line, bool) or not isinstance(line, int) or line < 1:
                    raise ValueError(f"invalid line {line!r}")
            findings.append(
                Finding(
                    file_path=str(raw.get("file") or raw.get("file_path") or ""),
                    line=line,
                    severity=Severity.parse(raw["severity"]),
                    message=str(raw["message"]).strip(),
                    confidence=_parse_confidence(raw.get("confidence")),
                    suggestion=raw.get("suggestion") or None,
                    patch=raw.get("patch") or None,
                )
            )
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Failed to parse finding: {e}, raw: {raw}")
            continue

    return [f for f in findings if f.message]


@dataclass(frozen=True)
class Evaluation:
    """One reflection verdict."""

    index: int
    score: int
    severity: Severity | None = None


def parse_reflection_response(content: str, count: int) -> tuple[dict[int, Evaluation], bool]:
    """Parse a reflection reply into verdicts keyed by finding index.

    Entries that are out of range, duplicated or lack a finite score
    between 1 and 10 are discarded, as is an unknown revised severity.
    Any such discard, or a finding left without a verdict, marks the
    reply as ambiguous.

    Returns:
        (evaluations, ambiguous)

    Raises:
        ReflectionAmbiguous: If the reply cannot be read at all
    """
    try:
        data = _load_object(content, "evaluations")
    except (json.JSONDecodeError, ValueError) as e:
        raise ReflectionAmbiguous(f"unreadable reflection response: {e}") from e

    raw_evaluations = data.get("evaluations")
    if not isinstance(raw_evaluations, list):
        raise ReflectionAmbiguous("reflection response has no 'evaluations' list")

    evaluations: dict[int, Evaluation] = {}
    duplicates: set[int] = set()
    ambiguous = False

    for raw in raw_evaluations:
        if not isinstance(raw, dict):
            ambiguous = True
            continue
        index = raw.get("index")
        score = raw.get("score")
        if (
            isinstance(index, bool)
            or not isinstance(index, int)
            or not 0 <= index < count
            or isinstance(score, bool)
            or not isinstance(score, (int, float))
            or not math.isfinite(score)
            or not MIN_SCORE <= score <= MAX_SCORE
        ):
            ambiguous = True
            continue
        if index in evaluations:
            duplicates.add(index)
            continue

        severity = None
        if raw.get("severity"):
            try:
                severity = Severity.parse(raw["severity"])
            except ValueError:
                ambiguous = True
        evaluations[index] = Evaluation(index=index, score=int(score), severity=severity)

    # Conflicting verdicts for one finding cannot be trusted either way
    for index in duplicates:
        evaluations.pop(index, None)
        ambiguous = True

    if len(evaluations) < count:
        ambiguous = True

    return evaluations, ambiguous

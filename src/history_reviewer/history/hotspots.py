"""Hotspot scoring: which files carry the most historical change risk."""

import logging
from collections.abc import Mapping, Sequence

from history_reviewer.models.history import CommitRecord, FileChurn

logger = logging.getLogger(__name__)

REVISIONS_WEIGHT = 0.5
RELATIVE_CHURN_WEIGHT = 0.3
LOC_WEIGHT = 0.2


def _min_max(values: Sequence[float]) -> list[float]:
    """Min-max normalize into [0, 1].

    A degenerate range maps every value to 1.0 (or 0.0 when all are zero) so
    identical inputs always produce identical outputs.
    """
    if not values:
        return []
    lo, hi = min(values), max(values)
    if hi == lo:
        return [1.0 if hi > 0 else 0.0 for _ in values]
    span = hi - lo
    return [(v - lo) / span for v in values]


def detect_hotspots(
    commits: Sequence[CommitRecord],
    line_counts: Mapping[str, int],
) -> list[FileChurn]:
    """Rank files by ``0.5*revisions + 0.3*relative_churn + 0.2*loc`` (all normalized).

    Args:
        commits: Commit records in the analysis window
        line_counts: Current line count for every file present on disk; files
            missing from this mapping cannot be reviewed and are excluded

    Returns:
        Hotspots sorted by descending score, ties broken by path
    """
    if not commits:
        return []

    revisions: dict[str, int] = {}
    churn: dict[str, int] = {}
    authors: dict[str, set[str]] = {}
    last_modified: dict[str, int] = {}

    for commit in commits:
        seen: set[str] = set()
        for change in commit.files:
            path = change.path
            churn[path] = churn.get(path, 0) + change.churn
            if path in seen:
                continue
            seen.add(path)
            revisions[path] = revisions.get(path, 0) + 1
            authors.setdefault(path, set()).add(commit.author)
            last_modified[path] = max(last_modified.get(path, 0), commit.timestamp)

    candidates: list[FileChurn] = []
    for path in sorted(revisions):
        if path not in line_counts:
            continue
        loc = line_counts[path]
        total_churn = churn.get(path, 0)
        # Zero-size files contribute churn only
        relative = total_churn / loc if loc > 0 else float(total_churn)
        candidates.append(
            FileChurn(
                path=path,
                revisions=revisions[path],
                churn=total_churn,
                current_loc=loc,
                relative_churn=relative,
                authors=len(authors.get(path, ())),
                last_modified=last_modified.get(path, 0),
            )
        )

    if not candidates:
        return []

    norm_revisions = _min_max([float(c.revisions) for c in candidates])
    norm_churn = _min_max([c.relative_churn for c in candidates])
    norm_loc = _min_max([float(c.current_loc or 0) for c in candidates])

    for candidate, rev, rel, loc in zip(candidates, norm_revisions, norm_churn, norm_loc):
        candidate.score = (
            REVISIONS_WEIGHT * rev + RELATIVE_CHURN_WEIGHT * rel + LOC_WEIGHT * loc
        )

    candidates.sort(key=lambda c: (-c.score, c.path))
    logger.debug(f"Scored {len(candidates)} hotspot candidates")
    return candidates

"""Temporal coupling: files that change together more than they should."""

from collections.abc import Sequence

from history_reviewer.models.history import CommitRecord, CouplingPair


def canonical_pair(a: str, b: str) -> tuple[str, str]:
    """Order a pair lexicographically so (A, B) and (B, A) share one key."""
    return (a, b) if a <= b else (b, a)


def count_changes(commits: Sequence[CommitRecord]) -> tuple[dict[str, int], dict[tuple[str, str], int]]:
    """Per-file change counts and per-pair co-change counts."""
    file_changes: dict[str, int] = {}
    co_changes: dict[tuple[str, str], int] = {}

    for commit in commits:
        paths = commit.paths
        for path in paths:
            file_changes[path] = file_changes.get(path, 0) + 1
        for i in range(len(paths)):
            for j in range(i + 1, len(paths)):
                key = canonical_pair(paths[i], paths[j])
                co_changes[key] = co_changes.get(key, 0) + 1

    return file_changes, co_changes


def detect_coupling(
    commits: Sequence[CommitRecord],
    min_ratio: float = 0.3,
    min_co_changes: int = 3,
) -> list[CouplingPair]:
    """Find coupled file pairs.

    The ratio divides by the *smaller* change count, so a rarely changed file
    that always moves with a busy one still reads as strongly coupled.

    Args:
        commits: Commit records in the analysis window
        min_ratio: Drop pairs whose ratio is below this
        min_co_changes: Drop pairs seen together fewer times than this

    Returns:
        Pairs sorted by descending ratio, ties broken by pair key
    """
    file_changes, co_changes = count_changes(commits)

    pairs = []
    for (file_a, file_b), co_count in co_changes.items():
        if co_count < min_co_changes:
            continue
        pair = CouplingPair(
            file_a=file_a,
            file_b=file_b,
            co_changes=co_count,
            changes_a=file_changes.get(file_a, 0),
            changes_b=file_changes.get(file_b, 0),
        )
        if pair.ratio < min_ratio:
            continue
        pairs.append(pair)

    pairs.sort(key=lambda p: (-p.ratio, p.key))
    return pairs


def coupling_ratio(commits: Sequence[CommitRecord], a: str, b: str) -> float:
    """Coupling ratio of a single pair (0.0 when they never co-change)."""
    file_changes, co_changes = count_changes(commits)
    key = canonical_pair(a, b)
    pair = CouplingPair(
        file_a=key[0],
        file_b=key[1],
        co_changes=co_changes.get(key, 0),
        changes_a=file_changes.get(key[0], 0),
        changes_b=file_changes.get(key[1], 0),
    )
    return pair.ratio

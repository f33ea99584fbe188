"""Knowledge silo and bus factor analysis."""

import logging
from collections.abc import Mapping, Sequence

from history_reviewer.models.history import (
    SIGNIFICANT_SHARE,
    BusFactorResult,
    CommitRecord,
    OwnershipProfile,
    OwnershipSummary,
)

logger = logging.getLogger(__name__)


def build_profiles(commits: Sequence[CommitRecord]) -> list[OwnershipProfile]:
    """Per-file author change counts, sorted by dominant ratio then path."""
    tables: dict[str, dict[str, int]] = {}
    for commit in commits:
        for path in commit.paths:
            authors = tables.setdefault(path, {})
            authors[commit.author] = authors.get(commit.author, 0) + 1

    profiles = [OwnershipProfile(path=path, changes=dict(authors)) for path, authors in tables.items()]
    profiles.sort(key=lambda p: (-p.dominant_ratio, p.path))
    return profiles


def _orphaned(
    shares: Mapping[str, Mapping[str, float]], removed: frozenset[str]
) -> int:
    """Tracked files with no remaining author above the significance share."""
    return sum(
        1
        for file_shares in shares.values()
        if not any(s > SIGNIFICANT_SHARE and a not in removed for a, s in file_shares.items())
    )


def _top_remaining_author(
    shares: Mapping[str, Mapping[str, float]], removed: frozenset[str]
) -> str | None:
    totals: dict[str, float] = {}
    for file_shares in shares.values():
        for author, share in file_shares.items():
            if author not in removed:
                totals[author] = totals.get(author, 0.0) + share
    if not totals:
        return None
    return min(totals.items(), key=lambda item: (-item[1], item[0]))[0]


def compute_bus_factor(profiles: Sequence[OwnershipProfile]) -> BusFactorResult:
    """Count how many top contributors can leave before most files are unowned.

    Each iteration removes the author with the largest total share across the
    tracked files. Shares keep the file's original total as denominator, so
    removing an author never promotes the remaining ones. The run stops the
    first time more than half of the tracked files have no remaining author
    above 10%. Files with no significant author at all are never tracked.

    Every iteration works from the same immutable share snapshot plus the set
    of removed authors; nothing is mutated between iterations.
    """
    shares: dict[str, dict[str, float]] = {}
    for profile in profiles:
        file_shares = profile.shares
        if any(s > SIGNIFICANT_SHARE for s in file_shares.values()):
            shares[profile.path] = file_shares

    tracked = len(shares)
    if tracked == 0:
        return BusFactorResult(bus_factor=0, tracked_files=0)

    removed: frozenset[str] = frozenset()
    order: list[str] = []
    orphaned_counts: list[int] = []

    while True:
        author = _top_remaining_author(shares, removed)
        if author is None:
            break
        removed = removed | {author}
        order.append(author)
        orphaned = _orphaned(shares, removed)
        orphaned_counts.append(orphaned)
        if orphaned * 2 > tracked:
            break

    return BusFactorResult(
        bus_factor=max(1, len(order)),
        removed_authors=tuple(order),
        orphaned_per_iteration=tuple(orphaned_counts),
        tracked_files=tracked,
    )


def analyze_ownership(commits: Sequence[CommitRecord]) -> OwnershipSummary:
    """Build ownership profiles and the project bus factor."""
    profiles = build_profiles(commits)
    bus_factor = compute_bus_factor(profiles)
    logger.debug(
        f"Ownership: {len(profiles)} files, bus factor {bus_factor.bus_factor}"
    )
    return OwnershipSummary(profiles=profiles, bus_factor=bus_factor)

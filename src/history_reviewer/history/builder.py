"""Fuses hotspot, coupling and ownership analyses into one prompt-ready bundle."""

import asyncio
import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from history_reviewer.history.coupling import detect_coupling
from history_reviewer.history.hotspots import detect_hotspots
from history_reviewer.history.ownership import analyze_ownership
from history_reviewer.models.history import (
    CommitRecord,
    CouplingPair,
    FileChurn,
    OwnershipSummary,
)

logger = logging.getLogger(__name__)

HOTSPOT_LABEL_SCORE = 0.7


@dataclass
class HistoryAnalysis:
    """Raw output of the three analyzers for one window."""

    hotspots: list[FileChurn]
    couplings: list[CouplingPair]
    ownership: OwnershipSummary
    commit_count: int = 0


async def analyze_history(
    commits: Sequence[CommitRecord],
    line_counts: Mapping[str, int],
    min_coupling_ratio: float = 0.3,
    min_co_changes: int = 3,
) -> HistoryAnalysis:
    """Run the three analyzers concurrently in worker threads.

    They only read the shared commit sequence and each writes its own result.
    """
    commits = tuple(commits)
    hotspots, couplings, ownership = await asyncio.gather(
        asyncio.to_thread(detect_hotspots, commits, dict(line_counts)),
        asyncio.to_thread(detect_coupling, commits, min_coupling_ratio, min_co_changes),
        asyncio.to_thread(analyze_ownership, commits),
    )
    return HistoryAnalysis(
        hotspots=hotspots,
        couplings=couplings,
        ownership=ownership,
        commit_count=len(commits),
    )


@dataclass(frozen=True)
class SiloEntry:
    path: str
    author: str
    ratio: float

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "author": self.author, "ratio": round(self.ratio, 4)}


@dataclass(frozen=True)
class HistoryContext:
    """Read-only snapshot consumed once per review."""

    hotspots: tuple[FileChurn, ...] = ()
    couplings: tuple[CouplingPair, ...] = ()
    silos: tuple[SiloEntry, ...] = ()
    bus_factor: int = 0
    total_files: int = 0
    silo_count: int = 0
    commit_count: int = 0
    focus_notes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not (self.hotspots or self.couplings or self.silos or self.focus_notes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "commit_count": self.commit_count,
            "hotspots": [h.to_dict() for h in self.hotspots],
            "couplings": [c.to_dict() for c in self.couplings],
            "ownership": {
                "bus_factor": self.bus_factor,
                "total_files": self.total_files,
                "silo_count": self.silo_count,
                "silos": [s.to_dict() for s in self.silos],
            },
            "changed_files": list(self.focus_notes),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    def render(self) -> str:
        """Compact text for direct inclusion in a generation prompt."""
        if self.is_empty:
            return ""

        lines: list[str] = []
        if self.focus_notes:
            lines.append("### Changed files")
            lines.extend(f"- {note}" for note in self.focus_notes)
        if self.hotspots:
            lines.append("### Hotspots (highest change risk)")
            for h in self.hotspots:
                lines.append(
                    f"- {h.path}: score {h.score:.2f}, {h.revisions} revisions, "
                    f"churn {h.churn}, {h.current_loc} lines"
                )
        if self.couplings:
            lines.append("### Temporal coupling")
            for c in self.couplings:
                lines.append(
                    f"- {c.file_a} <-> {c.file_b}: ratio {c.ratio:.2f} ({c.co_changes} co-changes)"
                )
        lines.append("### Ownership")
        lines.append(
            f"- bus factor {self.bus_factor}; {self.silo_count} of {self.total_files} files are knowledge silos"
        )
        for s in self.silos:
            lines.append(f"- {s.path}: knowledge silo ({s.author}, {s.ratio * 100:.0f}% of changes)")
        return "\n".join(lines) + "\n"


class HistoryContextBuilder:
    """Truncates analyzer output into a :class:`HistoryContext`."""

    def __init__(self, top_hotspots: int = 10, top_couplings: int = 10, top_silos: int = 10) -> None:
        self.top_hotspots = top_hotspots
        self.top_couplings = top_couplings
        self.top_silos = top_silos

    def build(
        self,
        analysis: HistoryAnalysis,
        focus_files: Sequence[str] = (),
    ) -> HistoryContext:
        """Deterministic for identical inputs: same ordering, same truncation."""
        silo_profiles = sorted(
            analysis.ownership.silos, key=lambda p: (-p.dominant_ratio, p.path)
        )
        silos = tuple(
            SiloEntry(path=p.path, author=p.dominant_author or "", ratio=p.dominant_ratio)
            for p in silo_profiles[: self.top_silos]
        )

        return HistoryContext(
            hotspots=tuple(analysis.hotspots[: self.top_hotspots]),
            couplings=tuple(analysis.couplings[: self.top_couplings]),
            silos=silos,
            bus_factor=analysis.ownership.bus_factor.bus_factor,
            total_files=analysis.ownership.total_files,
            silo_count=len(analysis.ownership.silos),
            commit_count=analysis.commit_count,
            focus_notes=tuple(self._focus_notes(analysis, focus_files)),
        )

    def _focus_notes(self, analysis: HistoryAnalysis, focus_files: Sequence[str]) -> list[str]:
        notes: list[str] = []
        hotspots = {h.path: h for h in analysis.hotspots}
        for path in sorted(set(focus_files)):
            facts: list[str] = []
            hotspot = hotspots.get(path)
            if hotspot is not None:
                label = "HOTSPOT" if hotspot.score >= HOTSPOT_LABEL_SCORE else "score"
                facts.append(
                    f"{label} {hotspot.score:.2f} ({hotspot.revisions} revisions, "
                    f"{hotspot.authors} authors)"
                )
            partners = [
                f"{pair.partner_of(path)} ({pair.ratio:.2f})"
                for pair in analysis.couplings
                if pair.partner_of(path) is not None
            ]
            if partners:
                facts.append("usually changes with " + ", ".join(partners[: self.top_couplings]))
            profile = analysis.ownership.profile_for(path)
            if profile is not None and profile.is_knowledge_silo:
                facts.append(
                    f"knowledge silo ({profile.dominant_author}, {profile.dominant_ratio * 100:.0f}%)"
                )
            if facts:
                notes.append(f"{path}: " + "; ".join(facts))
        return notes

"""History intelligence: hotspots, temporal coupling and ownership."""

from history_reviewer.history.builder import (
    HistoryAnalysis,
    HistoryContext,
    HistoryContextBuilder,
    analyze_history,
)
from history_reviewer.history.coupling import canonical_pair, coupling_ratio, detect_coupling
from history_reviewer.history.hotspots import detect_hotspots
from history_reviewer.history.ownership import analyze_ownership, compute_bus_factor
from history_reviewer.history.reader import CommitLogReader, GitLogReader, snapshot_line_counts

__all__ = [
    "CommitLogReader",
    "GitLogReader",
    "HistoryAnalysis",
    "HistoryContext",
    "HistoryContextBuilder",
    "analyze_history",
    "analyze_ownership",
    "canonical_pair",
    "compute_bus_factor",
    "coupling_ratio",
    "detect_coupling",
    "detect_hotspots",
    "snapshot_line_counts",
]

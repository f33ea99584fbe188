"""Review pipeline orchestration."""

from history_reviewer.orchestrator.aggregator import AggregatorConfig, FindingAggregator
from history_reviewer.orchestrator.orchestrator import PipelineState, ReviewOrchestrator

__all__ = ["AggregatorConfig", "FindingAggregator", "PipelineState", "ReviewOrchestrator"]

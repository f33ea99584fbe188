"""Feedback persistence and learning."""

from history_reviewer.feedback.adapter import FeedbackAdapter, FeedbackBias, PatternStats
from history_reviewer.feedback.store import FeedbackStore

__all__ = ["FeedbackAdapter", "FeedbackBias", "FeedbackStore", "PatternStats"]

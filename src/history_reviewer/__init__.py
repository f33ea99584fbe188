"""History Reviewer - LLM code review informed by repository history."""

__version__ = "0.1.0"

"""Provider-backed pipeline stages."""

from history_reviewer.agents.base import ProviderAgent
from history_reviewer.agents.generator import FindingGenerator, GenerationOutput
from history_reviewer.agents.reflector import ReflectionOutcome, SelfReflectionFilter, apply_evaluations

__all__ = [
    "FindingGenerator",
    "GenerationOutput",
    "ProviderAgent",
    "ReflectionOutcome",
    "SelfReflectionFilter",
    "apply_evaluations",
]

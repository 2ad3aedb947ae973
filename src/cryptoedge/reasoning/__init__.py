"""Reasoning model integration: prompt assembly, API client and output validation."""

from cryptoedge.reasoning.client import ReasoningClient
from cryptoedge.reasoning.prompt import build_messages, build_system_prompt, build_user_prompt
from cryptoedge.reasoning.validation import (
    AnalysisResult,
    clamp_confidence,
    parse_response,
    reconcile_direction,
    validate_analysis,
)

__all__ = [
    "AnalysisResult",
    "ReasoningClient",
    "build_messages",
    "build_system_prompt",
    "build_user_prompt",
    "clamp_confidence",
    "parse_response",
    "reconcile_direction",
    "validate_analysis",
]

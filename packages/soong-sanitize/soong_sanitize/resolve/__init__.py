"""Per-module sanitizer decisions."""

from soong_sanitize.resolve.decision import ModuleSanitizeState, SanitizerDecision, VariantDecisionEngine

__all__ = [
    "VariantDecisionEngine",
    "SanitizerDecision",
    "ModuleSanitizeState",
]

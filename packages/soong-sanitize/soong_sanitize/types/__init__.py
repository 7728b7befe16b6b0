"""Shared types - Domain Layer.

Enums and module declarations.
"""

from soong_sanitize.types.enums import (
    DecisionSource,
    LinkKind,
    MemtagMode,
    ModuleKind,
    PathDecision,
    SanitizerKind,
)
from soong_sanitize.types.module import DependencyEdge, DiagProperties, Module, SanitizeProperties

__all__ = [
    # Enums
    "SanitizerKind",
    "ModuleKind",
    "LinkKind",
    "MemtagMode",
    "PathDecision",
    "DecisionSource",
    # Declarations
    "Module",
    "SanitizeProperties",
    "DiagProperties",
    "DependencyEdge",
]

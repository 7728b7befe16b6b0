"""soong-sanitize - Sanitizer variant resolution for native build graphs.

Resolves per-module sanitizer state (ASan, TSan, UBSan, fuzzer, heap
memory tagging), propagates sanitizer variants through the dependency
graph, injects runtime libraries and emits compile/link flags.

Quick Start:
    >>> from soong_sanitize import ModuleGraph, PolicyConfiguration, PropagationEngine, SanitizerKind
    >>>
    >>> graph = ModuleGraph.from_declarations([
    ...     {"type": "cc_binary", "name": "bin_with_asan",
    ...      "shared_libs": ["libshared"], "sanitize": {"address": True}},
    ...     {"type": "cc_library_shared", "name": "libshared"},
    ... ])
    >>> graph.add_runtime_libraries()
    >>> result = PropagationEngine(graph, PolicyConfiguration()).run()
    >>> result.flags(result.variant("bin_with_asan", SanitizerKind.ADDRESS)).link_flags
    ('-fsanitize=address',)
"""

__version__ = "0.1.0"  # Keep in sync with pyproject.toml

# =============================================================================
# Configuration
# =============================================================================
from soong_sanitize.config import (
    ProductVariables,
    RuntimeLibraryNames,
    SanitizeSettings,
    get_settings,
    load_product_variables,
    parse_product_variables,
)

# =============================================================================
# Flag Emission
# =============================================================================
from soong_sanitize.emit import EmittedFlags, FlagEmitter

# =============================================================================
# Error Handling & Logging
# =============================================================================
from soong_sanitize.errors import (
    ConfigurationConflictError,
    DuplicateModuleError,
    GraphError,
    InvalidEdgeError,
    MissingRuntimeLibraryError,
    PathPolicyError,
    PolicyLoadError,
    SanitizeError,
    StaleVariantCacheError,
    UnknownModuleError,
    UnknownSanitizerError,
)

# =============================================================================
# Graph & Propagation
# =============================================================================
from soong_sanitize.graph import (
    ModuleGraph,
    PropagationEngine,
    PropagationResult,
    Variant,
    VariantCache,
    VariantEdge,
    VariantKey,
)
from soong_sanitize.logging import get_logger, setup_logging
from soong_sanitize.pipeline import propagate_file

# =============================================================================
# Policy & Decisions
# =============================================================================
from soong_sanitize.policy import PathMatch, PathPolicyTable, PolicyConfiguration
from soong_sanitize.resolve import ModuleSanitizeState, SanitizerDecision, VariantDecisionEngine

# =============================================================================
# Types
# =============================================================================
from soong_sanitize.types import (
    DecisionSource,
    DependencyEdge,
    DiagProperties,
    LinkKind,
    MemtagMode,
    Module,
    ModuleKind,
    PathDecision,
    SanitizeProperties,
    SanitizerKind,
)

__all__ = [
    "__version__",
    # Configuration
    "ProductVariables",
    "RuntimeLibraryNames",
    "SanitizeSettings",
    "get_settings",
    "load_product_variables",
    "parse_product_variables",
    # Policy
    "PolicyConfiguration",
    "PathPolicyTable",
    "PathMatch",
    # Decisions
    "VariantDecisionEngine",
    "SanitizerDecision",
    "ModuleSanitizeState",
    # Graph
    "ModuleGraph",
    "PropagationEngine",
    "PropagationResult",
    "Variant",
    "VariantCache",
    "VariantEdge",
    "VariantKey",
    "propagate_file",
    # Emission
    "FlagEmitter",
    "EmittedFlags",
    # Types
    "SanitizerKind",
    "ModuleKind",
    "LinkKind",
    "MemtagMode",
    "PathDecision",
    "DecisionSource",
    "Module",
    "SanitizeProperties",
    "DiagProperties",
    "DependencyEdge",
    # Errors
    "SanitizeError",
    "ConfigurationConflictError",
    "PolicyLoadError",
    "PathPolicyError",
    "UnknownSanitizerError",
    "GraphError",
    "UnknownModuleError",
    "DuplicateModuleError",
    "InvalidEdgeError",
    "MissingRuntimeLibraryError",
    "StaleVariantCacheError",
    # Logging
    "setup_logging",
    "get_logger",
]

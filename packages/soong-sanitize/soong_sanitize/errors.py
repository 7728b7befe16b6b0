"""
Standardized Error Handling for soong-sanitize

Provides hierarchical exception classes with error codes and context.

An incorrect resolution silently produces an unsanitized binary that is
believed to be sanitized, so every failure here is raised to the caller.
"""

from typing import Any


class SanitizeError(Exception):
    """Base exception for all soong-sanitize errors.

    Includes error code for programmatic handling and context for debugging.

    Example:
        raise SanitizeError(
            code="CONFIGURATION_CONFLICT",
            message="Conflicting sanitizer state",
            module="libfoo",
            kind="address",
        )
    """

    def __init__(self, code: str, message: str, **context: Any) -> None:
        self.code = code
        self.message = message
        self.context = context
        super().__init__(f"[{code}] {message}")

    def __repr__(self) -> str:
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r}, {ctx_str})"


# ==============================================================================
# Configuration Errors
# ==============================================================================


class ConfigurationConflictError(SanitizeError):
    """A module declaration contradicts a non-overridable policy rule."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(code="CONFIGURATION_CONFLICT", message=message, **context)


class PolicyLoadError(SanitizeError):
    """Product configuration could not be turned into policy tables."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(code="POLICY_LOAD_ERROR", message=message, **context)


class PathPolicyError(PolicyLoadError):
    """Malformed path-prefix entry."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, **context)
        self.code = "PATH_POLICY_ERROR"


class UnknownSanitizerError(PolicyLoadError):
    """Sanitizer name not recognized."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, **context)
        self.code = "UNKNOWN_SANITIZER"


# ==============================================================================
# Graph Errors
# ==============================================================================


class GraphError(SanitizeError):
    """Error in the module graph."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(code="GRAPH_ERROR", message=message, **context)


class UnknownModuleError(GraphError):
    """Referenced module is not part of the graph."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, **context)
        self.code = "UNKNOWN_MODULE"


class DuplicateModuleError(GraphError):
    """Two declarations share the same module name."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, **context)
        self.code = "DUPLICATE_MODULE"


class InvalidEdgeError(GraphError):
    """Dependency edge does not fit the target module."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, **context)
        self.code = "INVALID_EDGE"


# ==============================================================================
# Runtime Library Errors
# ==============================================================================


class MissingRuntimeLibraryError(SanitizeError):
    """Runtime support library required for injection is not in the graph."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(code="MISSING_RUNTIME_LIBRARY", message=message, **context)


# ==============================================================================
# Cache Errors
# ==============================================================================


class StaleVariantCacheError(SanitizeError):
    """Variant cache reused for a different graph or policy configuration."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(code="STALE_VARIANT_CACHE", message=message, **context)


# ==============================================================================
# Exports
# ==============================================================================

__all__ = [
    # Base
    "SanitizeError",
    # Configuration
    "ConfigurationConflictError",
    "PolicyLoadError",
    "PathPolicyError",
    "UnknownSanitizerError",
    # Graph
    "GraphError",
    "UnknownModuleError",
    "DuplicateModuleError",
    "InvalidEdgeError",
    # Runtime
    "MissingRuntimeLibraryError",
    # Cache
    "StaleVariantCacheError",
]

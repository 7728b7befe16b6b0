"""Sanitize Enums - Type-safe Constants.

Central enum definitions. str-based Enums so values round-trip through
YAML/JSON product configuration unchanged.
"""

from enum import Enum


class SanitizerKind(str, Enum):
    """Sanitizer kinds a module can request.

    Values are the property names used in module declarations
    (``sanitize: { address: true }``) and in the global
    ``SanitizeDevice``/``SanitizeHost`` lists.
    """

    ADDRESS = "address"
    THREAD = "thread"
    UNDEFINED = "undefined"
    MISC_UNDEFINED = "misc_undefined"
    FUZZER = "fuzzer"
    MEMTAG_HEAP = "memtag_heap"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, name: str) -> "SanitizerKind":
        """Parse a sanitizer name, raising ValueError for unknown names."""
        return cls(name.strip().lower())


class ModuleKind(str, Enum):
    """Buildable unit kinds."""

    BINARY = "binary"
    TEST = "test"
    SHARED = "shared"
    STATIC = "static"

    def __str__(self) -> str:
        return self.value

    @property
    def is_linked(self) -> bool:
        """Whether the module has a final link step (binary, test, shared)."""
        return self is not ModuleKind.STATIC

    @property
    def is_executable(self) -> bool:
        return self in (ModuleKind.BINARY, ModuleKind.TEST)


class LinkKind(str, Enum):
    """Dependency edge kinds."""

    SHARED = "shared"
    STATIC = "static"
    WHOLE_STATIC = "whole_static"
    ORDER_ONLY_INSTALL = "order_only_install"

    def __str__(self) -> str:
        return self.value

    @property
    def is_static(self) -> bool:
        return self in (LinkKind.STATIC, LinkKind.WHOLE_STATIC)


class MemtagMode(str, Enum):
    """Heap memory-tagging strength, encoded in the ELF note."""

    NONE = "none"
    SYNC = "sync"
    ASYNC = "async"

    def __str__(self) -> str:
        return self.value


class PathDecision(str, Enum):
    """Result of a path-policy lookup for one (package, kind) pair.

    FORCE_* rules are non-overridable: a module declaration contradicting
    them is a configuration conflict. DEFAULT_* rules only fill in
    undeclared state.
    """

    FORCE_ENABLED_RECURSIVE = "force_enabled_recursive"
    FORCE_DISABLED = "force_disabled"
    DEFAULT_ENABLED = "default_enabled"
    DEFAULT_DISABLED = "default_disabled"
    UNSPECIFIED = "unspecified"

    def __str__(self) -> str:
        return self.value


class DecisionSource(str, Enum):
    """Which rule produced a sanitizer decision."""

    EXPLICIT = "explicit"
    PATH_FORCE = "path_force"
    PATH_DEFAULT = "path_default"
    GLOBAL = "global"
    TEST_DEFAULT = "test_default"
    WHOLE_STATIC = "whole_static"
    KIND_DEFAULT = "kind_default"
    UNSUPPORTED = "unsupported"

    def __str__(self) -> str:
        return self.value

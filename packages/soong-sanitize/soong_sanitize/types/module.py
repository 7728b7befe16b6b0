"""Module declarations - Domain Layer.

Mirrors the parts of a ``cc_*`` Blueprint module that sanitizer resolution
reads: identity, kind, package directory, host/device target, the
``sanitize: {...}`` block and the dependency lists.

Sanitizer requests are tri-state: ``None`` (absent) is distinct from
``False`` and takes part in default resolution.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from soong_sanitize.types.enums import LinkKind, ModuleKind, SanitizerKind

_MODULE_TYPES = {
    "cc_binary": ModuleKind.BINARY,
    "cc_test": ModuleKind.TEST,
    "cc_library_shared": ModuleKind.SHARED,
    "cc_library_static": ModuleKind.STATIC,
}


def _opt_bool(data: dict[str, Any], key: str) -> bool | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ValueError(f"sanitize.{key} must be a boolean, got {value!r}")
    return value


def _str_tuple(data: dict[str, Any], key: str) -> tuple[str, ...]:
    value = data.get(key) or ()
    if isinstance(value, str):
        raise ValueError(f"{key} must be a list of strings, got a bare string {value!r}")
    return tuple(value)


@dataclass(frozen=True)
class DiagProperties:
    """``sanitize: { diag: {...} }`` sub-requests."""

    undefined: bool | None = None
    misc_undefined: tuple[str, ...] = ()
    memtag_heap: bool | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> DiagProperties:
        data = data or {}
        return cls(
            undefined=_opt_bool(data, "undefined"),
            misc_undefined=_str_tuple(data, "misc_undefined"),
            memtag_heap=_opt_bool(data, "memtag_heap"),
        )

    def declared(self, kind: SanitizerKind) -> bool | None:
        """Declared diagnostic request for ``kind`` (None = absent)."""
        if kind is SanitizerKind.UNDEFINED:
            return self.undefined
        if kind is SanitizerKind.MISC_UNDEFINED:
            return True if self.misc_undefined else None
        if kind is SanitizerKind.MEMTAG_HEAP:
            return self.memtag_heap
        return None


@dataclass(frozen=True)
class SanitizeProperties:
    """``sanitize: {...}`` block of a module."""

    address: bool | None = None
    thread: bool | None = None
    undefined: bool | None = None
    misc_undefined: tuple[str, ...] = ()
    fuzzer: bool | None = None
    memtag_heap: bool | None = None
    diag: DiagProperties = field(default_factory=DiagProperties)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SanitizeProperties:
        data = data or {}
        unknown = set(data) - {k.value for k in SanitizerKind} - {"diag"}
        if unknown:
            raise ValueError(f"Unknown sanitize properties: {sorted(unknown)}")
        return cls(
            address=_opt_bool(data, "address"),
            thread=_opt_bool(data, "thread"),
            undefined=_opt_bool(data, "undefined"),
            misc_undefined=_str_tuple(data, "misc_undefined"),
            fuzzer=_opt_bool(data, "fuzzer"),
            memtag_heap=_opt_bool(data, "memtag_heap"),
            diag=DiagProperties.from_dict(data.get("diag")),
        )

    def declared(self, kind: SanitizerKind) -> bool | None:
        """Declared request for ``kind`` (None = absent).

        ``misc_undefined`` is a list of checks; an empty list counts as absent.
        """
        if kind is SanitizerKind.MISC_UNDEFINED:
            return True if self.misc_undefined else None
        return getattr(self, kind.value)


@dataclass(frozen=True)
class DependencyEdge:
    """Directed edge ``source -> target`` annotated with its link kind."""

    source: str
    target: str
    link: LinkKind

    def __str__(self) -> str:
        return f"{self.source} -[{self.link.value}]-> {self.target}"


@dataclass(frozen=True)
class Module:
    """A buildable unit (binary, test, shared or static library).

    Attributes:
        name: Module identity, unique within a graph
        kind: Module kind
        package: Directory of the declaring Android.bp, ``/``-separated
        host: True for the host variant, False for the device variant
        sanitize: Declared sanitizer requests
        shared_libs / static_libs / whole_static_libs: Link dependencies
        install_deps: Order-only install dependencies
        srcs: Source files compiled by this module
    """

    name: str
    kind: ModuleKind
    package: str = ""
    host: bool = False
    sanitize: SanitizeProperties = field(default_factory=SanitizeProperties)
    shared_libs: tuple[str, ...] = ()
    static_libs: tuple[str, ...] = ()
    whole_static_libs: tuple[str, ...] = ()
    install_deps: tuple[str, ...] = ()
    srcs: tuple[str, ...] = ()

    @property
    def target(self) -> str:
        return "host" if self.host else "device"

    def dependencies(self) -> list[DependencyEdge]:
        """Declared dependency edges in declaration order."""
        edges: list[DependencyEdge] = []
        for link, names in (
            (LinkKind.SHARED, self.shared_libs),
            (LinkKind.STATIC, self.static_libs),
            (LinkKind.WHOLE_STATIC, self.whole_static_libs),
            (LinkKind.ORDER_ONLY_INSTALL, self.install_deps),
        ):
            edges.extend(DependencyEdge(self.name, dep, link) for dep in names)
        return edges

    @classmethod
    def from_dict(cls, data: dict[str, Any], host: bool = False) -> Module:
        """Build a module from a Blueprint-like declaration.

        Example:
            >>> Module.from_dict({
            ...     "type": "cc_binary",
            ...     "name": "bin_with_asan",
            ...     "shared_libs": ["libshared"],
            ...     "sanitize": {"address": True},
            ... })
        """
        module_type = data.get("type")
        if module_type in _MODULE_TYPES:
            kind = _MODULE_TYPES[module_type]
        elif "kind" in data:
            kind = ModuleKind(data["kind"])
        else:
            raise ValueError(f"Unknown module type {module_type!r} for {data.get('name')!r}")

        name = data.get("name")
        if not name:
            raise ValueError("Module declaration is missing a name")

        return cls(
            name=name,
            kind=kind,
            package=data.get("package", ""),
            host=bool(data.get("host", host)),
            sanitize=SanitizeProperties.from_dict(data.get("sanitize")),
            shared_libs=_str_tuple(data, "shared_libs"),
            static_libs=_str_tuple(data, "static_libs"),
            whole_static_libs=_str_tuple(data, "whole_static_libs"),
            install_deps=_str_tuple(data, "install_deps"),
            srcs=_str_tuple(data, "srcs"),
        )

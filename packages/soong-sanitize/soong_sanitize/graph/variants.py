"""Variants and the variant cache.

A variant is one module built for one set of active variant-creating
sanitizers. Keys are value objects; the cache guarantees a single Variant
object per key no matter how many paths reach it.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Hashable

from soong_sanitize.errors import StaleVariantCacheError
from soong_sanitize.policy.traits import ordered_kinds, traits_of
from soong_sanitize.resolve.decision import ModuleSanitizeState
from soong_sanitize.types.enums import LinkKind, ModuleKind, SanitizerKind
from soong_sanitize.types.module import Module


@dataclass(frozen=True)
class VariantKey:
    """Identity of a variant: module name plus active variant kinds."""

    module: str
    kinds: frozenset[SanitizerKind] = frozenset()

    @property
    def suffix(self) -> str:
        return "_".join(traits_of(k).variant_suffix for k in ordered_kinds(self.kinds))

    @property
    def is_plain(self) -> bool:
        return not self.kinds

    def sort_key(self) -> tuple[str, tuple[str, ...]]:
        return (self.module, tuple(str(k) for k in ordered_kinds(self.kinds)))

    def __str__(self) -> str:
        return f"{self.module}[{self.suffix}]" if self.kinds else self.module


@dataclass(frozen=True)
class VariantEdge:
    """Rewritten dependency edge between variants."""

    link: LinkKind
    target: VariantKey
    injected: bool = False

    def __str__(self) -> str:
        marker = " (runtime)" if self.injected else ""
        return f"-[{self.link.value}]-> {self.target}{marker}"


def output_file(module: Module) -> str:
    if module.kind is ModuleKind.STATIC:
        return f"{module.name}.a"
    if module.kind is ModuleKind.SHARED:
        return f"{module.name}.so"
    return module.name


def install_path(module: Module, kinds: frozenset[SanitizerKind]) -> str | None:
    """Install location of a linked variant; static libraries are not installed.

    ASan variants install under ``data/asan`` so they can sit beside the
    plain system image.
    """
    if module.kind is ModuleKind.STATIC:
        return None
    if module.host:
        root = "host/linux-x86"
    elif SanitizerKind.ADDRESS in kinds:
        root = "data/asan/system"
    else:
        root = "system"

    if module.kind is ModuleKind.TEST:
        return f"{root}/nativetest64/{module.name}/{output_file(module)}"
    if module.kind is ModuleKind.SHARED:
        return f"{root}/lib64/{output_file(module)}"
    return f"{root}/bin/{output_file(module)}"


@dataclass(frozen=True, eq=False)
class Variant:
    """Fully resolved build configuration of one module.

    Attributes:
        key: Variant identity
        module: Declared module
        state: Effective sanitizer state (own decisions plus whole-static
            UBSan inheritance)
        edges: Rewritten declared edges followed by injected runtime edges
        exclude_libs: Runtime archives hidden from the dynamic symbol table
        install_deps: Install paths the variant's install depends on
    """

    key: VariantKey
    module: Module
    state: ModuleSanitizeState
    edges: tuple[VariantEdge, ...] = ()
    exclude_libs: tuple[str, ...] = ()
    install_deps: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.key.module

    @property
    def kinds(self) -> frozenset[SanitizerKind]:
        return self.key.kinds

    @property
    def variant_name(self) -> str:
        """Soong-style variant name, e.g. ``device_shared_asan``."""
        parts = [self.module.target, self.module.kind.value]
        if self.key.suffix:
            parts.append(self.key.suffix)
        return "_".join(parts)

    @property
    def output_file(self) -> str:
        return output_file(self.module)

    @property
    def install_path(self) -> str | None:
        return install_path(self.module, self.kinds)

    def link_inputs(self, link: LinkKind | None = None) -> list[VariantKey]:
        """Targets of the variant's edges, optionally of one link kind."""
        return [e.target for e in self.edges if link is None or e.link is link]

    def injected_runtimes(self) -> list[VariantKey]:
        return [e.target for e in self.edges if e.injected]


class VariantCache:
    """Thread-safe insert-if-absent map of VariantKey to Variant.

    The first variant stored for a key is kept; later builders for the same
    key get the stored object back. A cache serves one scope, the content
    fingerprint of a (graph, policy) pair, so variants are only shared
    between runs that would build identical ones.
    """

    def __init__(self) -> None:
        self._variants: dict[VariantKey, Variant] = {}
        self._lock = threading.Lock()
        self._scope: Hashable | None = None

        # Metrics
        self.created = 0
        self.reused = 0

    def bind(self, scope: Hashable) -> None:
        """Attach the cache to ``scope`` on first use.

        Raises:
            StaleVariantCacheError: Already bound to a different scope
        """
        with self._lock:
            if self._scope is None:
                self._scope = scope
            elif self._scope != scope:
                raise StaleVariantCacheError(
                    "Variant cache was filled for a different graph or policy configuration",
                    cached_variants=len(self._variants),
                )

    def get_or_create(self, key: VariantKey, factory: Callable[[], Variant]) -> Variant:
        with self._lock:
            existing = self._variants.get(key)
            if existing is not None:
                self.reused += 1
                return existing

        variant = factory()

        with self._lock:
            existing = self._variants.get(key)
            if existing is not None:
                self.reused += 1
                return existing
            self._variants[key] = variant
            self.created += 1
            return variant

    def get(self, key: VariantKey) -> Variant | None:
        with self._lock:
            return self._variants.get(key)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._variants

    def __len__(self) -> int:
        with self._lock:
            return len(self._variants)

    def values(self) -> list[Variant]:
        """Variants ordered by key."""
        with self._lock:
            return [self._variants[k] for k in sorted(self._variants, key=VariantKey.sort_key)]

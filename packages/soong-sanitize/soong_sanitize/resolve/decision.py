"""Variant Decision Engine.

Resolves, per module and sanitizer kind, whether the sanitizer is enabled,
whether it runs in diagnostic mode, and (for heap memory tagging) the
resulting strength. Decisions only read the module's own declaration and
the immutable PolicyConfiguration; graph effects (whole-static inheritance,
propagation) are applied later by the propagation engine.

Precedence for generic kinds, highest first:
    1. unsupported combination
    2. explicit declaration (conflicts with FORCE_* rules are fatal)
    3. FORCE_* path rules, then DEFAULT_DISABLED / DEFAULT_ENABLED
    4. global SanitizeDevice / SanitizeHost list
    5. kind default (off)

Memory tagging follows its own table, see ``_resolve_memtag``.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from typing import Iterable

from soong_sanitize.errors import ConfigurationConflictError
from soong_sanitize.logging import get_logger
from soong_sanitize.policy.configuration import PolicyConfiguration
from soong_sanitize.policy.paths import PathMatch
from soong_sanitize.policy.traits import UBSAN_KINDS, VARIANT_KINDS, traits_of
from soong_sanitize.types.enums import (
    DecisionSource,
    MemtagMode,
    ModuleKind,
    PathDecision,
    SanitizerKind,
)
from soong_sanitize.types.module import Module

logger = get_logger(__name__)


@dataclass(frozen=True)
class SanitizerDecision:
    """Resolved state of one sanitizer kind for one module.

    Attributes:
        kind: Sanitizer kind
        enabled: Whether the sanitizer is active
        diag: Diagnostic mode (UBSan full runtime, memtag sync)
        source: Rule that produced the decision
        memtag_mode: Heap tagging strength, NONE for other kinds
        opted_out: Disabled by an explicit declaration or FORCE_DISABLED,
            which also stops variant propagation into the module
    """

    kind: SanitizerKind
    enabled: bool
    diag: bool = False
    source: DecisionSource = DecisionSource.KIND_DEFAULT
    memtag_mode: MemtagMode = MemtagMode.NONE
    opted_out: bool = False


@dataclass(frozen=True)
class ModuleSanitizeState:
    """All sanitizer decisions of one module."""

    module: str
    decisions: dict[SanitizerKind, SanitizerDecision] = field(default_factory=dict)
    misc_checks: tuple[str, ...] = ()

    def decision(self, kind: SanitizerKind) -> SanitizerDecision:
        return self.decisions[kind]

    def is_enabled(self, kind: SanitizerKind) -> bool:
        decision = self.decisions.get(kind)
        return decision is not None and decision.enabled

    def opted_out(self, kind: SanitizerKind) -> bool:
        decision = self.decisions.get(kind)
        return decision is not None and decision.opted_out

    @property
    def enabled_kinds(self) -> frozenset[SanitizerKind]:
        return frozenset(k for k, d in self.decisions.items() if d.enabled)

    @property
    def variant_kinds(self) -> frozenset[SanitizerKind]:
        return self.enabled_kinds & VARIANT_KINDS

    @property
    def has_ubsan(self) -> bool:
        return any(self.is_enabled(k) for k in UBSAN_KINDS)

    @property
    def ubsan_diag(self) -> bool:
        return any(self.is_enabled(k) and self.decisions[k].diag for k in UBSAN_KINDS)

    @property
    def memtag_mode(self) -> MemtagMode:
        decision = self.decisions.get(SanitizerKind.MEMTAG_HEAP)
        return decision.memtag_mode if decision else MemtagMode.NONE

    def inherit_ubsan(
        self,
        kinds: Iterable[SanitizerKind],
        misc_checks: Iterable[str],
        diag: bool,
    ) -> ModuleSanitizeState:
        """Copy with UBSan kinds switched on through whole-static inclusion."""
        decisions = dict(self.decisions)
        for kind in kinds:
            decisions[kind] = SanitizerDecision(kind=kind, enabled=True, diag=diag, source=DecisionSource.WHOLE_STATIC)
        checks = tuple(sorted(set(self.misc_checks) | set(misc_checks)))
        return replace(self, decisions=decisions, misc_checks=checks)


class VariantDecisionEngine:
    """Resolves sanitizer decisions against one PolicyConfiguration.

    Results are memoised per (module, kind). Modules are frozen values, so
    one engine can serve several graphs: a redeclared module of the same
    name is a different key. The memo is shared by worker threads; the
    first computed result for a key is kept.

    Example:
        >>> engine = VariantDecisionEngine(PolicyConfiguration())
        >>> engine.resolve(module, SanitizerKind.ADDRESS).enabled
        False
    """

    def __init__(self, config: PolicyConfiguration) -> None:
        self.config = config
        self._memo: dict[tuple[Module, SanitizerKind], SanitizerDecision] = {}
        self._lock = threading.Lock()

    def resolve(self, module: Module, kind: SanitizerKind) -> SanitizerDecision:
        key = (module, kind)
        with self._lock:
            cached = self._memo.get(key)
        if cached is not None:
            return cached

        if kind is SanitizerKind.MEMTAG_HEAP:
            decision = self._resolve_memtag(module)
        else:
            decision = self._resolve_generic(module, kind)

        with self._lock:
            return self._memo.setdefault(key, decision)

    def resolve_module(self, module: Module) -> ModuleSanitizeState:
        decisions = {kind: self.resolve(module, kind) for kind in SanitizerKind}
        misc = module.sanitize.misc_undefined if decisions[SanitizerKind.MISC_UNDEFINED].enabled else ()
        return ModuleSanitizeState(module=module.name, decisions=decisions, misc_checks=tuple(sorted(set(misc))))

    def resolve_all(self, modules: Iterable[Module], max_workers: int = 1) -> dict[str, ModuleSanitizeState]:
        """Resolve every module, optionally on a thread pool."""
        modules = list(modules)
        if max_workers <= 1 or len(modules) < 2:
            return {m.name: self.resolve_module(m) for m in modules}

        states: dict[str, ModuleSanitizeState] = {}
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(self.resolve_module, m) for m in modules]
            for future in as_completed(futures):
                state = future.result()
                states[state.module] = state
        return states

    def cache_size(self) -> int:
        with self._lock:
            return len(self._memo)

    # ------------------------------------------------------------------
    # Generic kinds
    # ------------------------------------------------------------------

    def _resolve_generic(self, module: Module, kind: SanitizerKind) -> SanitizerDecision:
        declared = module.sanitize.declared(kind)
        match = self.config.path_table.lookup(module.package, kind)

        if declared is not None:
            self._check_force_conflict(module, kind, declared, match)
            diag = self._resolve_diag(module, kind, match) if declared else False
            return SanitizerDecision(
                kind=kind,
                enabled=declared,
                diag=diag,
                source=DecisionSource.EXPLICIT,
                opted_out=not declared,
            )

        if match.decision is PathDecision.FORCE_DISABLED:
            return SanitizerDecision(kind=kind, enabled=False, source=DecisionSource.PATH_FORCE, opted_out=True)

        # misc_undefined carries its checks in the declaration; nothing to turn on without one.
        if kind is SanitizerKind.MISC_UNDEFINED:
            return SanitizerDecision(kind=kind, enabled=False)

        if match.decision is PathDecision.FORCE_ENABLED_RECURSIVE:
            return self._enabled(module, kind, match, DecisionSource.PATH_FORCE)
        if match.decision is PathDecision.DEFAULT_DISABLED:
            return SanitizerDecision(kind=kind, enabled=False, source=DecisionSource.PATH_DEFAULT)
        if match.decision is PathDecision.DEFAULT_ENABLED:
            return self._enabled(module, kind, match, DecisionSource.PATH_DEFAULT)

        if traits_of(kind).globally_enableable and self.config.global_enabled(kind, module.host):
            return self._enabled(module, kind, match, DecisionSource.GLOBAL)

        return SanitizerDecision(kind=kind, enabled=False)

    def _enabled(
        self,
        module: Module,
        kind: SanitizerKind,
        match: PathMatch,
        source: DecisionSource,
    ) -> SanitizerDecision:
        return SanitizerDecision(
            kind=kind,
            enabled=True,
            diag=self._resolve_diag(module, kind, match),
            source=source,
        )

    def _resolve_diag(self, module: Module, kind: SanitizerKind, match: PathMatch) -> bool:
        if kind not in UBSAN_KINDS:
            return False
        declared = module.sanitize.diag.declared(kind)
        if declared is not None:
            return declared
        if self.config.global_diag(kind, module.host):
            return True
        return match.enables and match.diag

    def _check_force_conflict(self, module: Module, kind: SanitizerKind, declared: bool, match: PathMatch) -> None:
        if declared is False and match.decision is PathDecision.FORCE_ENABLED_RECURSIVE:
            raise ConfigurationConflictError(
                f"{module.name} disables {kind} under a path that forces it on",
                module=module.name,
                kind=str(kind),
                prefix=match.prefix,
            )
        if declared is True and match.decision is PathDecision.FORCE_DISABLED:
            raise ConfigurationConflictError(
                f"{module.name} enables {kind} under a path that forces it off",
                module=module.name,
                kind=str(kind),
                prefix=match.prefix,
            )

    # ------------------------------------------------------------------
    # Heap memory tagging
    # ------------------------------------------------------------------

    def _memtag_supported(self, module: Module) -> bool:
        return not module.host and self.config.device_arch == "arm64" and module.kind.is_executable

    def _resolve_memtag(self, module: Module) -> SanitizerDecision:
        """Resolve heap tagging strength.

        Steps, each only filling in what is still unset:
            1. ``memtag_heap`` / ``diag.memtag_heap`` declarations
            2. path rule (sync include also turns on diag)
            3. global SanitizeDevice, unless the path disables memtag
            4. global SanitizeDeviceDiag, when heap tagging is on
            5. tests default to heap tagging with diag
        Strength is NONE unless heap tagging ended up on, then SYNC with
        diag and ASYNC without.

        A module declaring only ``diag.memtag_heap: true`` with no rule
        turning heap tagging on stays at NONE.
        """
        kind = SanitizerKind.MEMTAG_HEAP
        if not self._memtag_supported(module):
            return SanitizerDecision(kind=kind, enabled=False, source=DecisionSource.UNSUPPORTED)

        heap = module.sanitize.memtag_heap
        diag = module.sanitize.diag.memtag_heap
        source = DecisionSource.EXPLICIT if heap is not None else DecisionSource.KIND_DEFAULT
        match = self.config.path_table.lookup(module.package, kind)

        if match.decision is PathDecision.FORCE_ENABLED_RECURSIVE:
            if heap is False:
                self._check_force_conflict(module, kind, False, match)
            if heap is None:
                source = DecisionSource.PATH_FORCE
            heap = True
        elif match.decision is PathDecision.FORCE_DISABLED:
            if heap is True:
                self._check_force_conflict(module, kind, True, match)
            if heap is None:
                source = DecisionSource.PATH_FORCE
            heap = False
        elif match.decision is PathDecision.DEFAULT_ENABLED:
            if heap is None:
                heap = True
                source = DecisionSource.PATH_DEFAULT
            if match.diag and diag is None:
                diag = True

        if heap is None and self.config.global_enabled(kind, module.host) and not match.disables:
            heap = True
            source = DecisionSource.GLOBAL

        if diag is None and heap is True and self.config.global_diag(kind, module.host):
            diag = True

        if module.kind is ModuleKind.TEST:
            if heap is None:
                heap = True
                source = DecisionSource.TEST_DEFAULT
            if diag is None:
                diag = True

        if heap is not True:
            mode = MemtagMode.NONE
        elif diag is True:
            mode = MemtagMode.SYNC
        else:
            mode = MemtagMode.ASYNC

        opted_out = heap is False and source in (DecisionSource.EXPLICIT, DecisionSource.PATH_FORCE)
        return SanitizerDecision(
            kind=kind,
            enabled=mode is not MemtagMode.NONE,
            diag=mode is MemtagMode.SYNC,
            source=source,
            memtag_mode=mode,
            opted_out=opted_out,
        )

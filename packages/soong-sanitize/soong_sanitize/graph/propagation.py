"""Graph Propagation Engine.

Rewrites the module graph into sanitizer variants in two phases:

    1. Key discovery: seed every module with its own variant kinds and
       close the key set over the dependency edges until it stops growing.
    2. Materialisation: build one immutable Variant per key, with rewritten
       edges, injected runtime libraries and install dependencies.

Module-level UBSan inheritance through whole-static inclusion is settled
before key discovery, since it never splits variants.

Edge rule for a variant kind K (consumer C, dependency D):
    - D opted out of K         -> D without K
    - shared                   -> K if C has K or D enables K itself
    - whole_static             -> K iff C has K
    - static                   -> K iff C has K and D enables K itself
    - order_only_install       -> D's own kinds
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from functools import partial

from soong_sanitize.config import get_settings
from soong_sanitize.emit.flags import EmittedFlags, FlagEmitter
from soong_sanitize.errors import MissingRuntimeLibraryError, SanitizeError, UnknownModuleError
from soong_sanitize.graph.module_graph import ModuleGraph
from soong_sanitize.graph.variants import Variant, VariantCache, VariantEdge, VariantKey, install_path, output_file
from soong_sanitize.logging import LogPerformance, get_logger, log_error
from soong_sanitize.policy.configuration import PolicyConfiguration
from soong_sanitize.policy.traits import FULL_UBSAN_RUNTIME_KINDS, UBSAN_KINDS, VARIANT_KINDS, ordered_kinds
from soong_sanitize.resolve.decision import ModuleSanitizeState, VariantDecisionEngine
from soong_sanitize.types.enums import LinkKind, SanitizerKind
from soong_sanitize.types.module import DependencyEdge, Module

logger = get_logger(__name__)


def _uses_minimal_runtime(state: ModuleSanitizeState, key: VariantKey) -> bool:
    """Whether ``key`` is compiled with ``-fsanitize-minimal-runtime``."""
    return state.has_ubsan and not state.ubsan_diag and not key.kinds & FULL_UBSAN_RUNTIME_KINDS


@dataclass
class PropagationResult:
    """Variants produced by one propagation run.

    Example:
        >>> result = PropagationEngine(graph, config).run()
        >>> result.variant("libshared", SanitizerKind.ADDRESS).install_path
        'data/asan/system/lib64/libshared.so'
    """

    variants: dict[VariantKey, Variant]
    states: dict[str, ModuleSanitizeState]
    emitter: FlagEmitter = field(default_factory=FlagEmitter)

    def variant(self, name: str, *kinds: SanitizerKind) -> Variant:
        key = VariantKey(name, frozenset(kinds))
        try:
            return self.variants[key]
        except KeyError:
            raise UnknownModuleError(
                f"No variant {key}",
                module=name,
                kinds=[str(k) for k in ordered_kinds(kinds)],
                available=[str(v.key) for v in self.variants_of(name)],
            ) from None

    def has_variant(self, name: str, *kinds: SanitizerKind) -> bool:
        return VariantKey(name, frozenset(kinds)) in self.variants

    def variants_of(self, name: str) -> list[Variant]:
        return [self.variants[k] for k in sorted(self.variants, key=VariantKey.sort_key) if k.module == name]

    def keys(self) -> list[VariantKey]:
        return sorted(self.variants, key=VariantKey.sort_key)

    def flags(self, variant: Variant) -> EmittedFlags:
        return self.emitter.emit(variant)

    def __len__(self) -> int:
        return len(self.variants)

    def __iter__(self):
        return iter(self.variants[k] for k in self.keys())


class PropagationEngine:
    """Resolves a module graph into sanitizer variants.

    Args:
        graph: Declared modules
        config: Policy tables
        decisions: Decision engine; a fresh one over ``config`` by default
        cache: Variant cache; a shared cache reuses variants across runs over
            the same graph and policy content and rejects any other
        max_workers: Threads used for per-module decision resolution;
            ``SanitizeSettings.max_workers`` by default
    """

    def __init__(
        self,
        graph: ModuleGraph,
        config: PolicyConfiguration,
        decisions: VariantDecisionEngine | None = None,
        cache: VariantCache | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.graph = graph
        self.config = config
        self.decisions = decisions or VariantDecisionEngine(config)
        self.cache = cache if cache is not None else VariantCache()
        self.max_workers = max_workers if max_workers is not None else get_settings().max_workers
        self._runtime_names = config.runtimes.all()

    def run(self) -> PropagationResult:
        """Run both phases.

        Raises:
            GraphError: Invalid graph
            ConfigurationConflictError: Declaration contradicts a FORCE_* rule
            MissingRuntimeLibraryError: Required runtime not in the graph
            StaleVariantCacheError: Cache was filled for other graph or policy content
        """
        try:
            with LogPerformance(logger, "propagate_variants", modules=len(self.graph)):
                self.graph.validate()
                self.cache.bind((self.graph.fingerprint(), self.config.fingerprint()))
                own = self.decisions.resolve_all(self.graph.modules(), max_workers=self.max_workers)
                states = self._inherit_whole_static_ubsan(own)
                edge_map = self._discover_keys(states)
                variants = self._materialise(edge_map, states)
        except SanitizeError as e:
            log_error(logger, "propagation_failed", error=e)
            raise

        logger.info(
            "propagation_complete",
            modules=len(self.graph),
            variants=len(variants),
            sanitized=sum(1 for k in variants if k.kinds),
        )
        return PropagationResult(variants=variants, states=states)

    # ------------------------------------------------------------------
    # Whole-static UBSan inheritance
    # ------------------------------------------------------------------

    def _inherit_whole_static_ubsan(self, own: dict[str, ModuleSanitizeState]) -> dict[str, ModuleSanitizeState]:
        """Switch on UBSan in static libraries only ever merged into UBSan modules.

        A static library that does not declare a UBSan kind inherits it when
        it has at least one incoming edge and every incoming edge is
        whole_static from a module that has the kind. Misc checks are the
        union of the sources' checks. Enabling only grows, so iterating
        to a fixed point terminates.
        """
        states = dict(own)
        changed = True
        while changed:
            changed = False
            for module in self.graph.modules():
                if module.kind.is_linked or module.name in self._runtime_names:
                    continue
                incoming = self.graph.incoming(module.name)
                if not incoming or any(e.link is not LinkKind.WHOLE_STATIC for e in incoming):
                    continue

                state = states[module.name]
                sources = [states[e.source] for e in incoming]
                inherited: list[SanitizerKind] = []
                for kind in ordered_kinds(UBSAN_KINDS):
                    if state.is_enabled(kind) or module.sanitize.declared(kind) is not None:
                        continue
                    if state.opted_out(kind):
                        continue
                    if all(s.is_enabled(kind) for s in sources):
                        inherited.append(kind)
                if not inherited:
                    continue

                checks: set[str] = set()
                if SanitizerKind.MISC_UNDEFINED in inherited:
                    for source in sources:
                        checks.update(source.misc_checks)
                diag = any(s.decision(k).diag for s in sources for k in inherited)
                states[module.name] = state.inherit_ubsan(inherited, checks, diag)
                changed = True
                logger.debug(
                    "ubsan_inherited",
                    module=module.name,
                    kinds=[str(k) for k in inherited],
                    sources=sorted(e.source for e in incoming),
                )
        return states

    # ------------------------------------------------------------------
    # Phase 1: key discovery
    # ------------------------------------------------------------------

    def _seed(self, module: Module, states: dict[str, ModuleSanitizeState]) -> VariantKey:
        if module.name in self._runtime_names:
            return VariantKey(module.name)
        return VariantKey(module.name, states[module.name].variant_kinds)

    def _dependency_key(
        self,
        consumer: VariantKey,
        edge: DependencyEdge,
        states: dict[str, ModuleSanitizeState],
    ) -> VariantKey:
        if edge.target in self._runtime_names:
            return VariantKey(edge.target)

        dep = states[edge.target]
        kinds: set[SanitizerKind] = set()
        for kind in ordered_kinds(VARIANT_KINDS):
            wanted = kind in consumer.kinds
            if dep.opted_out(kind):
                if wanted:
                    logger.warning(
                        "sanitizer_opt_out_dependency",
                        module=consumer.module,
                        dependency=edge.target,
                        kind=str(kind),
                        link=str(edge.link),
                    )
                continue

            own = dep.is_enabled(kind)
            if edge.link is LinkKind.SHARED:
                active = wanted or own
            elif edge.link is LinkKind.WHOLE_STATIC:
                active = wanted
            elif edge.link is LinkKind.STATIC:
                active = wanted and own
            else:
                active = own
            if active:
                kinds.add(kind)
        return VariantKey(edge.target, frozenset(kinds))

    def _discover_keys(self, states: dict[str, ModuleSanitizeState]) -> dict[VariantKey, list[VariantEdge]]:
        """Close the key set; returns each key's rewritten declared edges."""
        seeds = [self._seed(m, states) for m in self.graph.modules()]
        edge_map: dict[VariantKey, list[VariantEdge]] = {}
        worklist = deque(seeds)
        while worklist:
            key = worklist.popleft()
            if key in edge_map:
                continue
            edges = [
                VariantEdge(edge.link, self._dependency_key(key, edge, states))
                for edge in self.graph.edges_from(key.module)
            ]
            edge_map[key] = edges
            worklist.extend(e.target for e in edges if e.target not in edge_map)
        return edge_map

    # ------------------------------------------------------------------
    # Phase 2: materialisation
    # ------------------------------------------------------------------

    def _require_runtime(self, name: str, key: VariantKey, kind: str) -> VariantKey:
        if name not in self.graph:
            raise MissingRuntimeLibraryError(
                f"{key} needs runtime library {name!r}, which is not in the graph",
                module=key.module,
                runtime=name,
                kind=kind,
            )
        return VariantKey(name)

    def _static_closure(self, key: VariantKey, edge_map: dict[VariantKey, list[VariantEdge]]) -> list[VariantKey]:
        seen: set[VariantKey] = set()
        stack = [e.target for e in edge_map[key] if e.link.is_static]
        while stack:
            target = stack.pop()
            if target in seen:
                continue
            seen.add(target)
            stack.extend(e.target for e in edge_map[target] if e.link.is_static)
        return sorted(seen, key=VariantKey.sort_key)

    def _runtime_edges(
        self,
        key: VariantKey,
        edge_map: dict[VariantKey, list[VariantEdge]],
        states: dict[str, ModuleSanitizeState],
    ) -> tuple[list[VariantEdge], tuple[str, ...]]:
        runtimes = self.config.runtimes
        injected: list[VariantEdge] = []

        for kind, name in ((SanitizerKind.ADDRESS, runtimes.asan), (SanitizerKind.THREAD, runtimes.tsan)):
            if kind in key.kinds:
                injected.append(VariantEdge(LinkKind.SHARED, self._require_runtime(name, key, str(kind)), injected=True))

        # Each member was compiled against the runtime its own variant selects,
        # so a plain static member can need the minimal runtime inside an ASan link.
        members = [key] + self._static_closure(key, edge_map)
        minimal = any(_uses_minimal_runtime(states[m.module], m) for m in members)
        standalone = not key.kinds & FULL_UBSAN_RUNTIME_KINDS and any(
            states[m.module].has_ubsan and states[m.module].ubsan_diag for m in members
        )

        if standalone:
            runtime = self._require_runtime(runtimes.ubsan_standalone, key, "undefined")
            injected.append(VariantEdge(LinkKind.SHARED, runtime, injected=True))
        if not minimal:
            return injected, ()

        runtime = self._require_runtime(runtimes.ubsan_minimal, key, "undefined")
        injected.append(VariantEdge(LinkKind.STATIC, runtime, injected=True))
        return injected, (output_file(self.graph.get(runtime.module)),)

    def _install_deps(self, key: VariantKey, edge_map: dict[VariantKey, list[VariantEdge]]) -> tuple[str, ...]:
        """Install paths of every shared or order-only target reachable from ``key``."""
        paths: set[str] = set()
        seen: set[VariantKey] = {key}
        stack = list(edge_map[key])
        while stack:
            edge = stack.pop()
            if edge.link in (LinkKind.SHARED, LinkKind.ORDER_ONLY_INSTALL):
                path = install_path(self.graph.get(edge.target.module), edge.target.kinds)
                if path is not None:
                    paths.add(path)
            if edge.target in seen:
                continue
            seen.add(edge.target)
            stack.extend(edge_map[edge.target])
        return tuple(sorted(paths))

    def _materialise(
        self,
        edge_map: dict[VariantKey, list[VariantEdge]],
        states: dict[str, ModuleSanitizeState],
    ) -> dict[VariantKey, Variant]:
        ordered = sorted(edge_map, key=VariantKey.sort_key)

        # Runtime edges are added before install deps so shared runtimes get installed.
        exclude_map: dict[VariantKey, tuple[str, ...]] = {}
        for key in ordered:
            module = self.graph.get(key.module)
            if not module.kind.is_linked or key.module in self._runtime_names:
                continue
            injected, exclude_libs = self._runtime_edges(key, edge_map, states)
            edge_map[key] = edge_map[key] + injected
            exclude_map[key] = exclude_libs

        variants: dict[VariantKey, Variant] = {}
        for key in ordered:
            module = self.graph.get(key.module)
            factory = partial(
                Variant,
                key=key,
                module=module,
                state=states[key.module],
                edges=tuple(edge_map[key]),
                exclude_libs=exclude_map.get(key, ()),
                install_deps=self._install_deps(key, edge_map) if module.kind.is_linked else (),
            )
            variant = self.cache.get_or_create(key, factory)
            variants[key] = variant
            logger.debug("variant_created", variant=str(key), name=variant.variant_name, edges=len(variant.edges))
        return variants

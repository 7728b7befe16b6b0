"""Module graph.

Holds the declared modules and their dependency edges. The graph is the
input of propagation and is never mutated by it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Iterator

import yaml

from soong_sanitize.config import RuntimeLibraryNames
from soong_sanitize.errors import (
    DuplicateModuleError,
    GraphError,
    InvalidEdgeError,
    UnknownModuleError,
)
from soong_sanitize.logging import get_logger
from soong_sanitize.types.enums import LinkKind, ModuleKind
from soong_sanitize.types.module import DependencyEdge, Module

logger = get_logger(__name__)

# Target module kinds accepted on each link kind
_LINKABLE_KINDS: dict[LinkKind, frozenset[ModuleKind]] = {
    LinkKind.SHARED: frozenset({ModuleKind.SHARED}),
    LinkKind.STATIC: frozenset({ModuleKind.STATIC}),
    LinkKind.WHOLE_STATIC: frozenset({ModuleKind.STATIC}),
    LinkKind.ORDER_ONLY_INSTALL: frozenset({ModuleKind.BINARY, ModuleKind.TEST, ModuleKind.SHARED}),
}


class ModuleGraph:
    """Name-indexed set of modules with incoming-edge index.

    Example:
        >>> graph = ModuleGraph()
        >>> graph.add_module(Module(name="libfoo", kind=ModuleKind.SHARED))
        >>> graph.get("libfoo").kind
        <ModuleKind.SHARED: 'shared'>
    """

    def __init__(self, modules: Iterable[Module] = ()) -> None:
        self._modules: dict[str, Module] = {}
        self._incoming: dict[str, list[DependencyEdge]] = {}
        for module in modules:
            self.add_module(module)

    def add_module(self, module: Module) -> None:
        if module.name in self._modules:
            raise DuplicateModuleError(f"Module {module.name!r} declared twice", module=module.name)
        self._modules[module.name] = module
        for edge in module.dependencies():
            self._incoming.setdefault(edge.target, []).append(edge)

    def add_runtime_libraries(self, runtimes: RuntimeLibraryNames | None = None, host: bool = False) -> None:
        """Declare the sanitizer runtime libraries that are not declared yet."""
        runtimes = runtimes or RuntimeLibraryNames()
        for name, kind in (
            (runtimes.asan, ModuleKind.SHARED),
            (runtimes.tsan, ModuleKind.SHARED),
            (runtimes.ubsan_standalone, ModuleKind.SHARED),
            (runtimes.ubsan_minimal, ModuleKind.STATIC),
        ):
            if name not in self._modules:
                self.add_module(Module(name=name, kind=kind, host=host))

    def get(self, name: str) -> Module:
        try:
            return self._modules[name]
        except KeyError:
            raise UnknownModuleError(f"Unknown module {name!r}", module=name) from None

    def has(self, name: str) -> bool:
        return name in self._modules

    def __contains__(self, name: object) -> bool:
        return name in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    def __iter__(self) -> Iterator[Module]:
        return iter(self.modules())

    def modules(self) -> list[Module]:
        """Modules sorted by name."""
        return [self._modules[name] for name in sorted(self._modules)]

    def fingerprint(self) -> int:
        """Content hash of the declared modules; equal graphs hash equal."""
        return hash(tuple(self.modules()))

    def edges_from(self, name: str) -> list[DependencyEdge]:
        return self.get(name).dependencies()

    def incoming(self, name: str) -> list[DependencyEdge]:
        return list(self._incoming.get(name, ()))

    def validate(self) -> None:
        """Check every edge points at a declared module it can link against.

        Raises:
            UnknownModuleError: Edge target not declared
            InvalidEdgeError: Link kind does not fit the target, or the edge
                crosses host and device
        """
        for module in self.modules():
            for edge in module.dependencies():
                if edge.target not in self._modules:
                    raise UnknownModuleError(
                        f"{module.name} depends on unknown module {edge.target!r}",
                        module=module.name,
                        dependency=edge.target,
                        link=str(edge.link),
                    )
                target = self._modules[edge.target]
                if target.kind not in _LINKABLE_KINDS[edge.link]:
                    raise InvalidEdgeError(
                        f"{edge} targets a {target.kind} module",
                        module=module.name,
                        dependency=target.name,
                        link=str(edge.link),
                        target_kind=str(target.kind),
                    )
                if target.host != module.host:
                    raise InvalidEdgeError(
                        f"{edge} crosses {module.target} and {target.target}",
                        module=module.name,
                        dependency=target.name,
                    )

    @classmethod
    def from_declarations(cls, declarations: Iterable[dict[str, Any]], host: bool = False) -> ModuleGraph:
        """Build a graph from Blueprint-like module dicts.

        Raises:
            GraphError: Malformed declaration
            DuplicateModuleError: Two declarations share a name
        """
        graph = cls()
        for data in declarations:
            if not isinstance(data, dict):
                raise GraphError("Module declaration must be a mapping", got=type(data).__name__)
            try:
                module = Module.from_dict(data, host=host)
            except (ValueError, TypeError) as e:
                raise GraphError("Invalid module declaration", declaration=data.get("name"), original_error=str(e)) from e
            graph.add_module(module)
        logger.debug("module_graph_loaded", modules=len(graph))
        return graph

    @classmethod
    def from_file(cls, path: str | Path, host: bool = False) -> ModuleGraph:
        """Load ``{"modules": [...]}`` from a YAML or JSON file."""
        path = Path(path)
        try:
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise GraphError("Cannot read module declarations", path=str(path), original_error=str(e)) from e
        except yaml.YAMLError as e:
            raise GraphError("Malformed module declarations", path=str(path), original_error=str(e)) from e

        if not isinstance(data, dict) or not isinstance(data.get("modules"), list):
            raise GraphError("Module file must contain a 'modules' list", path=str(path))
        return cls.from_declarations(data["modules"], host=host)

"""Policy configuration.

Immutable value holding every policy input the decision engine reads:
path table, global enable/diag lists, device architecture and runtime
library names. Built once from ``ProductVariables`` and passed explicitly;
there is no process-global policy state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from soong_sanitize.config import ProductVariables, RuntimeLibraryNames, load_product_variables, parse_product_variables
from soong_sanitize.errors import UnknownSanitizerError
from soong_sanitize.logging import get_logger
from soong_sanitize.policy.paths import PathPolicyTable
from soong_sanitize.types.enums import PathDecision, SanitizerKind

logger = get_logger(__name__)


def parse_kinds(names: Iterable[str], source: str) -> frozenset[SanitizerKind]:
    """Parse sanitizer names from a product variable.

    Raises:
        UnknownSanitizerError: A name is not a known sanitizer
    """
    kinds = set()
    for name in names:
        try:
            kinds.add(SanitizerKind.parse(name))
        except ValueError as e:
            raise UnknownSanitizerError(f"Unknown sanitizer {name!r}", source=source, name=name) from e
    return frozenset(kinds)


@dataclass(frozen=True)
class PolicyConfiguration:
    """Read-only policy tables for one build."""

    path_table: PathPolicyTable = field(default_factory=PathPolicyTable)
    global_device: frozenset[SanitizerKind] = frozenset()
    global_device_diag: frozenset[SanitizerKind] = frozenset()
    global_host: frozenset[SanitizerKind] = frozenset()
    device_arch: str = "arm64"
    runtimes: RuntimeLibraryNames = field(default_factory=RuntimeLibraryNames)

    def global_enabled(self, kind: SanitizerKind, host: bool) -> bool:
        return kind in (self.global_host if host else self.global_device)

    def global_diag(self, kind: SanitizerKind, host: bool) -> bool:
        # Only a device diag list exists.
        return not host and kind in self.global_device_diag

    def fingerprint(self) -> int:
        """Content hash of the policy; configurations built from equal variables hash equal."""
        return hash(
            (
                tuple(self.path_table.rules()),
                self.global_device,
                self.global_device_diag,
                self.global_host,
                self.device_arch,
                tuple(sorted(self.runtimes.model_dump().items())),
            )
        )

    @classmethod
    def from_product_variables(
        cls,
        variables: ProductVariables,
        runtimes: RuntimeLibraryNames | None = None,
    ) -> PolicyConfiguration:
        table = PathPolicyTable()

        for prefix in variables.memtag_heap_exclude_paths:
            table.add_rule(prefix, SanitizerKind.MEMTAG_HEAP, PathDecision.DEFAULT_DISABLED)
        for prefix in variables.memtag_heap_sync_include_paths:
            table.add_rule(prefix, SanitizerKind.MEMTAG_HEAP, PathDecision.DEFAULT_ENABLED, diag=True)
        for prefix in variables.memtag_heap_async_include_paths:
            table.add_rule(prefix, SanitizerKind.MEMTAG_HEAP, PathDecision.DEFAULT_ENABLED)

        for mapping, decision, source in (
            (variables.sanitizer_include_paths, PathDecision.DEFAULT_ENABLED, "sanitizer_include_paths"),
            (variables.sanitizer_exclude_paths, PathDecision.DEFAULT_DISABLED, "sanitizer_exclude_paths"),
            (
                variables.sanitizer_force_include_paths,
                PathDecision.FORCE_ENABLED_RECURSIVE,
                "sanitizer_force_include_paths",
            ),
            (variables.sanitizer_force_exclude_paths, PathDecision.FORCE_DISABLED, "sanitizer_force_exclude_paths"),
        ):
            for name, prefixes in mapping.items():
                (kind,) = parse_kinds([name], source)
                for prefix in prefixes:
                    table.add_rule(prefix, kind, decision)

        config = cls(
            path_table=table,
            global_device=parse_kinds(variables.sanitize_device, "SanitizeDevice"),
            global_device_diag=parse_kinds(variables.sanitize_device_diag, "SanitizeDeviceDiag"),
            global_host=parse_kinds(variables.sanitize_host, "SanitizeHost"),
            device_arch=variables.device_arch,
            runtimes=runtimes or RuntimeLibraryNames(),
        )
        logger.debug(
            "policy_configuration_loaded",
            path_rules=len(table),
            global_device=sorted(str(k) for k in config.global_device),
            global_host=sorted(str(k) for k in config.global_host),
            device_arch=config.device_arch,
        )
        return config

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> PolicyConfiguration:
        return cls.from_product_variables(parse_product_variables(data))

    @classmethod
    def from_file(cls, path: str | Path | None) -> PolicyConfiguration:
        return cls.from_product_variables(load_product_variables(path))

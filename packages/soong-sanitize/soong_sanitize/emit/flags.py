"""Flag / note emission.

Turns a resolved Variant into the sanitizer part of its compile and link
command lines and the memory-tagging ELF note. Emission reads only the
variant; all decisions were taken upstream.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from soong_sanitize.policy.traits import FULL_UBSAN_RUNTIME_KINDS, ordered_kinds, traits_of
from soong_sanitize.types.enums import MemtagMode, SanitizerKind

if TYPE_CHECKING:
    from soong_sanitize.graph.variants import Variant


@dataclass(frozen=True)
class EmittedFlags:
    """Sanitizer flags of one variant."""

    compile_flags: tuple[str, ...] = ()
    link_flags: tuple[str, ...] = ()
    memtag_note: MemtagMode = MemtagMode.NONE

    def has_compile_flag(self, flag: str) -> bool:
        return flag in self.compile_flags

    def has_link_flag(self, flag: str) -> bool:
        return flag in self.link_flags


def exclude_libs_flag(archive: str) -> str:
    return f"-Wl,--exclude-libs={archive}"


class FlagEmitter:
    """Stateless emitter; one instance can serve any number of variants."""

    def emit(self, variant: Variant) -> EmittedFlags:
        return EmittedFlags(
            compile_flags=tuple(self.compile_flags(variant)),
            link_flags=tuple(self.link_flags(variant)),
            memtag_note=self.memtag_note(variant),
        )

    def compile_flags(self, variant: Variant) -> list[str]:
        flags: list[str] = []
        for kind in ordered_kinds(variant.kinds):
            flags.extend(traits_of(kind).compile_flags)

        state = variant.state
        if not state.has_ubsan:
            return flags

        if state.is_enabled(SanitizerKind.UNDEFINED):
            flags.extend(traits_of(SanitizerKind.UNDEFINED).compile_flags)
        if state.is_enabled(SanitizerKind.MISC_UNDEFINED) and state.misc_checks:
            flags.append("-fsanitize=" + ",".join(state.misc_checks))

        diag_checks = self._diag_checks(variant)
        if diag_checks:
            flags.append("-fno-sanitize-trap=" + ",".join(diag_checks))
        elif not variant.kinds & FULL_UBSAN_RUNTIME_KINDS:
            flags.append("-fsanitize-minimal-runtime")
        return flags

    def link_flags(self, variant: Variant) -> list[str]:
        if not variant.module.kind.is_linked:
            return []

        flags: list[str] = []
        for kind in ordered_kinds(variant.kinds):
            flags.extend(traits_of(kind).link_flags)
        flags.extend(exclude_libs_flag(archive) for archive in variant.exclude_libs)

        mode = variant.state.memtag_mode
        if mode is not MemtagMode.NONE:
            flags.extend(traits_of(SanitizerKind.MEMTAG_HEAP).link_flags)
            flags.append(f"-fsanitize-memtag-mode={mode.value}")
        return flags

    def memtag_note(self, variant: Variant) -> MemtagMode:
        if not variant.module.kind.is_executable:
            return MemtagMode.NONE
        return variant.state.memtag_mode

    def _diag_checks(self, variant: Variant) -> list[str]:
        state = variant.state
        checks: list[str] = []
        if state.is_enabled(SanitizerKind.UNDEFINED) and state.decision(SanitizerKind.UNDEFINED).diag:
            checks.append("undefined")
        if state.is_enabled(SanitizerKind.MISC_UNDEFINED) and state.decision(SanitizerKind.MISC_UNDEFINED).diag:
            checks.extend(c for c in state.misc_checks if c not in checks)
        return checks

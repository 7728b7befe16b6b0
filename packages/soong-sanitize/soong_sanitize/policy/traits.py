"""Per-kind sanitizer traits.

Static facts about each sanitizer kind that the decision, propagation and
emission stages consult. Kept as data so the stages never switch on kinds
they do not otherwise care about.
"""

from dataclasses import dataclass

from soong_sanitize.types.enums import SanitizerKind


@dataclass(frozen=True)
class SanitizerTraits:
    """Static traits of one sanitizer kind.

    Attributes:
        kind: Sanitizer kind
        creates_variant: Splits modules into plain and sanitized variants
        propagates_to_shared: Variant requirement flows through shared edges
        globally_enableable: Can be switched on by SanitizeDevice/SanitizeHost
        device_only: Only meaningful for device modules
        variant_suffix: Suffix appended to the variant name
        compile_flags: Flags added to the module's own compilations
        link_flags: Flags added to the final link of linked variants
    """

    kind: SanitizerKind
    creates_variant: bool = False
    propagates_to_shared: bool = False
    globally_enableable: bool = True
    device_only: bool = False
    variant_suffix: str = ""
    compile_flags: tuple[str, ...] = ()
    link_flags: tuple[str, ...] = ()

    @property
    def is_ubsan(self) -> bool:
        return self.kind in UBSAN_KINDS


UBSAN_KINDS = frozenset({SanitizerKind.UNDEFINED, SanitizerKind.MISC_UNDEFINED})

SANITIZER_TRAITS: dict[SanitizerKind, SanitizerTraits] = {
    SanitizerKind.ADDRESS: SanitizerTraits(
        kind=SanitizerKind.ADDRESS,
        creates_variant=True,
        propagates_to_shared=True,
        variant_suffix="asan",
        compile_flags=("-fsanitize=address", "-fno-omit-frame-pointer"),
        link_flags=("-fsanitize=address",),
    ),
    SanitizerKind.THREAD: SanitizerTraits(
        kind=SanitizerKind.THREAD,
        creates_variant=True,
        propagates_to_shared=True,
        variant_suffix="tsan",
        compile_flags=("-fsanitize=thread",),
        link_flags=("-fsanitize=thread",),
    ),
    SanitizerKind.FUZZER: SanitizerTraits(
        kind=SanitizerKind.FUZZER,
        creates_variant=True,
        propagates_to_shared=True,
        variant_suffix="fuzzer",
        compile_flags=("-fsanitize=fuzzer-no-link",),
        link_flags=("-fsanitize=fuzzer-no-link",),
    ),
    SanitizerKind.UNDEFINED: SanitizerTraits(
        kind=SanitizerKind.UNDEFINED,
        compile_flags=("-fsanitize=undefined",),
    ),
    # Check list comes from the module, flags are assembled at emission.
    SanitizerKind.MISC_UNDEFINED: SanitizerTraits(
        kind=SanitizerKind.MISC_UNDEFINED,
        globally_enableable=False,
    ),
    SanitizerKind.MEMTAG_HEAP: SanitizerTraits(
        kind=SanitizerKind.MEMTAG_HEAP,
        device_only=True,
        link_flags=("-fsanitize=memtag-heap",),
    ),
}

VARIANT_KINDS = frozenset(k for k, t in SANITIZER_TRAITS.items() if t.creates_variant)
MODULE_LEVEL_KINDS = frozenset(SANITIZER_TRAITS) - VARIANT_KINDS

# Sanitizers whose runtime already carries the UBSan handlers.
FULL_UBSAN_RUNTIME_KINDS = frozenset({SanitizerKind.ADDRESS, SanitizerKind.THREAD})


def traits_of(kind: SanitizerKind) -> SanitizerTraits:
    return SANITIZER_TRAITS[kind]


def ordered_kinds(kinds) -> list[SanitizerKind]:
    """Kinds in declaration order of SanitizerKind (stable flag ordering)."""
    order = list(SanitizerKind)
    return sorted(kinds, key=order.index)

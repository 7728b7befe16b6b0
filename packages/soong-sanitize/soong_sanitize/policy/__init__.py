"""Policy tables: per-kind traits, path rules and global product configuration."""

from soong_sanitize.policy.configuration import PolicyConfiguration, parse_kinds
from soong_sanitize.policy.paths import PathMatch, PathPolicyTable, PathRule
from soong_sanitize.policy.traits import (
    MODULE_LEVEL_KINDS,
    SANITIZER_TRAITS,
    VARIANT_KINDS,
    SanitizerTraits,
    traits_of,
)

__all__ = [
    "PolicyConfiguration",
    "parse_kinds",
    "PathPolicyTable",
    "PathRule",
    "PathMatch",
    "SanitizerTraits",
    "SANITIZER_TRAITS",
    "VARIANT_KINDS",
    "MODULE_LEVEL_KINDS",
    "traits_of",
]

"""
Unit Tests: heap memory tagging strength

Every module template is declared in four directories:

    subdir_no_override               no path rule
    subdir_async                     async include
    subdir_sync                      sync include
    subdir_override_default_disable  exclude + sync include + async include

and resolved under three product configurations. Expected strengths are
listed per template as (no_override, async, disable, sync).
"""

import pytest

from soong_sanitize import MemtagMode, Module, ModuleKind, PolicyConfiguration, SanitizerKind, VariantDecisionEngine
from soong_sanitize.errors import ConfigurationConflictError
from soong_sanitize.types.enums import DecisionSource

NONE, SYNC, ASYNC = MemtagMode.NONE, MemtagMode.SYNC, MemtagMode.ASYNC

PATH_VARIABLES = {
    "MemtagHeapExcludePaths": ["subdir_override_default_disable"],
    "MemtagHeapSyncIncludePaths": ["subdir_sync", "subdir_override_default_disable"],
    "MemtagHeapAsyncIncludePaths": ["subdir_async", "subdir_override_default_disable"],
}

# suffix -> package
SUBDIRS = {
    "no_override": "subdir_no_override",
    "override_default_async": "subdir_async",
    "override_default_disable": "subdir_override_default_disable",
    "override_default_sync": "subdir_sync",
}

# template -> sanitize block
TEMPLATES = {
    "unset": {},
    "no_memtag": {"memtag_heap": False},
    "set_memtag": {"memtag_heap": True},
    "set_memtag_set_async": {"memtag_heap": True, "diag": {"memtag_heap": False}},
    "set_memtag_set_sync": {"memtag_heap": True, "diag": {"memtag_heap": True}},
    "unset_memtag_set_sync": {"diag": {"memtag_heap": True}},
}

PATHS_ONLY = {
    ("no_memtag", "binary"): (NONE, NONE, NONE, NONE),
    ("no_memtag", "test"): (NONE, NONE, NONE, NONE),
    ("set_memtag", "binary"): (ASYNC, ASYNC, ASYNC, SYNC),
    ("set_memtag", "test"): (SYNC, SYNC, SYNC, SYNC),
    ("set_memtag_set_async", "binary"): (ASYNC, ASYNC, ASYNC, ASYNC),
    ("set_memtag_set_async", "test"): (ASYNC, ASYNC, ASYNC, ASYNC),
    ("set_memtag_set_sync", "binary"): (SYNC, SYNC, SYNC, SYNC),
    ("set_memtag_set_sync", "test"): (SYNC, SYNC, SYNC, SYNC),
    # diag without memtag_heap and without an enabling rule stays NONE
    ("unset_memtag_set_sync", "binary"): (NONE, SYNC, NONE, SYNC),
    ("unset_memtag_set_sync", "test"): (SYNC, SYNC, SYNC, SYNC),
    ("unset", "binary"): (NONE, ASYNC, NONE, SYNC),
    ("unset", "test"): (SYNC, SYNC, SYNC, SYNC),
}

WITH_SANITIZE_DEVICE = {
    ("no_memtag", "binary"): (NONE, NONE, NONE, NONE),
    ("no_memtag", "test"): (NONE, NONE, NONE, NONE),
    ("set_memtag", "binary"): (ASYNC, ASYNC, ASYNC, SYNC),
    ("set_memtag", "test"): (SYNC, SYNC, SYNC, SYNC),
    ("set_memtag_set_async", "binary"): (ASYNC, ASYNC, ASYNC, ASYNC),
    ("set_memtag_set_async", "test"): (ASYNC, ASYNC, ASYNC, ASYNC),
    ("set_memtag_set_sync", "binary"): (SYNC, SYNC, SYNC, SYNC),
    ("set_memtag_set_sync", "test"): (SYNC, SYNC, SYNC, SYNC),
    ("unset_memtag_set_sync", "binary"): (SYNC, SYNC, NONE, SYNC),
    ("unset_memtag_set_sync", "test"): (SYNC, SYNC, SYNC, SYNC),
    ("unset", "binary"): (ASYNC, ASYNC, NONE, SYNC),
    ("unset", "test"): (SYNC, SYNC, SYNC, SYNC),
}

WITH_SANITIZE_DEVICE_DIAG = {
    ("no_memtag", "binary"): (NONE, NONE, NONE, NONE),
    ("no_memtag", "test"): (NONE, NONE, NONE, NONE),
    ("set_memtag", "binary"): (SYNC, SYNC, SYNC, SYNC),
    ("set_memtag", "test"): (SYNC, SYNC, SYNC, SYNC),
    ("set_memtag_set_async", "binary"): (ASYNC, ASYNC, ASYNC, ASYNC),
    ("set_memtag_set_async", "test"): (ASYNC, ASYNC, ASYNC, ASYNC),
    ("set_memtag_set_sync", "binary"): (SYNC, SYNC, SYNC, SYNC),
    ("set_memtag_set_sync", "test"): (SYNC, SYNC, SYNC, SYNC),
    ("unset_memtag_set_sync", "binary"): (SYNC, SYNC, NONE, SYNC),
    ("unset_memtag_set_sync", "test"): (SYNC, SYNC, SYNC, SYNC),
    ("unset", "binary"): (SYNC, SYNC, NONE, SYNC),
    ("unset", "test"): (SYNC, SYNC, SYNC, SYNC),
}


def _cases(table):
    for (template, kind), expected in table.items():
        for suffix, mode in zip(SUBDIRS, expected):
            yield pytest.param(template, kind, suffix, mode, id=f"{template}_{kind}_{suffix}")


def _resolve(variables, template, kind, suffix):
    config = PolicyConfiguration.from_dict({**PATH_VARIABLES, **variables})
    module = Module.from_dict(
        {
            "type": "cc_test" if kind == "test" else "cc_binary",
            "name": f"{template}_{kind}_{suffix}",
            "package": SUBDIRS[suffix],
            "sanitize": TEMPLATES[template],
        }
    )
    return VariantDecisionEngine(config).resolve(module, SanitizerKind.MEMTAG_HEAP)


class TestMemtagStrengthTables:
    @pytest.mark.parametrize("template,kind,suffix,expected", list(_cases(PATHS_ONLY)))
    def test_path_rules_only(self, template, kind, suffix, expected):
        assert _resolve({}, template, kind, suffix).memtag_mode is expected

    @pytest.mark.parametrize("template,kind,suffix,expected", list(_cases(WITH_SANITIZE_DEVICE)))
    def test_with_sanitize_device(self, template, kind, suffix, expected):
        variables = {"SanitizeDevice": ["memtag_heap"]}

        assert _resolve(variables, template, kind, suffix).memtag_mode is expected

    @pytest.mark.parametrize("template,kind,suffix,expected", list(_cases(WITH_SANITIZE_DEVICE_DIAG)))
    def test_with_sanitize_device_diag(self, template, kind, suffix, expected):
        variables = {"SanitizeDevice": ["memtag_heap"], "SanitizeDeviceDiag": ["memtag_heap"]}

        assert _resolve(variables, template, kind, suffix).memtag_mode is expected


class TestMemtagDecision:
    def test_enabled_and_diag_follow_mode(self):
        decision = _resolve({}, "set_memtag_set_sync", "binary", "no_override")

        assert decision.enabled is True
        assert decision.diag is True
        assert decision.source is DecisionSource.EXPLICIT

    def test_test_default_source(self):
        decision = _resolve({}, "unset", "test", "no_override")

        assert decision.source is DecisionSource.TEST_DEFAULT

    def test_explicit_false_is_opt_out(self):
        assert _resolve({}, "no_memtag", "binary", "override_default_sync").opted_out is True

    def test_unset_diag_only_binary_stays_none(self):
        decision = _resolve({}, "unset_memtag_set_sync", "binary", "no_override")

        assert decision.enabled is False
        assert decision.memtag_mode is NONE


class TestMemtagUnsupported:
    @pytest.fixture
    def engine(self):
        return VariantDecisionEngine(PolicyConfiguration.from_dict({"SanitizeDevice": ["memtag_heap"]}))

    def test_host(self, engine):
        module = Module(name="bin", kind=ModuleKind.BINARY, host=True)

        decision = engine.resolve(module, SanitizerKind.MEMTAG_HEAP)

        assert decision.memtag_mode is NONE
        assert decision.source is DecisionSource.UNSUPPORTED

    def test_shared_library(self, engine):
        module = Module.from_dict({"type": "cc_library_shared", "name": "libfoo", "sanitize": {"memtag_heap": True}})

        assert engine.resolve(module, SanitizerKind.MEMTAG_HEAP).memtag_mode is NONE

    def test_non_arm64_device(self):
        engine = VariantDecisionEngine(PolicyConfiguration.from_dict({"DeviceArch": "x86_64"}))
        module = Module.from_dict({"type": "cc_test", "name": "t"})

        assert engine.resolve(module, SanitizerKind.MEMTAG_HEAP).memtag_mode is NONE


class TestMemtagForceRules:
    def test_force_include_enables(self):
        config = PolicyConfiguration.from_dict({"SanitizerForceIncludePaths": {"memtag_heap": ["vendor"]}})
        module = Module.from_dict({"type": "cc_binary", "name": "b", "package": "vendor/x"})

        decision = VariantDecisionEngine(config).resolve(module, SanitizerKind.MEMTAG_HEAP)

        assert decision.memtag_mode is ASYNC
        assert decision.source is DecisionSource.PATH_FORCE

    def test_force_exclude_beats_test_default(self):
        config = PolicyConfiguration.from_dict({"SanitizerForceExcludePaths": {"memtag_heap": ["vendor"]}})
        module = Module.from_dict({"type": "cc_test", "name": "t", "package": "vendor"})

        decision = VariantDecisionEngine(config).resolve(module, SanitizerKind.MEMTAG_HEAP)

        assert decision.memtag_mode is NONE
        assert decision.opted_out is True

    def test_force_exclude_conflicts_with_explicit(self):
        config = PolicyConfiguration.from_dict({"SanitizerForceExcludePaths": {"memtag_heap": ["vendor"]}})
        module = Module.from_dict(
            {"type": "cc_binary", "name": "b", "package": "vendor", "sanitize": {"memtag_heap": True}}
        )

        with pytest.raises(ConfigurationConflictError):
            VariantDecisionEngine(config).resolve(module, SanitizerKind.MEMTAG_HEAP)

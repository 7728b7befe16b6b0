"""
Unit Tests: PolicyConfiguration

Building policy tables from product variables.
"""

import pytest

from soong_sanitize import PathDecision, PolicyConfiguration, ProductVariables, SanitizerKind
from soong_sanitize.errors import PathPolicyError, PolicyLoadError, UnknownSanitizerError


class TestFromProductVariables:
    def test_empty(self):
        config = PolicyConfiguration.from_dict(None)

        assert config.global_device == frozenset()
        assert config.global_host == frozenset()
        assert len(config.path_table) == 0
        assert config.device_arch == "arm64"

    def test_camel_case_keys(self):
        config = PolicyConfiguration.from_dict(
            {
                "SanitizeDevice": ["memtag_heap"],
                "SanitizeDeviceDiag": ["memtag_heap"],
                "SanitizeHost": ["address"],
            }
        )

        assert config.global_device == frozenset({SanitizerKind.MEMTAG_HEAP})
        assert config.global_device_diag == frozenset({SanitizerKind.MEMTAG_HEAP})
        assert config.global_host == frozenset({SanitizerKind.ADDRESS})

    def test_snake_case_keys(self):
        config = PolicyConfiguration.from_dict({"sanitize_device": ["undefined"]})

        assert config.global_enabled(SanitizerKind.UNDEFINED, host=False)
        assert not config.global_enabled(SanitizerKind.UNDEFINED, host=True)

    def test_device_diag_list_does_not_apply_to_host(self):
        config = PolicyConfiguration.from_dict({"SanitizeDeviceDiag": ["undefined"]})

        assert config.global_diag(SanitizerKind.UNDEFINED, host=False)
        assert not config.global_diag(SanitizerKind.UNDEFINED, host=True)

    def test_memtag_paths(self):
        config = PolicyConfiguration.from_dict(
            {
                "MemtagHeapExcludePaths": ["subdir_override_default_disable"],
                "MemtagHeapSyncIncludePaths": ["subdir_sync", "subdir_override_default_disable"],
                "MemtagHeapAsyncIncludePaths": ["subdir_async", "subdir_override_default_disable"],
            }
        )
        table = config.path_table
        kind = SanitizerKind.MEMTAG_HEAP

        assert table.lookup("subdir_override_default_disable", kind).decision is PathDecision.DEFAULT_DISABLED
        assert table.lookup("subdir_sync", kind).diag is True
        assert table.lookup("subdir_async", kind).diag is False
        assert table.lookup("subdir_no_override", kind).decision is PathDecision.UNSPECIFIED

    def test_generic_path_maps(self):
        config = PolicyConfiguration.from_dict(
            {
                "SanitizerIncludePaths": {"address": ["frameworks/native"]},
                "SanitizerExcludePaths": {"address": ["frameworks/native/legacy"]},
                "SanitizerForceIncludePaths": {"thread": ["art"]},
                "SanitizerForceExcludePaths": {"fuzzer": ["bionic"]},
            }
        )
        table = config.path_table

        assert table.lookup("frameworks/native/libs", SanitizerKind.ADDRESS).decision is PathDecision.DEFAULT_ENABLED
        assert (
            table.lookup("frameworks/native/legacy/x", SanitizerKind.ADDRESS).decision is PathDecision.DEFAULT_DISABLED
        )
        assert table.lookup("art/runtime", SanitizerKind.THREAD).decision is PathDecision.FORCE_ENABLED_RECURSIVE
        assert table.lookup("bionic/libc", SanitizerKind.FUZZER).decision is PathDecision.FORCE_DISABLED

    def test_from_product_variables_model(self):
        variables = ProductVariables(sanitize_device=["address"], device_arch="x86_64")

        config = PolicyConfiguration.from_product_variables(variables)

        assert config.device_arch == "x86_64"
        assert config.global_device == frozenset({SanitizerKind.ADDRESS})


class TestLoadErrors:
    def test_unknown_sanitizer_in_global_list(self):
        with pytest.raises(UnknownSanitizerError) as exc_info:
            PolicyConfiguration.from_dict({"SanitizeDevice": ["hwaddress"]})

        assert exc_info.value.code == "UNKNOWN_SANITIZER"
        assert exc_info.value.context["name"] == "hwaddress"
        assert exc_info.value.context["source"] == "SanitizeDevice"

    def test_unknown_sanitizer_in_path_map(self):
        with pytest.raises(UnknownSanitizerError):
            PolicyConfiguration.from_dict({"SanitizerIncludePaths": {"cfi": ["a"]}})

    def test_malformed_path(self):
        with pytest.raises(PathPolicyError):
            PolicyConfiguration.from_dict({"MemtagHeapExcludePaths": ["/absolute"]})

    def test_errors_share_load_base(self):
        with pytest.raises(PolicyLoadError):
            PolicyConfiguration.from_dict({"MemtagHeapSyncIncludePaths": ["a/../b"]})

    def test_invalid_value_type(self):
        with pytest.raises(PolicyLoadError) as exc_info:
            PolicyConfiguration.from_dict({"SanitizeDevice": "address"})

        assert exc_info.value.code == "POLICY_LOAD_ERROR"

    def test_non_mapping(self):
        with pytest.raises(PolicyLoadError):
            PolicyConfiguration.from_dict(["address"])


class TestFromFile:
    def test_yaml_file(self, tmp_path):
        path = tmp_path / "soong.variables.yaml"
        path.write_text("SanitizeDevice:\n  - memtag_heap\nMemtagHeapExcludePaths:\n  - vendor\n")

        config = PolicyConfiguration.from_file(path)

        assert config.global_device == frozenset({SanitizerKind.MEMTAG_HEAP})
        assert config.path_table.lookup("vendor/x", SanitizerKind.MEMTAG_HEAP).disables

    def test_json_file(self, tmp_path):
        path = tmp_path / "soong.variables"
        path.write_text('{"SanitizeHost": ["thread"], "Unrelated": 1}')

        config = PolicyConfiguration.from_file(path)

        assert config.global_host == frozenset({SanitizerKind.THREAD})

    def test_none_path(self):
        assert len(PolicyConfiguration.from_file(None).path_table) == 0

    def test_missing_file(self, tmp_path):
        with pytest.raises(PolicyLoadError) as exc_info:
            PolicyConfiguration.from_file(tmp_path / "missing.yaml")

        assert "path" in exc_info.value.context

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("SanitizeDevice: [address\n")

        with pytest.raises(PolicyLoadError):
            PolicyConfiguration.from_file(path)


class TestFingerprint:
    def test_equal_variables_hash_equal(self):
        variables = {"SanitizeDevice": ["address"], "MemtagHeapAsyncIncludePaths": ["system/core"]}

        assert PolicyConfiguration.from_dict(variables).fingerprint() == PolicyConfiguration.from_dict(
            dict(variables)
        ).fingerprint()

    @pytest.mark.parametrize(
        "variables",
        [
            {"SanitizeDevice": ["memtag_heap"]},
            {"SanitizeDeviceDiag": ["undefined"]},
            {"MemtagHeapSyncIncludePaths": ["system/core"]},
        ],
    )
    def test_policy_changes_hash(self, variables):
        assert PolicyConfiguration.from_dict(variables).fingerprint() != PolicyConfiguration.from_dict(None).fingerprint()

"""
Configuration for soong-sanitize

Two layers:

* ``ProductVariables`` - the sanitizer-related subset of the product
  configuration (what Soong reads from ``soong.variables``). Accepts both
  snake_case and Soong's CamelCase keys.
* ``SanitizeSettings`` - process settings from the environment
  (``SOONG_SANITIZE_`` prefix): logging and worker count.

Usage:
    from soong_sanitize.config import SanitizeSettings, load_product_variables

    settings = SanitizeSettings()
    variables = load_product_variables(settings.product_variables_file)
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from soong_sanitize.errors import PolicyLoadError


class ProductVariables(BaseModel):
    """Sanitizer-related product variables."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    # Global enable lists
    sanitize_host: list[str] = Field(default_factory=list, validation_alias=AliasChoices("sanitize_host", "SanitizeHost"))
    """Sanitizers enabled for every host module that does not declare them"""

    sanitize_device: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("sanitize_device", "SanitizeDevice")
    )
    """Sanitizers enabled for every device module that does not declare them"""

    sanitize_device_diag: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("sanitize_device_diag", "SanitizeDeviceDiag")
    )
    """Sanitizers switched to diagnostic mode on device"""

    # Memory tagging paths
    memtag_heap_exclude_paths: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("memtag_heap_exclude_paths", "MemtagHeapExcludePaths")
    )
    memtag_heap_sync_include_paths: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("memtag_heap_sync_include_paths", "MemtagHeapSyncIncludePaths")
    )
    memtag_heap_async_include_paths: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("memtag_heap_async_include_paths", "MemtagHeapAsyncIncludePaths"),
    )

    # Generic per-sanitizer path rules, keyed by sanitizer name
    sanitizer_include_paths: dict[str, list[str]] = Field(
        default_factory=dict, validation_alias=AliasChoices("sanitizer_include_paths", "SanitizerIncludePaths")
    )
    sanitizer_exclude_paths: dict[str, list[str]] = Field(
        default_factory=dict, validation_alias=AliasChoices("sanitizer_exclude_paths", "SanitizerExcludePaths")
    )
    sanitizer_force_include_paths: dict[str, list[str]] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("sanitizer_force_include_paths", "SanitizerForceIncludePaths"),
    )
    sanitizer_force_exclude_paths: dict[str, list[str]] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("sanitizer_force_exclude_paths", "SanitizerForceExcludePaths"),
    )

    device_arch: str = Field(default="arm64", validation_alias=AliasChoices("device_arch", "DeviceArch"))
    """Primary device architecture; heap memory tagging needs arm64"""


class RuntimeLibraryNames(BaseModel):
    """Module names of the sanitizer runtime support libraries."""

    model_config = ConfigDict(frozen=True)

    asan: str = "libclang_rt.asan"
    tsan: str = "libclang_rt.tsan"
    ubsan_minimal: str = "libclang_rt.ubsan_minimal"
    ubsan_standalone: str = "libclang_rt.ubsan_standalone"

    def all(self) -> frozenset[str]:
        return frozenset((self.asan, self.tsan, self.ubsan_minimal, self.ubsan_standalone))


class SanitizeSettings(BaseSettings):
    """
    Process settings.

    Environment variables use the SOONG_SANITIZE_ prefix.
    Example: SOONG_SANITIZE_LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(env_prefix="SOONG_SANITIZE_", extra="ignore")

    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"

    product_variables_file: Path | None = None
    """YAML/JSON file with ProductVariables; None = empty configuration"""

    max_workers: int = Field(default=4, ge=1, le=64)
    """Worker threads for per-module decision resolution"""


def parse_product_variables(data: dict[str, Any] | None) -> ProductVariables:
    """Validate a raw mapping into ProductVariables."""
    if data is None:
        return ProductVariables()
    if not isinstance(data, dict):
        raise PolicyLoadError("Product variables must be a mapping", got=type(data).__name__)
    try:
        return ProductVariables.model_validate(data)
    except ValueError as e:
        raise PolicyLoadError("Invalid product variables", original_error=str(e)) from e


def load_product_variables(path: str | Path | None) -> ProductVariables:
    """Load ProductVariables from a YAML or JSON file (JSON is valid YAML)."""
    if path is None:
        return ProductVariables()

    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise PolicyLoadError("Cannot read product variables", path=str(path), original_error=str(e)) from e
    except yaml.YAMLError as e:
        raise PolicyLoadError("Malformed product variables", path=str(path), original_error=str(e)) from e

    return parse_product_variables(data)


@lru_cache(maxsize=1)
def get_settings() -> SanitizeSettings:
    """Process-wide settings, read once."""
    return SanitizeSettings()

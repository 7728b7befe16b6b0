"""Compile/link flag and ELF note emission."""

from soong_sanitize.emit.flags import EmittedFlags, FlagEmitter, exclude_libs_flag

__all__ = ["FlagEmitter", "EmittedFlags", "exclude_libs_flag"]

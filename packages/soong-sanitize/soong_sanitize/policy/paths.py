"""Path Policy Table - segment prefix trie.

Per-directory sanitizer rules. Prefixes are matched on ``/``-separated
segments, so ``vendor/foo`` covers ``vendor/foo`` and ``vendor/foo/bar`` but
not ``vendor/foobar``. The deepest matching prefix wins; several rules on the
same prefix are ranked by ``_rule_rank``.

Usage:
    >>> table = PathPolicyTable()
    >>> table.add_rule("vendor/foo", SanitizerKind.MEMTAG_HEAP, PathDecision.DEFAULT_DISABLED)
    >>> table.lookup("vendor/foo/bar", SanitizerKind.MEMTAG_HEAP).decision
    <PathDecision.DEFAULT_DISABLED: 'default_disabled'>
"""

from __future__ import annotations

from dataclasses import dataclass, field

from soong_sanitize.errors import PathPolicyError
from soong_sanitize.types.enums import PathDecision, SanitizerKind


@dataclass(frozen=True)
class PathRule:
    """One configured rule: ``prefix`` gets ``decision`` for ``kind``."""

    prefix: str
    kind: SanitizerKind
    decision: PathDecision
    diag: bool = False


@dataclass(frozen=True)
class PathMatch:
    """Lookup result. ``prefix`` is None when no rule matched."""

    decision: PathDecision
    diag: bool = False
    prefix: str | None = None

    @property
    def is_force(self) -> bool:
        return self.decision in (PathDecision.FORCE_ENABLED_RECURSIVE, PathDecision.FORCE_DISABLED)

    @property
    def disables(self) -> bool:
        return self.decision in (PathDecision.FORCE_DISABLED, PathDecision.DEFAULT_DISABLED)

    @property
    def enables(self) -> bool:
        return self.decision in (PathDecision.FORCE_ENABLED_RECURSIVE, PathDecision.DEFAULT_ENABLED)


UNSPECIFIED = PathMatch(PathDecision.UNSPECIFIED)


def _rule_rank(rule: PathRule) -> int:
    # Lower wins: disable beats include, sync beats async.
    if rule.decision is PathDecision.FORCE_DISABLED:
        return 0
    if rule.decision is PathDecision.FORCE_ENABLED_RECURSIVE:
        return 1
    if rule.decision is PathDecision.DEFAULT_DISABLED:
        return 2
    if rule.diag:
        return 3
    return 4


@dataclass
class _SegmentNode:
    children: dict[str, _SegmentNode] = field(default_factory=dict)
    rules: dict[SanitizerKind, PathRule] = field(default_factory=dict)


def split_path(path: str) -> list[str]:
    """Split a ``/``-separated package path into segments.

    Raises:
        PathPolicyError: Empty, absolute or non-normalised paths
    """
    if not path or not path.strip():
        raise PathPolicyError("Path prefix cannot be empty", prefix=path)
    if path.startswith("/"):
        raise PathPolicyError("Path prefix must be relative to the source root", prefix=path)

    segments = path.rstrip("/").split("/")
    for segment in segments:
        if segment in ("", ".", ".."):
            raise PathPolicyError("Path prefix is not normalised", prefix=path, segment=segment)
    return segments


class PathPolicyTable:
    """Segment trie of path rules, keyed per sanitizer kind.

    Adding a second rule for the same (prefix, kind) keeps the higher-ranked
    one, so the result of a lookup does not depend on insertion order.
    """

    def __init__(self) -> None:
        self.root = _SegmentNode()
        self._rules: list[PathRule] = []

    def add_rule(
        self,
        prefix: str,
        kind: SanitizerKind,
        decision: PathDecision,
        diag: bool = False,
    ) -> None:
        if decision is PathDecision.UNSPECIFIED:
            raise PathPolicyError("UNSPECIFIED is not a configurable decision", prefix=prefix, kind=str(kind))

        rule = PathRule(prefix=prefix.rstrip("/"), kind=kind, decision=decision, diag=diag)
        node = self.root
        for segment in split_path(prefix):
            node = node.children.setdefault(segment, _SegmentNode())

        current = node.rules.get(kind)
        if current is None or _rule_rank(rule) < _rule_rank(current):
            node.rules[kind] = rule
        self._rules.append(rule)

    def lookup(self, package: str, kind: SanitizerKind) -> PathMatch:
        """Deepest rule for ``kind`` covering ``package``."""
        if not package:
            return UNSPECIFIED

        best: PathRule | None = None
        node = self.root
        for segment in package.strip("/").split("/"):
            node = node.children.get(segment)
            if node is None:
                break
            rule = node.rules.get(kind)
            if rule is not None:
                best = rule

        if best is None:
            return UNSPECIFIED
        return PathMatch(decision=best.decision, diag=best.diag, prefix=best.prefix)

    def rules(self) -> list[PathRule]:
        """Rules in insertion order (including shadowed duplicates)."""
        return list(self._rules)

    def size(self) -> int:
        return len(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

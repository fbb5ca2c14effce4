# extract/rules.py
"""
Path rules.

Decides, for a single path, whether it is dropped or where it ends up.

Responsibilities:
- Hold the ordered move rules and the exclude prefixes
- Map a candidate path to a dropped or relocated result

This module does NOT:
- parse rule strings from the command line or config
- interact with git
- build trees
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple


def trim_path(path: str) -> str:
    """
    Strip leading and trailing slashes so "/src/" and "src" name the same prefix.
    """
    return path.strip("/")


def _is_under(path: str, prefix: str) -> bool:
    # Prefix must match a whole path segment: "src" covers "src/x" but not "srcother/x".
    if prefix == "":
        return True
    return path == prefix or path.startswith(prefix + "/")


@dataclass(frozen=True)
class MoveRule:
    source: str
    target: str

    def apply(self, path: str) -> str:
        if self.source == "":
            rest = path
        else:
            rest = path[len(self.source):].lstrip("/")

        if not self.target:
            return rest
        if not rest:
            return self.target
        return f"{self.target}/{rest}"


@dataclass(frozen=True)
class PathRules:
    excludes: Tuple[str, ...] = field(default_factory=tuple)
    moves: Tuple[MoveRule, ...] = field(default_factory=tuple)

    def filter_path(self, path: str) -> Optional[str]:
        """
        Return the final path for an entry, or None when the entry is dropped.

        Exclusion always wins over relocation. Only the first matching move
        rule applies; moves do not chain.
        """
        path = trim_path(path)

        for prefix in self.excludes:
            if _is_under(path, prefix):
                return None

        for rule in self.moves:
            if _is_under(path, rule.source):
                return rule.apply(path)

        return path

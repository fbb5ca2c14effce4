# extract/validation.py
"""
Semantic validation and parsing for rewrite options.

Responsibilities:
- Parse move, exclude and add-parent strings into typed values
- Read newline-delimited path lists
- Produce actionable errors with field path context

This module does NOT:
- load YAML files
- resolve revisions
- interact with git
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

from extract.rules import MoveRule, PathRules, trim_path


class ValidationError(RuntimeError):
    """
    Raised when an option is well formed for the schema but cannot be used.

    Attributes:
        path: dotted path of the failing field, for example move.1
    """

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


def parse_move(path: str, value: Any) -> MoveRule:
    """
    Parse "from:to" (or a {from, to} mapping) into a MoveRule.

    Leading and trailing slashes are dropped from both sides.
    """
    if isinstance(value, Mapping):
        source = value.get("from")
        target = value.get("to")
        if not isinstance(source, str) or not isinstance(target, str):
            raise ValidationError(path, "move needs string 'from' and 'to'")
    elif isinstance(value, str):
        source, sep, target = value.partition(":")
        if not sep:
            raise ValidationError(path, f"move must be FROM:TO, got {value!r}")
    else:
        raise ValidationError(path, "move must be a string or an object")

    return MoveRule(source=trim_path(source), target=trim_path(target))


def parse_exclude(path: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationError(path, "exclude must be a string")

    prefix = trim_path(value)
    if not prefix:
        raise ValidationError(path, "exclude must name a path, not the repository root")

    return prefix


def parse_add_parent(path: str, value: Any) -> Tuple[str, Tuple[str, ...]]:
    """
    Parse "commit:parent[,parent...]" into (commit, parents).
    """
    if not isinstance(value, str):
        raise ValidationError(path, "add-parent must be a string")

    commit, sep, rest = value.partition(":")
    commit = commit.strip()

    if not sep:
        raise ValidationError(path, f"add-parent must be COMMIT:PARENT[,PARENT...], got {value!r}")

    parents = tuple(p.strip() for p in rest.split(",") if p.strip())

    if not commit:
        raise ValidationError(path, "add-parent is missing the commit")

    if not parents:
        raise ValidationError(path, "add-parent is missing the parent list")

    return commit, parents


def parse_add_parents(path: str, values: Any) -> List[Tuple[str, Tuple[str, ...]]]:
    """
    Accept either a list of "commit:parents" strings or a mapping commit -> parent(s).
    """
    if isinstance(values, Mapping):
        parsed: List[Tuple[str, Tuple[str, ...]]] = []
        for commit, parents in values.items():
            item_path = f"{path}.{commit}"
            if not isinstance(commit, str):
                raise ValidationError(
                    item_path, f"commit must be a string, got {commit!r} (quote it in YAML)"
                )
            if isinstance(parents, str):
                parents = [parents]
            if not isinstance(parents, Sequence) or not parents:
                raise ValidationError(item_path, "parents must be a non-empty list")
            parsed.append(parse_add_parent(item_path, f"{commit}:{','.join(str(p) for p in parents)}"))
        return parsed

    return [parse_add_parent(f"{path}.{i}", v) for i, v in enumerate(values)]


def build_path_rules(excludes: Sequence[Any], moves: Sequence[Any]) -> PathRules:
    return PathRules(
        excludes=tuple(parse_exclude(f"exclude.{i}", v) for i, v in enumerate(excludes)),
        moves=tuple(parse_move(f"move.{i}", v) for i, v in enumerate(moves)),
    )


def normalise_paths(paths: Sequence[str]) -> Tuple[str, ...]:
    """
    Trim slashes and drop duplicates, keeping first-seen order.

    A path of "/" (the whole repository) yields no entry at all, which means
    the listing is not restricted.
    """
    out: Dict[str, None] = {}
    for p in paths:
        trimmed = trim_path(p.strip())
        if trimmed:
            out.setdefault(trimmed, None)
    return tuple(out)


def read_path_list(list_path: Path) -> List[str]:
    """
    Read a newline-delimited path list. Blank lines and # comments are skipped.
    """
    try:
        raw = list_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ValidationError("paths_from", f"cannot read path list: {list_path}") from e

    paths: List[str] = []
    for line in raw.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        paths.append(line)

    return paths

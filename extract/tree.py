# extract/tree.py
"""
Filtered tree construction.

Responsibilities:
- Run a flat tree listing through the path rules
- Assemble the surviving entries into nested directories
- Write the directories as tree objects, children before parents

This module does NOT:
- decide which commits to keep
- read commit metadata
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Union

from extract.repo import GitRepository, TreeEntry
from extract.rules import PathRules


class TreeError(RuntimeError):
    pass


class AmbiguousPathError(TreeError):
    pass


@dataclass(frozen=True)
class Leaf:
    record: str


@dataclass
class Directory:
    children: Dict[str, Union[Leaf, "Directory"]] = field(default_factory=dict)


def build_directory(entries: Iterable[TreeEntry], rules: PathRules) -> Directory:
    """
    Build the nested directory for one commit from its flat listing.

    Raises AmbiguousPathError if two entries land on the same path, or a
    path is needed both as a file and as a directory.
    """
    root = Directory()
    seen = set()

    for entry in entries:
        if entry.raw in seen:
            continue
        seen.add(entry.raw)

        new_path = rules.filter_path(entry.path)
        if new_path is None:
            continue

        _insert(root, new_path, entry)

    return root


def _insert(root: Directory, path: str, entry: TreeEntry) -> None:
    segments = [s for s in path.split("/") if s]
    if not segments:
        raise AmbiguousPathError(f"{entry.path} maps to the repository root")

    node = root
    for depth, segment in enumerate(segments[:-1]):
        child = node.children.get(segment)
        if child is None:
            child = Directory()
            node.children[segment] = child
        elif isinstance(child, Leaf):
            where = "/".join(segments[: depth + 1])
            raise AmbiguousPathError(
                f"Ambiguous mapping: {where} is both a file and a directory (while placing {entry.path})"
            )
        node = child

    name = segments[-1]
    if name in node.children:
        raise AmbiguousPathError(
            f"Ambiguous mapping: more than one entry maps to {'/'.join(segments)} (while placing {entry.path})"
        )
    node.children[name] = Leaf(entry.record(name))


def write_directory(store: GitRepository, directory: Directory) -> str:
    """
    Write a directory and everything below it, post-order, returning the root tree id.
    """
    records: List[str] = []

    for name in sorted(directory.children):
        child = directory.children[name]
        if isinstance(child, Leaf):
            records.append(child.record)
        else:
            child_id = write_directory(store, child)
            records.append(f"040000 tree {child_id}\t{name}")

    return store.create_tree(records)


class TreeBuilder:
    def __init__(self, store: GitRepository, rules: PathRules) -> None:
        self.store = store
        self.rules = rules

    def build(self, entries: Iterable[TreeEntry]) -> str:
        return write_directory(self.store, build_directory(entries, self.rules))

# extract/engine.py
"""
History rewrite engine.

Responsibilities:
- Walk the original commits parents-first
- Fold fixup commits into their parent
- Prune commits whose filtered tree did not change
- Remap parents to their rewritten counterparts and emit new commits

This module does NOT:
- parse command line arguments or config files
- resolve revision names
- update refs
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple
import logging

from extract.repo import CommitRecord, GitRepository
from extract.rules import PathRules
from extract.tree import TreeBuilder


logger = logging.getLogger(__name__)


PENDING = "pending"
EMITTED = "emitted"
PRUNED = "pruned"
FIXED_UP = "fixed-up"


class EngineError(RuntimeError):
    pass


class FixupError(EngineError):
    pass


@dataclass(frozen=True)
class RewriteConfig:
    rules: PathRules = field(default_factory=PathRules)
    paths: Tuple[str, ...] = ()
    fixups: FrozenSet[str] = frozenset()
    added_parents: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    removed: FrozenSet[str] = frozenset()
    until: Tuple[str, ...] = ()
    no_prune: bool = False
    keep_committer: bool = False


@dataclass(frozen=True)
class CommitMapEntry:
    new_hash: str
    new_tree: str


class CommitMap:
    """
    Original commit hash -> what it became. Entries are never replaced.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, CommitMapEntry] = {}

    def __contains__(self, old_hash: str) -> bool:
        return old_hash in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, old_hash: str) -> Optional[CommitMapEntry]:
        return self._entries.get(old_hash)

    def record(self, old_hash: str, entry: CommitMapEntry) -> None:
        if old_hash in self._entries:
            raise EngineError(f"Commit {old_hash} was already rewritten")
        self._entries[old_hash] = entry

    def resolve(self, old_hash: str) -> str:
        """
        New hash for a commit, or the original one when it lies outside the rewrite.
        """
        entry = self._entries.get(old_hash)
        return entry.new_hash if entry is not None else old_hash


@dataclass
class RewriteStep:
    record: CommitRecord
    tree_source: str
    force_prune: bool = False
    outcome: str = PENDING  # pending | emitted | pruned | fixed-up
    new_hash: Optional[str] = None
    new_tree: Optional[str] = None


@dataclass(frozen=True)
class RewriteResult:
    head: str
    steps: List[RewriteStep]
    commit_map: CommitMap


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def plan_steps(records: Sequence[CommitRecord], fixups: FrozenSet[str]) -> List[RewriteStep]:
    """
    Build one step per record and wire up fixups.

    A fixup commit must have exactly one parent, and that parent must be the
    record right before it. Its tree replaces the parent's tree and the fixup
    itself is forced to prune. All checks run before any object is written.
    """
    pending = set(fixups)
    steps: List[RewriteStep] = []

    for record in records:
        step = RewriteStep(record=record, tree_source=record.hash)

        if record.hash in pending:
            _consume_fixup(steps, step)
            pending.discard(record.hash)

        steps.append(step)

    for missing in sorted(pending):
        logger.warning("fixup %s is not part of the rewritten history; ignoring it", missing)

    return steps


def rewrite_history(
    store: GitRepository,
    records: Sequence[CommitRecord],
    config: RewriteConfig,
) -> RewriteResult:
    if not records:
        raise EngineError("No commits to rewrite")

    steps = plan_steps(records, config.fixups)
    rewriter = CommitGraphRewriter(store, config)

    for step in steps:
        rewriter.process(step)

    head = steps[-1].new_hash
    if head is None:
        raise EngineError("Internal error: last commit was not rewritten")

    return RewriteResult(head=head, steps=steps, commit_map=rewriter.commit_map)


# ---------------------------------------------------------------------
# Rewriter
# ---------------------------------------------------------------------

class CommitGraphRewriter:
    def __init__(self, store: GitRepository, config: RewriteConfig) -> None:
        self.store = store
        self.config = config
        self.commit_map = CommitMap()
        self._builder = TreeBuilder(store, config.rules)
        # original root tree id -> filtered tree id
        self._tree_cache: Dict[str, str] = {}

    def filtered_tree(self, commit: str) -> str:
        original_tree = self.store.read_tree_id(commit)

        cached = self._tree_cache.get(original_tree)
        if cached is not None:
            return cached

        entries = self.store.list_tree_entries(commit, self.config.paths)
        new_tree = self._builder.build(entries)
        self._tree_cache[original_tree] = new_tree
        return new_tree

    def remap_parents(self, step: RewriteStep) -> List[str]:
        """
        Original parents minus removed commits, plus any added parents.
        Still in terms of original hashes.
        """
        record = step.record
        parents = [p for p in record.parents if p not in self.config.removed]

        extra = self.config.added_parents.get(record.hash, ())
        if extra:
            if step.force_prune:
                logger.warning(
                    "%s is folded into its parent as a fixup; ignoring its added parents",
                    record.hash,
                )
            else:
                parents.extend(extra)

        return parents

    def process(self, step: RewriteStep) -> None:
        record = step.record

        parents = self.remap_parents(step)
        new_tree = self.filtered_tree(step.tree_source)

        if step.force_prune or not self.config.no_prune:
            inherited = self._prune_target(parents, new_tree)
            if inherited is not None:
                self.commit_map.record(record.hash, inherited)
                step.outcome = FIXED_UP if step.force_prune else PRUNED
                step.new_hash = inherited.new_hash
                step.new_tree = inherited.new_tree
                logger.info("%s %s -> %s", step.outcome, record.hash, inherited.new_hash)
                return

            if step.force_prune:
                logger.warning(
                    "fixup %s could not be folded into its parent; emitting it as a commit",
                    record.hash,
                )

        resolved: List[str] = []
        for parent in parents:
            new_parent = self.commit_map.resolve(parent)
            if new_parent not in resolved:
                resolved.append(new_parent)

        committer = record.committer if self.config.keep_committer else None

        new_hash = self.store.create_commit(
            new_tree,
            resolved,
            record.author,
            record.message,
            committer=committer,
        )

        self.commit_map.record(record.hash, CommitMapEntry(new_hash=new_hash, new_tree=new_tree))
        step.outcome = EMITTED
        step.new_hash = new_hash
        step.new_tree = new_tree
        logger.info("%s %s -> %s", step.outcome, record.hash, new_hash)

    def _prune_target(self, parents: Sequence[str], new_tree: str) -> Optional[CommitMapEntry]:
        """
        The parent's map entry when this commit is a no-op on top of it.
        """
        if len(parents) != 1:
            return None

        parent_entry = self.commit_map.get(parents[0])
        if parent_entry is None or parent_entry.new_tree != new_tree:
            return None

        return parent_entry


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def _consume_fixup(steps: List[RewriteStep], step: RewriteStep) -> None:
    record = step.record

    if len(record.parents) != 1:
        raise FixupError(
            f"fixup {record.hash} must have exactly one parent, found {len(record.parents)}"
        )

    if not steps or steps[-1].record.hash != record.parents[0]:
        previous = steps[-1].record.hash if steps else "<none>"
        raise FixupError(
            f"fixup {record.hash} must directly follow its parent {record.parents[0]} "
            f"(previous commit is {previous})"
        )

    # Earlier fixups in a chain already point their targets at the parent's
    # tree source; move the whole chain over to this commit's tree.
    old_source = steps[-1].tree_source
    for earlier in reversed(steps):
        if earlier.tree_source != old_source:
            break
        earlier.tree_source = record.hash

    step.force_prune = True

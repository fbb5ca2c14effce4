# extract/rewrite.py
"""
History extraction driver.

Responsibilities:
- Resolve every revision argument to a commit id up front
- Read the commits touching the requested paths
- Run the rewrite engine
- Move the target branch to the new head

This module does NOT:
- touch the working tree or index
- build trees or decide pruning (see extract.engine)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import logging

from extract.config import Config
from extract.engine import RewriteConfig, RewriteStep, rewrite_history
from extract.repo import GitRepository
from extract.validation import (
    build_path_rules,
    normalise_paths,
    parse_add_parents,
    read_path_list,
)


logger = logging.getLogger(__name__)


class RewriteError(RuntimeError):
    pass


class EmptyHistoryError(RewriteError):
    pass


@dataclass(frozen=True)
class ExtractPlan:
    repo_path: Path
    source: str
    source_id: str
    branch_ref: Optional[str]
    branch_expected: Optional[str]  # ref value before the rewrite, None if absent
    config: RewriteConfig


@dataclass(frozen=True)
class ExtractResult:
    head: str
    total_commits: int
    steps: List[RewriteStep]
    branch_ref: Optional[str]
    ref_updated: bool


def branch_ref_name(branch: str) -> str:
    if branch.startswith("refs/"):
        return branch
    return f"refs/heads/{branch}"


def build_plan(repo: GitRepository, options: Config) -> ExtractPlan:
    """
    Turn loaded options into a fully resolved plan.

    Every revision is resolved before any object is written, so a typo in
    a late argument cannot leave half a rewrite behind.
    """
    repo.ensure_git_repository()

    source = options.source or "HEAD"
    source_id = repo.resolve_revision(source)

    raw_paths = list(options.paths)
    if options.paths_from is not None:
        raw_paths.extend(read_path_list(options.paths_from))
    paths = normalise_paths(raw_paths)

    rules = build_path_rules(options.exclude, options.move)

    until = tuple(repo.resolve_revision(rev) for rev in options.until)
    removed = frozenset(repo.resolve_revision(rev) for rev in options.remove)
    fixups = frozenset(repo.resolve_revision(rev) for rev in options.fixup)

    added_parents: Dict[str, Tuple[str, ...]] = {}
    for commit, parents in parse_add_parents("add_parent", options.add_parent):
        commit_id = repo.resolve_revision(commit)
        resolved = tuple(repo.resolve_revision(p) for p in parents)
        added_parents[commit_id] = added_parents.get(commit_id, ()) + resolved

    branch_ref = branch_ref_name(options.branch) if options.branch else None
    branch_expected = repo.read_ref(branch_ref) if branch_ref else None

    return ExtractPlan(
        repo_path=repo.repo_path,
        source=source,
        source_id=source_id,
        branch_ref=branch_ref,
        branch_expected=branch_expected,
        config=RewriteConfig(
            rules=rules,
            paths=paths,
            fixups=fixups,
            added_parents=added_parents,
            removed=removed,
            until=until,
            no_prune=options.no_prune,
            keep_committer=options.keep_committer,
        ),
    )


def extract_history(
    repo: GitRepository,
    options: Config,
    *,
    dry_run: bool = False,
) -> ExtractResult:
    """
    Rewrite the history of options.source down to the requested paths.

    Nothing is referenced by a ref until the whole rewrite has succeeded.
    With dry_run, the new objects are written but no ref is moved.
    """
    plan = build_plan(repo, options)
    config = plan.config

    records = repo.list_commits(plan.source_id, config.until, config.paths)
    if not records:
        raise EmptyHistoryError(
            f"No commits in {plan.source} touch the requested paths"
        )

    logger.info("rewriting %d commits from %s", len(records), plan.source)

    result = rewrite_history(repo, records, config)

    ref_updated = False
    if plan.branch_ref is not None:
        if dry_run:
            logger.info("dry run: leaving %s untouched", plan.branch_ref)
        else:
            repo.update_ref(plan.branch_ref, result.head, plan.branch_expected)
            ref_updated = True
            logger.info("updated %s to %s", plan.branch_ref, result.head)

    return ExtractResult(
        head=result.head,
        total_commits=len(records),
        steps=result.steps,
        branch_ref=plan.branch_ref,
        ref_updated=ref_updated,
    )

"""Shared fixtures: an in-memory object store and throwaway git repositories."""

from __future__ import annotations

import hashlib
import os
import shutil
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from extract.repo import CommitRecord, Identity, TreeEntry


AUTHOR = Identity("Ada Author", "ada@example.com", datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))
COMMITTER = Identity("Carl Committer", "carl@example.com", datetime(2024, 3, 2, 8, 30, tzinfo=timezone.utc))


def _digest(prefix: str, payload: str) -> str:
    return prefix + hashlib.sha1(payload.encode("utf-8")).hexdigest()[:12]


class FakeStore:
    """
    Content-addressed stand-in for GitRepository.

    Original commits are registered with a flat file listing; trees and
    commits created by the engine are recorded in call order.
    """

    def __init__(self) -> None:
        self.listings: Dict[str, List[TreeEntry]] = {}
        self.root_trees: Dict[str, str] = {}
        self.trees: Dict[str, Tuple[str, ...]] = {}
        self.tree_calls: List[str] = []
        self.commits: Dict[str, dict] = {}
        self.commit_calls: List[str] = []
        self.listing_calls: List[str] = []

    def add_commit(
        self,
        commit_hash: str,
        parents: Sequence[str] = (),
        files: Optional[Dict[str, str]] = None,
        message: str = "",
    ) -> CommitRecord:
        files = files or {}
        entries = [
            TreeEntry(mode="100644", kind="blob", object_id=_digest("b", content), path=path)
            for path, content in sorted(files.items())
        ]
        self.listings[commit_hash] = entries
        self.root_trees[commit_hash] = _digest("o", repr(sorted(files.items())))
        return CommitRecord(
            hash=commit_hash,
            parents=tuple(parents),
            author=AUTHOR,
            committer=COMMITTER,
            message=message or f"{commit_hash}\n",
        )

    # -- object store interface --------------------------------------

    def read_tree_id(self, commit: str) -> str:
        return self.root_trees[commit]

    def list_tree_entries(self, commit: str, paths: Sequence[str] = ()) -> List[TreeEntry]:
        self.listing_calls.append(commit)
        entries = self.listings[commit]
        if not paths:
            return list(entries)
        return [
            e for e in entries
            if any(e.path == p or e.path.startswith(p + "/") for p in paths)
        ]

    def create_tree(self, records: Sequence[str]) -> str:
        for record in records:
            meta = record.split("\t", 1)[0]
            mode, kind, object_id = meta.split()
            if kind == "tree":
                assert object_id in self.trees, f"tree {object_id} referenced before it was created"
        tree_id = _digest("t", "\n".join(sorted(records)))
        self.trees[tree_id] = tuple(sorted(records))
        self.tree_calls.append(tree_id)
        return tree_id

    def create_commit(self, tree, parents, author, message, committer=None) -> str:
        assert tree in self.trees
        commit_id = _digest("n", repr((tree, tuple(parents), author, message, committer, len(self.commit_calls))))
        self.commits[commit_id] = {
            "tree": tree,
            "parents": list(parents),
            "author": author,
            "committer": committer,
            "message": message,
        }
        self.commit_calls.append(commit_id)
        return commit_id

    # -- helpers -----------------------------------------------------

    def flatten(self, tree_id: str, prefix: str = "") -> Dict[str, str]:
        """Path -> blob id for everything under a created tree."""
        out: Dict[str, str] = {}
        for record in self.trees[tree_id]:
            meta, name = record.split("\t", 1)
            _mode, kind, object_id = meta.split()
            path = f"{prefix}{name}"
            if kind == "tree":
                out.update(self.flatten(object_id, path + "/"))
            else:
                out[path] = object_id
        return out


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


# ---------------------------------------------------------------------
# Real git repositories
# ---------------------------------------------------------------------

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")


def git(repo: Path, *args: str, env: Optional[Dict[str, str]] = None) -> str:
    result = subprocess.run(
        ["git", "-C", str(repo), *args],
        check=True,
        capture_output=True,
        text=True,
        env=env,
    )
    return result.stdout.strip()


class RepoBuilder:
    def __init__(self, path: Path) -> None:
        self.path = path
        self._tick = 0
        git(path, "init", "-q", "-b", "main")
        git(path, "config", "user.name", "Repo Owner")
        git(path, "config", "user.email", "owner@example.com")
        git(path, "config", "commit.gpgsign", "false")

    def commit(self, message: str, files: Optional[Dict[str, Optional[str]]] = None) -> str:
        for rel, content in (files or {}).items():
            target = self.path / rel
            if content is None:
                git(self.path, "--literal-pathspecs", "rm", "-q", "-r", "--", rel)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
            git(self.path, "--literal-pathspecs", "add", "--", rel)

        self._tick += 1
        stamp = f"2024-01-{self._tick:02d}T10:00:00+02:00"
        env = dict(os.environ)
        env.update({
            "GIT_AUTHOR_NAME": "Original Author",
            "GIT_AUTHOR_EMAIL": "author@example.com",
            "GIT_AUTHOR_DATE": stamp,
            "GIT_COMMITTER_NAME": "Original Committer",
            "GIT_COMMITTER_EMAIL": "committer@example.com",
            "GIT_COMMITTER_DATE": stamp,
        })
        git(self.path, "commit", "-q", "--allow-empty", "-m", message, env=env)
        return git(self.path, "rev-parse", "HEAD")


@pytest.fixture
def git_repo(tmp_path: Path) -> RepoBuilder:
    repo_dir = tmp_path / "repo"
    repo_dir.mkdir()
    return RepoBuilder(repo_dir)

# extract/repo.py
"""
Repository access.

Reads commits and trees from a target Git repository and writes the new
tree and commit objects a rewrite produces.
Handles Git Bash ↔ Windows path normalisation.

Every git call is blocking. A failing call raises GitRepositoryError carrying
git's stderr and exit status; nothing here retries.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from subprocess import run, PIPE
from typing import Dict, List, Mapping, Optional, Sequence, Tuple
from pathlib import Path
import logging
import os


logger = logging.getLogger(__name__)


# Field separator for git log output. Records are NUL-terminated (log -z) and
# git refuses NUL in commit messages. Messages go last so a stray field
# separator inside a message body cannot shift the other fields.
_FIELD_SEP = "\x1f"


@dataclass(frozen=True)
class Identity:
    name: str
    email: str
    date: datetime


@dataclass(frozen=True)
class CommitRecord:
    hash: str
    parents: Tuple[str, ...]
    author: Identity
    committer: Optional[Identity]
    message: str

    @property
    def subject(self) -> str:
        return self.message.split("\n", 1)[0]


@dataclass(frozen=True)
class TreeEntry:
    mode: str
    kind: str
    object_id: str
    path: str

    def record(self, name: str) -> str:
        """Tree record for this entry under a new name, as git mktree reads it."""
        return f"{self.mode} {self.kind} {self.object_id}\t{name}"

    @property
    def raw(self) -> str:
        return self.record(self.path)


class GitRepositoryError(RuntimeError):
    def __init__(self, message: str, returncode: Optional[int] = None) -> None:
        self.returncode = returncode
        super().__init__(message)


class UnresolvedReferenceError(GitRepositoryError):
    pass


class RefUpdateConflictError(GitRepositoryError):
    pass


def _normalise_repo_path(repo_path: Path) -> Path:
    """
    Convert Git Bash paths (/c/Users/...) to native Windows paths (C:\\Users\\...).
    No-op on non-Windows systems.
    """
    if os.name != "nt":
        return repo_path

    p = str(repo_path)

    if p.startswith("/") and len(p) >= 3 and p[2] == "/":
        drive = p[1]
        if drive.isalpha():
            return Path(f"{drive.upper()}:/{p[3:]}")

    return Path(p)


def _run_git_command(
    repo_path: Path,
    args: List[str],
    *,
    input_text: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Run git in repo_path and return its stdout.

    Pathspecs are always literal, so "*", "?" and "[" in a path match only
    themselves in every command.
    """
    repo_path = _normalise_repo_path(repo_path)
    logger.debug("git %s", " ".join(args))

    full_env = None
    if env:
        full_env = dict(os.environ)
        full_env.update(env)

    result = run(
        ["git", "--literal-pathspecs", "-C", str(repo_path)] + args,
        input=input_text,
        stdout=PIPE,
        stderr=PIPE,
        text=True,
        encoding="utf-8",
        errors="surrogateescape",
        env=full_env,
    )

    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise GitRepositoryError(
            stderr if stderr else f"git {args[0]} failed",
            returncode=result.returncode,
        )

    return result.stdout


def format_git_date(dt: datetime) -> str:
    """
    Convert a datetime to git's internal date format:
    "<unix_seconds> <+HHMM or -HHMM>"

    If tzinfo is missing, treat the value as UTC to avoid undefined behaviour.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    offset = dt.utcoffset()
    if offset is None:
        offset = timedelta(0)

    total_minutes = int(offset.total_seconds() // 60)
    sign = "+" if total_minutes >= 0 else "-"
    total_minutes = abs(total_minutes)

    hh = total_minutes // 60
    mm = total_minutes % 60

    ts = int(dt.timestamp())
    return f"{ts} {sign}{hh:02d}{mm:02d}"


def _identity_env(role: str, identity: Identity) -> Dict[str, str]:
    return {
        f"GIT_{role}_NAME": identity.name,
        f"GIT_{role}_EMAIL": identity.email,
        f"GIT_{role}_DATE": format_git_date(identity.date),
    }


class GitRepository:
    """
    Object store backed by a git repository on disk.

    Only objects and refs are touched; the working tree and index never are.
    """

    def __init__(self, repo_path: Path) -> None:
        self.repo_path = repo_path

    def _git(self, args: List[str], **kwargs) -> str:
        return _run_git_command(self.repo_path, args, **kwargs)

    def ensure_git_repository(self) -> None:
        try:
            self._git(["rev-parse", "--git-dir"])
        except GitRepositoryError as e:
            raise GitRepositoryError(f"Not a git repository: {self.repo_path}", e.returncode) from e

    def resolve_revision(self, rev: str) -> str:
        try:
            out = self._git(["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"])
        except GitRepositoryError as e:
            raise UnresolvedReferenceError(f"Cannot resolve revision: {rev}", e.returncode) from e
        return out.strip()

    def read_ref(self, name: str) -> Optional[str]:
        """
        Current value of a ref, or None when it does not exist.
        """
        try:
            out = self._git(["rev-parse", "--verify", "--quiet", name])
        except GitRepositoryError:
            return None
        return out.strip() or None

    def list_commits(
        self,
        source: str,
        excluded: Sequence[str] = (),
        paths: Sequence[str] = (),
    ) -> List[CommitRecord]:
        """
        Load commits reachable from source, oldest ancestor first.

        Parents are the rewritten parents git reports under path limiting,
        so every listed parent is itself listed or lies outside the range.
        """
        log_format = _FIELD_SEP.join(
            ["%H", "%P", "%an", "%ae", "%ad", "%cn", "%ce", "%cd", "%B"]
        )

        args = [
            "log",
            "-z",
            "--reverse",
            "--topo-order",
            "--parents",
            "--date=iso-strict",
            f"--format={log_format}",
            source,
        ]
        args.extend(f"^{rev}" for rev in excluded)
        args.append("--")
        args.extend(paths)

        raw_log = self._git(args)

        commits: List[CommitRecord] = []
        for chunk in raw_log.split("\x00"):
            if not chunk:
                continue
            commits.append(self._parse_log_record(chunk))

        return commits

    @staticmethod
    def _parse_log_record(chunk: str) -> CommitRecord:
        parts = chunk.split(_FIELD_SEP, 8)

        if len(parts) != 9:
            raise GitRepositoryError(f"Malformed git log record: {chunk!r}")

        (
            commit_hash,
            parents,
            author_name,
            author_email,
            author_str,
            committer_name,
            committer_email,
            committer_str,
            message,
        ) = parts

        try:
            author_date = datetime.fromisoformat(author_str)
            committer_date = datetime.fromisoformat(committer_str)
        except ValueError as e:
            raise GitRepositoryError(
                f"Invalid timestamp format in git log: {chunk!r}"
            ) from e

        return CommitRecord(
            hash=commit_hash,
            parents=tuple(parents.split()),
            author=Identity(author_name, author_email, author_date),
            committer=Identity(committer_name, committer_email, committer_date),
            message=message,
        )

    def list_tree_entries(self, commit: str, paths: Sequence[str] = ()) -> List[TreeEntry]:
        """
        Recursive listing of the commit's tree, limited to paths when given.
        """
        out = self._git(["ls-tree", "-r", "-z", "--full-tree", commit, "--"] + list(paths))

        entries: List[TreeEntry] = []
        for item in out.split("\x00"):
            if not item:
                continue
            meta, sep, path = item.partition("\t")
            fields = meta.split()
            if not sep or len(fields) != 3:
                raise GitRepositoryError(f"Malformed ls-tree entry: {item!r}")
            mode, kind, object_id = fields
            entries.append(TreeEntry(mode=mode, kind=kind, object_id=object_id, path=path))

        return entries

    def read_tree_id(self, commit: str) -> str:
        return self._git(["rev-parse", f"{commit}^{{tree}}"]).strip()

    def create_tree(self, records: Sequence[str]) -> str:
        """
        Write a tree object from "mode kind id\\tname" records and return its id.
        """
        payload = "".join(f"{r}\x00" for r in records)
        return self._git(["mktree", "-z"], input_text=payload).strip()

    def create_commit(
        self,
        tree: str,
        parents: Sequence[str],
        author: Identity,
        message: str,
        committer: Optional[Identity] = None,
    ) -> str:
        """
        Write a commit object. Without a committer, git's configured
        identity and the current time are used.
        """
        args = ["commit-tree", tree]
        for parent in parents:
            args.extend(["-p", parent])

        env = _identity_env("AUTHOR", author)
        if committer is not None:
            env.update(_identity_env("COMMITTER", committer))

        return self._git(args, input_text=message, env=env).strip()

    def update_ref(self, name: str, new_target: str, expected: Optional[str]) -> None:
        """
        Point name at new_target, only if it still holds expected
        (None means the ref must not exist yet).
        """
        old = expected if expected is not None else ""
        try:
            self._git(["update-ref", "-m", "history extract", name, new_target, old])
        except GitRepositoryError as e:
            raise RefUpdateConflictError(f"Failed to update {name}: {e}", e.returncode) from e

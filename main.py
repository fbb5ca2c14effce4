#!/usr/bin/env python3
"""git-history-extract CLI.

Rewrites a branch's history down to a chosen set of paths. Prints the new
head commit id on stdout; every diagnostic goes to stderr.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys

from extract.config import Config, ConfigError, default_schema_path, load_config, merge_options
from extract.engine import EngineError
from extract.repo import GitRepository, GitRepositoryError
from extract.report import build_entries, render_report
from extract.rewrite import RewriteError, extract_history
from extract.tree import TreeError
from extract.validation import ValidationError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="git-history-extract",
        description="Rewrite a branch's history so it only contains the given paths",
    )

    parser.add_argument(
        "paths",
        nargs="*",
        help="Paths to keep (default: the whole tree)",
    )
    parser.add_argument(
        "--repo",
        default=".",
        help="Path to the git repository (default: current directory)",
    )
    parser.add_argument(
        "--config",
        help="Path to an extraction policy YAML",
    )
    parser.add_argument(
        "--schema",
        default=str(default_schema_path()),
        help="Path to schema.json",
    )
    parser.add_argument(
        "--source",
        help="Revision whose history is rewritten (default: HEAD)",
    )
    parser.add_argument(
        "--paths-from",
        metavar="FILE",
        help="Read additional paths from FILE, one per line",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="PATH",
        help="Drop PATH and everything below it (repeatable)",
    )
    parser.add_argument(
        "--move",
        action="append",
        default=[],
        metavar="FROM:TO",
        help="Relocate FROM to TO; the first matching rule wins (repeatable)",
    )
    parser.add_argument(
        "--until",
        action="append",
        default=[],
        metavar="REV",
        help="Stop at REV; its ancestors are kept unmodified (repeatable)",
    )
    parser.add_argument(
        "--remove",
        action="append",
        default=[],
        metavar="REV",
        help="Drop REV wherever it appears as a parent (repeatable)",
    )
    parser.add_argument(
        "--fixup",
        action="append",
        default=[],
        metavar="REV",
        help="Fold REV's tree into its parent instead of keeping it (repeatable)",
    )
    parser.add_argument(
        "--add-parent",
        action="append",
        default=[],
        metavar="REV:PARENT[,PARENT]",
        help="Give REV extra parents (repeatable)",
    )
    parser.add_argument(
        "--no-prune",
        action="store_true",
        help="Keep commits that do not change the extracted paths",
    )
    parser.add_argument(
        "--keep-committer",
        action="store_true",
        help="Preserve the original committer identity and date",
    )
    parser.add_argument(
        "--branch",
        help="Create or move this branch to the new head",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Rewrite and report without updating any ref",
    )
    parser.add_argument(
        "--report",
        action="store_true",
        help="Print a per-commit report to stderr",
    )
    parser.add_argument(
        "--hash-len",
        type=int,
        default=12,
        help="Number of characters to show for commit hashes in the report",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="More output on stderr (-vv shows every git call)",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only report errors",
    )

    return parser


def _configure_logging(verbose: int, quiet: bool) -> None:
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(levelname)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    _configure_logging(args.verbose, args.quiet)

    if int(args.hash_len) <= 0:
        print("error: --hash-len must be a positive integer", file=sys.stderr)
        return 2

    repo_path = Path(args.repo).expanduser().resolve()

    try:
        base = Config()
        if args.config:
            base = load_config(
                Path(args.config).expanduser().resolve(),
                Path(args.schema).expanduser().resolve(),
            )

        options = merge_options(
            base,
            source=args.source,
            paths=tuple(args.paths),
            paths_from=Path(args.paths_from).expanduser().resolve() if args.paths_from else None,
            exclude=tuple(args.exclude),
            move=tuple(args.move),
            until=tuple(args.until),
            remove=tuple(args.remove),
            fixup=tuple(args.fixup),
            add_parent=tuple(args.add_parent),
            no_prune=args.no_prune,
            keep_committer=args.keep_committer,
            branch=args.branch,
        )

        result = extract_history(GitRepository(repo_path), options, dry_run=args.dry_run)

        if args.report or args.dry_run:
            entries = build_entries(result.steps, hash_len=int(args.hash_len))
            report = render_report(
                total_commits=result.total_commits,
                head=result.head,
                entries=entries,
                hash_len=int(args.hash_len),
                branch_ref=result.branch_ref,
                ref_updated=result.ref_updated,
            )
            print(report, file=sys.stderr)

        print(result.head)
        return 0

    except GitRepositoryError as e:
        print(f"error: {e}", file=sys.stderr)
        return e.returncode or 2

    except (ConfigError, ValidationError, TreeError, EngineError, RewriteError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())

# extract/report.py
"""
Rewrite reporting.

Responsibilities:
- Summarise what each original commit became
- Render a deterministic, human readable table

This module does NOT:
- call git
- rewrite history
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from extract.engine import RewriteStep


@dataclass(frozen=True)
class ReportEntry:
    index: int
    hash_prefix: str
    outcome: str
    new_prefix: str
    subject: str


def build_entries(
    steps: Sequence[RewriteStep],
    *,
    hash_len: int = 12,
) -> List[ReportEntry]:
    """
    Build one report entry per processed commit, in processing order.

    Raises:
        ValueError: if hash_len is invalid.
    """
    if hash_len <= 0:
        raise ValueError("hash_len must be a positive integer")

    entries: List[ReportEntry] = []

    for idx, step in enumerate(steps):
        entries.append(
            ReportEntry(
                index=idx,
                hash_prefix=step.record.hash[:hash_len],
                outcome=step.outcome,
                new_prefix=(step.new_hash or "")[:hash_len],
                subject=step.record.subject,
            )
        )

    return entries


def render_report(
    *,
    total_commits: int,
    head: str,
    entries: Sequence[ReportEntry],
    hash_len: int,
    branch_ref: Optional[str] = None,
    ref_updated: bool = False,
) -> str:
    """
    Render a rewrite report as plain text.
    """
    lines: List[str] = []

    counts = {}
    for e in entries:
        counts[e.outcome] = counts.get(e.outcome, 0) + 1

    lines.append(f"Commits read: {total_commits}")
    lines.append(f"Emitted: {counts.get('emitted', 0)}")
    lines.append(f"Pruned: {counts.get('pruned', 0)}")
    lines.append(f"Fixed up: {counts.get('fixed-up', 0)}")
    lines.append(f"New head: {head}")

    if branch_ref is not None:
        state = "updated" if ref_updated else "not updated"
        lines.append(f"Branch: {branch_ref} ({state})")

    if not entries:
        return "\n".join(lines)

    lines.append("")
    lines.append(f"Hash shown as {hash_len} character prefix")
    lines.append("")

    headers = ["idx", "original", "outcome", "new", "subject"]

    rows: List[List[str]] = []
    for e in entries:
        rows.append([str(e.index), e.hash_prefix, e.outcome, e.new_prefix, e.subject])

    lines.extend(_format_table(headers, rows))
    return "\n".join(lines)


def _format_table(headers: List[str], rows: List[List[str]]) -> List[str]:
    widths = [len(h) for h in headers]

    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    def fmt_row(items: List[str]) -> str:
        return "  ".join(items[i].ljust(widths[i]) for i in range(len(items))).rstrip()

    lines: List[str] = []
    lines.append(fmt_row(headers))
    lines.append(fmt_row(["-" * w for w in widths]))

    for row in rows:
        lines.append(fmt_row(row))

    return lines

"""Tests for extract.report."""

import pytest

from extract.engine import RewriteConfig, rewrite_history
from extract.report import build_entries, render_report


@pytest.fixture
def steps(store):
    records = [
        store.add_commit("a" * 40, files={"keep/f": "1"}, message="Add f\n\nDetails\n"),
        store.add_commit("b" * 40, ["a" * 40], files={"keep/f": "1", "x": "1"}, message="Touch x\n"),
    ]
    return rewrite_history(store, records, RewriteConfig(paths=("keep",))).steps


class TestReport:
    def test_entries_follow_processing_order(self, steps):
        entries = build_entries(steps, hash_len=7)

        assert [e.hash_prefix for e in entries] == ["a" * 7, "b" * 7]
        assert [e.outcome for e in entries] == ["emitted", "pruned"]
        assert entries[0].subject == "Add f"
        assert entries[1].new_prefix == entries[0].new_prefix

    def test_invalid_hash_len(self, steps):
        with pytest.raises(ValueError):
            build_entries(steps, hash_len=0)

    def test_render(self, steps):
        entries = build_entries(steps, hash_len=7)
        text = render_report(
            total_commits=2,
            head=steps[-1].new_hash,
            entries=entries,
            hash_len=7,
            branch_ref="refs/heads/out",
            ref_updated=False,
        )

        lines = text.splitlines()
        assert "Commits read: 2" in lines
        assert "Emitted: 1" in lines
        assert "Pruned: 1" in lines
        assert "Branch: refs/heads/out (not updated)" in lines
        assert lines[-4].split() == ["idx", "original", "outcome", "new", "subject"]
        assert set(lines[-3].replace(" ", "")) == {"-"}
        assert lines[-1].split()[:3] == ["1", "bbbbbbb", "pruned"]
        assert lines[-1].endswith("Touch x")

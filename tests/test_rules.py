"""Tests for extract.rules path filtering."""

from extract.rules import MoveRule, PathRules, trim_path
from extract.validation import build_path_rules


class TestTrimPath:
    def test_strips_both_ends(self):
        assert trim_path("/src/lib/") == "src/lib"

    def test_root_becomes_empty(self):
        assert trim_path("/") == ""


class TestMoveRule:
    def test_replaces_prefix(self):
        assert MoveRule("src", "lib").apply("src/util.go") == "lib/util.go"

    def test_exact_match(self):
        assert MoveRule("src", "lib").apply("src") == "lib"

    def test_move_to_root(self):
        assert MoveRule("pkg/core", "").apply("pkg/core/a/b.py") == "a/b.py"

    def test_move_from_root(self):
        assert MoveRule("", "vendor").apply("a/b.py") == "vendor/a/b.py"


class TestPathRules:
    def test_no_rules_is_identity(self):
        rules = PathRules()
        assert rules.filter_path("a/b/c") == "a/b/c"

    def test_exclude_drops_prefix_and_exact(self):
        rules = PathRules(excludes=("docs",))
        assert rules.filter_path("docs") is None
        assert rules.filter_path("docs/index.md") is None
        assert rules.filter_path("docsite/index.md") == "docsite/index.md"

    def test_exclude_wins_over_move(self):
        rules = build_path_rules(["/src/private"], ["/src:/lib"])
        assert rules.filter_path("src/private/key.pem") is None
        assert rules.filter_path("src/public.go") == "lib/public.go"

    def test_move_matches_whole_segments_only(self):
        rules = build_path_rules([], ["/src:/lib"])
        assert rules.filter_path("/src/util.go") == "lib/util.go"
        assert rules.filter_path("/srcother/x") == "srcother/x"

    def test_first_move_wins(self):
        rules = build_path_rules([], ["/a:/x", "/a/b:/y"])
        assert rules.filter_path("/a/b/c") == "x/b/c"

    def test_more_specific_rule_first(self):
        rules = build_path_rules([], ["a/b:x", "a:y"])
        assert rules.filter_path("a/b/c") == "x/c"
        assert rules.filter_path("a/z") == "y/z"

    def test_moves_do_not_chain(self):
        rules = build_path_rules([], ["a:b", "b:c"])
        assert rules.filter_path("a/f") == "b/f"

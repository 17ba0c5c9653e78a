# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for unused dependency resolution."""

import logging

from depwatch.models import DependencyTree
from depwatch.resolver import (
    compile_ignore_patterns,
    considered_names,
    find_unused,
    is_ignored,
    runtime_counterpart,
)


class TestIgnorePatterns:
    """Tests for ignore-list handling."""

    def test_search_semantics(self):
        patterns = compile_ignore_patterns(["eslint"])
        assert is_ignored("eslint-plugin-react", patterns)
        assert is_ignored("@typescript-eslint/parser", patterns)
        assert not is_ignored("react", patterns)

    def test_anchored_pattern(self):
        patterns = compile_ignore_patterns([r"^unused-.*$"])
        assert is_ignored("unused-lib", patterns)
        assert not is_ignored("my-unused-lib", patterns)

    def test_invalid_pattern_skipped(self, caplog):
        with caplog.at_level(logging.WARNING):
            patterns = compile_ignore_patterns(["(", "ok"])
        assert len(patterns) == 1
        assert "Invalid module ignore pattern" in caplog.text

    def test_considered_names(self):
        patterns = compile_ignore_patterns(["^@types/"])
        assert considered_names({"@types/node", "react"}, patterns) == {"react"}


class TestFindUnused:
    """Tests for find_unused."""

    def test_scenario_a(self):
        tree = DependencyTree({"left-pad": ["/src/index.js"], "unused-lib": []})
        assert find_unused(tree, {"left-pad", "unused-lib"}, []) == {"unused-lib"}

    def test_absent_entry_is_unused(self):
        assert find_unused(DependencyTree(), {"a"}, []) == {"a"}

    def test_types_satisfied_by_declared_runtime(self):
        tree = DependencyTree({"react": ["/a.js"], "@types/react": []})
        assert find_unused(tree, {"react", "@types/react"}, []) == set()

    def test_types_skipped_even_when_runtime_unused(self):
        """The runtime name alone is reported; its typings follow it."""
        tree = DependencyTree({"react": [], "@types/react": []})
        assert find_unused(tree, {"react", "@types/react"}, []) == {"react"}

    def test_scenario_c_types_without_runtime_evaluated(self):
        """@types/node with no "node" declared stands on its own usage."""
        tree = DependencyTree({"@types/node": []})
        assert find_unused(tree, {"@types/node"}, []) == {"@types/node"}

        tree.add_reference("@types/node", "/src/env.ts")
        assert find_unused(tree, {"@types/node"}, []) == set()

    def test_scenario_d_ignored_name_excluded(self):
        tree = DependencyTree({"left-pad": ["/src/index.js"], "unused-lib": []})
        patterns = compile_ignore_patterns([r"^unused-.*$"])
        assert find_unused(tree, {"left-pad", "unused-lib"}, patterns) == set()

    def test_names_not_declared_are_never_reported(self):
        tree = DependencyTree({"stale": []})
        assert find_unused(tree, {"a"}, []) == {"a"}

    def test_deterministic(self):
        tree = DependencyTree({"a": [], "b": ["/x.js"]})
        declared = {"a", "b", "c"}
        assert find_unused(tree, declared, []) == find_unused(tree, declared, [])


def test_runtime_counterpart():
    assert runtime_counterpart("@types/node") == "node"
    assert runtime_counterpart("@types/babel__core") == "babel__core"
    assert runtime_counterpart("react") == "react"

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for package.json parsing."""

import json

import pytest

from depwatch.manifest import ManifestError, load_manifest, parse_manifest


class TestParseManifest:
    """Tests for parse_manifest."""

    def test_both_groups(self):
        declared = parse_manifest(
            json.dumps(
                {
                    "dependencies": {"left-pad": "1.0.0"},
                    "devDependencies": {"@types/node": "^20.0.0"},
                }
            )
        )
        assert declared.dependencies == {"left-pad": "1.0.0"}
        assert declared.dev_dependencies == {"@types/node": "^20.0.0"}
        assert declared.names == {"left-pad", "@types/node"}

    def test_missing_groups(self):
        declared = parse_manifest('{"name": "x"}')
        assert declared.names == set()

    def test_null_group_treated_as_empty(self):
        assert parse_manifest('{"dependencies": null}').names == set()

    def test_non_string_versions_kept_as_text(self):
        declared = parse_manifest('{"dependencies": {"a": 1}}')
        assert declared.dependencies == {"a": "1"}

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "{",
            '{"dependencies": {"a": "1"},}',
            "[]",
            '"string"',
            '{"dependencies": ["a"]}',
            '{"devDependencies": "a"}',
        ],
    )
    def test_malformed(self, text):
        with pytest.raises(ManifestError):
            parse_manifest(text)


class TestLoadManifest:
    """Tests for load_manifest."""

    def test_load_valid(self, scenario_project):
        declared = load_manifest(scenario_project / "package.json")
        assert declared is not None
        assert declared.names == {"left-pad", "unused-lib"}

    def test_missing_file(self, tmp_path):
        assert load_manifest(tmp_path / "package.json") is None

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "package.json"
        path.write_text('{"dependencies": ')
        assert load_manifest(path) is None

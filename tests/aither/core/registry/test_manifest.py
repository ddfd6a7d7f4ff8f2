"""Tests for unit manifest parsing."""

import json

import pytest

from aither.core.exceptions import ManifestUnreadableError
from aither.core.registry.manifest import UnitManifest, find_manifest, read_manifest


class TestUnitManifest:
    """Tests for the UnitManifest model."""

    def test_keys_are_case_insensitive(self):
        manifest = UnitManifest.model_validate({
            "Name": "LabRunner",
            "DEPENDENCIES": ["Logging"],
            "OptionalDependencies": ["RemoteConnection"],
        })

        assert manifest.name == "LabRunner"
        assert manifest.dependencies == ["Logging"]
        assert manifest.optional_dependencies == ["RemoteConnection"]

    def test_hyphenated_and_legacy_keys(self):
        manifest = UnitManifest.model_validate({
            "optional-dependencies": ["A"],
            "RequiredModules": [{"ModuleName": "Logging", "ModuleVersion": "1.0"}],
        })

        assert manifest.optional_dependencies == ["A"]
        assert manifest.dependencies == ["Logging"]

    def test_single_string_dependency(self):
        assert UnitManifest.model_validate({"dependencies": "Logging"}).dependencies == ["Logging"]

    def test_null_dependencies(self):
        assert UnitManifest.model_validate({"dependencies": None}).dependencies == []

    def test_unknown_fields_are_preserved(self):
        manifest = UnitManifest.model_validate({"Author": "ops", "Tags": ["lab"]})

        assert manifest.extra_fields == {"author": "ops", "tags": ["lab"]}

    def test_numeric_version(self):
        assert UnitManifest.model_validate({"Version": 1.4}).version == "1.4"


class TestReadManifest:
    """Tests for reading manifests from unit directories."""

    def test_yaml_manifest(self, tmp_path):
        (tmp_path / "unit.yaml").write_text(
            "Name: LabRunner\n"
            "Version: 1.4.0\n"
            "Required: true\n"
            "Dependencies:\n"
            "  - Logging\n"
            "  - ConfigurationCore\n"
        )

        manifest = read_manifest(tmp_path, "LabRunner")

        assert manifest.version == "1.4.0"
        assert manifest.required is True
        assert manifest.dependencies == ["Logging", "ConfigurationCore"]

    def test_json_manifest(self, tmp_path):
        (tmp_path / "unit.json").write_text(json.dumps({"dependencies": ["Logging"]}))

        assert read_manifest(tmp_path, "X").dependencies == ["Logging"]

    def test_yaml_preferred_over_json(self, tmp_path):
        (tmp_path / "unit.json").write_text("{}")
        (tmp_path / "unit.yaml").write_text("dependencies: [A]\n")

        assert find_manifest(tmp_path).name == "unit.yaml"

    def test_empty_manifest(self, tmp_path):
        (tmp_path / "unit.yml").write_text("")

        manifest = read_manifest(tmp_path, "X")

        assert manifest.dependencies == []
        assert manifest.required is None

    def test_missing_manifest(self, tmp_path):
        with pytest.raises(ManifestUnreadableError) as exc_info:
            read_manifest(tmp_path, "Ghost")

        assert exc_info.value.unit_name == "Ghost"

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / "unit.yaml").write_text("dependencies: [unclosed\n")

        with pytest.raises(ManifestUnreadableError):
            read_manifest(tmp_path, "Broken")

    def test_non_mapping_manifest(self, tmp_path):
        (tmp_path / "unit.yaml").write_text("- just\n- a list\n")

        with pytest.raises(ManifestUnreadableError, match="expected a mapping"):
            read_manifest(tmp_path, "Listy")

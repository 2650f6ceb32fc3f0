"""Tests for agent manifest parsing, loading and templating."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from warden.core.agents.errors import ManifestValidationError
from warden.core.agents.manifest import (
    ManifestLoader,
    load_definition,
    parse_definition,
    render_template,
)

if TYPE_CHECKING:
    from pathlib import Path

_MANIFEST = """
name: researcher
description: Answers questions.
model:
  model: anthropic/claude-3-opus
  temperature: 0.1
prompt_config:
  system_prompt: You answer questions about $topic.
run_config:
  max_turns: 5
tool_config:
  tools: [read_file]
output_config:
  output_name: answer
  schema: {type: string}
"""


class TestParseDefinition:
    def test_yaml(self) -> None:
        definition = parse_definition(_MANIFEST)
        assert definition.name == "researcher"
        assert definition.model.provider == "anthropic"
        assert definition.run_config.max_turns == 5
        assert definition.tool_names == ["read_file"]
        assert definition.output_config is not None
        assert definition.output_config.output_type is str

    def test_json(self) -> None:
        raw = json.dumps({"name": "a", "prompt_config": {"system_prompt": "Hi"}})
        assert parse_definition(raw, format="json").name == "a"

    def test_yaml_parse_error(self) -> None:
        with pytest.raises(ManifestValidationError, match="YAML parse error"):
            parse_definition("name: [unclosed")

    def test_json_parse_error(self) -> None:
        with pytest.raises(ManifestValidationError, match="JSON parse error"):
            parse_definition("{", format="json")

    def test_not_a_mapping(self) -> None:
        with pytest.raises(ManifestValidationError, match="must be a mapping"):
            parse_definition("- one\n- two\n")

    def test_missing_prompt(self) -> None:
        with pytest.raises(ManifestValidationError, match="system_prompt or initial_messages"):
            parse_definition("name: empty\n")

    def test_invalid_run_config(self) -> None:
        with pytest.raises(ManifestValidationError):
            parse_definition(
                "name: a\nprompt_config: {system_prompt: x}\nrun_config: {max_turns: 0}\n"
            )


class TestLoadDefinition:
    def test_reads_by_suffix(self, tmp_path: Path) -> None:
        path = tmp_path / "agent.json"
        path.write_text(json.dumps({"name": "j", "prompt_config": {"system_prompt": "x"}}))
        assert load_definition(path).name == "j"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ManifestValidationError, match="Cannot read"):
            load_definition(tmp_path / "nope.yaml")


class TestManifestLoader:
    def test_load_all(self, tmp_path: Path) -> None:
        (tmp_path / "a.yaml").write_text(_MANIFEST)
        (tmp_path / "b.yml").write_text("name: helper\nprompt_config: {system_prompt: Help.}\n")
        (tmp_path / "notes.txt").write_text("ignored")

        definitions = ManifestLoader(tmp_path).load_all()

        assert sorted(definitions) == ["helper", "researcher"]

    def test_missing_directory(self, tmp_path: Path) -> None:
        assert ManifestLoader(tmp_path / "absent").load_all() == {}

    def test_load_one(self, tmp_path: Path) -> None:
        (tmp_path / "a.yaml").write_text(_MANIFEST)
        loader = ManifestLoader(tmp_path)
        assert loader.load_one("researcher").description == "Answers questions."

    def test_load_one_missing(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="ghost"):
            ManifestLoader(tmp_path).load_one("ghost")


class TestRenderTemplate:
    def test_substitutes_inputs(self) -> None:
        assert render_template("Find $topic in ${dir}", {"topic": "bugs", "dir": "src"}) == (
            "Find bugs in src"
        )

    def test_unknown_placeholders_left_alone(self) -> None:
        assert render_template("Cost: $price", {}) == "Cost: $price"

    def test_values_are_stringified(self) -> None:
        assert render_template("$n files", {"n": 3}) == "3 files"

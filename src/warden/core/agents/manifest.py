"""Agent manifest loader — discover, parse and template agent definitions.

Typical usage::

    loader = ManifestLoader(Path("agents"))
    definitions = loader.load_all()
    prompt = render_template(definitions["researcher"].prompt_config.system_prompt, inputs)
"""

from __future__ import annotations

import json
from pathlib import Path  # noqa: TC003
from string import Template
from typing import Any

import yaml
from pydantic import ValidationError

from warden.core.agents.errors import ManifestValidationError
from warden.core.agents.models import AgentDefinition

MANIFEST_SUFFIXES = (".yaml", ".yml", ".json")


def parse_definition(raw: str, *, format: str = "yaml") -> AgentDefinition:
    """Parse a raw string into a validated :class:`AgentDefinition`.

    Raises:
        ManifestValidationError: On parse errors or schema validation failures.
    """
    try:
        data: Any = json.loads(raw) if format == "json" else yaml.safe_load(raw)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ManifestValidationError(f"{format.upper()} parse error: {exc}") from exc

    if not isinstance(data, dict):
        raise ManifestValidationError("Agent manifest must be a mapping")

    try:
        return AgentDefinition.model_validate(data)
    except ValidationError as exc:
        raise ManifestValidationError(str(exc)) from exc


def load_definition(path: Path) -> AgentDefinition:
    """Read and parse a single manifest file."""
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestValidationError(f"Cannot read {path}: {exc}") from exc
    fmt = "json" if path.suffix == ".json" else "yaml"
    return parse_definition(raw, format=fmt)


def render_template(text: str, inputs: dict[str, Any]) -> str:
    """Fill ``$name`` / ``${name}`` placeholders from *inputs*.

    Unknown placeholders are left as-is (``safe_substitute``).
    """
    return Template(text).safe_substitute({k: str(v) for k, v in inputs.items()})


class ManifestLoader:
    """Load and cache agent definitions from a directory.

    Scans the directory for ``.yaml``, ``.yml`` and ``.json`` files, one
    definition per file.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self._cache: dict[str, AgentDefinition] = {}

    def load_all(self) -> dict[str, AgentDefinition]:
        """Load all definitions from the directory, keyed by agent name."""
        definitions: dict[str, AgentDefinition] = {}
        if not self.directory.is_dir():
            return definitions

        for path in sorted(self.directory.iterdir()):
            if path.suffix in MANIFEST_SUFFIXES:
                definition = load_definition(path)
                definitions[definition.name] = definition

        self._cache = definitions
        return definitions

    def load_one(self, name: str) -> AgentDefinition:
        """Load a single definition by agent name.

        Raises:
            FileNotFoundError: If no matching file is found.
        """
        if name in self._cache:
            return self._cache[name]

        for path in sorted(self.directory.iterdir()):
            if path.suffix in MANIFEST_SUFFIXES:
                definition = load_definition(path)
                self._cache[definition.name] = definition
                if definition.name == name:
                    return definition

        raise FileNotFoundError(f"No manifest found for agent '{name}' in {self.directory}")

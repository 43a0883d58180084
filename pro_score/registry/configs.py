"""Instrument config registry for loading and caching scoring configs."""

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import jsonschema

from pro_score.matching import normalize_ref, questionnaire_ref_matches
from pro_score.registry.models import ScoringConfig

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).parent
BUILTIN_INSTRUMENTS_PATH = PACKAGE_DIR / "instruments"
SCHEMA_PATH = PACKAGE_DIR / "schema" / "scoring_config.schema.json"


class ConfigNotFoundError(Exception):
    """Raised when an instrument config is not found."""

    pass


class ConfigValidationError(Exception):
    """Raised when an instrument config fails validation."""

    pass


def load_schema(schema_path: Path | str | None = None) -> dict[str, Any]:
    """Load the scoring config JSON schema (the packaged one by default)."""
    with open(schema_path or SCHEMA_PATH) as f:
        return json.load(f)


def validate_config_data(
    data: dict[str, Any],
    schema: dict[str, Any] | None = None,
    source: str = "<memory>",
) -> ScoringConfig:
    """Validate raw config data and build a ScoringConfig.

    Args:
        data: Parsed JSON config.
        schema: Schema to validate against. Defaults to the packaged schema.
        source: Name used in error messages.

    Returns:
        The validated ScoringConfig.

    Raises:
        ConfigValidationError: If the data fails schema validation.
    """
    schema = schema if schema is not None else load_schema()
    try:
        jsonschema.validate(data, schema)
    except jsonschema.ValidationError as e:
        raise ConfigValidationError(
            f"Scoring config validation failed for {source}: {e.message}"
        ) from e
    return ScoringConfig.model_validate(data)


class ConfigRegistry:
    """Registry for loading and caching instrument scoring configs.

    Loads configs from a directory structure:
        <registry_path>/instruments/<key>.json

    Built-in configs shipped with the package are loaded first; a file in
    the registry directory with the same ``key`` replaces the built-in.
    """

    def __init__(
        self,
        registry_path: Path | str | None = None,
        schema_path: Path | str | None = None,
        include_builtin: bool = True,
    ) -> None:
        """Initialize the config registry.

        Args:
            registry_path: Optional path to a registry directory.
            schema_path: Optional path to an alternative config schema.
            include_builtin: Whether to load the packaged instrument configs.
        """
        self.registry_path = Path(registry_path) if registry_path else None
        self.instruments_path = self.registry_path / "instruments" if self.registry_path else None
        self.include_builtin = include_builtin
        self._schema = load_schema(schema_path)
        self._cache: dict[str, ScoringConfig] | None = None

    def _config_files(self) -> list[Path]:
        files: list[Path] = []
        if self.include_builtin:
            files.extend(sorted(BUILTIN_INSTRUMENTS_PATH.glob("*.json")))
        if self.instruments_path and self.instruments_path.exists():
            files.extend(sorted(self.instruments_path.glob("*.json")))
        return files

    def _load(self) -> dict[str, ScoringConfig]:
        if self._cache is not None:
            return self._cache
        configs: dict[str, ScoringConfig] = {}
        for path in self._config_files():
            config = self.load_file(path)
            if config.key in configs:
                logger.debug("Config %s from %s overrides an earlier entry", config.key, path)
            configs[config.key] = config
        self._cache = configs
        return configs

    def load_file(self, path: Path | str) -> ScoringConfig:
        """Load and validate a single config file.

        Raises:
            ConfigNotFoundError: If the file doesn't exist.
            ConfigValidationError: If the file is not valid JSON or fails validation.
        """
        path = Path(path)
        if not path.exists():
            raise ConfigNotFoundError(f"Scoring config not found: {path}")
        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigValidationError(f"Invalid JSON in {path}: {e}") from e
        return validate_config_data(data, self._schema, source=str(path))

    def register(self, config: ScoringConfig) -> None:
        """Add or replace a config in this registry."""
        self._load()[config.key] = config

    def get(self, key: str) -> ScoringConfig:
        """Get an instrument config by key.

        Args:
            key: The instrument key (e.g., 'CIRG-PHQ9'). Case-insensitive.

        Returns:
            The ScoringConfig.

        Raises:
            ConfigNotFoundError: If no config has this key.
        """
        configs = self._load()
        if key in configs:
            return configs[key]
        wanted = normalize_ref(key)
        for config_key, config in configs.items():
            if normalize_ref(config_key) == wanted:
                return config
        raise ConfigNotFoundError(
            f"Scoring config not found: {key} (known: {', '.join(sorted(configs)) or 'none'})"
        )

    def find(self, ref: str | None) -> ScoringConfig | None:
        """Find the config for a questionnaire reference.

        Exact key matches win, then strict identifier matches, then each
        config's own match mode.

        Args:
            ref: A canonical url, ``Questionnaire/<id>`` reference, id or name.

        Returns:
            The matching ScoringConfig, or None.
        """
        if not ref:
            return None
        configs = list(self._load().values())
        wanted = normalize_ref(ref)
        for config in configs:
            if normalize_ref(config.key) == wanted:
                return config
        for config in configs:
            if questionnaire_ref_matches(ref, config, match_mode="strict"):
                return config
        for config in configs:
            if questionnaire_ref_matches(ref, config):
                return config
        return None

    def resolve(
        self,
        ref: str | None,
        definition: dict[str, Any] | None = None,
    ) -> ScoringConfig:
        """Get the config for a response group, falling back to a default.

        The reference is tried first, then the definition's id, url and
        name. When nothing is registered a default config identifying the
        definition (or the bare reference) is returned.
        """
        candidates: list[Any] = [ref]
        if isinstance(definition, dict):
            candidates.extend(definition.get(field) for field in ("id", "url", "name"))
        for candidate in candidates:
            config = self.find(candidate)
            if config is not None:
                return config
        if isinstance(definition, dict):
            return ScoringConfig.for_definition(definition)
        return ScoringConfig(key=normalize_ref(ref) or "", questionnaire_id=normalize_ref(ref) or "")

    def list_keys(self) -> list[str]:
        """List all available instrument keys."""
        return sorted(self._load())

    def configs(self) -> list[ScoringConfig]:
        """All loaded configs in key order."""
        configs = self._load()
        return [configs[key] for key in sorted(configs)]

    def derived_configs(self) -> list[ScoringConfig]:
        """Configs whose answers are derived from host questionnaires."""
        return [config for config in self.configs() if config.derive_from is not None]

    @classmethod
    def from_configs(cls, configs: Iterable[ScoringConfig], include_builtin: bool = False) -> "ConfigRegistry":
        """Build a registry from in-memory configs."""
        registry = cls(include_builtin=include_builtin)
        for config in configs:
            registry.register(config)
        return registry

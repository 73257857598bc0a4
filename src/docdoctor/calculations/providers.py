"""Configuration providers: each yields one snapshot layer.

Providers satisfy ``ConfigProvider`` structurally. ``LayeredConfigProvider``
folds their snapshots in order (later wins) and validates once.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol

import yaml

from docdoctor.calculations.config import (
    DEFAULT_CONFIG,
    CalculationConfig,
    deep_merge,
    merge_config_layers,
)
from docdoctor.config import Settings
from docdoctor.errors import ConfigLoadError

logger = logging.getLogger(__name__)


class ConfigProvider(Protocol):
    @property
    def name(self) -> str: ...
    def load(self) -> dict[str, Any]: ...


class DefaultConfigProvider:
    """Built-in defaults."""

    name = "defaults"

    def load(self) -> dict[str, Any]:
        return DEFAULT_CONFIG.to_layer()


class MappingConfigProvider:
    """An in-memory layer, typically per-invocation overrides."""

    def __init__(
        self, data: Mapping[str, Any], *, name: str = "overrides"
    ) -> None:
        self._data = copy.deepcopy(dict(data))
        self.name = name

    def load(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)


class YamlFileConfigProvider:
    """A YAML config file. A missing optional file is an empty layer."""

    def __init__(self, path: Path, *, required: bool = False) -> None:
        self.path = Path(path).expanduser()
        self.required = required
        self.name = str(self.path)

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> dict[str, Any]:
        if not self.exists():
            if self.required:
                raise ConfigLoadError(
                    "Config file not found", source=str(self.path)
                )
            logger.debug("No config file at %s", self.path)
            return {}

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigLoadError(
                f"Cannot read config file: {e.strerror or e}",
                source=str(self.path),
            ) from e

        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ConfigLoadError(
                f"Invalid YAML in config file: {e}",
                source=str(self.path),
            ) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigLoadError(
                "Config file must contain a mapping",
                source=str(self.path),
            )
        logger.debug("Loaded config layer from %s", self.path)
        return data

    def save(self, config: CalculationConfig) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            yaml.safe_dump(config.to_layer(), sort_keys=False),
            encoding="utf-8",
        )
        logger.info("Wrote config to %s", self.path)


class LayeredConfigProvider:
    """Folds provider snapshots left to right."""

    name = "layered"

    def __init__(
        self,
        providers: Sequence[ConfigProvider],
        *,
        strict: bool = False,
    ) -> None:
        self.providers = tuple(providers)
        self.strict = strict

    def load(self) -> dict[str, Any]:
        merged: dict[str, Any] = {}
        for provider in self.providers:
            merged = deep_merge(merged, provider.load())
        return merged

    def config(self) -> CalculationConfig:
        layers = [provider.load() for provider in self.providers]
        return merge_config_layers(layers, strict=self.strict)


def load_calculation_config(
    settings: Settings | None = None,
    project_root: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    strict: bool | None = None,
) -> CalculationConfig:
    """Defaults, then user file, then project file, then overrides."""
    settings = settings or Settings()
    providers: list[ConfigProvider] = [
        DefaultConfigProvider(),
        YamlFileConfigProvider(settings.user_config_path),
    ]
    if project_root is not None:
        providers.append(
            YamlFileConfigProvider(
                settings.project_config_path(Path(project_root))
            )
        )
    if overrides:
        providers.append(MappingConfigProvider(overrides))

    layered = LayeredConfigProvider(
        providers,
        strict=settings.strict if strict is None else strict,
    )
    return layered.config()

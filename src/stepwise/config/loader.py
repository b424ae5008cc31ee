"""Configuration loading with pydantic-settings.

Sources, lowest precedence first:

1. Built-in defaults (``stepwise.config.models``)
2. Global YAML (``~/.config/stepwise/config.yaml``)
3. Project YAML (``<config_dir>/stepwise.yaml``, config_dir defaults to cwd)
4. Environment (``STEPWISE__SECTION__KEY``, e.g. ``STEPWISE__SOURCE__TOKEN``)
5. Keyword overrides passed to ``load_config``

The two YAML files are deep-merged before pydantic-settings layers the
environment and overrides on top.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from stepwise.config.models import StepwiseConfig
from stepwise.core.errors import ConfigError

GLOBAL_CONFIG_PATH = Path("~/.config/stepwise/config.yaml").expanduser()
LOCAL_CONFIG_NAME = "stepwise.yaml"
ENV_PREFIX = "STEPWISE__"


def _read_yaml(path: Path) -> dict[str, Any]:
    """Mapping from one YAML file; a missing or empty file is ``{}``."""
    if not path.is_file():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError.parse_error(str(path), "top-level value must be a mapping")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


class _YamlSource(PydanticBaseSettingsSource):
    """Feeds the merged YAML mapping to pydantic-settings."""

    def __init__(self, settings_cls: type[BaseSettings], data: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._data = data

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:  # noqa: ARG002
        value = self._data.get(field_name)
        return value, field_name, isinstance(value, dict)

    def __call__(self) -> dict[str, Any]:
        return {k: v for k, v in self._data.items() if k in self.settings_cls.model_fields}


def _settings_class(yaml_data: dict[str, Any]) -> type[BaseSettings]:
    """Settings class bound to one YAML mapping, so concurrent loads never share state."""

    class StepwiseSettings(BaseSettings, StepwiseConfig):
        model_config = SettingsConfigDict(
            env_prefix=ENV_PREFIX,
            env_nested_delimiter="__",
            case_sensitive=False,
            extra="ignore",
        )

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            # First source wins.
            return (init_settings, env_settings, _YamlSource(settings_cls, yaml_data))

    return StepwiseSettings


def load_config(config_dir: Path | None = None, **overrides: Any) -> StepwiseConfig:
    """Resolve the configuration from every source.

    Args:
        config_dir: Directory holding ``stepwise.yaml``; defaults to the
            current working directory.
        **overrides: Section values with the highest precedence, e.g.
            ``database={"path": "/tmp/index.db"}``.

    Raises:
        ConfigError: A YAML file is malformed or a value fails validation.
    """
    yaml_data = _deep_merge(
        _read_yaml(GLOBAL_CONFIG_PATH),
        _read_yaml((config_dir or Path.cwd()) / LOCAL_CONFIG_NAME),
    )
    try:
        settings = _settings_class(yaml_data)(**overrides)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ConfigError.invalid_value(location, first.get("input"), first["msg"]) from e
    return StepwiseConfig.model_validate(settings.model_dump())

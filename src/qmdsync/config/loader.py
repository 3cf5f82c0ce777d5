"""Configuration loading with pydantic-settings.

Supports loading configuration from multiple sources with precedence:
1. Direct kwargs (highest priority)
2. Environment variables (QMDSYNC__SECTION__KEY)
3. Repo config (.qmdsync.yaml)
4. Global config (~/.config/qmdsync/config.yaml)
5. Built-in defaults (lowest priority)
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from qmdsync.config.models import (
    CacheConfig,
    LoggingConfig,
    QmdSyncConfig,
    SearchConfig,
    SyncConfig,
    TimeoutsConfig,
)
from qmdsync.core.errors import ConfigError

GLOBAL_CONFIG_PATH = Path("~/.config/qmdsync/config.yaml").expanduser()
REPO_CONFIG_NAME = ".qmdsync.yaml"


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open() as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class _YamlSource(PydanticBaseSettingsSource):
    """Settings source that reads from pre-loaded YAML config."""

    def __init__(self, settings_cls: type[BaseSettings], yaml_config: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._yaml_config = yaml_config

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        val = self._yaml_config.get(field_name)
        return val, field_name, val is not None

    def __call__(self) -> dict[str, Any]:
        return self._yaml_config


def _make_settings_class(yaml_config: dict[str, Any]) -> type[BaseSettings]:
    """Create a Settings class with instance-based YAML source."""

    class QmdSyncSettings(BaseSettings):
        """Root config. Env vars: QMDSYNC__SYNC__SYNC_MODE, QMDSYNC__LOGGING__LEVEL, etc."""

        model_config = SettingsConfigDict(
            env_prefix="QMDSYNC__",
            env_nested_delimiter="__",
            case_sensitive=False,
        )

        logging: LoggingConfig = LoggingConfig()
        sync: SyncConfig = SyncConfig()
        search: SearchConfig = SearchConfig()
        cache: CacheConfig = CacheConfig()
        timeouts: TimeoutsConfig = TimeoutsConfig()

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            # Precedence (first wins): init kwargs > env vars > yaml files
            return (init_settings, env_settings, _YamlSource(settings_cls, yaml_config))

    return QmdSyncSettings


def load_config(
    work_dir: Path | None = None,
    config_file: Path | None = None,
    **kwargs: Any,
) -> QmdSyncConfig:
    """Load config: defaults < global yaml < repo yaml < env vars < kwargs.

    Args:
        work_dir: Directory searched for .qmdsync.yaml. Defaults to cwd.
        config_file: Explicit YAML file used instead of .qmdsync.yaml.
        **kwargs: Override values (highest precedence), by section.

    Returns:
        Fully resolved configuration object.

    Raises:
        ConfigError: On invalid YAML syntax or validation errors.
    """
    work_dir = work_dir or Path.cwd()
    repo_path = config_file or work_dir / REPO_CONFIG_NAME

    yaml_config = _deep_merge(_load_yaml(GLOBAL_CONFIG_PATH), _load_yaml(repo_path))

    settings_cls = _make_settings_class(yaml_config)
    try:
        settings = settings_cls(**kwargs)
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e
    return QmdSyncConfig.model_validate(settings.model_dump())

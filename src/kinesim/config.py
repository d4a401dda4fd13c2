"""Configuration for the kinesim CLI.

Settings are resolved from several sources, highest priority first:

1. An explicit file given with ``kinesim --config PATH``
2. Environment variables with the ``KINESIM_`` prefix, using ``__`` for
   nesting (``KINESIM_EVALUATION__PRECISION=4``)
3. The project file ``./kinesim.yaml``
4. The user file ``~/.config/kinesim/config.yaml``
5. Field defaults

Example ``kinesim.yaml``::

    controllers_file: fake_controllers.yaml
    model_file: model.yaml
    evaluation:
      output_format: json
      precision: 4
    verbosity: info
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from kinesim.constants import PROJECT_CONFIG_FILE, USER_CONFIG_DIR
from kinesim.exceptions import ConfigError
from kinesim.logging import get_logger

__all__ = [
    "KinesimConfig",
    "EvaluationConfig",
    "load_config",
    "get_user_config_path",
]

logger = get_logger(__name__)


class EvaluationConfig(BaseModel):
    """Settings for ``kinesim eval`` output.

    Attributes:
        output_format: ``text`` for aligned columns, ``json`` for machines.
        precision: Significant digits printed in text output.
    """

    output_format: Literal["text", "json"] = "text"
    precision: int = Field(default=6, ge=1, le=17)


class YamlConfigSource(PydanticBaseSettingsSource):
    """Settings source that reads one YAML file, if it exists."""

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        yaml_file: Path | None = None,
    ):
        super().__init__(settings_cls)
        self.yaml_file = yaml_file
        self._config_data: dict[str, Any] = {}
        if yaml_file and yaml_file.exists():
            try:
                with open(yaml_file) as f:
                    loaded = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(
                    message=f"Invalid YAML in {yaml_file}: {e}",
                    field=None,
                    value=None,
                ) from e
            if loaded is None:
                logger.warning("config_file_empty", path=str(yaml_file))
            elif not isinstance(loaded, dict):
                raise ConfigError(
                    message=f"Config file {yaml_file} must contain a mapping",
                    field=None,
                    value=type(loaded).__name__,
                )
            else:
                self._config_data = loaded

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        if field_name in self._config_data:
            return self._config_data[field_name], field_name, False
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        return self._config_data


class KinesimConfig(BaseSettings):
    """Root configuration.

    Attributes:
        controllers_file: Default fake-controller document for the CLI.
        model_file: Default joint model (YAML) for the CLI.
        evaluation: Output settings of ``kinesim eval``.
        verbosity: Log level name used when no ``-v``/``-q`` flag is given.
    """

    model_config = SettingsConfigDict(
        env_prefix="KINESIM_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    controllers_file: Path | None = None
    model_file: Path | None = None
    evaluation: EvaluationConfig = Field(default_factory=EvaluationConfig)
    verbosity: Literal["error", "warning", "info", "debug"] = "warning"

    @field_validator("controllers_file", "model_file")
    @classmethod
    def warn_missing_file(cls, v: Path | None) -> Path | None:
        if v is not None and not v.exists():
            logger.warning("configured_file_missing", path=str(v))
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Order settings sources, highest priority first.

        1. Init arguments (used for an explicit ``--config`` file)
        2. Environment variables (KINESIM_*)
        3. Project YAML config (./kinesim.yaml)
        4. User YAML config (~/.config/kinesim/config.yaml)
        """
        return (
            init_settings,
            env_settings,
            YamlConfigSource(settings_cls, Path.cwd() / PROJECT_CONFIG_FILE),
            YamlConfigSource(settings_cls, get_user_config_path()),
        )


def get_user_config_path() -> Path:
    """Return ``~/.config/kinesim/config.yaml``."""
    return Path.home() / ".config" / USER_CONFIG_DIR / "config.yaml"


def load_config(config_path: Path | None = None) -> KinesimConfig:
    """Load configuration: defaults < user < project < env < explicit file.

    Args:
        config_path: Optional config file that overrides all other sources.

    Raises:
        ConfigError: If a config file is unreadable or a value is invalid.
    """
    overrides: dict[str, Any] = {}
    if config_path is not None:
        if not config_path.exists():
            raise ConfigError(
                f"Config file {config_path} does not exist",
                field="config",
                value=str(config_path),
            )
        overrides = YamlConfigSource(KinesimConfig, config_path)()
    elif not (Path.cwd() / PROJECT_CONFIG_FILE).exists():
        logger.info("no_project_config", using="defaults")

    try:
        return KinesimConfig(**overrides)
    except ValidationError as e:
        first_error = e.errors()[0]
        field = ".".join(str(loc) for loc in first_error["loc"])
        raise ConfigError(
            message=f"Invalid configuration: {first_error['msg']}",
            field=field,
            value=first_error.get("input"),
        ) from e

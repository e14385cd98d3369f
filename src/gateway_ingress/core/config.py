"""Gateway Ingress Configuration.

Settings file with environment overrides, validated by Pydantic into one
immutable Configuration snapshot.

Layer Priority (highest to lowest):
1. Process environment (``LOGS_GATEWAY_INGRESS__<GROUP>__<FIELD>``)
2. ``.env`` file next to the settings file
3. Settings file (YAML or JSON)
4. Defaults (defined in the Pydantic models)

The snapshot is loaded once at startup and passed explicitly to whatever
needs it; there is no global instance and no hot reload.

Usage:
    from gateway_ingress.core.config import load

    settings = load("config.yaml")
    generator = settings.rpc_backoff.build()
"""

from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type, Union
from urllib.parse import urlsplit, urlunsplit

import structlog
import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    PositiveInt,
    PrivateAttr,
    SecretStr,
    ValidationError,
)
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    SettingsError,
)

from gateway_ingress.durations import HumanDuration
from gateway_ingress.core.exceptions import (
    ConfigNotFound,
    ConfigParseError,
    ConfigValidationError,
)
from gateway_ingress.rpc.backoff import BackoffSpec

log = structlog.get_logger()

DEFAULT_ENV_PREFIX = "LOGS_GATEWAY_INGRESS"
ENV_SEPARATOR = "__"
CONFIG_SUFFIXES = (".yaml", ".yml", ".json")


# =============================================================================
# Sub-configuration Models (nested sections)
# =============================================================================


class Secrets(BaseModel):
    """Secret values used to connect to services."""

    model_config = ConfigDict(frozen=True)

    # Discord bot token used to authenticate with the Gateway API
    discord_token: SecretStr = SecretStr("")


class Services(BaseModel):
    """External services that this service connects to."""

    model_config = ConfigDict(frozen=True)

    gateway_queue: str = ""  # full AMQP URL
    feature_gate: str = ""  # host:port
    logs_uptime: str = ""  # host:port


class PoolTimeouts(BaseModel):
    """Connection pool timeouts; None waits indefinitely."""

    model_config = ConfigDict(frozen=True)

    wait: Optional[HumanDuration] = None
    create: Optional[HumanDuration] = None
    recycle: Optional[HumanDuration] = None


class ConnectionPoolConfig(BaseModel):
    """Pool in front of the gateway queue connection."""

    model_config = ConfigDict(frozen=True)

    max_size: PositiveInt = Field(default_factory=lambda: (os.cpu_count() or 1) * 4)
    timeouts: PoolTimeouts = Field(default_factory=PoolTimeouts)


class GatewayQueueConfig(BaseModel):
    """Options for publishing to the gateway queue."""

    model_config = ConfigDict(frozen=True)

    exchange: str = ""
    queue_name: str = ""
    routing_key: str = ""
    connection_pool: ConnectionPoolConfig = Field(default_factory=ConnectionPoolConfig)


# =============================================================================
# Settings Sources
# =============================================================================

BACKOFF_SECTIONS = ("initialization_backoff", "rpc_backoff")


class BackoffKeySource(PydanticBaseSettingsSource):
    """Wraps a settings source and renames ``max_elapsed`` to ``duration``.

    Backoff sections accept either name for the elapsed budget. Renaming
    within each source before layering lets a higher-priority source win
    whichever name each one uses.
    """

    def __init__(self, source: PydanticBaseSettingsSource) -> None:
        super().__init__(source.settings_cls)
        self.source = source

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        return self.source.get_field_value(field, field_name)

    def __call__(self) -> Dict[str, Any]:
        values = self.source()
        for section in BACKOFF_SECTIONS:
            backoff = values.get(section)
            if isinstance(backoff, dict) and "max_elapsed" in backoff:
                backoff = dict(backoff)
                elapsed = backoff.pop("max_elapsed")
                backoff.setdefault("duration", elapsed)
                values = {**values, section: backoff}
        return values


# =============================================================================
# Main Configuration Model
# =============================================================================


class Configuration(BaseSettings):
    """Configuration snapshot loaded upon startup.

    Both backoff sections are required. Every other group falls back to
    zero values; consumers that need a value call ``require``.
    """

    model_config = SettingsConfigDict(
        env_prefix=f"{DEFAULT_ENV_PREFIX}{ENV_SEPARATOR}",
        env_nested_delimiter=ENV_SEPARATOR,
        extra="ignore",
        frozen=True,
    )

    secrets: Secrets = Field(default_factory=Secrets)
    services: Services = Field(default_factory=Services)
    # Backoff used to connect to external services during initialization
    initialization_backoff: BackoffSpec
    # Backoff used to send RPC calls to other services
    rpc_backoff: BackoffSpec
    # Name of the feature that enables indexing on a guild
    indexing_feature: str = ""
    gateway_queue: GatewayQueueConfig = Field(default_factory=GatewayQueueConfig)
    # Window in which consecutive guild uptime events are grouped together
    guild_uptime_debounce_delay: HumanDuration = timedelta(0)
    # Guilds per feature-gate batch check
    feature_gate_batch_check_size: NonNegativeInt = 0
    # How long offline guilds stay in the active guild cache
    active_guild_eviction_duration: HumanDuration = timedelta(0)
    # Time between polls of the feature-gate for indexing status
    active_guilds_poll_interval: HumanDuration = timedelta(0)

    _source: str = PrivateAttr(default="<environment>")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # File contents arrive as init kwargs; the environment must win over them
        return tuple(
            BackoffKeySource(source) for source in (env_settings, dotenv_settings, init_settings)
        )

    @property
    def source(self) -> str:
        """Path of the settings file this snapshot was loaded from."""
        return self._source

    def require(self, key: str) -> Any:
        """Return the value at dotted ``key``, rejecting zero values.

        Secrets are returned unwrapped.

        Raises:
            ConfigValidationError: If the key does not exist or its value is
                empty or zero.
        """
        value: Any = self
        for part in key.split("."):
            if not isinstance(value, BaseModel) or part not in type(value).model_fields:
                raise ConfigValidationError(
                    config_path=self._source,
                    key=key,
                    errors=[(key, "no such configuration field")],
                )
            value = getattr(value, part)

        if isinstance(value, SecretStr):
            value = value.get_secret_value()
        if not value:
            raise ConfigValidationError(
                config_path=self._source,
                key=key,
                errors=[(key, "value is required but empty")],
            )
        return value

    def redacted(self) -> Dict[str, Any]:
        """JSON-safe dump with secrets and URL passwords masked."""
        data = self.model_dump(mode="json")
        data["services"] = {
            name: _mask_url_password(url) for name, url in data["services"].items()
        }
        return data


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def _mask_url_password(url: str) -> str:
    parts = urlsplit(url)
    if not parts.password:
        return url
    netloc = parts.netloc.replace(f":{parts.password}@", ":****@", 1)
    return urlunsplit(parts._replace(netloc=netloc))


def resolve_config_path(path: Union[str, Path]) -> Path:
    """Locate the settings file.

    A path without a suffix that does not exist is retried with each of
    ``.yaml``, ``.yml`` and ``.json``.

    Raises:
        ConfigNotFound: If no candidate file exists.
    """
    path = Path(path).expanduser()
    if path.is_file():
        return path
    if not path.suffix:
        for suffix in CONFIG_SUFFIXES:
            candidate = path.with_suffix(suffix)
            if candidate.is_file():
                return candidate
    raise ConfigNotFound(config_path=str(path))


def load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load and parse a YAML (or JSON) settings file.

    Args:
        path: Path to the file.

    Returns:
        Parsed content as a dictionary; an empty file yields ``{}``.

    Raises:
        ConfigNotFound: If the file cannot be read.
        ConfigParseError: If the content is not valid YAML or not a mapping.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except (FileNotFoundError, PermissionError, IsADirectoryError) as e:
        raise ConfigNotFound(
            config_path=str(path),
            message=f"Could not read in config file from {path}: {e}",
        ) from e
    except yaml.YAMLError as e:
        raise ConfigParseError(
            config_path=str(path),
            message=f"Invalid YAML in {path}: {e}",
        ) from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigParseError(
            config_path=str(path),
            message=f"Top level of {path} must be a mapping, got {type(content).__name__}",
        )
    return content


def _error_path(loc: Tuple[Union[int, str], ...]) -> str:
    return ".".join(str(part) for part in loc)


def create_configuration(
    file_values: Dict[str, Any],
    config_path: str,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    env_file: Optional[Path] = None,
) -> Configuration:
    """Overlay the environment on ``file_values`` and validate the result.

    Args:
        file_values: Parsed settings file content.
        config_path: Path reported in errors.
        env_prefix: Deployment prefix, without the trailing separator.
        env_file: Optional ``.env`` file read as a lower-priority environment.

    Raises:
        ConfigParseError: If environment values cannot be decoded.
        ConfigValidationError: If the merged values fail validation.
    """
    try:
        config = Configuration(
            _env_prefix=f"{env_prefix}{ENV_SEPARATOR}",
            _env_file=env_file,
            **file_values,
        )
    except SettingsError as e:
        raise ConfigParseError(
            config_path=config_path,
            message=f"Could not merge in values from the environment: {e}",
        ) from e
    except ValidationError as e:
        errors = [(_error_path(err["loc"]), err["msg"]) for err in e.errors()]
        raise ConfigValidationError(
            config_path=config_path,
            key=errors[0][0] if errors else "<root>",
            errors=errors,
        ) from e

    config._source = config_path
    return config


def load(
    path: Union[str, Path],
    env_prefix: str = DEFAULT_ENV_PREFIX,
) -> Configuration:
    """Load the configuration snapshot; called once at startup.

    Args:
        path: Settings file path (suffix optional).
        env_prefix: Deployment prefix for environment overrides, e.g.
            ``LOGS_GATEWAY_INGRESS__SECRETS__DISCORD_TOKEN=X`` sets
            ``secrets.discord_token``.

    Returns:
        Validated, immutable Configuration.

    Raises:
        ConfigNotFound: If the file is missing or unreadable.
        ConfigParseError: If the file or environment cannot be parsed.
        ConfigValidationError: If a field has the wrong type or value.
    """
    log.info("config_loading", path=str(path), env_prefix=env_prefix)
    resolved = resolve_config_path(path)
    file_values = load_yaml_file(resolved)

    env_file = resolved.parent / ".env"
    config = create_configuration(
        file_values,
        config_path=str(resolved),
        env_prefix=env_prefix,
        env_file=env_file if env_file.is_file() else None,
    )
    log.debug("config_loaded", path=str(resolved), config=config.redacted())
    return config

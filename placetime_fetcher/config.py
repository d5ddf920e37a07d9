"""
Placetime Fetcher Configuration Management.

Builds one immutable configuration value at startup from:
- Default values
- A TOML configuration file
- Environment variables

The resulting PlacetimeConfig is passed explicitly to the components that
need it; there is no module-level configuration state.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, List, Optional

from placetime_fetcher import __version__
from placetime_fetcher.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Configuration file search locations, first existing file wins
ENV_CONFIG_VAR = "PLACETIME_CONFIG"
USER_CONFIG_FILE = Path.home() / ".placetime" / "config"
SYSTEM_CONFIG_FILE = Path("/etc/placetime.conf")

DEFAULT_DATA_DIR = Path.home() / ".local" / "share" / "placetime"
DEFAULT_IMAGE_DIR = Path("/var/opt/timescroll/img")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class ValidationError:
    """Validation error for configuration."""
    field: str
    message: str
    severity: str  # "error" or "warning"

    def __str__(self) -> str:
        return f"[{self.severity.upper()}] {self.field}: {self.message}"


@dataclass(frozen=True)
class FeedPollConfig:
    """Polling settings for feeds."""

    interval: int = 30  # seconds


@dataclass(frozen=True)
class ImagePollConfig:
    """Polling settings for item images."""

    interval: int = 30  # seconds
    batch_size: int = 10
    # Keep querying until a batch comes back empty (else stop on a short batch)
    drain_until_empty: bool = True


@dataclass(frozen=True)
class FetcherConfig:
    """Configuration for the job queue, worker pool and scheduler."""

    workers: int = 5
    queue_capacity: int = 0  # 0 = synchronous hand-off
    request_timeout: float = 30.0
    user_agent: str = f"placetime-fetcher/{__version__}"

    feed: FeedPollConfig = field(default_factory=FeedPollConfig)
    image: ImagePollConfig = field(default_factory=ImagePollConfig)


@dataclass(frozen=True)
class ImageConfig:
    """Configuration for stored item images."""

    path: Path = DEFAULT_IMAGE_DIR
    width: int = 460
    height: int = 160
    claim_ttl: int = 86400  # seconds before an unfinished image claim expires


@dataclass(frozen=True)
class DatastoreConfig:
    """Configuration for the item datastore."""

    url: str = ""


@dataclass(frozen=True)
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[Path] = None


@dataclass(frozen=True)
class PlacetimeConfig:
    """Main configuration container for the fetcher."""

    data_dir: Path = DEFAULT_DATA_DIR

    fetcher: FetcherConfig = field(default_factory=FetcherConfig)
    image: ImageConfig = field(default_factory=ImageConfig)
    datastore: DatastoreConfig = field(default_factory=DatastoreConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Where the configuration was read from, None for defaults
    source: Optional[Path] = None

    def __post_init__(self) -> None:
        if not self.datastore.url:
            object.__setattr__(
                self,
                "datastore",
                replace(self.datastore, url=f"sqlite:///{self.data_dir}/placetime.db"),
            )


def find_config_file(config_path: Optional[Path] = None) -> Optional[Path]:
    """
    Locate the configuration file to use.

    Search order:
    1. Explicit path
    2. $PLACETIME_CONFIG
    3. ~/.placetime/config
    4. /etc/placetime.conf

    Args:
        config_path: Explicit configuration file path

    Returns:
        Path to the configuration file, or None to use defaults

    Raises:
        ConfigurationError: If an explicitly requested file does not exist
    """
    if config_path is not None:
        if not config_path.is_file():
            raise ConfigurationError(f"Config file not found: {config_path}")
        return config_path

    if env_path := os.environ.get(ENV_CONFIG_VAR):
        path = Path(env_path)
        if not path.is_file():
            raise ConfigurationError(f"Config file not found: {path}")
        return path

    for candidate in (USER_CONFIG_FILE, SYSTEM_CONFIG_FILE):
        if candidate.is_file():
            return candidate

    return None


def load_config(
    config_path: Optional[Path] = None,
    env_prefix: str = "PLACETIME_",
) -> PlacetimeConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file
    3. Default values

    Args:
        config_path: Path to config file (default: searched, see find_config_file)
        env_prefix: Prefix for environment variables

    Returns:
        Loaded configuration

    Raises:
        ConfigurationError: If the file cannot be read or holds invalid values
    """
    path = find_config_file(config_path)

    data: dict[str, Any] = {}
    if path is not None:
        data = _read_file(path)
        logger.info(f"Reading configuration from {path}")
    else:
        logger.info("Using default configuration")

    _apply_env(data, env_prefix)

    try:
        return _build_config(data, source=path)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _read_file(path: Path) -> dict[str, Any]:
    """Read a TOML configuration file."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Could not read config file {path}: {e}") from e


def _section(data: dict[str, Any], *keys: str) -> dict[str, Any]:
    """Get (creating if needed) a nested table of the raw configuration."""
    table = data
    for key in keys:
        table = table.setdefault(key, {})
        if not isinstance(table, dict):
            raise ConfigurationError(f"Config section [{'.'.join(keys)}] must be a table")
    return table


def _apply_env(data: dict[str, Any], prefix: str) -> None:
    """Override raw configuration values from environment variables."""
    try:
        if env_val := os.environ.get(f"{prefix}WORKERS"):
            _section(data, "fetcher")["workers"] = int(env_val)
        if env_val := os.environ.get(f"{prefix}QUEUE_CAPACITY"):
            _section(data, "fetcher")["queue_capacity"] = int(env_val)
        if env_val := os.environ.get(f"{prefix}REQUEST_TIMEOUT"):
            _section(data, "fetcher")["request_timeout"] = float(env_val)
        if env_val := os.environ.get(f"{prefix}FEED_INTERVAL"):
            _section(data, "fetcher", "feed")["interval"] = int(env_val)
        if env_val := os.environ.get(f"{prefix}IMAGE_INTERVAL"):
            _section(data, "fetcher", "image")["interval"] = int(env_val)
    except ValueError as e:
        raise ConfigurationError(f"Invalid numeric environment override: {e}") from e

    if env_val := os.environ.get(f"{prefix}IMAGE_PATH"):
        _section(data, "image")["path"] = env_val
    if env_val := os.environ.get(f"{prefix}DATABASE_URL"):
        _section(data, "datastore")["url"] = env_val
    if env_val := os.environ.get(f"{prefix}DATA_DIR"):
        data["data_dir"] = env_val
    if env_val := os.environ.get(f"{prefix}LOG_LEVEL"):
        _section(data, "logging")["level"] = env_val.upper()


def _pick(cls: type, values: dict[str, Any]) -> dict[str, Any]:
    """Keep only the keys that are fields of a config dataclass."""
    names = {f.name for f in fields(cls)}
    unknown = set(values) - names
    if unknown:
        logger.warning(f"Ignoring unknown {cls.__name__} keys: {', '.join(sorted(unknown))}")
    return {k: v for k, v in values.items() if k in names}


def _build_config(data: dict[str, Any], source: Optional[Path] = None) -> PlacetimeConfig:
    """Build the immutable configuration from raw (file + env) values."""
    fetcher_data = dict(data.get("fetcher", {}))
    feed_data = fetcher_data.pop("feed", {})
    image_poll_data = fetcher_data.pop("image", {})

    fetcher = FetcherConfig(
        feed=FeedPollConfig(**_pick(FeedPollConfig, feed_data)),
        image=ImagePollConfig(**_pick(ImagePollConfig, image_poll_data)),
        **_pick(FetcherConfig, fetcher_data),
    )

    image_data = _pick(ImageConfig, data.get("image", {}))
    if "path" in image_data:
        image_data["path"] = Path(image_data["path"])

    logging_data = _pick(LoggingConfig, data.get("logging", {}))
    if logging_data.get("file"):
        logging_data["file"] = Path(logging_data["file"])

    kwargs: dict[str, Any] = {
        "fetcher": fetcher,
        "image": ImageConfig(**image_data),
        "datastore": DatastoreConfig(**_pick(DatastoreConfig, data.get("datastore", {}))),
        "logging": LoggingConfig(**logging_data),
        "source": source,
    }
    if "data_dir" in data:
        kwargs["data_dir"] = Path(data["data_dir"])

    return PlacetimeConfig(**kwargs)


def ensure_directories(config: PlacetimeConfig) -> None:
    """Ensure the data directory exists."""
    config.data_dir.mkdir(parents=True, exist_ok=True)


def check_environment(config: PlacetimeConfig) -> None:
    """
    Check that the image directory is usable.

    Args:
        config: Configuration to check

    Raises:
        ConfigurationError: If the image path does not exist or is not a directory
    """
    path = config.image.path
    if not path.exists():
        raise ConfigurationError(f"Could not open image path {path}")
    if not path.is_dir():
        raise ConfigurationError(f"Image path is not a directory {path}")


def validate_config(config: PlacetimeConfig) -> List[ValidationError]:
    """
    Validate configuration and return list of errors.

    Args:
        config: Configuration to validate

    Returns:
        List of validation errors (empty if valid)
    """
    errors: List[ValidationError] = []

    if config.fetcher.workers < 1:
        errors.append(ValidationError(
            field="fetcher.workers",
            message=f"At least one worker is required, got {config.fetcher.workers}",
            severity="error",
        ))

    if config.fetcher.queue_capacity < 0:
        errors.append(ValidationError(
            field="fetcher.queue_capacity",
            message=f"Queue capacity cannot be negative, got {config.fetcher.queue_capacity}",
            severity="error",
        ))

    if config.fetcher.request_timeout <= 0:
        errors.append(ValidationError(
            field="fetcher.request_timeout",
            message="Request timeout must be positive",
            severity="error",
        ))

    for name, interval in (
        ("fetcher.feed.interval", config.fetcher.feed.interval),
        ("fetcher.image.interval", config.fetcher.image.interval),
    ):
        if interval <= 0:
            errors.append(ValidationError(
                field=name,
                message=f"Interval must be a positive number of seconds, got {interval}",
                severity="error",
            ))

    if config.fetcher.image.batch_size <= 0:
        errors.append(ValidationError(
            field="fetcher.image.batch_size",
            message="Batch size must be positive",
            severity="error",
        ))

    if config.image.width <= 0 or config.image.height <= 0:
        errors.append(ValidationError(
            field="image",
            message=f"Invalid image size {config.image.width}x{config.image.height}",
            severity="error",
        ))

    if config.image.claim_ttl < config.fetcher.image.interval:
        errors.append(ValidationError(
            field="image.claim_ttl",
            message="Claim TTL is shorter than the image interval; items may be fetched twice",
            severity="warning",
        ))

    if config.logging.level.upper() not in LOG_LEVELS:
        errors.append(ValidationError(
            field="logging.level",
            message=f"Unknown log level: {config.logging.level}",
            severity="error",
        ))

    if not config.image.path.is_dir():
        errors.append(ValidationError(
            field="image.path",
            message=f"Image directory does not exist: {config.image.path}",
            severity="error",
        ))

    return errors

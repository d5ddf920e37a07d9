"""Tests for configuration management."""

from pathlib import Path

import pytest

from placetime_fetcher import config as config_module
from placetime_fetcher.config import (
    DEFAULT_IMAGE_DIR,
    FetcherConfig,
    ImageConfig,
    PlacetimeConfig,
    ValidationError,
    check_environment,
    ensure_directories,
    find_config_file,
    load_config,
    validate_config,
)
from placetime_fetcher.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep the user's environment and config files out of the tests."""
    for name in (
        "PLACETIME_CONFIG", "PLACETIME_WORKERS", "PLACETIME_QUEUE_CAPACITY",
        "PLACETIME_REQUEST_TIMEOUT", "PLACETIME_FEED_INTERVAL", "PLACETIME_IMAGE_INTERVAL",
        "PLACETIME_IMAGE_PATH", "PLACETIME_DATABASE_URL", "PLACETIME_DATA_DIR",
        "PLACETIME_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module, "USER_CONFIG_FILE", tmp_path / "no-user-config")
    monkeypatch.setattr(config_module, "SYSTEM_CONFIG_FILE", tmp_path / "no-system-config")


def write_config(path: Path, content: str) -> Path:
    path.write_text(content)
    return path


class TestDefaults:
    """Test default configuration values."""

    def test_fetcher_defaults(self):
        """Test the fetcher defaults."""
        config = FetcherConfig()

        assert config.workers == 5
        assert config.queue_capacity == 0
        assert config.request_timeout == 30.0
        assert config.feed.interval == 30
        assert config.image.interval == 30
        assert config.image.batch_size == 10
        assert config.image.drain_until_empty is True

    def test_image_defaults(self):
        """Test the image defaults."""
        config = ImageConfig()

        assert config.path == DEFAULT_IMAGE_DIR
        assert (config.width, config.height) == (460, 160)

    def test_datastore_url_derived_from_data_dir(self, tmp_path):
        """Test the SQLite URL defaults to a file in the data directory."""
        config = PlacetimeConfig(data_dir=tmp_path)

        assert config.datastore.url == f"sqlite:///{tmp_path}/placetime.db"

    def test_config_immutable(self):
        """Test configuration values cannot be changed after loading."""
        config = PlacetimeConfig()

        with pytest.raises(AttributeError):
            config.fetcher.workers = 10


class TestValidationError:
    """Test ValidationError dataclass."""

    def test_str(self):
        """Test the string form of a validation error."""
        error = ValidationError(field="fetcher.workers", message="bad", severity="error")

        assert str(error) == "[ERROR] fetcher.workers: bad"


class TestFindConfigFile:
    """Test configuration file lookup."""

    def test_no_file(self):
        """Test defaults are used when no file exists."""
        assert find_config_file() is None

    def test_explicit_path(self, tmp_path):
        """Test an explicit path wins."""
        path = write_config(tmp_path / "fetcher.toml", "")

        assert find_config_file(path) == path

    def test_explicit_path_missing(self, tmp_path):
        """Test a missing explicit path is an error."""
        with pytest.raises(ConfigurationError):
            find_config_file(tmp_path / "missing.toml")

    def test_env_path(self, tmp_path, monkeypatch):
        """Test $PLACETIME_CONFIG is used when no path is given."""
        path = write_config(tmp_path / "env.toml", "")
        monkeypatch.setenv("PLACETIME_CONFIG", str(path))

        assert find_config_file() == path

    def test_user_file_before_system_file(self, tmp_path, monkeypatch):
        """Test the user file is preferred over the system file."""
        user = write_config(tmp_path / "user", "")
        system = write_config(tmp_path / "system", "")
        monkeypatch.setattr(config_module, "USER_CONFIG_FILE", user)
        monkeypatch.setattr(config_module, "SYSTEM_CONFIG_FILE", system)

        assert find_config_file() == user


class TestLoadConfig:
    """Test loading configuration."""

    def test_load_defaults(self):
        """Test loading without a file gives the defaults."""
        config = load_config()

        assert config.fetcher == FetcherConfig()
        assert config.source is None

    def test_load_file(self, tmp_path):
        """Test values are read from a TOML file."""
        path = write_config(tmp_path / "fetcher.toml", f"""
data_dir = "{tmp_path}"

[fetcher]
workers = 8
queue_capacity = 4

[fetcher.feed]
interval = 60

[fetcher.image]
interval = 45
batch_size = 20

[image]
path = "{tmp_path}/img"
width = 300

[logging]
level = "DEBUG"
""")

        config = load_config(path)

        assert config.source == path
        assert config.fetcher.workers == 8
        assert config.fetcher.queue_capacity == 4
        assert config.fetcher.feed.interval == 60
        assert config.fetcher.image.interval == 45
        assert config.fetcher.image.batch_size == 20
        assert config.image.path == tmp_path / "img"
        assert config.image.width == 300
        assert config.image.height == 160
        assert config.logging.level == "DEBUG"
        assert config.datastore.url == f"sqlite:///{tmp_path}/placetime.db"

    def test_unknown_keys_ignored(self, tmp_path):
        """Test unknown keys are ignored rather than rejected."""
        path = write_config(tmp_path / "fetcher.toml", "[fetcher]\nworkers = 3\nflavour = 'mint'\n")

        assert load_config(path).fetcher.workers == 3

    def test_malformed_file(self, tmp_path):
        """Test a file that is not TOML is a configuration error."""
        path = write_config(tmp_path / "fetcher.toml", "[fetcher\nworkers = ")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        """Test environment variables take priority over the file."""
        path = write_config(tmp_path / "fetcher.toml", "[fetcher]\nworkers = 3\n")
        monkeypatch.setenv("PLACETIME_WORKERS", "12")
        monkeypatch.setenv("PLACETIME_IMAGE_PATH", str(tmp_path))
        monkeypatch.setenv("PLACETIME_DATABASE_URL", "sqlite:///:memory:")
        monkeypatch.setenv("PLACETIME_LOG_LEVEL", "warning")

        config = load_config(path)

        assert config.fetcher.workers == 12
        assert config.image.path == tmp_path
        assert config.datastore.url == "sqlite:///:memory:"
        assert config.logging.level == "WARNING"

    def test_bad_env_number(self, monkeypatch):
        """Test a non-numeric override is a configuration error."""
        monkeypatch.setenv("PLACETIME_WORKERS", "many")

        with pytest.raises(ConfigurationError):
            load_config()


class TestEnvironmentChecks:
    """Test environment checks."""

    def test_image_path_missing(self, tmp_path):
        """Test a missing image directory is reported."""
        config = PlacetimeConfig(image=ImageConfig(path=tmp_path / "missing"))

        with pytest.raises(ConfigurationError, match="Could not open image path"):
            check_environment(config)

    def test_image_path_not_directory(self, tmp_path):
        """Test an image path that is a file is reported."""
        path = tmp_path / "file"
        path.write_text("")
        config = PlacetimeConfig(image=ImageConfig(path=path))

        with pytest.raises(ConfigurationError, match="not a directory"):
            check_environment(config)

    def test_image_path_ok(self, tmp_path):
        """Test an existing directory passes."""
        check_environment(PlacetimeConfig(image=ImageConfig(path=tmp_path)))

    def test_ensure_directories(self, tmp_path):
        """Test the data directory is created."""
        data_dir = tmp_path / "data" / "placetime"

        ensure_directories(PlacetimeConfig(data_dir=data_dir))

        assert data_dir.is_dir()


class TestValidateConfig:
    """Test configuration validation."""

    def test_valid(self, tmp_path):
        """Test the defaults with an existing image directory are valid."""
        config = PlacetimeConfig(image=ImageConfig(path=tmp_path))

        assert validate_config(config) == []

    def test_invalid_values(self, tmp_path):
        """Test invalid values are reported as errors."""
        config = PlacetimeConfig(
            fetcher=FetcherConfig(workers=0, queue_capacity=-1, request_timeout=0),
            image=ImageConfig(path=tmp_path, width=0),
        )

        fields = {e.field for e in validate_config(config) if e.severity == "error"}

        assert fields == {
            "fetcher.workers",
            "fetcher.queue_capacity",
            "fetcher.request_timeout",
            "image",
        }

    def test_short_claim_ttl_warning(self, tmp_path):
        """Test a claim TTL shorter than the image interval is a warning."""
        config = PlacetimeConfig(image=ImageConfig(path=tmp_path, claim_ttl=5))

        errors = validate_config(config)

        assert [(e.field, e.severity) for e in errors] == [("image.claim_ttl", "warning")]

    def test_missing_image_directory(self, tmp_path):
        """Test a missing image directory is an error."""
        config = PlacetimeConfig(image=ImageConfig(path=tmp_path / "missing"))

        assert [e.field for e in validate_config(config)] == ["image.path"]

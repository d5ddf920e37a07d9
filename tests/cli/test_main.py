"""Tests for the main CLI entry point."""

from typer.testing import CliRunner

from placetime_fetcher import __version__
from placetime_fetcher.cli.exit_codes import ExitCode
from placetime_fetcher.main import app

runner = CliRunner()


class TestMain:
    """Tests for the top-level app."""

    def test_version(self):
        """Test --version prints the version."""
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_command_groups_registered(self):
        """Test every command group is listed in the help."""
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for group in ("run", "feeds", "db", "config"):
            assert group in result.output

    def test_quiet_and_verbose_exclusive(self):
        """Test --quiet cannot be combined with --verbose."""
        result = runner.invoke(app, ["--quiet", "--verbose", "config", "show"])

        assert result.exit_code == ExitCode.INVALID_ARGUMENT

"""Unit tests for the command line interface."""

from __future__ import annotations

import logging
from pathlib import Path

from click.testing import CliRunner

from napcat_runtime import __version__
from napcat_runtime.cli import configure_logging, main


class TestCli:
    """Tests for commands that need no live bridge."""

    def test_version(self) -> None:
        result = CliRunner().invoke(main, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_plugins_lists_directory(self, config_file: Path, plugins_dir: Path) -> None:
        """Plugins enabled in the config are marked."""
        result = CliRunner().invoke(main, ["plugins", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "  * hello" in result.output
        assert "    echo" in result.output
        assert "_private" not in result.output

    def test_plugins_empty_directory(self, config_file: Path) -> None:
        result = CliRunner().invoke(main, ["plugins", "-c", str(config_file)])

        assert result.exit_code == 0
        assert "No plugins found" in result.output

    def test_invalid_config(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("owners: [1]\n")

        result = CliRunner().invoke(main, ["plugins", "--config", str(path)])

        assert result.exit_code == 1

    def test_configure_logging(self) -> None:
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level

        try:
            configure_logging("debug")

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert logging.getLogger("websockets").level == logging.INFO
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

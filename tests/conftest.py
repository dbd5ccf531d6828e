"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from napcat_runtime.config import TOKEN_ENV_VAR


@pytest.fixture(autouse=True)
def no_env_token(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's NAPCAT_TOKEN out of config tests."""
    monkeypatch.delenv(TOKEN_ENV_VAR, raising=False)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A minimal single-endpoint config file."""
    path = tmp_path / "bot.yaml"
    path.write_text(
        "napcat:\n"
        "  host: 127.0.0.1\n"
        "  port: 3001\n"
        "owners: [10001]\n"
        "admins: [10002]\n"
        "plugins: [hello]\n"
    )
    return path


@pytest.fixture
def plugins_dir(tmp_path: Path) -> Path:
    """A plugins directory with one package plugin and one module plugin."""
    root = tmp_path / "plugins"
    (root / "hello").mkdir(parents=True)
    (root / "hello" / "__init__.py").write_text(
        "from napcat_runtime.plugin import define_plugin\n"
        "\n"
        "\n"
        "def setup(ctx):\n"
        "    ctx.handle('message', lambda event: None)\n"
        "\n"
        "\n"
        "plugin = define_plugin('hello', setup, version='0.1.0')\n"
    )
    (root / "echo.py").write_text(
        "from napcat_runtime.plugin import define_plugin\n"
        "\n"
        "plugin = define_plugin('echo', priority=50)\n"
    )
    (root / "_private.py").write_text("")
    (root / "broken.py").write_text("raise RuntimeError('import failed')\n")
    (root / "empty.py").write_text("value = 1\n")
    return root

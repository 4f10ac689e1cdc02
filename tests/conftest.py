import textwrap
from types import SimpleNamespace

import httpx
import pytest

from askme.utils import config as config_mod
from askme.utils.config import Settings

API_KEY_VARS = [
    "OPENAI_API_KEY",
    "OLLAMA_API_KEY",
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "ANTHROPIC_API_KEY",
    "ASKME_CONFIG",
    "ASKME_VERBOSE",
    "ASKME_DEBUG",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep real API keys and ASKME_* settings out of the tests."""
    for var in API_KEY_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def write_yaml(tmp_path):
    """Write a YAML file under tmp_path and return its path."""
    def _write(relative_path, content):
        path = tmp_path / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def config_dirs(tmp_path, monkeypatch):
    """Point the global, user and current-directory config locations into tmp_path."""
    dirs = SimpleNamespace(
        global_dir=tmp_path / "etc",
        user_dir=tmp_path / "home" / ".config",
        cwd=tmp_path / "work",
    )
    for path in (dirs.global_dir, dirs.user_dir, dirs.cwd):
        path.mkdir(parents=True)
    monkeypatch.setattr(config_mod, "get_global_config_path", lambda: dirs.global_dir / "askme.yml")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(dirs.user_dir))
    monkeypatch.chdir(dirs.cwd)
    return dirs


@pytest.fixture
def mock_http():
    """Build an AsyncClient whose requests are answered by ``handler``."""
    def _make(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return _make

# tests/conftest.py
from pathlib import Path

import pytest

from promptpack.config import Settings


@pytest.fixture(autouse=True)
def isolated_home(tmp_path_factory, monkeypatch):
    """Keep the user's real ~/.promptignore out of every test."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("PROMPT_HOME_DIR", str(home))
    return home


@pytest.fixture
def make_tree(tmp_path):
    """Writes {relative path: str | bytes} into a fresh project directory."""

    def _make(files, root_name="project"):
        root = tmp_path / root_name
        root.mkdir()
        for rel_path, content in files.items():
            path = root / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
        return root

    return _make


def settings_for(root: Path, **kwargs) -> Settings:
    kwargs.setdefault("model", "estimate")
    return Settings(root=root, **kwargs)

"""Tests for config/loader.py module.

Covers:
- _load_yaml() function
- _deep_merge() function
- load_config() precedence: kwargs > env > project yaml > global yaml > defaults
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from basie.config.loader import _deep_merge, _load_yaml, load_config
from basie.config.models import BasieConfig
from basie.core.errors import ConfigurationError, ErrorCode


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """No global config file and no BASIE__ variables leak into tests."""
    for key in list(os.environ):
        if key.upper().startswith("BASIE__"):
            monkeypatch.delenv(key)
    monkeypatch.setattr(
        "basie.config.loader.GLOBAL_CONFIG_PATH", tmp_path / "no-global" / "config.yaml"
    )


class TestLoadYaml:
    """Tests for _load_yaml function."""

    def test_returns_empty_dict_for_missing_file(self, tmp_path: Path) -> None:
        assert _load_yaml(tmp_path / "nonexistent.yaml") == {}

    def test_loads_valid_yaml(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "basie.yaml"
        yaml_file.write_text("database:\n  url: sqlite:///x.db\n")
        assert _load_yaml(yaml_file) == {"database": {"url": "sqlite:///x.db"}}

    def test_returns_empty_for_empty_file(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "empty.yaml"
        yaml_file.write_text("")
        assert _load_yaml(yaml_file) == {}

    def test_raises_configuration_error_for_invalid_yaml(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "invalid.yaml"
        yaml_file.write_text("logging:\n  level:\n    - invalid: [unclosed")

        with pytest.raises(ConfigurationError) as exc_info:
            _load_yaml(yaml_file)
        assert exc_info.value.code == ErrorCode.CONFIG_PARSE_ERROR


class TestDeepMerge:
    """Tests for _deep_merge function."""

    def test_empty_dicts(self) -> None:
        assert _deep_merge({}, {}) == {}

    def test_override_wins(self) -> None:
        assert _deep_merge({"a": 1}, {"a": 2}) == {"a": 2}

    def test_nested_dicts_merged(self) -> None:
        base = {"database": {"url": "a", "echo": True}}
        override = {"database": {"url": "b"}}
        assert _deep_merge(base, override) == {"database": {"url": "b", "echo": True}}

    def test_base_not_mutated(self) -> None:
        base = {"a": {"b": 1}}
        _deep_merge(base, {"a": {"b": 2}})
        assert base == {"a": {"b": 1}}


class TestLoadConfig:
    """Tests for load_config function."""

    def test_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)

        assert isinstance(config, BasieConfig)
        assert config.database.url == "sqlite:///basie.db"
        assert config.materialize.max_depth == 32
        assert config.logging.level == "INFO"

    def test_project_yaml_applied(self, tmp_path: Path) -> None:
        (tmp_path / "basie.yaml").write_text(
            "database:\n  url: sqlite:///project.db\nmaterialize:\n  max_depth: 4\n"
        )

        config = load_config(tmp_path)

        assert config.database.url == "sqlite:///project.db"
        assert config.materialize.max_depth == 4

    def test_global_yaml_below_project_yaml(self, tmp_path: Path) -> None:
        global_file = tmp_path / "global.yaml"
        global_file.write_text(
            "database:\n  url: sqlite:///global.db\n  echo: true\n"
        )
        (tmp_path / "basie.yaml").write_text("database:\n  url: sqlite:///project.db\n")

        with patch("basie.config.loader.GLOBAL_CONFIG_PATH", global_file):
            config = load_config(tmp_path)

        assert config.database.url == "sqlite:///project.db"
        assert config.database.echo is True

    def test_env_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "basie.yaml").write_text("logging:\n  level: INFO\n")
        monkeypatch.setenv("BASIE__LOGGING__LEVEL", "DEBUG")

        assert load_config(tmp_path).logging.level == "DEBUG"

    def test_kwargs_override_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BASIE__DATABASE__URL", "sqlite:///env.db")

        config = load_config(tmp_path, database={"url": "sqlite:///kw.db"})

        assert config.database.url == "sqlite:///kw.db"

    def test_invalid_value_raises_configuration_error(self, tmp_path: Path) -> None:
        (tmp_path / "basie.yaml").write_text("materialize:\n  max_depth: 0\n")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(tmp_path)
        assert exc_info.value.code == ErrorCode.CONFIG_INVALID_VALUE
        assert "materialize" in exc_info.value.details["field"]

    def test_defaults_to_working_directory(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / "basie.yaml").write_text("database:\n  url: sqlite:///cwd.db\n")
        monkeypatch.chdir(tmp_path)

        assert load_config().database.url == "sqlite:///cwd.db"

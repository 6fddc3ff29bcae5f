from __future__ import annotations

from pathlib import Path

import pytest

from hubframe.app.config import AppConfig


def test_defaults(tmp_path: Path) -> None:
    config = AppConfig.from_env({"DATA_DIR": str(tmp_path)})

    assert config.app_state_db_path == tmp_path / "state.sqlite3"
    assert config.partitions_dir == tmp_path / "partitions"
    assert config.base_url == "https://github.com/"
    assert config.login_url == "https://github.com/login"
    assert config.partition == "persist:github"
    assert config.debounce_delay == pytest.approx(0.2)
    assert config.nav_delay == pytest.approx(0.4)
    assert config.settle_delay == pytest.approx(0.1)
    assert config.coalesce_navigation is False
    assert config.users_api_url == "https://api.github.com"


def test_environment_overrides_yaml(tmp_path: Path) -> None:
    settings = tmp_path / "hubframe.yaml"
    settings.write_text(
        "hubframe:\n"
        "  base_url: https://ghe.example.com\n"
        "  nav_delay_ms: 250\n"
        "  coalesce_nav: true\n"
        "  partition: persist:work\n",
        encoding="utf-8",
    )

    config = AppConfig.from_env(
        {
            "DATA_DIR": str(tmp_path),
            "HUBFRAME_CONFIG": str(settings),
            "HUBFRAME_PARTITION": "persist:personal",
            "HUBFRAME_DEBOUNCE_MS": "not-a-number",
        }
    )

    assert config.base_url == "https://ghe.example.com/"
    assert config.nav_delay == pytest.approx(0.25)
    assert config.coalesce_navigation is True
    assert config.partition == "persist:personal"
    assert config.debounce_delay == pytest.approx(0.2)


def test_yaml_must_be_mapping(tmp_path: Path) -> None:
    settings = tmp_path / "bad.yaml"
    settings.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError):
        AppConfig.from_env({"DATA_DIR": str(tmp_path), "HUBFRAME_CONFIG": str(settings)})


def test_data_dir_may_not_be_filesystem_root() -> None:
    with pytest.raises(ValueError):
        AppConfig.from_env({"DATA_DIR": "/"})


def test_ensure_dirs(tmp_path: Path) -> None:
    config = AppConfig.from_env({"DATA_DIR": str(tmp_path / "nested" / "data")})

    config.ensure_dirs()

    assert config.partitions_dir.is_dir()
    assert config.app_state_db_path.parent.is_dir()

import json
from datetime import timedelta
from pathlib import Path

from pushrelay.config import Settings, _load_config_file


def test_settings_defaults(tmp_path: Path) -> None:
    settings = Settings(state_dir=str(tmp_path))

    assert settings.port == 3003
    assert settings.subscription_horizon == timedelta(days=365)
    assert settings.redis_max_attempts == 10
    assert "http://localhost:3000" in settings.cors_origins


def test_settings_reads_state_config_json(tmp_path: Path) -> None:
    (tmp_path / "config.json").write_text(
        json.dumps(
            {
                "redis_url": "redis://cache:6379/2",
                "subscription_ttl_days": 30,
            }
        )
    )

    settings = _load_config_file(Settings(state_dir=str(tmp_path)))

    assert settings.redis_url == "redis://cache:6379/2"
    assert settings.subscription_horizon == timedelta(days=30)


def test_relative_pem_path_resolved_against_state_dir(tmp_path: Path) -> None:
    (tmp_path / "config.json").write_text(json.dumps({"vapid_private_key": "keys/vapid.pem"}))

    settings = _load_config_file(Settings(state_dir=str(tmp_path)))

    assert settings.vapid_private_key == str(tmp_path / "keys" / "vapid.pem")


def test_config_json_overrides_env_vars(tmp_path: Path, monkeypatch) -> None:
    (tmp_path / "config.json").write_text(json.dumps({"port": 4000}))
    monkeypatch.setenv("PORT", "5000")

    settings = _load_config_file(Settings(state_dir=str(tmp_path)))

    assert settings.port == 4000


def test_corrupt_config_ignored(tmp_path: Path) -> None:
    (tmp_path / "config.json").write_text("not json")

    settings = _load_config_file(Settings(state_dir=str(tmp_path)))

    assert settings.port == 3003

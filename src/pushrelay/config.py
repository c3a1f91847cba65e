import json
from datetime import timedelta
from pathlib import Path

from pydantic import AliasChoices, Field, computed_field
from pydantic_settings import BaseSettings

_DEV_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:8080",
    "http://127.0.0.1:8080",
]


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # API
    app_name: str = "pushrelay"
    app_version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 3003
    cors_origins: list[str] = Field(default_factory=lambda: list(_DEV_ORIGINS))

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    redis_max_attempts: int = 10
    redis_max_elapsed_s: float = 3600
    redis_backoff_step_ms: int = 100
    redis_backoff_cap_ms: int = 3000
    redis_reconnect_interval_s: float = 5

    # Subscriptions
    subscription_ttl_days: int = 365

    # Push notifications
    vapid_public_key: str = ""
    vapid_private_key: str = ""
    vapid_subject: str = "mailto:admin@localhost"
    push_ttl_s: int = 86_400

    # Paths
    state_dir: str = Field(
        default=str(Path.home() / ".pushrelay"),
        validation_alias=AliasChoices("state_dir", "PUSHRELAY_STATE"),
        description="Directory for state files (config.json, VAPID keys)",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def subscription_horizon(self) -> timedelta:
        """Lifetime of a subscription record and its Redis key."""
        return timedelta(days=self.subscription_ttl_days)

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }


_override: Settings | None = None


def get_settings() -> Settings:
    """Return the active settings instance."""
    if _override:
        return _override
    settings = Settings()
    return _load_config_file(settings)


def _load_config_file(settings: Settings) -> Settings:
    """Load and merge config.json if it exists."""
    config_path = Path(settings.state_dir) / "config.json"
    if not config_path.exists():
        return settings

    try:
        data = json.loads(config_path.read_text())
        if not isinstance(data, dict):
            return settings

        if "state_dir" in data and isinstance(data["state_dir"], str):
            data["state_dir"] = str(Path(data["state_dir"]).expanduser())

        # A relative PEM path is resolved against the state dir
        key = data.get("vapid_private_key")
        if isinstance(key, str) and key.endswith(".pem"):
            pem = Path(key).expanduser()
            if not pem.is_absolute():
                pem = Path(settings.state_dir) / pem
            data["vapid_private_key"] = str(pem)

        return settings.model_copy(update=data)
    except Exception:
        return settings


def override_settings(s: Settings | None) -> None:
    """Swap in a custom Settings (use None to reset)."""
    global _override  # noqa: PLW0603
    _override = s

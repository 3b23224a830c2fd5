import os


def get_settings_module() -> str:
    # APP_ENV selects the settings module; anything unknown falls back to development.
    env = os.getenv("APP_ENV", "development").lower()

    if env in {"prod", "production"}:
        return "config.production"

    if env in {"test", "testing"}:
        return "config.testing"

    return "config.development"


def env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def env_port(name: str = "APP_HTTP_PORT"):
    """Port from the environment, or None so each service applies its default."""
    value = os.getenv(name, "").strip()
    return int(value) if value else None

"""Process settings, read once from the environment at import time."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, get_args

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_TRUTHY = ("1", "true", "yes", "on")


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _choice(name: str, default: str, allowed: tuple[str, ...]) -> str:
    value = _env(name, default).lower()
    if value not in allowed:
        raise ValueError(f"{name} must be {'|'.join(allowed)} (got {value!r})")
    return value


def _port(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {raw!r})") from None


def _matrix_path(raw: str) -> Path | None:
    """Optional JSON permission matrix; unset means the built-in table."""
    if not raw:
        return None
    path = Path(raw)
    if not path.is_file():
        raise ValueError(f"PERMISSION_MATRIX_PATH does not point to a file (got {raw!r})")
    return path


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    permission_matrix_path: Path | None

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    return Settings(  # type: ignore[arg-type]
        app_env=_choice("APP_ENV", "dev", get_args(AppEnv)),
        log_level=_choice("LOG_LEVEL", "info", get_args(LogLevel)),
        log_json=_env("LOG_JSON", "false").lower() in _TRUTHY,
        port=_port(_env("PORT", "8000")),
        permission_matrix_path=_matrix_path(_env("PERMISSION_MATRIX_PATH")),
    )


SETTINGS = load_settings()

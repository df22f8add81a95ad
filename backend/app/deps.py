from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import dotenv_values

DEFAULT_API_TOKEN = "demo-token-2024"
DEFAULT_ADMIN_EMAIL = "admin@servesplatform.com"
DEFAULT_ADMIN_PASSWORD = "admin123"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Explicit server configuration passed into the app and the handler."""

    api_token: str = DEFAULT_API_TOKEN
    admin_email: str = DEFAULT_ADMIN_EMAIL
    admin_password: str = DEFAULT_ADMIN_PASSWORD
    mirror_status: bool = True
    log_level: str = "INFO"
    cors_allow_origins: List[str] = field(default_factory=lambda: ["*"])


@lru_cache(maxsize=1)
def _load_env_settings() -> Dict[str, str]:
    """Values from the server's .env files, read once and shared by ``_resolve``.

    ``SERVES_ENV_FILE`` lists files or directories (``os.pathsep``-separated;
    a directory means its ``.env``). Otherwise ``.env`` then ``.env.local`` at
    the repo root, later files winning.
    """

    candidates: list[Path] = []
    override = os.getenv("SERVES_ENV_FILE")
    if override:
        for part in override.split(os.pathsep):
            if not part:
                continue
            candidate = Path(part).expanduser()
            if candidate.is_dir():
                candidate = candidate / ".env"
            candidates.append(candidate)
    else:
        repo_root = Path(__file__).resolve().parents[2]
        candidates = [
            repo_root / ".env",
            repo_root / ".env.local",
        ]

    settings: Dict[str, str] = {}
    for path in candidates:
        if not path.exists():
            continue
        values = dotenv_values(str(path))
        for key, value in values.items():
            if value is not None:
                settings[str(key)] = str(value)
    return settings


def reload_env_settings() -> None:
    _load_env_settings.cache_clear()


def _resolve(var_name: str, default: Optional[str] = None) -> Optional[str]:
    """Process environment first, then .env files, then the default."""
    existing = os.getenv(var_name)
    if existing is not None:
        return existing
    return _load_env_settings().get(var_name, default)


def _split_origins(raw: str) -> List[str]:
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or ["*"]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        api_token=_resolve("SERVES_API_TOKEN", DEFAULT_API_TOKEN) or DEFAULT_API_TOKEN,
        admin_email=_resolve("SERVES_ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL) or DEFAULT_ADMIN_EMAIL,
        admin_password=_resolve("SERVES_ADMIN_PASSWORD", DEFAULT_ADMIN_PASSWORD) or DEFAULT_ADMIN_PASSWORD,
        mirror_status=(_resolve("SERVES_MIRROR_STATUS", "1") or "").strip().lower() in _TRUTHY,
        log_level=(_resolve("LOG_LEVEL", "INFO") or "INFO").upper(),
        cors_allow_origins=_split_origins(_resolve("CORS_ALLOW_ORIGINS", "*") or "*"),
    )


def reload_settings() -> None:
    """Drop cached settings and .env values so the next read sees fresh config."""
    reload_env_settings()
    get_settings.cache_clear()

"""Environment and path configuration.

Nothing is read at import time: the CLI calls load_env(), library users
configure clients directly or call load_env() themselves.

load_env() reads .env (or .env.example), then secrets/private.env on top of it.
Variables already set in the process environment always win.

If WXSUITE_DATA_DIR is set, that path is used as project root (for Docker).
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import dotenv_values, find_dotenv

# Set by load_env(); relative paths resolve from cwd until then.
PROJECT_ROOT: Optional[Path] = None


def _truthy(v: str | None) -> bool:
    return (v or "").strip().lower() in {"1", "true", "yes", "on"}


def _discover() -> tuple[Path, Optional[Path]]:
    """Project root and the base env file to read (if any)."""
    data_dir = os.environ.get("WXSUITE_DATA_DIR")
    if data_dir:
        root = Path(data_dir).resolve()
        for name in (".env", ".env.example"):
            if (root / name).exists():
                return root, root / name
        return root, None

    env_path = find_dotenv(".env", usecwd=True) or find_dotenv(".env.example", usecwd=True)
    if env_path:
        return Path(env_path).resolve().parent, Path(env_path)
    return Path.cwd(), None


def load_env() -> Dict[str, str]:
    """
    Load .env files into os.environ without overriding variables already set.
    secrets/private.env takes precedence over .env. Returns what was applied.
    """
    global PROJECT_ROOT
    root, env_file = _discover()
    PROJECT_ROOT = root

    values: Dict[str, str] = {}
    private_env = root / "secrets" / "private.env"
    for path in (env_file, private_env):
        if path is not None and path.exists():
            values.update({k: v for k, v in dotenv_values(path).items() if v is not None})

    applied = {k: v for k, v in values.items() if k not in os.environ}
    os.environ.update(applied)
    return applied


def resolve_path(p: str) -> str:
    """
    Resolve a filesystem path from an env string.
    - If absolute: return as-is
    - If relative: resolve relative to PROJECT_ROOT (cwd before load_env())
    """
    path = Path(p)
    if path.is_absolute():
        return str(path)
    return str(((PROJECT_ROOT or Path.cwd()) / path).resolve())


def verbose_enabled() -> bool:
    return _truthy(os.environ.get("WXSUITE_VERBOSE"))


def is_production() -> bool:
    """True when WXSUITE_ENV says this process runs in production."""
    return (os.environ.get("WXSUITE_ENV") or "").strip().lower() == "production"


def env(name: str) -> str:
    v = os.environ.get(name)
    if not v:
        raise RuntimeError(f"Missing env var: {name}")
    return v

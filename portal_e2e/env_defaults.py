"""Read suite defaults from `.env.defaults`, overlaid by a local `.env`.

The hierarchy used by the suite is:
- real environment variables (always win, see `config.py`)
- `.env` in the repository root (local overrides, not version-controlled)
- `.env.defaults` in the repository root (the catalog of every key)

Missing files are fine: in CI every value usually comes from the environment.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Dict

REPO_ROOT = Path(__file__).resolve().parents[1]


@lru_cache(maxsize=1)
def load_env_defaults() -> Dict[str, str]:
    merged: Dict[str, str] = {}
    for name in (".env.defaults", ".env"):
        path = REPO_ROOT / name
        if path.exists():
            merged.update(_parse_env_file(path))
    return merged


def get_env_default(key: str, fallback: str | None = None) -> str | None:
    return load_env_defaults().get(key, fallback)


def _parse_env_file(env_path: Path) -> Dict[str, str]:
    defaults: Dict[str, str] = {}
    for raw in env_path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        value = value.strip()
        # Strip surrounding quotes (single or double)
        if len(value) >= 2 and value[0] in ('"', "'") and value[-1] == value[0]:
            value = value[1:-1]
        defaults[key.strip()] = value
    return defaults

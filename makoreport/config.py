"""Configuration management for makoreport."""

from __future__ import annotations

import logging
import os
import warnings
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from makoreport.contracts import DEFAULT_BASE_PATH
from makoreport.errors import ConfigMissing

logger = logging.getLogger(__name__)

try:
    import tomllib
except ModuleNotFoundError:  # Python < 3.11
    import tomli as tomllib

CONFIG_PATH = Path(
    os.getenv("MAKOREPORT_CONFIG", str(Path.home() / ".config" / "makoreport" / "config.toml"))
).expanduser()

DEFAULT_WORK_DIR = Path("/tmp/summary")
DEFAULT_LOCK_FILE = Path("/tmp/mako-regional-report.lock")
DEFAULT_WORKERS = 4
DEFAULT_TIMEOUT_S = 60.0

# Without these the Manta store cannot be reached at all.
MANTA_ENV_VARS = ("MANTA_USER", "MANTA_KEY_ID", "MANTA_URL")


def _read_config_file(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:
        warnings.warn(f"Failed to parse makoreport config at {path}: {exc}", stacklevel=2)
        return {}


def load_config(path: Path | None = None) -> dict:
    """Return parsed config content from ``path`` (default CONFIG_PATH)."""
    return _read_config_file(path or CONFIG_PATH)


@dataclass(frozen=True)
class MantaCredentials:
    user: str
    key_id: str
    url: str


def manta_credentials_from_env(environ: Mapping[str, str] | None = None) -> MantaCredentials:
    """Read Manta credentials, raising ``ConfigMissing`` for the first unset variable."""
    env = os.environ if environ is None else environ
    values = {}
    for name in MANTA_ENV_VARS:
        value = env.get(name, "").strip()
        if not value:
            raise ConfigMissing(name)
        values[name] = value
    return MantaCredentials(
        user=values["MANTA_USER"],
        key_id=values["MANTA_KEY_ID"],
        url=values["MANTA_URL"],
    )


def default_base_path(config: dict | None = None) -> str:
    value = (config or {}).get("base_path")
    return value if isinstance(value, str) and value.strip() else DEFAULT_BASE_PATH

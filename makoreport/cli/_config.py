"""Setting resolution: CLI flag > env var > config file > default."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from makoreport.config import (
    DEFAULT_LOCK_FILE,
    DEFAULT_TIMEOUT_S,
    DEFAULT_WORK_DIR,
    DEFAULT_WORKERS,
    default_base_path,
    load_config,
    manta_credentials_from_env,
)
from makoreport.store import LocalObjectStore, MantaObjectStore
from makoreport.store.contracts import ObjectStore


def resolve_setting(
    args_value: Any,
    env_name: str,
    config: dict,
    config_key: str,
    default: Any,
) -> Any:
    if args_value is not None:
        return args_value
    env = os.environ.get(env_name)
    if env:
        return env
    value = config.get(config_key)
    if value is not None and value != "":
        return value
    return default


def resolve_base_path(args_value: str | None, config: dict | None = None) -> str:
    config = load_config() if config is None else config
    return str(
        resolve_setting(
            args_value, "MAKOREPORT_BASE_PATH", config, "base_path", default_base_path(config)
        )
    )


def resolve_work_dir(args_value: str | Path | None, config: dict) -> Path:
    return Path(
        resolve_setting(args_value, "MAKOREPORT_WORK_DIR", config, "work_dir", DEFAULT_WORK_DIR)
    ).expanduser()


def resolve_lock_file(args_value: str | Path | None, config: dict) -> Path:
    return Path(
        resolve_setting(args_value, "MAKOREPORT_LOCK_FILE", config, "lock_file", DEFAULT_LOCK_FILE)
    ).expanduser()


def resolve_workers(args_value: int | None, config: dict) -> int:
    value = int(
        resolve_setting(args_value, "MAKOREPORT_WORKERS", config, "workers", DEFAULT_WORKERS)
    )
    if value < 1:
        raise SystemExit("error: --workers must be at least 1")
    return value


def resolve_timeout(args_value: float | None, config: dict) -> float:
    return float(
        resolve_setting(args_value, "MAKOREPORT_TIMEOUT", config, "timeout", DEFAULT_TIMEOUT_S)
    )


def build_store(
    args_local: str | Path | None,
    config: dict,
    *,
    timeout: float,
    auth: Any | None = None,
) -> ObjectStore:
    """Local store when configured, otherwise Manta (which requires credentials).

    ``auth`` is handed to the Manta store unchanged; request signing is not
    done here.
    """
    local_root = resolve_setting(args_local, "MAKOREPORT_LOCAL_STORE", config, "local_store", None)
    if local_root:
        return LocalObjectStore(Path(local_root).expanduser())
    creds = manta_credentials_from_env()
    return MantaObjectStore(creds.url, creds.user, creds.key_id, timeout=timeout, auth=auth)

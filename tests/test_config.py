from __future__ import annotations

from pathlib import Path

import pytest

from makoreport.cli._config import (
    build_store,
    resolve_base_path,
    resolve_work_dir,
    resolve_workers,
)
from makoreport.config import (
    MANTA_ENV_VARS,
    load_config,
    manta_credentials_from_env,
)
from makoreport.errors import ConfigMissing
from makoreport.store import LocalObjectStore, MantaObjectStore

MANTA_ENV = {
    "MANTA_USER": "poseidon",
    "MANTA_KEY_ID": "aa:bb:cc",
    "MANTA_URL": "https://manta.example.com",
}


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        *MANTA_ENV_VARS,
        "MAKOREPORT_BASE_PATH",
        "MAKOREPORT_WORK_DIR",
        "MAKOREPORT_WORKERS",
        "MAKOREPORT_LOCAL_STORE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.mark.parametrize("missing", MANTA_ENV_VARS)
def test_each_manta_variable_is_required(missing: str) -> None:
    env = {name: value for name, value in MANTA_ENV.items() if name != missing}

    with pytest.raises(ConfigMissing) as excinfo:
        manta_credentials_from_env(env)

    assert excinfo.value.name == missing
    assert str(excinfo.value) == f"{missing} is not set"


def test_manta_credentials_from_env() -> None:
    creds = manta_credentials_from_env(MANTA_ENV)

    assert (creds.user, creds.key_id, creds.url) == (
        "poseidon",
        "aa:bb:cc",
        "https://manta.example.com",
    )


def test_load_config_reads_toml(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text('base_path = "/poseidon/stor/mako-test"\nworkers = 8\n')

    assert load_config(path) == {"base_path": "/poseidon/stor/mako-test", "workers": 8}


def test_load_config_warns_on_bad_toml(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("base_path = \n")

    with pytest.warns(UserWarning):
        assert load_config(path) == {}


def test_missing_config_file_is_empty(tmp_path: Path) -> None:
    assert load_config(tmp_path / "missing.toml") == {}


def test_flag_beats_env_beats_config(monkeypatch: pytest.MonkeyPatch) -> None:
    config = {"base_path": "/from/config"}

    assert resolve_base_path(None, config) == "/from/config"
    monkeypatch.setenv("MAKOREPORT_BASE_PATH", "/from/env")
    assert resolve_base_path(None, config) == "/from/env"
    assert resolve_base_path("/from/flag", config) == "/from/flag"


def test_defaults_apply_without_settings() -> None:
    assert resolve_base_path(None, {}) == "/poseidon/stor/mako"
    assert resolve_work_dir(None, {}) == Path("/tmp/summary")
    assert resolve_workers(None, {}) == 4


def test_workers_must_be_positive() -> None:
    with pytest.raises(SystemExit):
        resolve_workers(0, {})


def test_build_store_prefers_local_store(tmp_path: Path) -> None:
    store = build_store(str(tmp_path), {}, timeout=5)

    assert isinstance(store, LocalObjectStore)
    assert store.root == tmp_path


def test_build_store_requires_manta_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    with pytest.raises(ConfigMissing):
        build_store(None, {}, timeout=5)

    for name, value in MANTA_ENV.items():
        monkeypatch.setenv(name, value)
    store = build_store(None, {}, timeout=5)

    assert isinstance(store, MantaObjectStore)
    assert store.url == "https://manta.example.com"
    assert store.timeout == 5


def test_build_store_hands_auth_to_manta(monkeypatch: pytest.MonkeyPatch) -> None:
    for name, value in MANTA_ENV.items():
        monkeypatch.setenv(name, value)

    def sign(request):
        return request

    store = build_store(None, {}, timeout=5, auth=sign)

    assert store.session.auth is sign
    assert store.key_id == "aa:bb:cc"

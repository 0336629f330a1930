"""
Global test configuration: environment isolation and shared fixtures.
"""

from collections.abc import Callable
from contextlib import suppress
import json
import logging
import os
from pathlib import Path
from typing import Any

import pytest

from schemaless.cache import ChunkedCache, MemoryCache
from schemaless.config import FrozenConfig, resolve_config
from schemaless.stores import FileSampleStore, FileStandardStore
from schemaless.translator import Translator
from tests.helpers import FakeGenerator

# Settings that keep the pipeline from sleeping in tests
FAST_SETTINGS: dict[str, Any] = {
    "poll_interval_seconds": 0.0,
    "singleflight_jitter_seconds": 0.0,
    "generation_retry_delay": 0.0,
}


# --- Environment Isolation (Autouse) ---
@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-in escape hatch: mark a test with @pytest.mark.allow_dotenv
    to permit .env loading for that specific test.
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(ImportError):
        monkeypatch.setattr(
            "schemaless.config.env_loader.load_dotenv",
            lambda *_args, **_kwargs: False,
        )


@pytest.fixture(autouse=True)
def isolate_schemaless_env(request, monkeypatch):
    """Ensure a clean SCHEMALESS_* environment for each test.

    Escape hatch: @pytest.mark.allow_env_pollution keeps the current env.
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return

    for key in list(os.environ.keys()):
        if key.startswith("SCHEMALESS_"):
            monkeypatch.delenv(key, raising=False)
    # Avoid DEBUG toggles switching telemetry on
    monkeypatch.delenv("DEBUG", raising=False)


@pytest.fixture(autouse=True)
def neutral_home_config(request, monkeypatch, tmp_path):
    """Point the home-config path to an isolated temp file by default.

    Prevents reading a developer's real ~/.config/schemaless.toml during tests.
    """
    if request.node.get_closest_marker("allow_real_home_config"):
        return

    fake_home_dir = tmp_path / "home_config_isolated"
    fake_home_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("SCHEMALESS_CONFIG_HOME", str(fake_home_dir / "schemaless.toml"))


# --- Configuration ---


@pytest.fixture
def make_config(tmp_path) -> Callable[..., FrozenConfig]:
    """Factory for frozen configs with fast timings and a temp file root."""

    def _make(**overrides: Any) -> FrozenConfig:
        values = {
            "file_location": str(tmp_path / "files"),
            **FAST_SETTINGS,
            **overrides,
        }
        return resolve_config(values, project_root=tmp_path).to_frozen()

    return _make


@pytest.fixture
def config(make_config) -> FrozenConfig:
    return make_config()


# --- Stores and translator ---


@pytest.fixture
def files_root(config) -> Path:
    root = Path(config.file_location)
    (root / "standards").mkdir(parents=True, exist_ok=True)
    return root


@pytest.fixture
def write_standard(files_root) -> Callable[[str, Any], Path]:
    """Write a standard body (object or raw text) under the file root."""

    def _write(name: str, body: Any) -> Path:
        path = files_root / "standards" / f"{name}.json"
        text = body if isinstance(body, str) else json.dumps(body)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def memory_cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def translator(config, files_root, memory_cache, generator) -> Translator:
    return Translator(
        config,
        cache=ChunkedCache(memory_cache, max_item_size=config.max_cache_item_size),
        standards=FileStandardStore(files_root),
        generator=generator,
        samples=FileSampleStore(files_root),
    )


@pytest.fixture
def caplog_debug(caplog):
    """caplog capturing DEBUG records from the schemaless logger tree."""
    caplog.set_level(logging.DEBUG, logger="schemaless")
    return caplog

"""Stores for standards and for learned artifacts.

Standards are the target formats translations map onto. The sample store
keeps what the pipeline learns per shape (the generated template, the query
that produced it, the input skeleton) so later calls can skip generation.
Both are async at the interface and plain files underneath.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
import threading
from typing import Protocol

from schemaless.constants import STANDARDS_DIRECTORY
from schemaless.exceptions import StandardNotFoundError

log = logging.getLogger(__name__)


class StandardStore(Protocol):
    async def load(self, name: str) -> bytes:
        """Return the standard's JSON body or raise ``StandardNotFoundError``."""
        ...


class SampleStore(Protocol):
    async def load(self, namespace: str, key: str) -> bytes | None: ...

    async def save(self, namespace: str, key: str, data: bytes) -> None: ...


def _checked_name(name: str) -> str:
    if not name or name in (".", "..") or Path(name).name != name:
        raise ValueError(f"Invalid store key: {name!r}")
    return name


class FileStandardStore:
    """Reads standards from ``<root>/standards/<name>.json``."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root)

    def path_for(self, name: str) -> Path:
        name = name.removesuffix(".json")
        try:
            _checked_name(name)
        except ValueError as e:
            raise StandardNotFoundError(str(e)) from e
        return self.root / STANDARDS_DIRECTORY / f"{name}.json"

    async def load(self, name: str) -> bytes:
        path = self.path_for(name)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise StandardNotFoundError(f"Standard '{name}' not found at {path}") from e


class FileSampleStore:
    """Keeps artifacts as files under ``<root>/<namespace>/<key>``.

    Writes go through a temporary file and a rename so readers never see a
    partially written template. File access runs in worker threads.
    """

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root)

    def path_for(self, namespace: str, key: str) -> Path:
        return self.root / _checked_name(namespace) / _checked_name(key)

    async def load(self, namespace: str, key: str) -> bytes | None:
        path = self.path_for(namespace, key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            return None

    async def save(self, namespace: str, key: str, data: bytes) -> None:
        path = self.path_for(namespace, key)
        await asyncio.to_thread(_write_atomic, path, data)
        log.debug("Saved %d bytes to %s", len(data), path)


def _write_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    # One temporary file per writer thread; concurrent saves of a key race
    # only on the final rename.
    tmp = path.with_name(f"{path.name}.{os.getpid()}-{threading.get_ident()}.tmp")
    tmp.write_bytes(data)
    tmp.replace(path)

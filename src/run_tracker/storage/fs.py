"""
Filesystem store: one JSON-safe file per key under a namespace directory.
"""

from __future__ import annotations

import os
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

import aiofiles

from .base import BaseKeyValueStore, StoreBackendName


@dataclass
class FSStoreConfig:
    dir: Path
    namespace: str = "run-tracker"


class FSStore(BaseKeyValueStore):
    name: StoreBackendName = "fs"

    def __init__(self, cfg: FSStoreConfig) -> None:
        self.cfg = cfg
        self.namespace = cfg.namespace
        self._root = Path(cfg.dir) / cfg.namespace

    async def ensure_ready(self) -> None:
        self._root.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        # Keys contain ":" which is not portable in file names
        return self._root / f"{quote(key, safe='')}.blob"

    async def get(self, key: str) -> str | None:
        path = self._path_for(key)
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                return await f.read()
        except FileNotFoundError:
            return None

    async def set(self, key: str, value: str) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        path = self._path_for(key)
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(value)
        # Atomic replace so readers never see a partial blob
        os.replace(tmp_path, path)

    async def remove(self, key: str) -> None:
        try:
            self._path_for(key).unlink()
        except FileNotFoundError:
            pass

    async def clear(self) -> None:
        if self._root.exists():
            shutil.rmtree(self._root)
        self._root.mkdir(parents=True, exist_ok=True)


__all__ = ["FSStore", "FSStoreConfig"]

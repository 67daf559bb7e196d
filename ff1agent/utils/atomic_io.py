"""Atomic file writes for playlists and signed documents.

Uses per-path asyncio locks + temp-rename so a reader never sees a
half-written playlist file.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any

from loguru import logger


class AtomicFileWriter:
    """Async-safe atomic file writer.

    Usage::

        writer = get_atomic_writer()
        await writer.write_json(Path("playlist.json"), playlist)
    """

    def __init__(self) -> None:
        self._locks: dict[Path, asyncio.Lock] = {}

    def _get_lock(self, path: Path) -> asyncio.Lock:
        resolved = path.resolve()
        if resolved not in self._locks:
            self._locks[resolved] = asyncio.Lock()
        return self._locks[resolved]

    async def write_text(self, path: Path, content: str, encoding: str = "utf-8") -> None:
        """Atomically write *content* to *path*.

        Raises ``OSError`` after cleaning up the temp file when the write fails.
        """
        path = Path(path)
        async with self._get_lock(path):
            temp_path: str | None = None
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                fd, temp_path = tempfile.mkstemp(
                    dir=path.parent,
                    prefix=f".{path.name}.",
                    suffix=".tmp",
                )
                try:
                    os.write(fd, content.encode(encoding))
                finally:
                    os.close(fd)
                Path(temp_path).replace(path)
            except OSError as exc:
                logger.error(f"Atomic write failed for {path}: {exc}")
                if temp_path:
                    Path(temp_path).unlink(missing_ok=True)
                raise

    async def write_json(self, path: Path, data: Any, indent: int = 2) -> None:
        content = json.dumps(data, indent=indent, ensure_ascii=False)
        await self.write_text(path, content + "\n")


_atomic_writer: AtomicFileWriter | None = None


def get_atomic_writer() -> AtomicFileWriter:
    """Return the process-wide :class:`AtomicFileWriter`."""
    global _atomic_writer
    if _atomic_writer is None:
        _atomic_writer = AtomicFileWriter()
    return _atomic_writer

"""Local filesystem access used by the sync executor.

Directory listing and file reads run in the thread pool so a slow disk or
network mount doesn't stall the event loop. OSError propagates to the caller.
"""
import asyncio
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List


@dataclass(frozen=True)
class DirEntry:
    name: str
    path: str
    is_dir: bool
    is_file: bool


class LocalFilesystem:
    """Non-recursive directory listing and whole-file reads."""

    async def _run(self, fn, *args):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, fn, *args)

    async def list_dir(self, path: str) -> List[DirEntry]:
        """Immediate entries of path, sorted by name."""
        return await self._run(self._list_dir_sync, path)

    @staticmethod
    def _list_dir_sync(path: str) -> List[DirEntry]:
        with os.scandir(path) as it:
            entries = [
                DirEntry(
                    name=e.name,
                    path=e.path,
                    is_dir=e.is_dir(),
                    is_file=e.is_file(),
                )
                for e in it
            ]
        return sorted(entries, key=lambda e: e.name)

    async def read_bytes(self, path: str) -> bytes:
        return await self._run(lambda p: Path(p).read_bytes(), path)

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def is_readable(self, path: str) -> bool:
        return os.access(path, os.R_OK)

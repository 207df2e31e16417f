"""Content digests for stored uploads."""

from __future__ import annotations

import asyncio
import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

CHUNK_SIZE = 1 * 1024 * 1024  # 1 MiB


@dataclass(slots=True, frozen=True)
class IntegrityHasher:
    """sha256 by default; usable inline (``new``) or as a second pass."""

    algorithm: str = "sha256"
    chunk_size: int = CHUNK_SIZE

    def new(self) -> Any:
        return hashlib.new(self.algorithm)

    def hash_path(self, path: Path) -> str:
        digest = self.new()
        with path.open("rb") as source:
            while chunk := source.read(self.chunk_size):
                digest.update(chunk)
        return digest.hexdigest()

    async def hash_file(self, path: Path) -> str:
        """Full read of ``path`` off the event loop."""
        return await asyncio.to_thread(self.hash_path, path)

"""Collision-free, traversal-safe names for stored uploads."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

import aiofiles

from .ingest_errors import UploadIOError
from .validation import extract_extension

logger = logging.getLogger(__name__)

UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")
STORED_NAME = re.compile(r"^(?P<stamp>\d{8}T\d{9}Z)(?:_(?P<attempt>\d+))?-(?P<base>.+)$")
FALLBACK_BASENAME = "upload"

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sanitize_basename(filename: str | None, max_length: int = 128) -> str:
    """Reduce a client filename to a single safe path segment."""
    segment = (filename or "").replace("\\", "/").rsplit("/", 1)[-1].replace("\x00", "")
    safe = UNSAFE_CHARS.sub("_", segment)
    if not safe.strip("."):
        safe = FALLBACK_BASENAME
    if len(safe) > max_length:
        ext_len = len(extract_extension(safe))
        if 0 < ext_len < max_length:
            safe = safe[: max_length - ext_len] + safe[-ext_len:]
        else:
            safe = safe[:max_length]
    return safe


def format_stamp(moment: datetime) -> str:
    """Millisecond UTC timestamp, e.g. ``20261018T120501123Z``."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return f"{moment:%Y%m%dT%H%M%S}{moment.microsecond // 1000:03d}Z"


def original_name(stored_filename: str) -> str:
    """Strip the disambiguator prefix from a stored filename."""
    match = STORED_NAME.match(stored_filename)
    if match is None:
        return stored_filename
    return match.group("base")


def is_staging_name(filename: str) -> bool:
    return filename.startswith(".")


def staging_path(destination: Path) -> Path:
    return destination.with_name(f".{destination.name}.part")


def resolve_stored(root: Path, filename: str) -> Path | None:
    """Map a client-supplied stored filename to a path inside ``root``."""
    if not filename or is_staging_name(filename) or UNSAFE_CHARS.search(filename):
        return None
    base = root.resolve()
    candidate = (base / filename).resolve()
    if candidate.parent != base:
        return None
    return candidate


@dataclass(slots=True)
class NamingStrategy:
    """Derive unique destination names and claim them atomically."""

    max_base_length: int = 128
    max_attempts: int = 16
    clock: Clock = field(default=utcnow)

    def next_name(self, original_filename: str | None, clock: Clock | None = None, attempt: int = 0) -> str:
        moment = (clock or self.clock)()
        base = sanitize_basename(original_filename, self.max_base_length)
        suffix = f"_{attempt}" if attempt else ""
        return f"{format_stamp(moment)}{suffix}-{base}"

    @staticmethod
    def resolve_inside(root: Path, name: str) -> Path:
        base = root.resolve()
        candidate = (base / name).resolve()
        if candidate.parent != base:
            raise UploadIOError(f"generated name escapes upload root: {name!r}")
        return candidate

    async def claim(self, root: Path, original_filename: str | None) -> Path:
        """Create an empty file under a fresh name; retry on collisions."""
        moment = self.clock()
        for attempt in range(self.max_attempts):
            name = self.next_name(original_filename, lambda: moment, attempt)
            candidate = self.resolve_inside(root, name)
            try:
                async with aiofiles.open(candidate, "xb"):
                    pass
            except FileExistsError:
                logger.info(
                    "upload.naming.collision",
                    extra={"candidate": name, "attempt": attempt},
                )
                continue
            except OSError as exc:
                raise UploadIOError(f"cannot create destination file: {exc.strerror}") from exc
            return candidate
        logger.error(
            "upload.naming.exhausted",
            extra={"upload_filename": original_filename, "attempts": self.max_attempts},
        )
        raise UploadIOError("could not allocate a unique file name")

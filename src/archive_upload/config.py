"""Application configuration builder."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .db.db_init import init_db

DEFAULT_ALLOWED_EXTENSIONS = (
    ".zip",
    ".rar",
    ".7z",
    ".tar",
    ".gz",
    ".bz2",
    ".xz",
    ".tar.gz",
    ".tgz",
)

DEFAULT_ALLOWED_CONTENT_TYPES = (
    "application/zip",
    "application/x-zip-compressed",
    "application/vnd.rar",
    "application/x-rar-compressed",
    "application/x-7z-compressed",
    "application/x-tar",
    "application/gzip",
    "application/x-gzip",
    "application/x-bzip2",
    "application/x-xz",
    "application/x-compressed-tar",
    "application/octet-stream",
)


@dataclass(slots=True)
class UploadLimits:
    allowed_extensions: frozenset[str]
    allowed_content_types: frozenset[str] | None
    lenient_content_type: bool
    max_bytes: int
    multipart_overhead_bytes: int
    chunk_size_bytes: int
    timeout_seconds: float
    hash_strategy: str
    file_field: str = "file"


@dataclass(slots=True)
class StoragePaths:
    upload_root: Path


@dataclass(slots=True)
class GateSettings:
    password: str | None
    token_ttl_hours: int
    rate_limit_window_seconds: int
    rate_limit_max_attempts: int
    protect_listing: bool


@dataclass(slots=True)
class AppConfig:
    storage: StoragePaths
    upload_limits: UploadLimits
    gate: GateSettings
    database_url: str
    engine: Engine
    session_factory: sessionmaker[Session]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return tuple(item.strip().lower() for item in raw.split(",") if item.strip())


def _normalise_extensions(values: tuple[str, ...]) -> frozenset[str]:
    return frozenset(value if value.startswith(".") else f".{value}" for value in values)


def _ensure_storage(paths: StoragePaths) -> None:
    paths.upload_root.mkdir(parents=True, exist_ok=True)


def build_session_factory(database_url: str) -> tuple[Engine, sessionmaker[Session]]:
    """Create engine + session factory and make sure tables exist."""
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    engine = create_engine(database_url, future=True, connect_args=connect_args)
    session_factory: sessionmaker[Session] = sessionmaker(bind=engine, expire_on_commit=False)
    init_db(engine)
    return engine, session_factory


def load_config() -> AppConfig:
    """Load configuration from environment (SQLite metadata store by default)."""
    storage = StoragePaths(upload_root=Path(os.getenv("UPLOAD_ROOT", "shared-files")))
    _ensure_storage(storage)

    content_types = _env_list("UPLOAD_ALLOWED_CONTENT_TYPES", DEFAULT_ALLOWED_CONTENT_TYPES)
    upload_limits = UploadLimits(
        allowed_extensions=_normalise_extensions(
            _env_list("UPLOAD_ALLOWED_EXTENSIONS", DEFAULT_ALLOWED_EXTENSIONS)
        ),
        # "*" switches the content-type check off (extension-only policy)
        allowed_content_types=None if content_types == ("*",) else frozenset(content_types),
        lenient_content_type=_env_bool("UPLOAD_LENIENT_CONTENT_TYPE", True),
        max_bytes=int(os.getenv("UPLOAD_MAX_BYTES", 100 * 1024 * 1024)),
        multipart_overhead_bytes=int(os.getenv("UPLOAD_MULTIPART_OVERHEAD_BYTES", 64 * 1024)),
        chunk_size_bytes=int(os.getenv("UPLOAD_CHUNK_SIZE_BYTES", 1 * 1024 * 1024)),
        timeout_seconds=float(os.getenv("UPLOAD_TIMEOUT_SECONDS", 600)),
        hash_strategy=os.getenv("UPLOAD_HASH_STRATEGY", "inline"),
    )

    gate = GateSettings(
        password=os.getenv("UPLOAD_PASSWORD") or None,
        token_ttl_hours=int(os.getenv("TOKEN_TTL_HOURS", 0)),
        rate_limit_window_seconds=int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", 15 * 60)),
        rate_limit_max_attempts=int(os.getenv("RATE_LIMIT_MAX_ATTEMPTS", 10)),
        protect_listing=_env_bool("PROTECT_LISTING", True),
    )

    database_url = os.getenv("DATABASE_URL", "sqlite:///archive_upload.db")
    engine, session_factory = build_session_factory(database_url)

    return AppConfig(
        storage=storage,
        upload_limits=upload_limits,
        gate=gate,
        database_url=database_url,
        engine=engine,
        session_factory=session_factory,
    )

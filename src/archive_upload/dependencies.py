"""Dependency wiring helpers."""

from fastapi import FastAPI

from .auth.auth_api import router as auth_router
from .auth.auth_service import AccessGate
from .config import AppConfig
from .files.files_api import router as files_router
from .files.files_repository import StoredFileRepository
from .files.files_service import FileCatalog
from .health.health_api import router as health_router
from .ingest.hashing import IntegrityHasher
from .ingest.ingest_api import router as upload_router
from .ingest.ingest_models import HashStrategy
from .ingest.ingest_service import UploadService
from .ingest.naming import NamingStrategy
from .ingest.stream_ingestor import StreamIngestor
from .ingest.validation import UploadValidator, ValidationPolicy


def include_routers(app: FastAPI, config: AppConfig) -> None:
    """Mount module routers and attach services."""
    limits = config.upload_limits
    upload_root = config.storage.upload_root

    gate = AccessGate.from_settings(config.gate)
    validator = UploadValidator(ValidationPolicy.from_limits(limits))
    repo = StoredFileRepository(config.session_factory, upload_root)
    ingestor = StreamIngestor(
        upload_root=upload_root,
        naming=NamingStrategy(),
        hasher=IntegrityHasher(chunk_size=limits.chunk_size_bytes),
        file_field=limits.file_field,
        hash_strategy=HashStrategy(limits.hash_strategy),
    )
    upload_service = UploadService(
        gate=gate,
        validator=validator,
        ingestor=ingestor,
        repo=repo,
        timeout_seconds=limits.timeout_seconds or None,
    )

    app.state.config = config
    app.state.access_gate = gate
    app.state.upload_service = upload_service
    app.state.file_catalog = FileCatalog(upload_root=upload_root, repo=repo)
    app.state.protect_listing = config.gate.protect_listing

    app.include_router(upload_router)
    app.include_router(auth_router)
    app.include_router(files_router)
    app.include_router(health_router)

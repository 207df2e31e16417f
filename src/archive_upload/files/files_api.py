"""HTTP routes for listing and downloading stored files."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse

from ..api.errors import not_found_error
from ..auth.auth_dependencies import require_listing_access
from .files_service import FileCatalog

router = APIRouter(tags=["files"], dependencies=[Depends(require_listing_access)])


def get_file_catalog(request: Request) -> FileCatalog:
    try:
        return request.app.state.file_catalog  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover
        raise RuntimeError("FileCatalog is not configured") from exc


@router.get("/files")
def list_files(catalog: FileCatalog = Depends(get_file_catalog)) -> dict:
    return {"files": [entry.to_payload() for entry in catalog.list_files()]}


@router.get("/download/{filename}")
def download(filename: str, catalog: FileCatalog = Depends(get_file_catalog)) -> FileResponse:
    found = catalog.open_download(filename)
    if found is None:
        raise not_found_error("File not found")
    return FileResponse(
        path=found.path,
        media_type="application/octet-stream",
        filename=found.original_name,
    )

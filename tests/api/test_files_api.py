from pathlib import Path

from fastapi.testclient import TestClient

from archive_upload.main import create_app
from tests.helpers.uploads import make_config, make_gate_settings


def test_uploaded_file_is_listed_and_downloadable(tmp_path: Path) -> None:
    client = TestClient(create_app(make_config(tmp_path)))
    uploaded = client.post(
        "/upload",
        files={"file": ("family photos.zip", b"PK\x03\x04zip", "application/zip")},
    ).json()

    listing = client.get("/files")

    assert listing.status_code == 200
    files = listing.json()["files"]
    assert [entry["filename"] for entry in files] == [uploaded["filename"]]
    assert files[0]["originalName"] == "family_photos.zip"
    assert files[0]["hash"] == uploaded["hash"]
    assert files[0]["size"] == 7

    download = client.get(f"/download/{uploaded['filename']}")

    assert download.status_code == 200
    assert download.content == b"PK\x03\x04zip"
    assert download.headers["content-disposition"] == 'attachment; filename="family_photos.zip"'


def test_download_of_unknown_file_is_404(tmp_path: Path) -> None:
    client = TestClient(create_app(make_config(tmp_path)))

    response = client.get("/download/nothing-here.zip")

    assert response.status_code == 404
    assert response.json()["reason"] == "not_found"


def test_guarded_listing_requires_token(tmp_path: Path) -> None:
    client = TestClient(create_app(make_config(tmp_path, gate=make_gate_settings(password="secret"))))

    assert client.get("/files").status_code == 401

    token = client.post("/auth", json={"password": "secret"}).json()["token"]
    client.cookies.clear()
    response = client.get("/files", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json() == {"files": []}


def test_listing_can_be_left_public(tmp_path: Path) -> None:
    gate = make_gate_settings(password="secret", protect_listing=False)
    client = TestClient(create_app(make_config(tmp_path, gate=gate)))

    assert client.get("/files").status_code == 200


def test_traversal_filename_is_never_echoed_back(tmp_path: Path) -> None:
    client = TestClient(create_app(make_config(tmp_path)))
    uploaded = client.post(
        "/upload",
        files={"file": ("../../evil.zip", b"PK\x03\x04", "application/zip")},
    ).json()

    listing = client.get("/files").json()["files"]
    download = client.get(f"/download/{uploaded['filename']}")

    assert uploaded["filename"].endswith("-evil.zip")
    assert listing[0]["originalName"] == "evil.zip"
    assert download.headers["content-disposition"] == 'attachment; filename="evil.zip"'
    assert not (tmp_path / "evil.zip").exists()

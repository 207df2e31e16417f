from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture
def upload_root(tmp_path: Path) -> Path:
    root = tmp_path / "uploads"
    root.mkdir()
    return root

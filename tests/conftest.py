"""Shared fixtures for t3 viewer tests."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from helpers import export_bytes


@pytest.fixture()
def client():
    """TestClient for app.py with no document loaded.

    Resets the module-level document state and disables startup loading.
    """
    import app as app_module

    fresh_state = {"document": None, "aggregator": None, "source": None}
    with patch.object(app_module, "_state", fresh_state):
        with patch.object(app_module, "EXPORT_PATH", None):
            with TestClient(app_module.app) as tc:
                yield tc


@pytest.fixture()
def loaded_client(client):
    """TestClient with the default helper export uploaded."""
    response = client.post(
        "/api/document",
        content=export_bytes(),
        headers={"x-filename": "export.json"},
    )
    assert response.status_code == 200
    return client


@pytest.fixture()
def export_file(tmp_path: Path) -> Path:
    path = tmp_path / "export.json"
    path.write_bytes(export_bytes())
    return path

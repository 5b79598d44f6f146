# tests/conftest.py
from collections.abc import Generator
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

import speedprice.api.dependencies as _deps
from speedprice.core.config import Settings, get_settings
from speedprice.main import app


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        api_keys={"test-key-quay": "quay_1", "test-key-kho": "kho"},
        database_url="sqlite+aiosqlite:///:memory:",
        remote_base_url="http://remote.test",
        barcode_lookup_order=["local"],
    )


@pytest.fixture
def client(test_settings: Settings) -> Generator[TestClient, None, None]:
    # Jeder Test startet mit einer frischen In-Memory-Datenbank und leerem Snapshot
    _deps.reset_singletons()
    app.dependency_overrides[get_settings] = lambda: test_settings
    try:
        with patch("speedprice.core.config.get_settings", return_value=test_settings), TestClient(
            app
        ) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
        _deps.reset_singletons()


@pytest.fixture
def auth_headers() -> dict:
    return {"X-API-Key": "test-key-quay"}

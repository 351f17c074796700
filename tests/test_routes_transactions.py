"""Tests for the transaction API routes."""

import time
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from assetsync.core.exceptions import DuplicateTransaction, StoreError
from assetsync.main import create_app
from assetsync.services.uploader.manager import UploadManager
from assetsync.storage.memory import MemoryRecordStore


@pytest.fixture
def client(storage, backend, transformer, test_settings):
    """API client backed by an upload manager with in-process doubles."""

    def factory():
        return UploadManager(
            store=MemoryRecordStore(),
            storage=storage,
            backend=backend,
            transformer=transformer,
            settings=test_settings,
        )

    with TestClient(create_app(manager_factory=factory)) as test_client:
        yield test_client


def wait_finished(client, transaction_id, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        response = client.get(f"/api/v1/transactions/{transaction_id}")
        if response.status_code == 200 and response.json()["status"] == "finished":
            return response.json()
        time.sleep(0.02)
    raise AssertionError(f"Transaction {transaction_id} did not finish")


def test_submit_and_poll(client, tmp_path, make_image):
    """Test accepting a transaction and polling it to completion."""
    first = make_image(tmp_path / "a.jpg")
    payload = {
        "transaction_id": "tx-api",
        "items": [
            {"path": str(first), "kind": "image", "id": "a"},
            {"path": str(tmp_path / "missing.jpg"), "kind": "image", "id": "missing"},
        ],
    }

    response = client.post("/api/v1/transactions", json=payload)

    assert response.status_code == 202
    assert response.json() == {
        "transaction_id": "tx-api",
        "uploads_total": 2,
        "upload_ids": ["a", "missing"],
    }

    snapshot = wait_finished(client, "tx-api")
    assert snapshot["total"] == 2
    assert snapshot["completed"] == 1
    assert snapshot["failed"] == 1
    assert snapshot["current_upload"] is None
    assert snapshot["assets"][0]["id"] == "a"
    assert snapshot["assets"][0]["url"] == "https://cdn.test/image/a.jpg"
    assert snapshot["errors"][0]["upload_id"] == "missing"
    assert snapshot["errors"][0]["error_type"] == "InvalidAsset"


def test_transaction_id_is_generated(client, image_file):
    response = client.post(
        "/api/v1/transactions", json={"items": [{"path": str(image_file), "kind": "image"}]}
    )

    assert response.status_code == 202
    transaction_id = response.json()["transaction_id"]
    assert transaction_id
    wait_finished(client, transaction_id)


def test_empty_transaction_is_bad_request(client):
    response = client.post("/api/v1/transactions", json={"transaction_id": "tx", "items": []})

    assert response.status_code == 400
    assert client.get("/api/v1/transactions/tx").status_code == 404


def test_duplicate_item_ids_are_bad_request(client, image_file):
    item = {"path": str(image_file), "kind": "image", "id": "same"}
    response = client.post("/api/v1/transactions", json={"items": [item, item]})

    assert response.status_code == 400


def test_invalid_payload_is_unprocessable(client):
    response = client.post("/api/v1/transactions", json={"items": [{"kind": "image"}]})

    assert response.status_code == 422


def test_unknown_transaction_is_not_found(client):
    response = client.get("/api/v1/transactions/nope")

    assert response.status_code == 404


def _mock_app(error):
    manager = MagicMock()
    manager.start = AsyncMock()
    manager.stop = AsyncMock()
    manager.upload_assets = AsyncMock(side_effect=error)
    return create_app(manager_factory=lambda: manager)


@pytest.mark.parametrize(
    "error, status_code",
    [
        (StoreError("disk full"), 503),
        (DuplicateTransaction("Transaction tx is already active"), 409),
    ],
)
def test_submission_errors_map_to_status_codes(error, status_code, image_file):
    with TestClient(_mock_app(error)) as test_client:
        response = test_client.post(
            "/api/v1/transactions",
            json={"transaction_id": "tx", "items": [{"path": str(image_file), "kind": "image"}]},
        )

    assert response.status_code == status_code

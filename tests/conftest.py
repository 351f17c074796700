"""Pytest configuration and shared fixtures."""

from pathlib import Path
from typing import Optional
from unittest.mock import MagicMock

import pytest
from PIL import Image

from assetsync.core.config import Settings
from assetsync.core.exceptions import TransferFailed
from assetsync.models.asset import CreateAssetResult, FinalizedAsset, InitAssetResult, WriteUrls
from assetsync.services.media.transforms import MediaTransformer
from assetsync.services.uploader.manager import UploadManager
from assetsync.storage.memory import MemoryRecordStore

CUT_NAMES = ("small", "medium", "large")


class FakeBackend:
    """Backend double issuing predictable write and read URLs."""

    def __init__(self):
        self.init_calls: list[dict] = []
        self.create_calls: list[dict] = []
        self.closed = False
        self.asset_user_id = ""

    async def init_asset(self, path, expiration_hours, content_type):
        self.init_calls.append(
            {"path": path, "expiration_hours": expiration_hours, "content_type": content_type}
        )
        base = f"https://storage.test/write/{path}"
        return InitAssetResult(
            status_code=200,
            content_id=len(self.init_calls),
            write_urls=WriteUrls(
                write_url=base,
                write_url_small=f"{base}?cut=small",
                write_url_medium=f"{base}?cut=medium",
                write_url_large=f"{base}?cut=large",
                write_url_video_preview=f"{base}?cut=preview",
            ),
        )

    async def create_asset(self, **kwargs):
        self.create_calls.append(kwargs)
        base = f"https://cdn.test/{kwargs['path']}"
        return CreateAssetResult(
            status_code=200,
            asset=FinalizedAsset(
                id="server-side-id",
                user_id=self.asset_user_id,
                path=kwargs["path"],
                content_type=kwargs["content_type"],
                size=kwargs["size"],
                color=kwargs["color"],
                x_res=kwargs["x_res"],
                y_res=kwargs["y_res"],
                caption=kwargs["caption"],
                extra=kwargs["extra"],
                url=base,
                url_small=f"{base}?cut=small",
                url_medium=f"{base}?cut=medium",
                url_large=f"{base}?cut=large",
            ),
        )

    async def aclose(self):
        self.closed = True


class FakeStorage:
    """Object storage double recording every PUT and reporting progress."""

    def __init__(self):
        self.on_progress = None
        self.puts: list[dict] = []
        self.fail_urls: set[str] = set()

    async def put_bytes(self, url, data, mime_type, upload_id=None):
        return self._put(url, len(data), mime_type, upload_id, kind="bytes")

    async def put_file(self, url, path, upload_id=None):
        size = Path(path).stat().st_size
        return self._put(url, size, None, upload_id, kind="file")

    def _put(self, url, size, mime_type, upload_id, kind):
        if not url:
            raise TransferFailed("Write URL is empty")
        self.puts.append(
            {"url": url, "size": size, "mime_type": mime_type, "upload_id": upload_id, "kind": kind}
        )
        if self.on_progress is not None:
            self.on_progress(upload_id, size // 2, size)
            self.on_progress(upload_id, size, size)
        if url in self.fail_urls:
            raise TransferFailed("Upload rejected with status 403")
        return 200

    def cut_puts(self) -> list[dict]:
        return [p for p in self.puts if any(f"cut={name}" in p["url"] for name in CUT_NAMES)]

    async def aclose(self):
        pass


class EventRecorder:
    """Upload callback collecting (transaction_id, state) pairs."""

    def __init__(self):
        self.events: list = []

    def __call__(self, transaction_id, state):
        self.events.append((transaction_id, state))

    def states(self, transaction_id: Optional[str] = None, progress: bool = False) -> list:
        return [
            s for t, s in self.events
            if (transaction_id is None or t == transaction_id)
            and (progress or s.kind != "asset_progress")
        ]

    def kinds(self, transaction_id: Optional[str] = None, progress: bool = False) -> list[str]:
        return [s.kind for s in self.states(transaction_id, progress)]


def write_image(path: Path, size=(64, 48), color=(200, 20, 20)) -> Path:
    fmt = "PNG" if path.suffix.lower() == ".png" else "JPEG"
    Image.new("RGB", size, color).save(path, format=fmt)
    return path


@pytest.fixture
def store():
    """Create a fresh record store for each test."""
    return MemoryRecordStore()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def transformer():
    """Real Pillow transformer with the ffmpeg frame grab stubbed out."""
    media = MediaTransformer()
    media.thumbnail = MagicMock(return_value=Image.new("RGB", (320, 240), (10, 10, 10)))
    return media


@pytest.fixture
def test_settings():
    return Settings(ENV="test", USER_ID="user-1", SESSION_ID="session-1", ASSET_OBSERVE_TIMEOUT=2.0)


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def manager(store, storage, backend, transformer, test_settings):
    """Upload manager wired to in-process doubles; tests await start()."""
    return UploadManager(
        store=store,
        storage=storage,
        backend=backend,
        transformer=transformer,
        settings=test_settings,
    )


@pytest.fixture
def make_image():
    """Factory writing a solid-color image to the given path."""
    return write_image


@pytest.fixture
def image_file(tmp_path):
    return write_image(tmp_path / "holiday photo.jpg")

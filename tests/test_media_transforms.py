"""Tests for Pillow and ffmpeg media transforms."""

import io
import subprocess
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from assetsync.services.media.transforms import MediaTransformer, MediaTransformError


@pytest.fixture
def media():
    return MediaTransformer(ffmpeg_binary="ffmpeg", thumbnail_offset=1.5)


def png_bytes(size=(32, 18)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, (1, 2, 3)).save(buffer, format="PNG")
    return buffer.getvalue()


class TestImages:
    """Tests for image operations."""

    def test_open_image_loads_pixels(self, media, tmp_path, make_image):
        path = make_image(tmp_path / "a.png", size=(40, 20))

        image = media.open_image(path)

        assert image.size == (40, 20)
        assert image.getpixel((0, 0)) == (200, 20, 20)

    def test_open_image_applies_exif_orientation(self, media, tmp_path):
        path = tmp_path / "rotated.jpg"
        exif = Image.Exif()
        exif[0x0112] = 6  # Rotated 90 degrees clockwise
        Image.new("RGB", (40, 20)).save(path, format="JPEG", exif=exif)

        assert media.open_image(path).size == (20, 40)

    def test_open_image_rejects_non_images(self, media, tmp_path):
        path = tmp_path / "a.jpg"
        path.write_text("plain text")

        with pytest.raises(MediaTransformError):
            media.open_image(path)

    def test_resize_bounds_longest_side(self, media):
        image = Image.new("RGB", (1200, 800))

        assert media.resize(image, 300).size == (300, 200)
        assert media.resize(Image.new("RGB", (400, 1000)), 600).size == (240, 600)

    def test_resize_never_upscales(self, media):
        image = Image.new("RGB", (100, 50))
        resized = media.resize(image, 900)

        assert resized.size == (100, 50)
        assert resized is not image

    def test_average_color(self, media):
        image = Image.new("RGB", (2, 1))
        image.putpixel((0, 0), (0, 0, 0))
        image.putpixel((1, 0), (200, 100, 50))

        assert media.average_color(image) == "#643219"

    def test_encode_png_and_jpeg(self, media):
        image = Image.new("RGBA", (10, 10), (1, 2, 3, 128))

        assert media.encode(image, "image/png").startswith(b"\x89PNG")
        # JPEG has no alpha channel
        assert media.encode(image, "image/jpeg").startswith(b"\xff\xd8")

    def test_mime_type(self, media):
        assert media.mime_type("a.jpg") == "image/jpeg"
        assert media.mime_type("https://host/b.png") == "image/png"
        assert media.mime_type("noext") == "application/octet-stream"


class TestThumbnail:
    """Tests for ffmpeg frame extraction."""

    def test_extracts_frame(self, media):
        completed = MagicMock(returncode=0, stdout=png_bytes(), stderr=b"")

        with patch("assetsync.services.media.transforms.subprocess.run", return_value=completed) as run:
            frame = media.thumbnail("/videos/clip.mp4")

        assert frame.size == (32, 18)
        cmd = run.call_args.args[0]
        assert cmd[0] == "ffmpeg"
        assert cmd[cmd.index("-i") + 1] == "/videos/clip.mp4"
        assert cmd[cmd.index("-ss") + 1] == "1.5"
        assert cmd[-1] == "-"

    def test_ffmpeg_failure(self, media):
        completed = MagicMock(returncode=1, stdout=b"", stderr=b"Invalid data found")

        with patch("assetsync.services.media.transforms.subprocess.run", return_value=completed):
            with pytest.raises(MediaTransformError, match="Invalid data found"):
                media.thumbnail("/videos/clip.mp4")

    def test_ffmpeg_missing(self, media):
        with patch(
            "assetsync.services.media.transforms.subprocess.run",
            side_effect=FileNotFoundError("ffmpeg"),
        ):
            with pytest.raises(MediaTransformError, match="not found"):
                media.thumbnail("/videos/clip.mp4")

    def test_ffmpeg_timeout(self, media):
        with patch(
            "assetsync.services.media.transforms.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="ffmpeg", timeout=60),
        ):
            with pytest.raises(MediaTransformError, match="timed out"):
                media.thumbnail("/videos/clip.mp4")

    def test_unreadable_frame(self, media):
        completed = MagicMock(returncode=0, stdout=b"not a png", stderr=b"")

        with patch("assetsync.services.media.transforms.subprocess.run", return_value=completed):
            with pytest.raises(MediaTransformError):
                media.thumbnail("/videos/clip.mp4")

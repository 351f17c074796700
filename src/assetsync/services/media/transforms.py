"""Image and video transforms used to derive upload variants."""

import io
import logging
import mimetypes
import subprocess
from pathlib import Path
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from assetsync.core.config import settings

logger = logging.getLogger(__name__)


class MediaTransformError(Exception):
    """Exception raised when an image or video cannot be processed."""
    pass


class MediaTransformer:
    """Pillow-backed media operations; video frames come from ffmpeg."""

    def __init__(self, ffmpeg_binary: Optional[str] = None, thumbnail_offset: Optional[float] = None):
        self.ffmpeg_binary = ffmpeg_binary or settings.FFMPEG_BINARY
        self.thumbnail_offset = (
            settings.VIDEO_THUMBNAIL_OFFSET_SECONDS if thumbnail_offset is None else thumbnail_offset
        )

    def open_image(self, path: Path | str) -> Image.Image:
        """Load an image fully into memory with EXIF orientation applied.

        Raises:
            MediaTransformError: If the file is missing or not an image
        """
        try:
            with Image.open(path) as img:
                img.load()
                return ImageOps.exif_transpose(img) or img.copy()
        except (OSError, UnidentifiedImageError) as e:
            raise MediaTransformError(f"Cannot open image {path}: {e}") from e

    def resize(self, image: Image.Image, size: int) -> Image.Image:
        """Scale an image so its longer side equals ``size``, keeping aspect ratio.

        Images already smaller than ``size`` are returned as a copy.
        """
        width, height = image.size
        longest = max(width, height)
        if longest <= size:
            return image.copy()
        ratio = size / float(longest)
        target = (max(1, round(width * ratio)), max(1, round(height * ratio)))
        return image.resize(target, Image.Resampling.LANCZOS)

    def thumbnail(self, video_path: Path | str) -> Image.Image:
        """Extract a representative still frame from a video with ffmpeg.

        Raises:
            MediaTransformError: If ffmpeg fails or produces no frame
        """
        cmd = [
            self.ffmpeg_binary,
            "-hide_banner",
            "-loglevel", "error",
            "-ss", str(self.thumbnail_offset),
            "-i", str(video_path),
            "-frames:v", "1",
            "-f", "image2pipe",
            "-vcodec", "png",
            "-",
        ]
        logger.debug("Extracting video frame", extra={"video_path": str(video_path)})
        try:
            result = subprocess.run(
                cmd, capture_output=True, timeout=settings.FFMPEG_TIMEOUT, check=False
            )
        except FileNotFoundError as e:
            raise MediaTransformError(f"ffmpeg not found: {self.ffmpeg_binary}") from e
        except subprocess.TimeoutExpired as e:
            raise MediaTransformError(f"ffmpeg timed out on {video_path}") from e

        if result.returncode != 0 or not result.stdout:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise MediaTransformError(f"ffmpeg failed on {video_path}: {stderr[-500:]}")

        try:
            frame = Image.open(io.BytesIO(result.stdout))
            frame.load()
        except (OSError, UnidentifiedImageError) as e:
            raise MediaTransformError(f"ffmpeg produced an unreadable frame: {e}") from e
        return frame

    @staticmethod
    def mime_type(name: str) -> str:
        """Guess the MIME type from a filename or URL."""
        return mimetypes.guess_type(name)[0] or "application/octet-stream"

    @staticmethod
    def average_color(image: Image.Image) -> str:
        """Average color of an image as ``#rrggbb``."""
        pixel = image.convert("RGB").resize((1, 1), Image.Resampling.BOX).getpixel((0, 0))
        return "#{:02x}{:02x}{:02x}".format(*pixel[:3])

    @staticmethod
    def encode(image: Image.Image, content_type: str) -> bytes:
        """Encode as PNG for ``image/png`` and as full-quality JPEG otherwise."""
        buffer = io.BytesIO()
        if content_type == "image/png":
            image.save(buffer, format="PNG")
        else:
            if image.mode not in ("RGB", "L"):
                image = image.convert("RGB")
            image.save(buffer, format="JPEG", quality=100)
        return buffer.getvalue()

"""Fetch and cache card images on local disk.

An image already on disk is always reused without touching the network.
Missing images are fetched once, best effort: any failure yields an
UNAVAILABLE result and never an exception.

Downloads respect a rate limit of 10 per second.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import httpx

from swucol.config import IMAGE_DOWNLOAD_INTERVAL

logger = logging.getLogger(__name__)


class ImageSource(str, Enum):
    """Where a card's image came from."""

    CACHED = "cached"
    DOWNLOADED = "downloaded"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True, slots=True)
class ImageResult:
    """
    Outcome of acquiring one card image.

    path is set for CACHED and DOWNLOADED, None for UNAVAILABLE.
    """

    source: ImageSource
    path: Path | None = None

    @property
    def image_path(self) -> str | None:
        """Path as stored on the card record."""
        return str(self.path) if self.path is not None else None


NO_IMAGE = ImageResult(ImageSource.UNAVAILABLE)


class ImageDownloadError(Exception):
    """Raised when the image server answers with anything but 200 OK."""

    pass


class DownloadRateLimiter:
    """Gate that spaces out image downloads.

    Waits a fixed interval before every download after the first one.
    Create one per import so the budget covers exactly one import call.
    """

    def __init__(
        self,
        interval: float = IMAGE_DOWNLOAD_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.interval = interval
        self._sleep = sleep
        self.downloads = 0

    async def acquire(self) -> None:
        """Wait for permission to start the next download."""
        if self.downloads > 0:
            await self._sleep(self.interval)
        self.downloads += 1


def build_image_path(images_dir: str | Path, set_code: str, card_number: str) -> Path:
    """Local file for a card image: {images_dir}/{set}{number}.png.

    The file always lies inside images_dir; a set or number that would
    lead elsewhere (an absolute path, "..") is refused.

    Raises:
        ValueError: If any argument is empty or the path leaves images_dir
    """
    if not str(images_dir):
        raise ValueError("images directory must not be empty")
    if not set_code:
        raise ValueError("set must not be empty")
    if not card_number:
        raise ValueError("card number must not be empty")
    path = Path(images_dir) / f"{set_code}{card_number}.png"
    if not path.resolve().is_relative_to(Path(images_dir).resolve()):
        raise ValueError(f"image path {str(path)!r} is outside the images directory")
    return path


def build_image_url(image_base_url: str, set_code: str, card_number: str) -> str:
    """Remote URL of a card image: {base}/{set}/{number}.png.

    Raises:
        ValueError: If any argument is empty
    """
    if not image_base_url:
        raise ValueError("image base URL must not be empty")
    if not set_code:
        raise ValueError("set must not be empty")
    if not card_number:
        raise ValueError("card number must not be empty")
    return f"{image_base_url.rstrip('/')}/{set_code}/{card_number}.png"


async def download_image(client: httpx.AsyncClient, url: str, dest: Path) -> None:
    """Download url into dest, creating parent directories.

    The body lands in a temporary sibling first and is renamed into place,
    so an interrupted write never leaves a truncated file at dest.

    Raises:
        ImageDownloadError: If the server does not answer 200 OK
        httpx.HTTPError: If the request fails
        httpx.InvalidURL: If url cannot be requested at all
        OSError: If the file cannot be written
    """
    response = await client.get(url, follow_redirects=True)
    if response.status_code != httpx.codes.OK:
        raise ImageDownloadError(f"image download returned status {response.status_code}")

    dest.parent.mkdir(parents=True, exist_ok=True)
    partial = dest.with_name(dest.name + ".part")
    try:
        partial.write_bytes(response.content)
        partial.replace(dest)
    except OSError:
        partial.unlink(missing_ok=True)
        raise


class CardImageCache:
    """Disk cache of card images backed by a remote image server."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        images_dir: str | Path,
        image_base_url: str,
        limiter: DownloadRateLimiter | None = None,
    ) -> None:
        """Initialize cache.

        Args:
            client: HTTP client used for downloads
            images_dir: Directory holding cached images
            image_base_url: Base URL of the image server
            limiter: Download gate; a fresh one if omitted
        """
        self.client = client
        self.images_dir = images_dir
        self.image_base_url = image_base_url
        self.limiter = limiter or DownloadRateLimiter()

    async def acquire(self, set_code: str, card_number: str) -> ImageResult:
        """Get the image for a card, downloading it if not cached.

        Args:
            set_code: Set code of the card (e.g., "LAW")
            card_number: Card number within the set (e.g., "001")

        Returns:
            CACHED or DOWNLOADED result with the local path, or NO_IMAGE
        """
        try:
            path = build_image_path(self.images_dir, set_code, card_number)
        except ValueError as e:
            logger.warning("No image path for %s/%s: %s", set_code, card_number, e)
            return NO_IMAGE

        if path.exists():
            logger.debug("Image already on disk: %s", path)
            return ImageResult(ImageSource.CACHED, path)

        try:
            url = build_image_url(self.image_base_url, set_code, card_number)
        except ValueError as e:
            logger.warning("No image URL for %s/%s: %s", set_code, card_number, e)
            return NO_IMAGE

        await self.limiter.acquire()

        logger.info("Downloading image %s", url)
        try:
            await download_image(self.client, url, path)
        except (httpx.HTTPError, httpx.InvalidURL, ImageDownloadError, OSError) as e:
            logger.warning("Image download failed, continuing without image: %s: %s", url, e)
            return NO_IMAGE

        logger.info("Image downloaded to %s", path)
        return ImageResult(ImageSource.DOWNLOADED, path)

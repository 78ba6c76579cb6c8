"""Thin HTTP client for fetching image bytes for the daily cache."""

from typing import Optional

import requests

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="image_downloader")

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; WoolyCute/1.0)"
CHUNK_SIZE = 64 * 1024


class ImageDownloader:
    """Downloads images with bounded timeouts and a size ceiling."""

    def __init__(
        self,
        connect_timeout: float = 10.0,
        read_timeout: float = 15.0,
        user_agent: str = DEFAULT_USER_AGENT,
        max_bytes: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = (connect_timeout, read_timeout)
        self.max_bytes = max_bytes
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    def download(self, image_url: str) -> Optional[bytes]:
        """
        Return the body of `image_url`, or None on any network/HTTP failure.

        When `max_bytes` is set the body is read at most one byte past the
        limit, so an oversized image comes back as max_bytes + 1 bytes
        without pulling the whole file.
        """
        try:
            with self.session.get(image_url, timeout=self.timeout, stream=True) as resp:
                resp.raise_for_status()
                body = bytearray()
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    body.extend(chunk)
                    if self.max_bytes is not None and len(body) > self.max_bytes:
                        return bytes(body[: self.max_bytes + 1])
                return bytes(body)
        except requests.exceptions.RequestException as exc:
            logger.debug("Download failed: %s - %s", image_url, exc)
            return None

    def close(self) -> None:
        self.session.close()

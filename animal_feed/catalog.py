"""The in-process catalog of source image URLs."""

from pathlib import Path
from typing import Iterable

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="catalog")

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "data" / "image_urls.txt"


def parse_catalog(lines: Iterable[str]) -> tuple[str, ...]:
    """Return URLs in file order, skipping blanks, comments and repeats."""
    seen: set[str] = set()
    urls: list[str] = []
    for line in lines:
        url = line.strip()
        if not url or url.startswith("#") or url in seen:
            continue
        seen.add(url)
        urls.append(url)
    return tuple(urls)


def load_catalog(path: str | Path | None = None) -> tuple[str, ...]:
    """Load the catalog from `path`, or the packaged default.

    A missing or unreadable file yields an empty catalog; callers treat that
    as "nothing to stream" rather than a startup failure.
    """
    catalog_path = Path(path) if path else DEFAULT_CATALOG_PATH
    try:
        with catalog_path.open(encoding="utf-8") as fh:
            urls = parse_catalog(fh)
    except OSError as exc:
        logger.error("Failed to read image catalog %s: %s", catalog_path, exc)
        return ()
    logger.debug("Loaded %d catalog URLs from %s", len(urls), catalog_path)
    return urls


IMAGE_URLS: tuple[str, ...] = load_catalog()

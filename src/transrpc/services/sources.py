"""Resolve torrent-add data sources."""
import asyncio
import base64
import logging
from pathlib import Path
from typing import Union

from transrpc.core.exceptions import ValidationError

logger = logging.getLogger(__name__)


def url_source(url: str) -> dict[str, str]:
    """Source for a magnet link or a .torrent URL the daemon fetches itself."""
    return {"filename": url}


def base64_source(data: str) -> dict[str, str]:
    """Source for base64-encoded .torrent content."""
    return {"metainfo": data}


def _read_base64(path: Path) -> str:
    return base64.b64encode(path.read_bytes()).decode("ascii")


async def file_source(path: Union[str, Path]) -> dict[str, str]:
    """
    Source for a local .torrent file.

    The file is read off the event loop and sent as ``metainfo``.

    Raises:
        ValidationError: If the file cannot be read
    """
    path = Path(path)
    try:
        data = await asyncio.to_thread(_read_base64, path)
    except OSError as e:
        logger.error(f"Cannot read torrent file {path}: {e}")
        raise ValidationError(f"Cannot read torrent file {path}: {e}") from e

    logger.debug(f"Read {path} ({len(data)} base64 chars)")
    return base64_source(data)

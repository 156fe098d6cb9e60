"""
Media utilities for video/audio file handling.

Provides common functions for media file operations:
- Content type resolution for upload headers
- Media type check (audio or video)
"""

import logging
import mimetypes
from pathlib import Path

logger = logging.getLogger(__name__)

# Types the stdlib table misses or maps differently on some platforms
EXTRA_MIME_TYPES = {
    ".mkv": "video/x-matroska",
    ".webm": "video/webm",
    ".m4a": "audio/mp4",
    ".flac": "audio/flac",
    ".aac": "audio/aac",
    ".3gp": "video/3gpp",
}

MEDIA_TYPE_PREFIXES = ("video/", "audio/")


def guess_mime_type(file_path: Path) -> str | None:
    """Resolve the content type declared to the inference API.

    Args:
        file_path: Path to media file

    Returns:
        MIME type such as "video/mp4", or None if unknown
    """
    suffix = file_path.suffix.lower()
    if suffix in EXTRA_MIME_TYPES:
        return EXTRA_MIME_TYPES[suffix]

    mime_type, _ = mimetypes.guess_type(file_path.name)
    if mime_type is None:
        logger.debug(f"Unknown media type for {file_path.name}")
    return mime_type


def is_media_type(mime_type: str) -> bool:
    """Check if a content type is audio or video.

    Args:
        mime_type: Content type such as "video/mp4"

    Returns:
        True for audio/* and video/* types
    """
    return mime_type.lower().startswith(MEDIA_TYPE_PREFIXES)

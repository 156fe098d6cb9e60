"""
Ingestion strategy selection.

Small files are embedded in the inference request as base64 (no upload
round-trip). Larger files go through the resumable upload protocol and
are referenced by URI.
"""

import asyncio
import base64
import logging
from typing import Any

from analyst.models.schemas import IngestionStrategy, MediaAsset, RemoteAssetHandle
from analyst.services.errors import ValidationError
from analyst.utils.media_utils import is_media_type

logger = logging.getLogger(__name__)

MIB = 1024 * 1024
DEFAULT_INLINE_LIMIT_BYTES = 20 * MIB
DEFAULT_MAX_FILE_SIZE_BYTES = 2000 * MIB


def validate_asset(
    asset: MediaAsset,
    max_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES,
) -> None:
    """
    Check preconditions before any network I/O.

    Args:
        asset: Selected media file
        max_size_bytes: Hard size ceiling

    Raises:
        ValidationError: File too large, empty, or not audio/video
    """
    if asset.size_bytes > max_size_bytes:
        raise ValidationError(
            f"File too large ({asset.size_mb}MB).",
            detail=f"The limit is {max_size_bytes // MIB}MB.",
        )
    if asset.size_bytes == 0:
        raise ValidationError("File is empty.", detail=str(asset.path))
    if not asset.mime_type:
        raise ValidationError(
            "Unknown media type.",
            detail=f"Cannot determine content type of {asset.display_name}",
        )
    if not is_media_type(asset.mime_type):
        raise ValidationError(
            "Unsupported media type.",
            detail=f"{asset.display_name} is {asset.mime_type}, expected video or audio",
        )


def select_strategy(
    asset: MediaAsset,
    inline_limit_bytes: int = DEFAULT_INLINE_LIMIT_BYTES,
) -> IngestionStrategy:
    """
    Pick inline or remote ingestion from the file size.

    Args:
        asset: Validated media file
        inline_limit_bytes: Largest size sent inline

    Returns:
        REMOTE if size is strictly greater than the limit, else INLINE
    """
    if asset.size_bytes > inline_limit_bytes:
        return IngestionStrategy.REMOTE
    return IngestionStrategy.INLINE


def _encode_file(asset: MediaAsset) -> str:
    return base64.b64encode(asset.path.read_bytes()).decode("ascii")


async def build_content_part(
    asset: MediaAsset,
    strategy: IngestionStrategy,
    handle: RemoteAssetHandle | None = None,
) -> dict[str, Any]:
    """
    Build the media part of an inference request.

    Args:
        asset: Media file
        strategy: Selected ingestion strategy
        handle: ACTIVE remote asset (required for REMOTE)

    Returns:
        {"inlineData": {...}} or {"fileData": {...}}
    """
    if strategy == IngestionStrategy.REMOTE:
        if handle is None:
            raise ValueError("Remote strategy requires an uploaded asset handle")
        return {"fileData": {"mimeType": asset.mime_type, "fileUri": handle.uri}}

    data = await asyncio.to_thread(_encode_file, asset)
    logger.debug(f"Encoded {asset.display_name} inline: {len(data)} base64 chars")
    return {"inlineData": {"mimeType": asset.mime_type, "data": data}}

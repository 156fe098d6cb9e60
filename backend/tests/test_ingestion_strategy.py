import asyncio
import base64
from collections.abc import Callable
from pathlib import Path

import pytest

from analyst.models.schemas import IngestionStrategy, MediaAsset, RemoteAssetHandle
from analyst.services.errors import ValidationError
from analyst.services.ingestion_strategy import (
    DEFAULT_INLINE_LIMIT_BYTES,
    MIB,
    build_content_part,
    select_strategy,
    validate_asset,
)


def _asset(size_bytes: int, mime_type: str = "video/mp4") -> MediaAsset:
    return MediaAsset(
        path=Path("/data/match.mp4"),
        size_bytes=size_bytes,
        mime_type=mime_type,
        display_name="match.mp4",
    )


@pytest.mark.parametrize(
    ("size_bytes", "expected"),
    [
        (5 * MIB, IngestionStrategy.INLINE),
        (DEFAULT_INLINE_LIMIT_BYTES, IngestionStrategy.INLINE),
        (DEFAULT_INLINE_LIMIT_BYTES + 1, IngestionStrategy.REMOTE),
        (50 * MIB, IngestionStrategy.REMOTE),
    ],
)
def test_select_strategy_threshold(size_bytes: int, expected: IngestionStrategy) -> None:
    assert select_strategy(_asset(size_bytes)) == expected


def test_validate_rejects_file_over_ceiling() -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate_asset(_asset(2001 * MIB))

    assert exc_info.value.reason == "validation"
    assert "File too large (2001.0MB)." == exc_info.value.message
    assert "2000MB" in exc_info.value.detail


def test_validate_accepts_file_at_ceiling() -> None:
    validate_asset(_asset(2000 * MIB))


def test_validate_rejects_empty_and_untyped_files() -> None:
    with pytest.raises(ValidationError):
        validate_asset(_asset(0))

    with pytest.raises(ValidationError, match="Unknown media type"):
        validate_asset(_asset(MIB, mime_type=""))

    with pytest.raises(ValidationError, match="Unsupported media type"):
        validate_asset(_asset(MIB, mime_type="application/pdf"))


def test_media_asset_from_path(make_media_file: Callable[..., Path]) -> None:
    path = make_media_file("derby.mkv", 3 * MIB)

    asset = MediaAsset.from_path(path)

    assert asset.size_bytes == 3 * MIB
    assert asset.mime_type == "video/x-matroska"
    assert asset.display_name == "derby.mkv"
    assert asset.size_mb == 3.0


def test_media_asset_from_missing_path(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        MediaAsset.from_path(tmp_path / "missing.mp4")


def test_inline_content_part_is_base64(make_media_file: Callable[..., Path]) -> None:
    path = make_media_file("clip.mp4", 16)
    path.write_bytes(b"0123456789abcdef")
    asset = MediaAsset.from_path(path)

    part = asyncio.run(build_content_part(asset, IngestionStrategy.INLINE))

    assert part == {
        "inlineData": {
            "mimeType": "video/mp4",
            "data": base64.b64encode(b"0123456789abcdef").decode("ascii"),
        },
    }


def test_remote_content_part_references_uri() -> None:
    asset = _asset(50 * MIB)
    handle = RemoteAssetHandle(name="files/abc", uri="https://gemini.test/v1beta/files/abc")

    part = asyncio.run(build_content_part(asset, IngestionStrategy.REMOTE, handle))

    assert part == {
        "fileData": {"mimeType": "video/mp4", "fileUri": "https://gemini.test/v1beta/files/abc"},
    }


def test_remote_content_part_requires_handle() -> None:
    with pytest.raises(ValueError):
        asyncio.run(build_content_part(_asset(50 * MIB), IngestionStrategy.REMOTE))

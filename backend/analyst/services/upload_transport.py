"""
Resumable upload protocol for large media files.

Two phases against the Gemini Files API:
1. begin_upload: POST session start, server answers with a session URL
   in the x-goog-upload-url header
2. transfer_bytes: PUT the whole file to that URL as "upload, finalize"

A session URL is single-use. Nothing here retries; a caller that wants
another attempt must start over from begin_upload.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator

import httpx

from analyst.models.schemas import AssetState, MediaAsset, RemoteAssetHandle
from analyst.services.ai_clients import GeminiClient
from analyst.services.errors import ProtocolError

logger = logging.getLogger(__name__)

SESSION_URL_HEADER = "x-goog-upload-url"
TRANSFER_CHUNK_SIZE = 8 * 1024 * 1024


@dataclass
class UploadSession:
    """
    Open resumable upload session.

    Attributes:
        upload_url: Capability URL valid for one byte transfer
        total_bytes: Byte length declared at session start
        mime_type: Content type declared at session start
        consumed: Set once transfer_bytes has used the session
    """

    upload_url: str
    total_bytes: int
    mime_type: str
    consumed: bool = False


async def iter_file_chunks(
    path: Path,
    chunk_size: int = TRANSFER_CHUNK_SIZE,
) -> AsyncIterator[bytes]:
    """
    Stream a file from disk without loading it into memory.

    Reads run in a worker thread so the event loop stays responsive.
    """
    with open(path, "rb") as f:
        while True:
            chunk = await asyncio.to_thread(f.read, chunk_size)
            if not chunk:
                break
            yield chunk


class ChunkedUploadTransport:
    """
    Client side of the resumable upload protocol.

    Example:
        async with GeminiClient.from_settings(settings) as client:
            transport = ChunkedUploadTransport(client)
            session = await transport.begin_upload(asset)
            handle = await transport.transfer_bytes(session, asset)
    """

    def __init__(self, client: GeminiClient):
        """
        Initialize upload transport.

        Args:
            client: Gemini client providing the HTTP connection and endpoints
        """
        self.client = client
        self._open_session: UploadSession | None = None

    async def upload(self, asset: MediaAsset) -> RemoteAssetHandle:
        """Run both protocol phases for an asset."""
        session = await self.begin_upload(asset)
        return await self.transfer_bytes(session, asset)

    async def begin_upload(self, asset: MediaAsset) -> UploadSession:
        """
        Start a resumable upload session.

        Args:
            asset: Media file to upload

        Returns:
            UploadSession holding the session URL

        Raises:
            ProtocolError: Non-2xx answer, missing session URL, or
                another session is still open
        """
        if self._open_session is not None:
            raise ProtocolError(
                "An upload session is already open",
                detail=self._open_session.upload_url,
            )

        logger.info(f"Starting upload session: {asset.display_name} ({asset.size_mb} MB)")

        try:
            response = await self.client.http_client.post(
                self.client.upload_url,
                headers={
                    "X-Goog-Upload-Protocol": "resumable",
                    "X-Goog-Upload-Command": "start",
                    "X-Goog-Upload-Header-Content-Length": str(asset.size_bytes),
                    "X-Goog-Upload-Header-Content-Type": asset.mime_type,
                },
                json={"file": {"display_name": asset.display_name}},
                timeout=self.client.config.timeout,
            )
        except httpx.HTTPError as e:
            raise ProtocolError(
                "Upload init failed: no response",
                detail=f"{type(e).__name__}: {e}",
            ) from e

        if not response.is_success:
            raise ProtocolError(
                f"Upload init failed ({response.status_code})",
                detail=response.text[:1000],
                status_code=response.status_code,
            )

        upload_url = response.headers.get(SESSION_URL_HEADER)
        if not upload_url:
            raise ProtocolError(
                "No upload URL returned by the upload endpoint",
                status_code=response.status_code,
            )

        session = UploadSession(
            upload_url=upload_url,
            total_bytes=asset.size_bytes,
            mime_type=asset.mime_type,
        )
        self._open_session = session
        logger.debug(f"Upload session opened for {asset.display_name}")
        return session

    async def transfer_bytes(
        self,
        session: UploadSession,
        asset: MediaAsset,
    ) -> RemoteAssetHandle:
        """
        Send the whole file to the session URL and finalize the upload.

        Args:
            session: Session returned by begin_upload
            asset: Same media file the session was opened for

        Returns:
            RemoteAssetHandle with server-assigned name and URI

        Raises:
            ProtocolError: Session reuse, non-2xx answer or a body
                without file name/uri
        """
        if session.consumed:
            raise ProtocolError(
                "Upload session already used",
                detail="A failed transfer needs a new session",
            )
        session.consumed = True

        start_time = time.time()

        try:
            response = await self.client.http_client.put(
                session.upload_url,
                headers={
                    "Content-Length": str(session.total_bytes),
                    "X-Goog-Upload-Offset": "0",
                    "X-Goog-Upload-Command": "upload, finalize",
                },
                content=iter_file_chunks(asset.path),
                timeout=self.client.config.upload_timeout,
            )
        except httpx.HTTPError as e:
            raise ProtocolError(
                "Upload bytes failed: no response",
                detail=f"{type(e).__name__}: {e}",
            ) from e
        finally:
            if self._open_session is session:
                self._open_session = None

        elapsed = time.time() - start_time
        logger.debug(f"Byte transfer response: {response.status_code}, elapsed: {elapsed:.1f}s")

        if not response.is_success:
            raise ProtocolError(
                f"Upload bytes failed ({response.status_code})",
                detail=response.text[:1000],
                status_code=response.status_code,
            )

        try:
            file_info = response.json()["file"]
            handle = RemoteAssetHandle(
                name=file_info["name"],
                uri=file_info["uri"],
                mime_type=file_info.get("mimeType", asset.mime_type),
                state=file_info.get("state") or AssetState.PROCESSING.value,
            )
        except (ValueError, KeyError, TypeError) as e:
            raise ProtocolError(
                "Upload finalize returned no file name/uri",
                detail=response.text[:1000],
                status_code=response.status_code,
            ) from e

        logger.info(f"Uploaded {asset.display_name} as {handle.name} in {elapsed:.1f}s")
        return handle

"""
HTTP transport.

Sends one file per request as multipart/form-data and reports progress
while the body is streamed.
"""
from typing import Optional, Dict, Any, Mapping, AsyncIterator
import asyncio
import json
import time

import aiofiles
import aiohttp

from .models import FileInfo
from .protocols import ProgressCallback
from ..config import TimeoutConfig
from ..exceptions import TransportError
from ..logging import get_logger


class HttpTransport:
    """
    Uploads files to an HTTP endpoint with aiohttp.

    Reuses HTTP session for all uploads when one is provided.

    Responsibilities:
    - Stream file bytes from disk (aiofiles)
    - Report progress per chunk sent
    - Map HTTP and network failures to TransportError

    Example:
        >>> async with HttpTransport("https://api.example.com/client/upload") as transport:
        ...     queue = UploadQueue(transport)
    """

    DEFAULT_CHUNK_SIZE = 64 * 1024

    def __init__(
        self,
        endpoint: str,
        field_name: str = 'pdf',
        additional_fields: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[TimeoutConfig] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        session: Optional[aiohttp.ClientSession] = None
    ):
        """
        Initialize HTTP transport.

        Args:
            endpoint: Upload URL
            field_name: Form field carrying the file
            additional_fields: Extra form fields sent with every file
            headers: Extra request headers (e.g. Authorization)
            timeout: Request timeouts
            chunk_size: Bytes read per chunk
            session: Optional shared session (RECOMMENDED for performance)
        """
        self._endpoint = endpoint
        self._field_name = field_name
        self._additional_fields = dict(additional_fields or {})
        self._headers = dict(headers or {})
        self._timeout = timeout or TimeoutConfig()
        self._chunk_size = chunk_size
        self._session = session
        self._owns_session = False
        self._logger = get_logger('upload.transport')

    @property
    def endpoint(self) -> str:
        """Returns the upload URL."""
        return self._endpoint

    async def __aenter__(self) -> 'HttpTransport':
        await self._get_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(limit=10, keepalive_timeout=30),
                timeout=self._timeout.to_aiohttp_timeout()
            )
            self._owns_session = True
        return self._session

    async def close(self):
        """Close session if we own it."""
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None
            self._owns_session = False

    async def send(self, file: FileInfo, on_progress: ProgressCallback) -> Mapping[str, Any]:
        """
        Upload a single file.

        Args:
            file: File to upload; file.path must point at the bytes
            on_progress: Called with percent sent after every chunk

        Returns:
            Decoded JSON response body

        Raises:
            ValueError: If file has no path
            TransportError: If the server rejects the file or the network fails
        """
        if file.path is None:
            raise ValueError(f"Cannot upload {file.name}: no local path")

        session = await self._get_session()
        upload_start = time.time()
        self._logger.debug(f"Uploading {file.name} to {self._endpoint} ({file.size} bytes)")

        with aiohttp.MultipartWriter('form-data') as writer:
            for name, value in self._additional_fields.items():
                part = writer.append(str(value))
                part.set_content_disposition('form-data', name=name)
            part = writer.append(
                self._read_chunks(file, on_progress),
                {'Content-Type': file.content_type or 'application/octet-stream'}
            )
            part.set_content_disposition('form-data', name=self._field_name, filename=file.name)

            try:
                async with session.post(self._endpoint, data=writer, headers=self._headers) as response:
                    body = await self._read_body(response)
                    if response.status >= 400:
                        message = self._error_message(response.status, body)
                        self._logger.error(f"{file.name} rejected with HTTP {response.status}: {message}")
                        raise TransportError(message, http_status=response.status)
            except asyncio.TimeoutError:
                upload_time = time.time() - upload_start
                self._logger.error(f"{file.name} upload timeout after {upload_time:.2f}s")
                raise TransportError("Upload timed out", timeout=True)
            except aiohttp.ClientError as e:
                self._logger.error(f"{file.name} upload failed: {e}")
                raise TransportError(str(e) or "Network error")

        upload_time = time.time() - upload_start
        speed_kbps = (file.size / 1024 / upload_time) if upload_time > 0 else 0
        self._logger.debug(f"{file.name} uploaded in {upload_time:.2f}s ({speed_kbps:.1f} KB/s)")

        return body if isinstance(body, Mapping) else {'data': body}

    async def _read_chunks(self, file: FileInfo, on_progress: ProgressCallback) -> AsyncIterator[bytes]:
        """Yield file chunks, reporting progress as each is handed to aiohttp."""
        sent = 0
        async with aiofiles.open(file.path, 'rb') as f:
            while True:
                chunk = await f.read(self._chunk_size)
                if not chunk:
                    break
                sent += len(chunk)
                yield chunk
                if file.size:
                    on_progress(min(sent / file.size * 100, 100.0))
        if not file.size:
            on_progress(100.0)

    @staticmethod
    async def _read_body(response: aiohttp.ClientResponse) -> Any:
        text = await response.text()
        if not text:
            return {}
        try:
            return json.loads(text)
        except ValueError:
            return text

    @staticmethod
    def _error_message(status: int, body: Any) -> str:
        """
        Build a human-readable message for an error response.

        Prefers the server's own message, then well-known statuses.
        """
        if isinstance(body, Mapping):
            message = body.get('message') or body.get('error')
            if message:
                return str(message)
        if status == 413:
            return "File too large"
        if status == 400:
            return "Invalid file"
        return f"HTTP {status}"

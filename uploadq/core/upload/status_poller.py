"""Backend processing status poller."""
import asyncio
from typing import Optional, Dict, Any

import aiohttp

from .models import UploadStatus
from .protocols import StatusReconcilerProtocol
from ..config import TimeoutConfig
from ..logging import get_logger
from ..retry import RetryStrategy, ExponentialBackoffStrategy


class BackendStatusPoller:
    """
    Polls the backend for tasks still processing server-side.

    The queue never polls by itself; this poller is an optional external
    collaborator that feeds on_backend_status_update().

    Example:
        >>> poller = BackendStatusPoller(queue, "https://api.example.com/client/pdfs/{backend_id}/status")
        >>> asyncio.create_task(poller.run(interval=5))
    """

    def __init__(
        self,
        queue: StatusReconcilerProtocol,
        status_url: str,
        headers: Optional[Dict[str, str]] = None,
        retry_strategy: Optional[RetryStrategy] = None,
        timeout: Optional[TimeoutConfig] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        """
        Initializes poller.

        Args:
            queue: Queue to reconcile
            status_url: URL template with a {backend_id} placeholder
            headers: Extra request headers
            retry_strategy: Backoff used after failed polling rounds
            timeout: Request timeouts
            session: Optional shared session
        """
        self._queue = queue
        self._status_url = status_url
        self._headers = dict(headers or {})
        self._retry = retry_strategy or ExponentialBackoffStrategy()
        self._timeout = timeout or TimeoutConfig()
        self._session = session
        self._owns_session = False
        self._logger = get_logger('upload.status_poller')
        self.closed = False

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout.to_aiohttp_timeout())
            self._owns_session = True
        return self._session

    async def fetch_status(self, backend_id: str) -> Dict[str, Any]:
        """Fetches the backend status document for one upload."""
        session = await self._get_session()
        url = self._status_url.format(backend_id=backend_id)
        async with session.get(url, headers=self._headers) as response:
            response.raise_for_status()
            data = await response.json()
        # Some endpoints nest the document under 'pdf'
        if isinstance(data, dict) and isinstance(data.get('pdf'), dict):
            return data['pdf']
        return data

    async def poll_once(self) -> int:
        """
        Polls every processing task once.

        Returns:
            Number of updates applied to the queue

        Raises:
            aiohttp.ClientError: If a status request fails
        """
        applied = 0
        for task in self._queue.get_uploads_by_status(UploadStatus.PROCESSING):
            if not task.backend_id:
                continue
            data = await self.fetch_status(task.backend_id)
            status = data.get('status')
            if not status:
                continue
            if self._queue.on_backend_status_update(task.id, status, data.get('progress')):
                applied += 1
        return applied

    async def run(self, interval: float = 5.0, max_retries: int = 4):
        """Polls until closed, backing off after consecutive failures."""
        failures = 0
        while not self.closed:
            try:
                await self.poll_once()
                failures = 0
                await asyncio.sleep(interval)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if self.closed:
                    return
                decision = self._retry.classify(e)
                if not self._retry.should_retry(decision, failures, max_retries):
                    self._logger.error(f"Status polling stopped: {decision.message}")
                    raise
                delay_ms = self._retry.compute_backoff(failures)
                failures += 1
                self._logger.warning(f"Status polling failed ({decision.message}), retrying in {delay_ms:.0f} ms")
                await asyncio.sleep(delay_ms / 1000)

    async def close(self):
        """Closes poller."""
        self.closed = True
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from paperboy.core.lifecycle import LifecycleGuard
from paperboy.core.task_executor import TaskExecutor, TaskHandle, TaskOutcome
from paperboy.utils.exceptions import NetworkError


class RemoteBytesFetcher:
    """
    Blocking fetch of small remote resources such as favicons.

    Transport errors are retried with exponential backoff; an HTTP error
    status or an empty body is not retried and raises ``NetworkError``.
    Runs on worker threads; one instance may be shared between them.
    """

    def __init__(self,
                 user_agent: str = 'paperboy/0.1',
                 timeout: float = 10.0,
                 max_retries: int = 3,
                 retry_wait: float = 1.0,
                 transport: Optional[httpx.BaseTransport] = None,
                 logger: Optional[Any] = None) -> None:
        """
        Initialize the fetcher.

        Args:
            user_agent: User-Agent header sent with every request
            timeout: Request timeout in seconds
            max_retries: Attempts before a transport error is raised
            retry_wait: Backoff multiplier in seconds
            transport: Optional httpx transport, used by tests
            logger: Logger to use
        """
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self.retry_wait = retry_wait
        self._transport = transport
        self._logger = logger or logging.getLogger('remote_bytes')
        self._client: Optional[httpx.Client] = None
        self._client_lock = threading.Lock()

    @classmethod
    def from_config(cls, config_manager: Any, logger_manager: Any) -> RemoteBytesFetcher:
        """Build a fetcher from the ``network`` configuration section."""
        network_config = config_manager.get('network', {})
        return cls(
            user_agent=network_config.get('user_agent', 'paperboy/0.1'),
            timeout=float(network_config.get('timeout', 10.0)),
            max_retries=int(network_config.get('max_retries', 3)),
            logger=logger_manager.get_logger('remote_bytes'),
        )

    def get_client(self) -> httpx.Client:
        """
        Get the HTTP client, creating it on first use.

        Returns:
            Client instance
        """
        with self._client_lock:
            if self._client is None:
                self._client = httpx.Client(
                    timeout=self.timeout,
                    follow_redirects=True,
                    headers={'User-Agent': self.user_agent},
                    transport=self._transport,
                )
            return self._client

    def fetch(self, url: str) -> bytes:
        """
        Download ``url`` and return its body.

        Args:
            url: Absolute http or https URL

        Returns:
            Response body, never empty

        Raises:
            NetworkError: On a non-200 status, an empty body, or when every
                attempt failed at the transport level
        """
        client = self.get_client()
        retrying = Retrying(
            retry=retry_if_exception_type(httpx.TransportError),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_wait, min=0, max=10),
            reraise=True,
        )

        try:
            for attempt in retrying:
                with attempt:
                    response = client.get(url)
        except httpx.HTTPError as e:
            self._logger.warning(
                f'Request error for {url}: {str(e)}',
                extra={'url': url, 'attempts': self.max_retries}
            )
            raise NetworkError(f'Failed to fetch {url}: {str(e)}', url=url) from e

        if response.status_code != 200:
            raise NetworkError(
                f'Unexpected status {response.status_code} for {url}',
                url=url,
                status_code=response.status_code
            )
        if not response.content:
            raise NetworkError(f'Empty response body for {url}', url=url, status_code=response.status_code)

        self._logger.debug(f'Fetched {len(response.content)} bytes from {url}')
        return response.content

    def close(self) -> None:
        """Close the HTTP client."""
        with self._client_lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    def __enter__(self) -> RemoteBytesFetcher:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class FaviconLoader:
    """Fetches icon bytes off the UI thread and hands them back through the router."""

    def __init__(self, executor: TaskExecutor, fetcher: RemoteBytesFetcher, logger: Optional[Any] = None) -> None:
        self._executor = executor
        self._fetcher = fetcher
        self._logger = logger or logging.getLogger('favicon_loader')
        self._failures: Dict[str, str] = {}

    def load(self,
             url: str,
             on_bytes: Callable[[bytes], None],
             guard: Optional[LifecycleGuard] = None,
             on_error: Optional[Callable[[str], None]] = None) -> TaskHandle:
        """
        Fetch ``url`` on a worker and pass the bytes to ``on_bytes`` on the UI thread.

        Nothing is delivered once ``guard`` has been invalidated, so a closed
        view never receives an icon.

        Args:
            url: Icon URL
            on_bytes: UI-thread callback receiving the raw bytes
            guard: Guard of the view that will display the icon
            on_error: Optional UI-thread callback receiving the failure message

        Returns:
            Handle of the fetch task
        """

        def handle_outcome(outcome: TaskOutcome[bytes]) -> None:
            if outcome.ok:
                self._failures.pop(url, None)
                on_bytes(outcome.value)
                return
            self._failures[url] = outcome.error or 'unknown error'
            self._logger.debug(f'Icon fetch failed for {url}: {outcome.error}')
            if on_error is not None:
                on_error(outcome.error or 'unknown error')

        return self._executor.submit(
            lambda: self._fetcher.fetch(url),
            handle_outcome,
            guard=guard,
            name='favicon',
        )

    def last_error(self, url: str) -> Optional[str]:
        """Failure message of the most recent unsuccessful fetch of ``url``."""
        return self._failures.get(url)

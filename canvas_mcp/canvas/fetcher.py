"""
Single-request HTTP fetcher for the Canvas API.

Each request gets a hard wall-clock budget. The connect/read timeouts
handed to requests only bound individual socket operations, so a timer
runs alongside every request and, when it fires, shuts down the sockets
the request opened. Whatever the request was blocked on (headers or body)
fails at once and is reported as a timeout.

Every request uses its own session, so nothing is shared between the
worker threads that call ``fetch`` concurrently.
"""

import logging
import math
import socket
import threading
from typing import Callable, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool

from .errors import CanvasTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 15000


def normalize_timeout_ms(timeout_ms) -> int:
    """Return a positive integer timeout, falling back to the default."""
    if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, (int, float)):
        return DEFAULT_TIMEOUT_MS
    if not math.isfinite(timeout_ms) or timeout_ms <= 0:
        return DEFAULT_TIMEOUT_MS
    return max(1, int(timeout_ms))


def _tracking_pool(pool_cls, track: Callable):
    class TrackingPool(pool_cls):
        def _new_conn(self):
            conn = super()._new_conn()
            track(conn)
            return conn

    return TrackingPool


class CancellableAdapter(HTTPAdapter):
    """
    Transport adapter that can abort its in-flight connections.

    Every connection the adapter's pools create is remembered; ``cancel()``
    shuts their sockets down, which wakes any thread blocked reading them.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._connections = []
        self.cancelled = False
        super().__init__()

    def init_poolmanager(self, *args, **kwargs):
        super().init_poolmanager(*args, **kwargs)
        self.poolmanager.pool_classes_by_scheme = {
            "http": _tracking_pool(HTTPConnectionPool, self._track),
            "https": _tracking_pool(HTTPSConnectionPool, self._track),
        }

    def _track(self, conn) -> None:
        with self._lock:
            self._connections.append(conn)

    def cancel(self) -> None:
        with self._lock:
            self.cancelled = True
            connections = list(self._connections)

        for conn in connections:
            sock = getattr(conn, "sock", None)
            if sock is None:
                continue
            try:
                # plain socket shutdown: TLS state belongs to the reading thread
                socket.socket.shutdown(sock, socket.SHUT_RDWR)
            except OSError as e:
                logger.debug(f"Connection already closed: {e!r}")


class HttpFetcher:
    """
    Authenticated GET requests with a wall-clock timeout.

    Usage:
        fetcher = HttpFetcher(access_token="...", timeout_ms=15000)
        response = fetcher.fetch("https://canvas.example.com/api/v1/courses")
    """

    def __init__(
        self,
        access_token: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ):
        """
        Initialize fetcher.

        Args:
            access_token: Canvas Personal Access Token (never logged)
            timeout_ms: Wall-clock budget per request in milliseconds
            session_factory: Builds the per-request session (used by tests)
        """
        self.timeout_ms = normalize_timeout_ms(timeout_ms)
        self._access_token = access_token
        self._session_factory = session_factory

    def __repr__(self) -> str:
        """Never expose token in repr."""
        return f"HttpFetcher(timeout_ms={self.timeout_ms})"

    def _open_session(self, adapter: CancellableAdapter) -> requests.Session:
        session = self._session_factory()
        session.headers.update({
            "Authorization": f"Bearer {self._access_token}",
            "Accept": "application/json",
        })
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    def fetch(self, url: str, params: Optional[dict] = None) -> requests.Response:
        """
        Perform one GET request bounded by ``timeout_ms``.

        The returned response has its body fully read. Status codes are not
        checked here; callers decide what a non-2xx means for them.

        Raises:
            CanvasTimeoutError: If the budget runs out before the body is read
            requests.RequestException: Any other transport failure, unchanged
        """
        budget = self.timeout_ms / 1000
        adapter = CancellableAdapter()
        session = self._open_session(adapter)

        timer = threading.Timer(budget, adapter.cancel)
        timer.daemon = True
        timer.start()
        try:
            response = session.get(url, params=params, timeout=budget)
        except requests.exceptions.RequestException as e:
            if adapter.cancelled or isinstance(e, requests.exceptions.Timeout):
                logger.warning(f"Canvas request timed out after {self.timeout_ms}ms")
                raise CanvasTimeoutError(self.timeout_ms) from e
            raise
        finally:
            timer.cancel()
            session.close()

        if adapter.cancelled:
            # a body cut short without a length check still looks complete
            logger.warning(f"Canvas response body exceeded {self.timeout_ms}ms")
            raise CanvasTimeoutError(self.timeout_ms)

        return response

"""HTTP utilities for talking to the remote backend.

Provides:
- Retry policy wiring for urllib3
- A pooled ``requests.Session`` with default headers
- Extraction of the backend's error message from a failed response
"""

from typing import Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry as URLRetry


class RetryStrategy:
    """Defines retry behavior for HTTP requests."""

    def __init__(self, max_retries: int = 3, backoff_factor: float = 0.5,
                 status_forcelist: Optional[List[int]] = None,
                 allowed_methods: Optional[List[str]] = None):
        """Initialize retry strategy.

        Args:
            max_retries: Maximum number of retry attempts (default: 3)
            backoff_factor: Exponential backoff multiplier (default: 0.5)
            status_forcelist: HTTP status codes to retry on
                            (default: [429, 500, 502, 503, 504])
            allowed_methods: Methods that may be retried. Defaults to the
                            idempotent reads only; POSTs to the change-estado
                            procedure must never be replayed.
        """
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.status_forcelist = status_forcelist or [429, 500, 502, 503, 504]
        self.allowed_methods = allowed_methods or ["GET", "HEAD"]

    def get_retry_object(self) -> URLRetry:
        """Get urllib3 Retry object configured with this strategy."""
        return URLRetry(
            total=self.max_retries,
            backoff_factor=self.backoff_factor,
            status_forcelist=self.status_forcelist,
            allowed_methods=self.allowed_methods,
            raise_on_status=False,
        )


class SessionManager:
    """Manages HTTP sessions with connection pooling and retries."""

    def __init__(self, retry_strategy: Optional[RetryStrategy] = None,
                 pool_connections: int = 10, pool_maxsize: int = 20,
                 headers: Optional[Dict[str, str]] = None):
        """Initialize session manager.

        Args:
            retry_strategy: RetryStrategy to use (default: standard strategy)
            pool_connections: Number of connection pools to cache
            pool_maxsize: Maximum number of connections per pool
            headers: Headers sent with every request
        """
        self.retry_strategy = retry_strategy or RetryStrategy()
        self.pool_connections = pool_connections
        self.pool_maxsize = pool_maxsize
        self.headers = dict(headers or {})
        self._session: Optional[requests.Session] = None

    @property
    def session(self) -> requests.Session:
        """Get or create HTTP session with retries and pooling."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update(self.headers)

            retry = self.retry_strategy.get_retry_object()
            adapter = HTTPAdapter(
                max_retries=retry,
                pool_connections=self.pool_connections,
                pool_maxsize=self.pool_maxsize
            )
            self._session.mount("http://", adapter)
            self._session.mount("https://", adapter)

        return self._session

    def close(self) -> None:
        """Close the session and release resources."""
        if self._session:
            self._session.close()
            self._session = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def error_message(resp: requests.Response) -> str:
    """Best human-readable message from a failed backend response.

    PostgREST and Supabase functions return JSON bodies with a ``message``
    (or ``error`` / ``msg``) field; anything else falls back to the raw text.
    """
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error_description", "error", "msg"):
            if body.get(key):
                return str(body[key])
    text = (resp.text or "").strip()
    return text or f"HTTP {resp.status_code}"

"""HTTP blob fetcher built on requests."""

import time
from typing import Optional, Tuple

import requests

from ..core.error_handling import with_error_handling
from ..core.exceptions import FetchError
from ..core.logging_config import get_logger
from ..core.models import FetchResponse

CHUNK_SIZE = 65536


class RequestsBlobFetcher:
    """
    Downloads blobs over HTTP.

    ``timeout`` is passed to requests as the (connect, read) socket timeout.
    Their sum is also a deadline for the whole download. The body is read one
    socket read at a time and the deadline is checked after each, so a server
    trickling bytes cannot hold a worker past it.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: Tuple[float, float] = (5.0, 30.0),
        chunk_size: int = CHUNK_SIZE,
    ):
        self._session = session or requests.Session()
        self.timeout = timeout
        self.chunk_size = chunk_size

    @property
    def deadline_seconds(self) -> float:
        return float(sum(self.timeout))

    @with_error_handling
    def fetch(self, url: str) -> FetchResponse:
        get_logger("http").debug(f"GET {url}")
        deadline = time.monotonic() + self.deadline_seconds
        response = self._session.get(url, timeout=self.timeout, stream=True)
        try:
            chunks = []
            # read1 returns after a single read, however few bytes arrived.
            while True:
                chunk = response.raw.read1(self.chunk_size, decode_content=True)
                if not chunk:
                    break
                chunks.append(chunk)
                if time.monotonic() > deadline:
                    raise FetchError(
                        f"download exceeded {self.deadline_seconds:.1f}s deadline"
                    )
        finally:
            response.close()

        return FetchResponse(
            body=b"".join(chunks),
            content_type=response.headers.get("Content-Type", ""),
            status_code=response.status_code,
        )

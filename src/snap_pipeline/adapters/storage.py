"""S3-backed object store with collision-free object naming."""

import threading
import time
from typing import TYPE_CHECKING, Any, Callable, Optional, Tuple

from ..core.error_handling import with_error_handling
from ..core.image_utils import calculate_object_key
from ..core.logging_config import get_logger

if TYPE_CHECKING:
    from mypy_boto3_s3.client import S3Client
else:
    S3Client = Any


class UniqueNameGenerator:
    """
    Issues ``<token>_<name>`` names where the token is a nanosecond timestamp.

    Tokens are strictly increasing within a process, so two uploads of the
    same name never collide even when the clock does not advance between them.
    """

    def __init__(self, clock: Callable[[], int] = time.time_ns):
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def next_token(self) -> int:
        with self._lock:
            token = max(self._clock(), self._last + 1)
            self._last = token
            return token

    def __call__(self, name: str) -> str:
        return f"{self.next_token()}_{name}"


class S3ObjectStore:
    """Object store writing to one S3 bucket under a fixed prefix."""

    def __init__(
        self,
        s3_client: S3Client,
        bucket: str,
        prefix: str = "images/",
        public_base_url: Optional[str] = None,
        name_generator: Optional[UniqueNameGenerator] = None,
    ):
        self._s3_client = s3_client
        self.bucket = bucket
        self.prefix = prefix
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self._name_generator = name_generator or UniqueNameGenerator()

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    @with_error_handling
    def put(
        self, body: bytes, name_hint: str, content_type: str = "image/jpeg"
    ) -> Tuple[str, str]:
        """
        Upload ``body`` under a unique name derived from ``name_hint``.

        Returns:
            Tuple of (public URL, stored name)
        """
        stored_name = self._name_generator(name_hint)
        key = calculate_object_key(self.prefix, stored_name)
        get_logger("storage").debug(f"Uploading to s3://{self.bucket}/{key}")
        self._s3_client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=body,
            ContentType=content_type,
        )
        return self.public_url(key), stored_name

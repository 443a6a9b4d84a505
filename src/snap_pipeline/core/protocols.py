"""Protocol definitions for dependency injection and testability."""

from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple, TypeVar

from .filters import FilterPipeline
from .models import FetchResponse, ImageRecord, ItemResult, SourceImage, UploadFile

T = TypeVar("T")


class ImageIndexProtocol(Protocol):
    """Lookup of previously uploaded images by their public location."""

    def find_by_location(self, url: str) -> Optional[ImageRecord]:
        """Return the record whose original location is ``url``, or None."""
        ...


class BlobFetcherProtocol(Protocol):
    """Retrieval of raw bytes from a public location."""

    def fetch(self, url: str) -> FetchResponse:
        """Fetch the blob at ``url``."""
        ...


class ObjectStoreProtocol(Protocol):
    """Write-only object storage that assigns unique names."""

    def put(
        self, body: bytes, name_hint: str, content_type: str = "image/jpeg"
    ) -> Tuple[str, str]:
        """Store ``body``; return ``(public_url, stored_name)``."""
        ...


class MetadataStoreProtocol(Protocol):
    """Insert-only store for image metadata rows."""

    def insert(
        self, owner_id: int, filename: str, location: str, status: str
    ) -> ImageRecord:
        """Insert one metadata row."""
        ...


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log debug message."""
        ...

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log info message."""
        ...

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log warning message."""
        ...

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log error message."""
        ...


class ProcessingService(ABC):
    """Abstract per-item worker applying a filter pipeline."""

    @abstractmethod
    def process(self, source: SourceImage, pipeline: FilterPipeline) -> ItemResult:
        """Process a single image; never raises."""
        ...


class UploadService(ABC):
    """Abstract per-item worker storing a raw file."""

    @abstractmethod
    def upload(self, file: UploadFile, index: int = 0) -> ItemResult:
        """Upload a single file; never raises."""
        ...


class BatchProcessor(ABC):
    """Abstract fan-out strategy for a batch of independent items."""

    @abstractmethod
    def process_batch(
        self,
        items: Sequence[T],
        task: Callable[[T], ItemResult],
        on_error: Callable[[T, Exception], ItemResult],
    ) -> List[ItemResult]:
        """Run ``task`` on every item and return all results."""
        ...

"""Service implementations for the snap pipeline."""

import time
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from PIL import Image

from .error_handling import BatchOperationContextManager
from .exceptions import (
    ConfigurationError,
    Constraint,
    DecodeError,
    FetchError,
    Stage,
    StoreError,
    UploadError,
    ValidationError,
)
from .filters import FilterPipeline
from .image_utils import (
    JPEG_QUALITY,
    apply_pipeline,
    decode_image,
    encode_image,
    processed_filename,
)
from .models import (
    BatchOutcome,
    ItemFailure,
    ItemResult,
    ItemSuccess,
    RecordError,
    SourceImage,
    UploadFile,
)
from .observability import LogContext, MetricsCollector, PerformanceMetrics
from .protocols import (
    BatchProcessor,
    BlobFetcherProtocol,
    ImageIndexProtocol,
    LoggerProtocol,
    MetadataStoreProtocol,
    ObjectStoreProtocol,
    ProcessingService,
    UploadService,
)
from .resolver import MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH, resolve

T = TypeVar("T")

RECORD_STATUS = "completed"


class ImageProcessorService:
    """Pure image processing service with no I/O dependencies."""

    def __init__(
        self,
        max_width: int = MAX_IMAGE_WIDTH,
        max_height: int = MAX_IMAGE_HEIGHT,
        quality: int = JPEG_QUALITY,
    ):
        self.max_width = max_width
        self.max_height = max_height
        self.quality = quality

    def decode(self, data: bytes) -> Image.Image:
        """Decode and size-check image bytes."""
        if not data:
            raise DecodeError("empty image body")
        return decode_image(data, self.max_width, self.max_height)

    def apply(self, image: Image.Image, pipeline: FilterPipeline) -> Image.Image:
        """Apply a filter pipeline to a decoded image."""
        return apply_pipeline(image, pipeline)

    def encode(self, image: Image.Image) -> bytes:
        """Encode a processed image as JPEG."""
        return encode_image(image, self.quality)


def _correlation_id(prefix: str, index: int) -> str:
    return f"{prefix}_{index}_{uuid.uuid4().hex[:8]}"


def _put(store: ObjectStoreProtocol, data: bytes, *args) -> Tuple[str, str]:
    try:
        return store.put(data, *args)
    except StoreError as e:
        raise UploadError(str(e)) from e


class ImageProcessingService(ProcessingService):
    """Per-item worker: fetch, decode, filter, encode and upload one image."""

    def __init__(
        self,
        index: ImageIndexProtocol,
        fetcher: BlobFetcherProtocol,
        store: ObjectStoreProtocol,
        image_processor: ImageProcessorService,
        logger: LoggerProtocol,
        metrics_collector: Optional[MetricsCollector] = None,
        base_filename: str = "processed_image",
    ):
        self._index = index
        self._fetcher = fetcher
        self._store = store
        self._image_processor = image_processor
        self._logger = logger
        self._metrics_collector = metrics_collector
        self._base_filename = base_filename

    def _fetch(self, url: str, log_context: LogContext) -> bytes:
        self._logger.debug("Looking up source image", log_context.with_operation("lookup_image"))
        if self._index.find_by_location(url) is None:
            raise FetchError("image not found")

        self._logger.debug("Downloading image", log_context.with_operation("download_image"))
        response = self._fetcher.fetch(url)
        if not 200 <= response.status_code < 300:
            raise FetchError(f"received status code {response.status_code}")
        if not response.content_type.startswith("image/"):
            raise FetchError("URL does not point to an image")
        return response.body

    def process(self, source: SourceImage, pipeline: FilterPipeline) -> ItemResult:
        """Process a single image. Every error becomes an ItemFailure."""
        start_time = time.time()
        log_context = LogContext(
            correlation_id=_correlation_id("img", source.index),
            operation="process_image",
            component="image_processing_service",
        ).with_metadata(source=source.url, filters=",".join(pipeline.names()))

        stage = Stage.FETCH
        try:
            image_bytes = self._fetch(source.url, log_context)

            stage = Stage.DECODE
            image = self._image_processor.decode(image_bytes)
            self._logger.debug(
                f"Image decoded: {image.width}x{image.height}",
                log_context.with_operation("decode_image"),
            )

            stage = Stage.FILTER
            self._logger.debug(
                f"Applying {len(pipeline)} filter(s)",
                log_context.with_operation("apply_filters"),
            )
            processed = self._image_processor.apply(image, pipeline)

            stage = Stage.ENCODE
            data = self._image_processor.encode(processed)

            stage = Stage.UPLOAD
            self._logger.debug("Uploading processed image", log_context.with_operation("upload_image"))
            location, name = _put(
                self._store, data, processed_filename(self._base_filename, source.index)
            )
        except Exception as e:
            result: ItemResult = ItemFailure(
                source=source.url,
                stage=stage,
                reason=str(e),
                index=source.index,
                processing_time=time.time() - start_time,
            )
            self._logger.error(
                "Image processing failed",
                log_context.with_metadata(
                    stage=stage.value, error=str(e), error_type=type(e).__name__
                ),
            )
        else:
            result = ItemSuccess(
                source=source.url,
                location=location,
                name=name,
                index=source.index,
                processing_time=time.time() - start_time,
            )
            self._logger.info(
                "Successfully processed image",
                log_context,
                processing_time_ms=result.processing_time * 1000,
            )

        self._record_metric("process_image", start_time, result)
        return result

    def _record_metric(self, operation: str, start_time: float, result: ItemResult):
        if self._metrics_collector is None:
            return
        self._metrics_collector.record_metric(
            PerformanceMetrics(
                operation=operation,
                start_time=start_time,
                end_time=time.time(),
                success=result.success,
                stage=None if result.success else result.stage.value,
                error_message=None if result.success else result.reason,
            )
        )


class RawUploadService(UploadService):
    """Per-item worker storing one raw file after checking it is an image."""

    def __init__(
        self,
        store: ObjectStoreProtocol,
        image_processor: ImageProcessorService,
        logger: LoggerProtocol,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self._store = store
        self._image_processor = image_processor
        self._logger = logger
        self._metrics_collector = metrics_collector

    def upload(self, file: UploadFile, index: int = 0) -> ItemResult:
        start_time = time.time()
        log_context = LogContext(
            correlation_id=_correlation_id("upload", index),
            operation="upload_file",
            component="raw_upload_service",
        ).with_metadata(filename=file.filename)

        stage = Stage.DECODE
        try:
            self._image_processor.decode(file.body)

            stage = Stage.UPLOAD
            location, name = _put(self._store, file.body, file.filename, file.content_type)
        except Exception as e:
            result: ItemResult = ItemFailure(
                source=file.filename,
                stage=stage,
                reason=str(e),
                index=index,
                processing_time=time.time() - start_time,
            )
            self._logger.error(
                "File upload failed",
                log_context.with_metadata(
                    stage=stage.value, error=str(e), error_type=type(e).__name__
                ),
            )
        else:
            result = ItemSuccess(
                source=file.filename,
                location=location,
                name=name,
                index=index,
                processing_time=time.time() - start_time,
            )
            self._logger.info("Successfully uploaded file", log_context, location=location)

        if self._metrics_collector is not None:
            self._metrics_collector.record_metric(
                PerformanceMetrics(
                    operation="upload_file",
                    start_time=start_time,
                    end_time=time.time(),
                    success=result.success,
                    stage=None if result.success else result.stage.value,
                )
            )
        return result


class BatchCoordinator:
    """Fans a batch out to a worker and joins on every item."""

    def __init__(
        self,
        batch_processor: BatchProcessor,
        logger: LoggerProtocol,
        worker: Optional[ProcessingService] = None,
    ):
        self._batch_processor = batch_processor
        self._logger = logger
        self._worker = worker

    def run(self, sources: Sequence[SourceImage], pipeline: FilterPipeline) -> BatchOutcome:
        """Apply ``pipeline`` to every source; results are in completion order."""
        if self._worker is None:
            raise ConfigurationError("BatchCoordinator.run needs a processing worker")
        return self.collect(
            sources,
            lambda source: self._worker.process(source, pipeline),
            lambda source: (source.url, source.index),
            "Filter batch",
        )

    def collect(
        self,
        items: Sequence[T],
        task: Callable[[T], ItemResult],
        describe: Callable[[T], Tuple[str, int]],
        operation_name: str,
    ) -> BatchOutcome:
        """
        Run ``task`` over ``items`` through the batch processor.

        Args:
            items: Work items
            task: Per-item worker call
            describe: Maps an item to ``(source, index)`` for failures that
                escape the worker
            operation_name: Name used in the batch summary log

        Returns:
            BatchOutcome without record errors
        """
        start_time = time.time()
        if not items:
            self._logger.info(f"{operation_name}: nothing to do")
            return BatchOutcome()

        def on_error(item: T, exc: Exception) -> ItemResult:
            source, index = describe(item)
            return ItemFailure(source=source, stage=Stage.UNKNOWN, reason=str(exc), index=index)

        with BatchOperationContextManager(operation_name) as batch:
            results = self._batch_processor.process_batch(items, task, on_error)
            for result in results:
                if not result.success:
                    batch.add_error(f"[{result.stage.value}] {result.reason}", result.source)

        outcome = BatchOutcome(results=results, processing_time=time.time() - start_time)
        self._logger.info(
            f"{operation_name} finished",
            total=outcome.total,
            succeeded=outcome.succeeded,
            failed=outcome.failed,
        )
        return outcome


class PersistenceRecorder:
    """Writes one metadata row per successful upload, concurrently."""

    def __init__(
        self,
        store: MetadataStoreProtocol,
        logger: LoggerProtocol,
        max_workers: int = 8,
    ):
        self._store = store
        self._logger = logger
        self._max_workers = max_workers

    def record_all(self, successes: Sequence[ItemSuccess], owner_id: int) -> List[RecordError]:
        """
        Insert a row for every success; a failed insert affects only its own item.

        Blobs of items whose insert fails stay in object storage.
        """
        if not successes:
            return []

        errors: List[RecordError] = []
        workers = min(self._max_workers, len(successes))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="snap-recorder") as executor:
            future_to_success = {
                executor.submit(
                    self._store.insert, owner_id, success.name, success.location, RECORD_STATUS
                ): success
                for success in successes
            }
            for future in as_completed(future_to_success):
                success = future_to_success[future]
                try:
                    future.result()
                except Exception as e:
                    errors.append(
                        RecordError(location=success.location, name=success.name, reason=str(e))
                    )
                    self._logger.error(
                        f"Failed to record {success.name}: {e}", location=success.location
                    )

        self._logger.info(
            f"Recorded {len(successes) - len(errors)} of {len(successes)} image(s)",
            owner_id=owner_id,
        )
        return errors


class FilterBatchService:
    """Entry point for filter requests: validate, resolve, process, record."""

    def __init__(
        self,
        coordinator: BatchCoordinator,
        recorder: PersistenceRecorder,
        logger: LoggerProtocol,
    ):
        self._coordinator = coordinator
        self._recorder = recorder
        self._logger = logger

    def apply_filters(
        self, image_urls: Sequence[str], params: Mapping[str, str], owner_id: int
    ) -> BatchOutcome:
        """
        Apply the filters named in ``params`` to every image in ``image_urls``.

        Raises:
            ValidationError: when no image URL is given or the filter
                parameters are invalid; no image is processed in that case.
        """
        urls = [url for url in image_urls if url]
        if not urls:
            raise ValidationError("image_url is required", constraint=Constraint.MISSING)

        pipeline = resolve(params)
        self._logger.info(
            f"Applying {', '.join(pipeline.names())} to {len(urls)} image(s)",
            owner_id=owner_id,
        )

        sources = [SourceImage(url=url, index=index) for index, url in enumerate(urls)]
        outcome = self._coordinator.run(sources, pipeline)
        record_errors = self._recorder.record_all(outcome.successes(), owner_id)
        return outcome.model_copy(update={"record_errors": record_errors})


class UploadBatchService:
    """Entry point for raw uploads: store files concurrently and record them."""

    def __init__(
        self,
        uploader: UploadService,
        coordinator: BatchCoordinator,
        recorder: PersistenceRecorder,
        logger: LoggerProtocol,
    ):
        self._uploader = uploader
        self._coordinator = coordinator
        self._recorder = recorder
        self._logger = logger

    def upload_files(self, files: Sequence[UploadFile], owner_id: int) -> BatchOutcome:
        """
        Upload every file and record the successful ones.

        Raises:
            ValidationError: when ``files`` is empty.
        """
        if not files:
            raise ValidationError("no files provided", constraint=Constraint.MISSING)

        self._logger.info(f"Uploading {len(files)} file(s)", owner_id=owner_id)
        outcome = self._coordinator.collect(
            list(enumerate(files)),
            lambda pair: self._uploader.upload(pair[1], pair[0]),
            lambda pair: (pair[1].filename, pair[0]),
            "Upload batch",
        )
        record_errors = self._recorder.record_all(outcome.successes(), owner_id)
        return outcome.model_copy(update={"record_errors": record_errors})

"""Factory classes for creating configured service instances."""

from typing import Any, Optional

import boto3
from botocore.config import Config

from ..adapters.database import SqlImageStore
from ..adapters.http import RequestsBlobFetcher
from ..adapters.storage import S3ObjectStore
from ..processors.multithread import ThreadPoolBatchProcessor
from ..processors.serial import SerialBatchProcessor
from .exceptions import ConfigurationError
from .logging_config import setup_logger
from .models import PipelineConfig
from .observability import MetricsCollector, StructuredLogger
from .protocols import (
    BatchProcessor,
    BlobFetcherProtocol,
    ImageIndexProtocol,
    LoggerProtocol,
    MetadataStoreProtocol,
    ObjectStoreProtocol,
)
from .services import (
    BatchCoordinator,
    FilterBatchService,
    ImageProcessingService,
    ImageProcessorService,
    PersistenceRecorder,
    RawUploadService,
    UploadBatchService,
)


class LoggerFactory:
    """Factory for creating logger instances."""

    @staticmethod
    def create_logger(name: str = "snap-pipeline", level: Optional[str] = None) -> LoggerProtocol:
        """Create a configured structured logger."""
        return StructuredLogger(setup_logger(name, level))


class S3ClientFactory:
    """Factory for creating S3 client instances."""

    @staticmethod
    def create_s3_client(config: PipelineConfig, **kwargs: Any):
        """Create an S3 client with bounded timeouts and no automatic retries."""
        client_config = Config(
            connect_timeout=config.connect_timeout,
            read_timeout=config.upload_timeout,
            retries={"total_max_attempts": 1},
        )
        session = boto3.Session()
        return session.client("s3", config=client_config, **kwargs)


class BatchProcessorFactory:
    """Factory for the fan-out strategy named in the config."""

    @staticmethod
    def create(config: PipelineConfig) -> BatchProcessor:
        if config.processor == "serial":
            return SerialBatchProcessor()
        if config.processor == "multithread":
            return ThreadPoolBatchProcessor(config.max_workers)
        raise ConfigurationError(f"Unknown processor: {config.processor}")


class PipelineFactory:
    """Composition root: wires collaborators into the batch services.

    Every collaborator may be injected; missing ones are built from the
    config (SQLAlchemy store, S3 object store, requests fetcher).
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        index: Optional[ImageIndexProtocol] = None,
        fetcher: Optional[BlobFetcherProtocol] = None,
        object_store: Optional[ObjectStoreProtocol] = None,
        metadata_store: Optional[MetadataStoreProtocol] = None,
        batch_processor: Optional[BatchProcessor] = None,
        logger: Optional[LoggerProtocol] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self.config = config
        self._index = index
        self._fetcher = fetcher
        self._object_store = object_store
        self._metadata_store = metadata_store
        self._batch_processor = batch_processor
        self.logger = logger or LoggerFactory.create_logger(
            level="DEBUG" if config.debug else None
        )
        self.metrics_collector = metrics_collector
        self._sql_store: Optional[SqlImageStore] = None

    def _database(self) -> SqlImageStore:
        if self._sql_store is None:
            self._sql_store = SqlImageStore.from_url(self.config.database_url)
            self._sql_store.create_schema()
        return self._sql_store

    def index(self) -> ImageIndexProtocol:
        if self._index is None:
            self._index = self._database()
        return self._index

    def metadata_store(self) -> MetadataStoreProtocol:
        if self._metadata_store is None:
            self._metadata_store = self._database()
        return self._metadata_store

    def fetcher(self) -> BlobFetcherProtocol:
        if self._fetcher is None:
            self._fetcher = RequestsBlobFetcher(
                timeout=(self.config.connect_timeout, self.config.fetch_timeout)
            )
        return self._fetcher

    def object_store(self) -> ObjectStoreProtocol:
        if self._object_store is None:
            if not self.config.bucket_name:
                raise ConfigurationError("bucket_name is required (set SNAP_BUCKET_NAME)")
            self._object_store = S3ObjectStore(
                S3ClientFactory.create_s3_client(self.config),
                self.config.bucket_name,
                prefix=self.config.upload_prefix,
                public_base_url=self.config.public_base_url,
            )
        return self._object_store

    def batch_processor(self) -> BatchProcessor:
        if self._batch_processor is None:
            self._batch_processor = BatchProcessorFactory.create(self.config)
        return self._batch_processor

    def image_processor(self) -> ImageProcessorService:
        return ImageProcessorService(
            max_width=self.config.max_image_width,
            max_height=self.config.max_image_height,
            quality=self.config.jpeg_quality,
        )

    def recorder(self) -> PersistenceRecorder:
        return PersistenceRecorder(
            self.metadata_store(), self.logger, max_workers=self.config.max_workers
        )

    def create_filter_service(self) -> FilterBatchService:
        """Create a fully configured filter batch service."""
        worker = ImageProcessingService(
            self.index(),
            self.fetcher(),
            self.object_store(),
            self.image_processor(),
            self.logger,
            metrics_collector=self.metrics_collector,
            base_filename=self.config.base_filename,
        )
        coordinator = BatchCoordinator(self.batch_processor(), self.logger, worker)
        return FilterBatchService(coordinator, self.recorder(), self.logger)

    def create_upload_service(self) -> UploadBatchService:
        """Create a fully configured upload batch service."""
        uploader = RawUploadService(
            self.object_store(),
            self.image_processor(),
            self.logger,
            metrics_collector=self.metrics_collector,
        )
        coordinator = BatchCoordinator(self.batch_processor(), self.logger)
        return UploadBatchService(uploader, coordinator, self.recorder(), self.logger)

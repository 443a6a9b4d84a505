"""Core utilities and shared components for the snap pipeline."""

from .image_utils import (
    apply_pipeline,
    calculate_object_key,
    decode_image,
    encode_image,
)
from .logging_config import (
    get_logger,
    setup_logger,
)
from .exceptions import (
    ConfigurationError,
    Constraint,
    DecodeError,
    EncodeError,
    FetchError,
    FilterError,
    ItemError,
    SnapPipelineError,
    Stage,
    StoreError,
    UploadError,
    ValidationError,
)
from .error_handling import BatchOperationContextManager, with_error_handling
from .filters import FilterPipeline, ResolvedFilter
from .models import (
    BatchOutcome,
    BatchStatus,
    ImageRecord,
    ItemFailure,
    ItemResult,
    ItemSuccess,
    PipelineConfig,
    RecordError,
    SourceImage,
    UploadFile,
)
from .resolver import SUPPORTED_FILTERS, resolve

__all__ = [
    "PipelineConfig",
    "SourceImage",
    "UploadFile",
    "ImageRecord",
    "ItemSuccess",
    "ItemFailure",
    "ItemResult",
    "RecordError",
    "BatchOutcome",
    "BatchStatus",
    "FilterPipeline",
    "ResolvedFilter",
    "SUPPORTED_FILTERS",
    "resolve",
    "apply_pipeline",
    "decode_image",
    "encode_image",
    "calculate_object_key",
    "setup_logger",
    "get_logger",
    "SnapPipelineError",
    "ConfigurationError",
    "ValidationError",
    "Constraint",
    "Stage",
    "ItemError",
    "FetchError",
    "DecodeError",
    "FilterError",
    "EncodeError",
    "UploadError",
    "StoreError",
    "with_error_handling",
    "BatchOperationContextManager",
]

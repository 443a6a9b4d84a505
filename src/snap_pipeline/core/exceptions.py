"""Custom exceptions for the snap pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class Stage(str, Enum):
    """Per-item processing stage a failure is attributed to."""

    FETCH = "fetch"
    DECODE = "decode"
    FILTER = "filter"
    ENCODE = "encode"
    UPLOAD = "upload"
    UNKNOWN = "unknown"


class Constraint(str, Enum):
    """Validation constraint violated by a filter request."""

    MISSING = "missing"
    NON_NUMERIC = "non_numeric"
    OUT_OF_RANGE = "out_of_range"
    MALFORMED_DIMENSIONS = "malformed_dimensions"
    UNSUPPORTED = "unsupported"
    NO_FILTERS = "no_filters"


class SnapPipelineError(Exception):
    """Base exception for all snap pipeline errors."""


class ConfigurationError(SnapPipelineError):
    """Error raised for invalid configuration options."""


class StoreError(SnapPipelineError):
    """Error raised when an external store (object store, database) fails."""


class ValidationError(SnapPipelineError):
    """Batch-level error: the request cannot be processed at all."""

    def __init__(
        self,
        message: str,
        filter_name: Optional[str] = None,
        constraint: Constraint = Constraint.MISSING,
    ):
        self.filter_name = filter_name
        self.constraint = constraint
        self.message = message
        if filter_name:
            super().__init__(f"filter '{filter_name}': {message}")
        else:
            super().__init__(message)


class ItemError(SnapPipelineError):
    """Item-level error, isolated to one image of a batch."""

    stage: Stage = Stage.UNKNOWN


class FetchError(ItemError):
    """Source lookup or download failed."""

    stage = Stage.FETCH


class DecodeError(ItemError):
    """Source bytes are not a usable image."""

    stage = Stage.DECODE


class FilterError(ItemError):
    """A filter kernel failed on the decoded image."""

    stage = Stage.FILTER


class EncodeError(ItemError):
    """The processed image could not be serialized."""

    stage = Stage.ENCODE


class UploadError(ItemError):
    """Writing the encoded image to object storage failed."""

    stage = Stage.UPLOAD

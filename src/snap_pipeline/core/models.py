"""Shared data models for the snap pipeline."""

import os
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from .exceptions import Stage

SUPPORTED_PROCESSORS = ("serial", "multithread")


class PipelineConfig(BaseModel):
    """Configuration for the processing pipeline."""

    bucket_name: str = ""
    upload_prefix: str = "images/"
    public_base_url: Optional[str] = None
    database_url: str = "sqlite:///snap_pipeline.db"
    max_workers: int = 8
    fetch_timeout: float = 30.0
    connect_timeout: float = 5.0
    upload_timeout: float = 50.0
    jpeg_quality: int = 90
    max_image_width: int = 4000
    max_image_height: int = 4000
    base_filename: str = "processed_image"
    processor: str = "multithread"
    debug: bool = False

    @field_validator("max_workers")
    @classmethod
    def _check_max_workers(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_workers must be at least 1")
        return value

    @field_validator("processor")
    @classmethod
    def _check_processor(cls, value: str) -> str:
        if value not in SUPPORTED_PROCESSORS:
            raise ValueError(f"processor must be one of {', '.join(SUPPORTED_PROCESSORS)}")
        return value

    @classmethod
    def from_env(cls, **overrides: Any) -> "PipelineConfig":
        """
        Build a config from ``SNAP_*`` environment variables.

        A ``.env`` file in the working directory is loaded first; variables
        already present in the environment take precedence over it.
        Keyword overrides take precedence over both.
        """
        load_dotenv()
        values: Dict[str, Any] = {}
        for name in cls.model_fields:
            env_value = os.getenv(f"SNAP_{name.upper()}")
            if env_value is not None and env_value != "":
                values[name] = env_value
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class SourceImage(BaseModel):
    """Reference to a previously uploaded image to process."""

    url: str
    index: int = 0


class UploadFile(BaseModel):
    """A raw file handed over for upload."""

    filename: str
    body: bytes
    content_type: str = "image/jpeg"


class FetchResponse(BaseModel):
    """Raw response of a blob fetch."""

    body: bytes = b""
    content_type: str = ""
    status_code: int = 200


class ImageRecord(BaseModel):
    """Metadata row describing a stored image."""

    id: Optional[int] = None
    user_id: int
    filename: str
    original_url: str
    processed_url: Optional[str] = None
    status: str = "pending"
    created_at: Optional[datetime] = None


class ItemSuccess(BaseModel):
    """Outcome of an item that was uploaded successfully."""

    success: Literal[True] = True
    source: str
    location: str
    name: str
    index: int = 0
    processing_time: float = 0.0


class ItemFailure(BaseModel):
    """Outcome of an item that failed at some stage."""

    success: Literal[False] = False
    source: str
    stage: Stage = Stage.UNKNOWN
    reason: str = ""
    index: int = 0
    processing_time: float = 0.0


ItemResult = Union[ItemSuccess, ItemFailure]


class RecordError(BaseModel):
    """A successful upload whose metadata row could not be written."""

    location: str
    name: str
    reason: str


_PAST_TENSE = {"process": "processed", "upload": "uploaded"}


class BatchStatus(str, Enum):
    """Classification of a batch outcome."""

    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILURE = "failure"
    EMPTY = "empty"


class BatchOutcome(BaseModel):
    """Aggregated results of one batch, in completion order."""

    results: List[ItemResult] = Field(default_factory=list)
    record_errors: List[RecordError] = Field(default_factory=list)
    processing_time: float = 0.0

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded

    @property
    def recorded(self) -> int:
        """Successes whose metadata row was written."""
        return self.succeeded - len(self.record_errors)

    @property
    def status(self) -> BatchStatus:
        if self.total == 0:
            return BatchStatus.EMPTY
        if self.failed == 0:
            return BatchStatus.SUCCESS
        if self.succeeded == 0:
            return BatchStatus.FAILURE
        return BatchStatus.PARTIAL_SUCCESS

    def successes(self) -> List[ItemSuccess]:
        return [result for result in self.results if isinstance(result, ItemSuccess)]

    def failures(self) -> List[ItemFailure]:
        return [result for result in self.results if isinstance(result, ItemFailure)]

    def summary(self, action: str = "process") -> Dict[str, Any]:
        """
        Response-envelope style view for the transport layer.

        Args:
            action: "process" or "upload"; only changes the wording of the message
        """
        past = _PAST_TENSE.get(action, f"{action}ed")
        data: Dict[str, Any] = {
            "images": [
                {"url": success.location, "filename": success.name}
                for success in self.successes()
            ],
            "success_count": self.succeeded,
            "total_count": self.total,
        }
        if self.failed:
            data["errors"] = [
                {"source": failure.source, "stage": failure.stage.value, "error": failure.reason}
                for failure in self.failures()
            ]
        if self.record_errors:
            data["record_errors"] = [error.model_dump() for error in self.record_errors]

        if self.status is BatchStatus.SUCCESS:
            message = f"Successfully {past} {self.succeeded} image(s)"
        elif self.status is BatchStatus.PARTIAL_SUCCESS:
            message = f"{past.capitalize()} {self.succeeded} out of {self.total} image(s)"
        elif self.status is BatchStatus.EMPTY:
            message = f"No images to {action}"
        else:
            message = f"Failed to {action} any of {self.total} image(s)"

        return {"status": self.status.value, "message": message, "data": data}

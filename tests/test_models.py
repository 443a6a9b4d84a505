"""Tests for core data models."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError as PydanticValidationError

from snap_pipeline.core.exceptions import Stage
from snap_pipeline.core.models import (
    BatchOutcome,
    BatchStatus,
    ItemFailure,
    ItemSuccess,
    PipelineConfig,
    RecordError,
)


def _success(n: int) -> ItemSuccess:
    return ItemSuccess(
        source=f"https://b.s3.amazonaws.com/images/{n}.jpg",
        location=f"https://b.s3.amazonaws.com/images/{n}_processed_image_{n}.jpg",
        name=f"{n}_processed_image_{n}.jpg",
        index=n,
    )


def _failure(n: int, stage: Stage = Stage.FETCH) -> ItemFailure:
    return ItemFailure(
        source=f"https://b.s3.amazonaws.com/images/{n}.jpg",
        stage=stage,
        reason="image not found",
        index=n,
    )


class TestPipelineConfig:
    """Tests for PipelineConfig."""

    def test_default_values(self):
        config = PipelineConfig()
        assert config.upload_prefix == "images/"
        assert config.public_base_url is None
        assert config.max_workers == 8
        assert config.jpeg_quality == 90
        assert config.max_image_width == 4000
        assert config.max_image_height == 4000
        assert config.base_filename == "processed_image"
        assert config.processor == "multithread"
        assert config.debug is False

    def test_max_workers_must_be_positive(self):
        with pytest.raises(PydanticValidationError, match="max_workers"):
            PipelineConfig(max_workers=0)

    def test_processor_must_be_supported(self):
        with pytest.raises(PydanticValidationError, match="processor"):
            PipelineConfig(processor="asyncio")

    def test_from_env_reads_prefixed_variables(self):
        env = {
            "SNAP_BUCKET_NAME": "snaps",
            "SNAP_MAX_WORKERS": "3",
            "SNAP_PROCESSOR": "serial",
            "SNAP_DEBUG": "true",
        }
        with patch.dict(os.environ, env), patch("snap_pipeline.core.models.load_dotenv"):
            config = PipelineConfig.from_env()

        assert config.bucket_name == "snaps"
        assert config.max_workers == 3
        assert config.processor == "serial"
        assert config.debug is True

    def test_from_env_overrides_win(self):
        with patch.dict(os.environ, {"SNAP_MAX_WORKERS": "3"}), patch(
            "snap_pipeline.core.models.load_dotenv"
        ):
            config = PipelineConfig.from_env(max_workers=5, processor=None)

        assert config.max_workers == 5
        assert config.processor == "multithread"

    def test_from_env_loads_dotenv(self):
        with patch("snap_pipeline.core.models.load_dotenv") as mock_load:
            PipelineConfig.from_env()
        mock_load.assert_called_once()


class TestItemResults:
    """Tests for ItemSuccess and ItemFailure."""

    def test_success_flag_is_fixed(self):
        assert _success(0).success is True
        assert _failure(0).success is False

    def test_failure_defaults_to_unknown_stage(self):
        failure = ItemFailure(source="x")
        assert failure.stage is Stage.UNKNOWN
        assert failure.reason == ""


class TestBatchOutcome:
    """Tests for BatchOutcome."""

    def test_empty_outcome(self):
        outcome = BatchOutcome()
        assert outcome.total == 0
        assert outcome.status is BatchStatus.EMPTY
        assert outcome.summary()["message"] == "No images to process"

    def test_counts_add_up(self):
        outcome = BatchOutcome(results=[_success(0), _failure(1), _success(2)])
        assert outcome.succeeded == 2
        assert outcome.failed == 1
        assert outcome.succeeded + outcome.failed == outcome.total == 3
        assert [s.index for s in outcome.successes()] == [0, 2]
        assert [f.index for f in outcome.failures()] == [1]

    @pytest.mark.parametrize(
        "results, status",
        [
            ([_success(0), _success(1)], BatchStatus.SUCCESS),
            ([_success(0), _failure(1)], BatchStatus.PARTIAL_SUCCESS),
            ([_failure(0), _failure(1)], BatchStatus.FAILURE),
        ],
    )
    def test_status(self, results, status):
        assert BatchOutcome(results=results).status is status

    def test_recorded_excludes_record_errors(self):
        outcome = BatchOutcome(
            results=[_success(0), _success(1)],
            record_errors=[RecordError(location="loc", name="1.jpg", reason="db down")],
        )
        assert outcome.recorded == 1
        assert outcome.status is BatchStatus.SUCCESS

    def test_summary_success(self):
        summary = BatchOutcome(results=[_success(0)]).summary()
        assert summary["status"] == "success"
        assert summary["message"] == "Successfully processed 1 image(s)"
        assert summary["data"]["images"] == [
            {
                "url": "https://b.s3.amazonaws.com/images/0_processed_image_0.jpg",
                "filename": "0_processed_image_0.jpg",
            }
        ]
        assert "errors" not in summary["data"]

    def test_summary_partial_lists_errors(self):
        outcome = BatchOutcome(
            results=[_success(0), _failure(1, Stage.DECODE)],
            record_errors=[RecordError(location="loc", name="n", reason="db down")],
        )
        summary = outcome.summary()
        assert summary["status"] == "partial_success"
        assert summary["message"] == "Processed 1 out of 2 image(s)"
        assert summary["data"]["success_count"] == 1
        assert summary["data"]["total_count"] == 2
        assert summary["data"]["errors"] == [
            {
                "source": "https://b.s3.amazonaws.com/images/1.jpg",
                "stage": "decode",
                "error": "image not found",
            }
        ]
        assert summary["data"]["record_errors"] == [
            {"location": "loc", "name": "n", "reason": "db down"}
        ]

    def test_summary_failure_for_upload(self):
        summary = BatchOutcome(results=[_failure(0)]).summary("upload")
        assert summary["status"] == "failure"
        assert summary["message"] == "Failed to upload any of 1 image(s)"

    def test_summary_success_for_upload(self):
        summary = BatchOutcome(results=[_success(0), _success(1)]).summary("upload")
        assert summary["message"] == "Successfully uploaded 2 image(s)"

"""Integration tests for the complete pipeline."""

import io

import pytest
from PIL import Image

from snap_pipeline.adapters.storage import S3ObjectStore
from snap_pipeline.core.exceptions import ConfigurationError, Stage, ValidationError
from snap_pipeline.core.factories import BatchProcessorFactory, PipelineFactory
from snap_pipeline.core.models import BatchStatus, PipelineConfig, UploadFile
from snap_pipeline.core.observability import MetricsCollector
from snap_pipeline.processors import SerialBatchProcessor, ThreadPoolBatchProcessor
from snap_pipeline.testing.fakes import (
    FakeBlobFetcher,
    FakeLogger,
    FakeS3Client,
    create_test_image,
    setup_test_environment,
)


def _stored_image(s3_client, bucket, name):
    obj = s3_client.get_bucket(bucket).get_object("images/" + name)
    return Image.open(io.BytesIO(obj.body))


class TestPipelineIntegration:
    """Integration tests for the complete processing pipeline."""

    @pytest.mark.parametrize("processor", ["serial", "multithread"])
    def test_end_to_end_filtering(self, processor):
        """Test complete pipeline with fake collaborators."""
        env = setup_test_environment(image_count=5)
        config = PipelineConfig(bucket_name=env.bucket, processor=processor, max_workers=3)
        factory = PipelineFactory(
            config,
            index=env.index,
            fetcher=env.fetcher,
            object_store=S3ObjectStore(env.s3_client, env.bucket),
            metadata_store=env.metadata_store,
            logger=FakeLogger(),
        )

        outcome = factory.create_filter_service().apply_filters(
            env.source_urls, {"resize": "120x0", "rotate": "90", "grayscale": ""}, owner_id=11
        )

        assert outcome.status is BatchStatus.SUCCESS
        assert outcome.total == 5
        assert sorted(s.index for s in outcome.successes()) == [0, 1, 2, 3, 4]
        for success in outcome.successes():
            image = _stored_image(env.s3_client, env.bucket, success.name)
            width = 200 + 10 * success.index
            expected = (round(150 * 120 / width), 120)
            assert abs(image.width - expected[0]) <= 1
            assert image.height == expected[1]
        assert len(env.metadata_store.records) == 5
        assert {r.user_id for r in env.metadata_store.records} == {11}

    def test_end_to_end_with_partial_failure(self):
        """Test pipeline handling partial failures."""
        env = setup_test_environment(image_count=4)
        env.fetcher.fail(env.source_urls[1])
        metrics = MetricsCollector()
        factory = PipelineFactory(
            PipelineConfig(bucket_name=env.bucket),
            index=env.index,
            fetcher=env.fetcher,
            object_store=S3ObjectStore(env.s3_client, env.bucket),
            metadata_store=env.metadata_store,
            logger=FakeLogger(),
            metrics_collector=metrics,
        )

        outcome = factory.create_filter_service().apply_filters(
            env.source_urls + ["https://test-bucket.s3.amazonaws.com/images/readme.txt"],
            {"pixelate": "8"},
            owner_id=1,
        )

        assert outcome.status is BatchStatus.PARTIAL_SUCCESS
        assert outcome.succeeded == 3
        assert {f.index for f in outcome.failures()} == {1, 4}
        assert metrics.get_summary("process_image")["failures_by_stage"] == {"fetch": 2}
        summary = outcome.summary()
        assert summary["message"] == "Processed 3 out of 5 image(s)"
        assert len(summary["data"]["errors"]) == 2

    def test_upload_then_filter(self, tmp_path):
        """Uploaded images are valid sources for a later filter request."""
        s3_client = FakeS3Client()
        s3_client.create_bucket("snaps")
        fetcher = FakeBlobFetcher()
        config = PipelineConfig(
            bucket_name="snaps",
            database_url=f"sqlite:///{tmp_path / 'snaps.db'}",
            processor="multithread",
        )
        factory = PipelineFactory(
            config,
            fetcher=fetcher,
            object_store=S3ObjectStore(s3_client, "snaps"),
            logger=FakeLogger(),
        )

        uploaded = factory.create_upload_service().upload_files(
            [
                UploadFile(filename="one.jpg", body=create_test_image(80, 60)),
                UploadFile(filename="two.png", body=create_test_image(60, 80, format="PNG"), content_type="image/png"),
            ],
            owner_id=2,
        )
        assert uploaded.status is BatchStatus.SUCCESS

        locations = []
        for success in uploaded.successes():
            obj = s3_client.get_bucket("snaps").get_object("images/" + success.name)
            fetcher.add(success.location, obj.body, obj.content_type)
            locations.append(success.location)

        outcome = factory.create_filter_service().apply_filters(
            locations, {"crop_to_size": "40x40", "brightness_increase": "10"}, owner_id=2
        )

        assert outcome.status is BatchStatus.SUCCESS
        for success in outcome.successes():
            assert _stored_image(s3_client, "snaps", success.name).size == (40, 40)
            assert factory.index().find_by_location(success.location) is not None

    def test_unknown_sources_fail_at_fetch(self, tmp_path):
        env = setup_test_environment(image_count=0)
        factory = PipelineFactory(
            PipelineConfig(bucket_name=env.bucket, database_url=f"sqlite:///{tmp_path / 'x.db'}"),
            fetcher=env.fetcher,
            object_store=S3ObjectStore(env.s3_client, env.bucket),
            logger=FakeLogger(),
        )

        outcome = factory.create_filter_service().apply_filters(
            ["https://test-bucket.s3.amazonaws.com/images/ghost.jpg"], {"invert": ""}, owner_id=1
        )

        assert outcome.status is BatchStatus.FAILURE
        assert outcome.failures()[0].stage is Stage.FETCH
        assert outcome.failures()[0].reason == "image not found"

    def test_validation_happens_before_any_collaborator_is_used(self):
        env = setup_test_environment()
        factory = PipelineFactory(
            PipelineConfig(bucket_name=env.bucket),
            index=env.index,
            fetcher=env.fetcher,
            object_store=S3ObjectStore(env.s3_client, env.bucket),
            metadata_store=env.metadata_store,
            logger=FakeLogger(),
        )

        with pytest.raises(ValidationError):
            factory.create_filter_service().apply_filters(env.source_urls, {}, owner_id=1)
        assert env.fetcher.fetched == []
        assert env.s3_client.operation_count == 0


class TestFactories:
    """Tests for factory wiring."""

    def test_batch_processor_selection(self):
        assert isinstance(
            BatchProcessorFactory.create(PipelineConfig(processor="serial")), SerialBatchProcessor
        )
        processor = BatchProcessorFactory.create(PipelineConfig(max_workers=5))
        assert isinstance(processor, ThreadPoolBatchProcessor)
        assert processor.max_workers == 5

    def test_missing_bucket_is_a_configuration_error(self):
        factory = PipelineFactory(PipelineConfig(bucket_name=""), logger=FakeLogger())
        with pytest.raises(ConfigurationError, match="bucket_name is required"):
            factory.object_store()

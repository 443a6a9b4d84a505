"""Testing utilities and fakes for the snap pipeline."""

from .fakes import (
    FakeBlobFetcher,
    FakeImageIndex,
    FakeLogger,
    FakeMetadataStore,
    FakeS3Client,
    S3Bucket,
    S3Object,
    TestEnvironment,
    create_test_image,
    setup_test_environment,
)

__all__ = [
    "FakeBlobFetcher",
    "FakeImageIndex",
    "FakeLogger",
    "FakeMetadataStore",
    "FakeS3Client",
    "S3Bucket",
    "S3Object",
    "TestEnvironment",
    "create_test_image",
    "setup_test_environment",
]

"""Collaborator adapters: object storage, HTTP fetching and the image table."""

from .database import ImageRow, SqlImageStore
from .http import RequestsBlobFetcher
from .storage import S3ObjectStore, UniqueNameGenerator

__all__ = [
    "ImageRow",
    "SqlImageStore",
    "RequestsBlobFetcher",
    "S3ObjectStore",
    "UniqueNameGenerator",
]

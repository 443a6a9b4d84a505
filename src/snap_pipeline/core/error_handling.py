# src/snap_pipeline/core/error_handling.py

import functools
import logging

import requests
from botocore.exceptions import BotoCoreError, ClientError
from PIL import UnidentifiedImageError
from sqlalchemy.exc import SQLAlchemyError
from urllib3.exceptions import HTTPError as TransportError

from .exceptions import DecodeError, FetchError, SnapPipelineError, StoreError


def with_error_handling(func):
    """
    A decorator to wrap collaborator calls with standardized error handling.

    Library exceptions are logged and re-raised as pipeline exceptions so the
    worker can attribute them to a stage; pipeline exceptions pass through.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger(func.__module__ + '.' + func.__name__)
        try:
            return func(*args, **kwargs)
        except SnapPipelineError:
            raise
        except Exception as e:
            logger.error(
                f"Error in '{func.__name__}': {e}",
                exc_info=True
            )
            if isinstance(e, (requests.RequestException, TransportError)):
                raise FetchError(f"failed to fetch image: {e}") from e
            if isinstance(e, (ClientError, BotoCoreError)):
                raise StoreError(f"object store operation failed in {func.__name__}: {e}") from e
            if isinstance(e, SQLAlchemyError):
                raise StoreError(f"database operation failed in {func.__name__}: {e}") from e
            if isinstance(e, UnidentifiedImageError):
                raise DecodeError(f"failed to decode image: {e}") from e
            raise
    return wrapper


class BatchOperationContextManager:
    """
    Context manager for batch operations to collect and summarize errors.
    """
    def __init__(self, operation_name="Batch Operation"):
        self.operation_name = operation_name
        self.errors = []
        self.logger = logging.getLogger(self.__class__.__module__ + '.' + self.__class__.__name__)

    def __enter__(self):
        self.logger.info(f"Starting {self.operation_name}.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.errors:
            self.logger.warning(
                f"{self.operation_name} completed with {len(self.errors)} error(s)."
            )
            for i, error_detail in enumerate(self.errors):
                item_identifier = error_detail.get('item', 'Unknown item')
                error_message = error_detail.get('error', 'Unknown error')
                self.logger.error(
                    f"  Error {i+1}/{len(self.errors)} for item '{item_identifier}': {error_message}"
                )
        if exc_type:
            self.logger.error(
                f"{self.operation_name} failed due to an unhandled exception: {exc_val}",
                exc_info=(exc_type, exc_val, exc_tb)
            )
        elif not self.errors:
            self.logger.info(f"{self.operation_name} completed successfully.")

        # Never suppress: an exception raised inside the block propagates.
        return False

    def add_error(self, error_message: str, item_identifier: str = "Unknown item"):
        """
        Call this method within the 'with' block to report an error for a specific item.

        Args:
            error_message (str): The error message or exception string.
            item_identifier (str): A string identifying the item that failed (e.g., URL, stored name).
        """
        self.errors.append({"item": item_identifier, "error": str(error_message)})
        self.logger.debug(f"Error added for item '{item_identifier}' in {self.operation_name}: {error_message}")

    @property
    def error_count(self) -> int:
        return len(self.errors)

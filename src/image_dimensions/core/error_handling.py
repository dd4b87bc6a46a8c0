# src/image_dimensions/core/error_handling.py

import functools
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Type

from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import CacheError, DimensionsPipelineError, StoreError

RETRYABLE_ERROR_CODES = (
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "RequestLimitExceeded",
    "SlowDown",
)


def client_error_code(exc: BaseException) -> Optional[str]:
    """Return the AWS error code carried by a botocore ClientError, if any."""
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code")
    return None


def with_error_handling(
    func: Optional[Callable] = None,
    *,
    error_cls: Type[DimensionsPipelineError] = StoreError,
):
    """
    A decorator to wrap store and cache calls with standardized error handling.

    botocore failures are logged and re-raised as ``error_cls`` with the
    original exception chained. Pipeline errors pass through untouched.
    Can be applied bare (``@with_error_handling``) or with arguments
    (``@with_error_handling(error_cls=CacheError)``).
    """

    def decorator(inner: Callable) -> Callable:
        @functools.wraps(inner)
        def wrapper(*args, **kwargs):
            logger = logging.getLogger(inner.__module__ + "." + inner.__name__)
            try:
                return inner(*args, **kwargs)
            except DimensionsPipelineError:
                raise
            except (ClientError, BotoCoreError) as e:
                logger.error(f"Error in '{inner.__name__}': {e}", exc_info=True)
                raise error_cls(f"{inner.__name__} failed: {e}") from e

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


def retry_store_operation(max_attempts=3, initial_delay=1, backoff_factor=2):
    """
    Decorator to retry throttled store or cache operations with exponential backoff.

    Only ``StoreError``/``CacheError`` caused by a throttling ``ClientError``
    are retried; everything else is raised on the first attempt.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = logging.getLogger(func.__module__ + "." + func.__name__)
            attempts = 0
            delay = initial_delay
            while True:
                try:
                    return func(*args, **kwargs)
                except (StoreError, CacheError) as e:
                    attempts += 1
                    code = client_error_code(e.__cause__) if e.__cause__ else None
                    if code not in RETRYABLE_ERROR_CODES:
                        raise
                    if attempts >= max_attempts:
                        logger.error(
                            f"Operation '{func.__name__}' failed after {max_attempts} attempts. Error: {e}"
                        )
                        raise
                    logger.info(
                        f"Operation '{func.__name__}' throttled ({code}). Attempt {attempts}/{max_attempts}. "
                        f"Retrying in {delay:.2f}s."
                    )
                    time.sleep(delay)
                    delay *= backoff_factor

        return wrapper

    return decorator


class BatchOperationContextManager:
    """
    Context manager for batch operations to collect and summarize errors.
    """

    def __init__(self, operation_name="Batch Operation"):
        self.operation_name = operation_name
        self.errors: List[Dict[str, Any]] = []
        self.logger = logging.getLogger(
            self.__class__.__module__ + "." + self.__class__.__name__
        )

    def __enter__(self):
        self.logger.info(f"Starting {self.operation_name}.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.logger.error(
                f"{self.operation_name} failed due to an unhandled exception: {exc_val}",
                exc_info=(exc_type, exc_val, exc_tb),
            )
        elif self.errors:
            self.logger.warning(
                f"{self.operation_name} completed with {len(self.errors)} error(s)."
            )
            for i, error_detail in enumerate(self.errors):
                self.logger.error(
                    f"  Error {i + 1}/{len(self.errors)} for item "
                    f"'{error_detail['item']}': {error_detail['error']}"
                )
        else:
            self.logger.info(f"{self.operation_name} completed successfully.")

        # Never suppress exceptions raised inside the block
        return False

    def add_error(self, error_message: str, item_identifier: str = "Unknown item"):
        """
        Report an error for a specific item within the 'with' block.

        Args:
            error_message: The error message or exception string.
            item_identifier: A string identifying the item that failed (e.g. object key).
        """
        self.errors.append({"item": item_identifier, "error": str(error_message)})
        self.logger.debug(
            f"Error added for item '{item_identifier}' in {self.operation_name}: {error_message}"
        )

"""Timeout and retry utilities layered over blocking camera calls.

Cameras never retry or time out on their own; these helpers let callers opt
into a policy that fits their workload.
"""

from __future__ import annotations

import functools
import threading
import time
import weakref
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError, wait
from typing import TYPE_CHECKING, Any, Callable, Optional, TypeVar

from exceptions import CaptureTimeoutError, ReadFailedError
from log_config.logger import get_logger

if TYPE_CHECKING:
    from contracts import Image

    from .camera_device import Camera

logger = get_logger(__name__)

T = TypeVar("T")

# Reads abandoned at their deadline, keyed by camera
_pending_reads: "weakref.WeakKeyDictionary[Camera, Future]" = weakref.WeakKeyDictionary()
_pending_lock = threading.Lock()


def run_with_timeout(
    func: Callable[..., T],
    timeout_seconds: float,
    error_message: str = "Operation timed out",
    *args: Any,
    **kwargs: Any,
) -> T:
    """Run function with timeout, raise CaptureTimeoutError if exceeded.

    The call is raced against the deadline on a worker thread. On timeout the
    worker is abandoned, not interrupted: it keeps running until the blocking
    call returns and its result is discarded.

    Args:
        func: Function to run
        timeout_seconds: Timeout in seconds
        error_message: Error message if timeout occurs
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func

    Raises:
        CaptureTimeoutError: If operation times out
        Exception: Any exception raised by func
    """
    return _await(_submit(func, *args, **kwargs), timeout_seconds, error_message)


def _submit(func: Callable[..., T], *args: Any, **kwargs: Any) -> "Future[T]":
    executor = ThreadPoolExecutor(max_workers=1)
    try:
        return executor.submit(func, *args, **kwargs)
    finally:
        # Do not wait for an abandoned call
        executor.shutdown(wait=False)


def _await(future: "Future[T]", timeout_seconds: float, error_message: str) -> T:
    try:
        return future.result(timeout=timeout_seconds)
    except FutureTimeoutError:
        logger.error(f"{error_message} after {timeout_seconds}s")
        raise CaptureTimeoutError(f"{error_message} after {timeout_seconds}s")


def exponential_backoff(attempt: int, base_delay: float = 0.5, max_delay: float = 5.0) -> float:
    """Calculate exponential backoff delay.

    Args:
        attempt: Attempt number (0-indexed)
        base_delay: Base delay in seconds
        max_delay: Maximum delay in seconds

    Returns:
        Delay in seconds
    """
    delay = base_delay * (2**attempt)
    return min(delay, max_delay)


class RetryPolicy:
    """Configurable retry policy for camera operations."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 5.0,
        retry_on: tuple[type[Exception], ...] = (ReadFailedError,),
    ):
        """Initialize retry policy.

        Args:
            max_attempts: Maximum number of attempts (including first)
            base_delay: Base delay for exponential backoff
            max_delay: Maximum delay between retries
            retry_on: Tuple of exception types to retry on
        """
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.retry_on = retry_on

    def should_retry(self, attempt: int, exception: Exception) -> bool:
        """Check if should retry after exception.

        Args:
            attempt: Current attempt number (0-indexed)
            exception: Exception that occurred

        Returns:
            True if should retry
        """
        if attempt + 1 >= self.max_attempts:
            return False

        return isinstance(exception, self.retry_on)

    def get_delay(self, attempt: int) -> float:
        return exponential_backoff(attempt, self.base_delay, self.max_delay)


def retry_on_failure(
    policy: Optional[RetryPolicy] = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator to retry function on failure with exponential backoff.

    Args:
        policy: Retry policy to use (default: 3 attempts on ReadFailedError)

    Example:
        @retry_on_failure()
        def next_frame(camera: Camera) -> Image:
            return camera.grab_frame()
    """
    if policy is None:
        policy = RetryPolicy()

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            last_exception: Optional[Exception] = None

            for attempt in range(policy.max_attempts):
                try:
                    if attempt > 0:
                        logger.info(
                            f"Retrying {func.__name__} (attempt {attempt + 1}/{policy.max_attempts})"
                        )

                    return func(*args, **kwargs)

                except Exception as e:
                    last_exception = e
                    logger.warning(
                        f"{func.__name__} failed on attempt {attempt + 1}/{policy.max_attempts}: {e}"
                    )

                    if not policy.should_retry(attempt, e):
                        raise

                    delay = policy.get_delay(attempt)
                    logger.debug(f"Waiting {delay:.2f}s before retry")
                    time.sleep(delay)

            # All attempts exhausted
            logger.error(f"{func.__name__} failed after {policy.max_attempts} attempts")
            raise last_exception  # type: ignore

        return wrapper

    return decorator


def grab_frame_with_timeout(camera: "Camera", timeout_seconds: float) -> "Image":
    """Grab a frame, giving up after ``timeout_seconds``.

    An abandoned read still owns the device until it returns. The next call on
    the same camera waits up to ``timeout_seconds`` for it to finish before
    issuing a new read, and raises CaptureTimeoutError without reading if it
    has not, so at most one ``grab_frame`` is ever in flight per camera.
    """
    camera_id = camera.config().id
    error_message = f"Camera {camera_id} frame read timed out"

    with _pending_lock:
        pending = _pending_reads.pop(camera, None)
    if pending is not None and not pending.done():
        logger.warning(f"Camera {camera_id}: waiting for an abandoned read to finish")
        done, _ = wait([pending], timeout=timeout_seconds)
        if not done:
            with _pending_lock:
                _pending_reads[camera] = pending
            raise CaptureTimeoutError(
                f"{error_message}; previous read still in progress after {timeout_seconds}s",
                camera_id=camera_id,
            )

    future = _submit(camera.grab_frame)
    try:
        return _await(future, timeout_seconds, error_message)
    except CaptureTimeoutError:
        with _pending_lock:
            _pending_reads[camera] = future
        raise


def grab_frame_with_retry(camera: "Camera", policy: Optional[RetryPolicy] = None) -> "Image":
    """Grab a frame, retrying recoverable read failures per ``policy``."""
    return retry_on_failure(policy)(camera.grab_frame)()


__all__ = [
    "run_with_timeout",
    "exponential_backoff",
    "RetryPolicy",
    "retry_on_failure",
    "grab_frame_with_timeout",
    "grab_frame_with_retry",
]

from __future__ import annotations
from typing import Callable, Optional
import logging
import time

from .errors import CopyInitiationFailed
from .models import StorageClass

log = logging.getLogger(__name__)

MAX_COPY_ATTEMPTS = 10
COPY_RETRY_DELAY = 0.3
COPY_POLL_INTERVAL = 1.0


def start_copy(
    transfer_manager,
    source_bucket: str,
    source_key: str,
    target_bucket: str,
    target_key: str,
    storage_class: Optional[StorageClass] = None,
):
    """Submit a managed copy and return its future without waiting."""
    extra_args = {"StorageClass": StorageClass(storage_class).value} if storage_class else None
    return transfer_manager.copy(
        copy_source={"Bucket": source_bucket, "Key": source_key},
        bucket=target_bucket,
        key=target_key,
        extra_args=extra_args,
    )


def wait_for_copy(future, poll_interval: float = COPY_POLL_INTERVAL, sleep: Callable[[float], None] = time.sleep):
    """Poll until the copy reaches a terminal state, then surface its result (raises on failure)."""
    while not future.done():
        log.debug("Waiting for copy completion")
        sleep(poll_interval)
    return future.result()


def copy_object(
    transfer_manager,
    source_bucket: str,
    source_key: str,
    target_bucket: str,
    target_key: str,
    storage_class: Optional[StorageClass] = None,
    max_attempts: int = MAX_COPY_ATTEMPTS,
    retry_delay: float = COPY_RETRY_DELAY,
    poll_interval: float = COPY_POLL_INTERVAL,
    sleep: Callable[[float], None] = time.sleep,
    on_copying: Optional[Callable[[bool], None]] = None,
) -> int:
    """
    Copy one object, blocking the calling thread until it is done.

    Each attempt submits the copy and polls it to completion; polling does
    not consume attempts. A failed attempt is followed by a linear backoff
    of ``attempt * retry_delay`` seconds. Returns the number of attempts
    used, or raises CopyInitiationFailed once ``max_attempts`` are spent.

    ``on_copying(True/False)`` brackets the time an attempt is in flight.
    """
    last_error: Optional[BaseException] = None
    for attempt in range(1, max_attempts + 1):
        try:
            future = start_copy(
                transfer_manager, source_bucket, source_key, target_bucket, target_key, storage_class
            )
            if on_copying:
                on_copying(True)
            try:
                wait_for_copy(future, poll_interval=poll_interval, sleep=sleep)
            finally:
                if on_copying:
                    on_copying(False)
            log.info("Copy done: [%s]-[%s]", target_bucket, target_key)
            return attempt
        except Exception as e:
            last_error = e
            log.warning(
                "Copy s3://%s/%s -> s3://%s/%s attempt %d/%d failed: %s",
                source_bucket, source_key, target_bucket, target_key, attempt, max_attempts, e,
            )
        if attempt < max_attempts:
            sleep(retry_delay * attempt)

    log.error("Copy operation has failed: [%s]-[%s]", target_bucket, target_key)
    raise CopyInitiationFailed(source_key, max_attempts, last_error)

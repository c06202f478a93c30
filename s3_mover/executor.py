from __future__ import annotations
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FuturesTimeout, as_completed
from datetime import timedelta
from typing import Callable, Dict, List, Optional, Sequence
import logging
import os
import threading
import time

from tqdm import tqdm

from .copy import COPY_POLL_INTERVAL, COPY_RETRY_DELAY, MAX_COPY_ATTEMPTS, copy_object
from .core import get_transfer_manager
from .errors import CopyInitiationFailed, CopyTimedOut, PreconditionViolation
from .models import BatchResult, CopyOutcome, CopyStatus, ObjectSummary, StorageClass
from .planner import CopyPlanner

log = logging.getLogger(__name__)

BATCH_TIMEOUT = 60 * 60


def default_workers() -> int:
    return (os.cpu_count() or 1) + 1


class ParallelCopyExecutor:
    """
    Runs one copy task per candidate on a bounded thread pool.

    Tasks never raise: each returns a CopyOutcome, and the outcomes are
    gathered once the pool drains (or the batch timeout elapses).
    """

    def __init__(
        self,
        s3_client,
        source_bucket: str,
        planner: CopyPlanner,
        transfer_manager=None,
        max_workers: Optional[int] = None,
        timeout: float = BATCH_TIMEOUT,
        storage_class_override: Optional[StorageClass] = None,
        max_attempts: int = MAX_COPY_ATTEMPTS,
        retry_delay: float = COPY_RETRY_DELAY,
        poll_interval: float = COPY_POLL_INTERVAL,
        progress: bool = False,
        sleep: Callable[[float], None] = time.sleep,
        raise_on_timeout: bool = False,
    ):
        self.s3 = s3_client
        self.source_bucket = source_bucket
        self.planner = planner
        self._transfer_manager = transfer_manager
        self.max_workers = max_workers or default_workers()
        self.timeout = timeout
        self.storage_class_override = storage_class_override
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.poll_interval = poll_interval
        self.progress = progress
        self.sleep = sleep
        self.raise_on_timeout = raise_on_timeout

        self._lock = threading.Lock()
        self._copying = 0
        self.peak_copying = 0

    # ---------------- per-candidate task ----------------
    def _track(self, active: bool) -> None:
        with self._lock:
            self._copying += 1 if active else -1
            self.peak_copying = max(self.peak_copying, self._copying)

    def copy_one(self, summary: ObjectSummary, transfer_manager) -> CopyOutcome:
        key = summary.key
        try:
            plan = self.planner.plan(key)
        except PreconditionViolation as e:
            return CopyOutcome.failed(key, "", str(e))
        except Exception as e:
            dest = self._safe_dest(key)
            return CopyOutcome.failed(key, dest, f"Destination check failed: {e}")

        if plan.exists:
            return CopyOutcome.skipped(key, plan.dest_key)

        storage_class = self.storage_class_override or summary.storage_class
        try:
            copy_object(
                transfer_manager,
                self.source_bucket,
                key,
                self.planner.dest_bucket,
                plan.dest_key,
                storage_class=storage_class,
                max_attempts=self.max_attempts,
                retry_delay=self.retry_delay,
                poll_interval=self.poll_interval,
                sleep=self.sleep,
                on_copying=self._track,
            )
        except CopyInitiationFailed as e:
            return CopyOutcome.failed(key, plan.dest_key, str(e))
        return CopyOutcome.copied(key, plan.dest_key)

    def _safe_dest(self, key: str) -> str:
        try:
            return self.planner.dest_key_for(key)
        except PreconditionViolation:
            return ""

    # ---------------- batch ----------------
    def run(self, candidates: Sequence[ObjectSummary]) -> BatchResult:
        candidates = list(candidates)
        started = time.monotonic()
        owns_tm = self._transfer_manager is None
        tm = self._transfer_manager or get_transfer_manager(self.s3, max_concurrency=self.max_workers)

        outcomes: List[CopyOutcome] = []
        timed_out = False
        bar = tqdm(total=len(candidates), desc="Copy", unit="obj") if self.progress and candidates else None

        ex = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="s3-copy")
        try:
            futs: Dict[Future, str] = {ex.submit(self.copy_one, c, tm): c.key for c in candidates}
            remaining = max(self.timeout - (time.monotonic() - started), 0)
            try:
                for f in as_completed(futs, timeout=remaining):
                    outcomes.append(self._collect(f, futs[f]))
                    if bar:
                        bar.update(1)
            except FuturesTimeout:
                timed_out = True
        finally:
            # Store-side copies already in flight are left to finish on their own.
            ex.shutdown(wait=not timed_out, cancel_futures=timed_out)
            if bar:
                bar.close()
            if owns_tm and not timed_out:
                tm.shutdown()

        elapsed = timedelta(seconds=time.monotonic() - started)
        result = BatchResult.aggregate(candidates, outcomes, elapsed=elapsed, timed_out=timed_out)
        self._report(result)

        if timed_out:
            log.warning(
                "Batch did not drain within %ss: %d of %d candidates unfinished",
                self.timeout, len(candidates) - len(result.outcomes), len(candidates),
            )
            if self.raise_on_timeout:
                raise CopyTimedOut(self.timeout, result)
        return result

    @staticmethod
    def _collect(f: Future, key: str) -> CopyOutcome:
        try:
            return f.result()
        except Exception as e:  # copy_one is not expected to raise
            log.exception("Copy task for %s crashed", key)
            return CopyOutcome(key, "", CopyStatus.FAILED, f"Unexpected error: {e}")

    def _report(self, result: BatchResult) -> None:
        errors = result.errors
        if errors:
            log.info("---------Errors--------")
            for k, v in errors.items():
                log.error("Error for %s - %s", k, v)
        log.info(
            "[Total Objects: %d]-[Copied: %d]-[Skipped: %d]-[Failed Copy: %d]-[Time elapsed: %s]",
            len(result.candidates),
            len(result.moved_keys),
            len(result.skipped_keys),
            len(errors),
            result.elapsed,
        )

from __future__ import annotations
from typing import Dict, List, Optional, Tuple
import logging

from tqdm import tqdm

from .core import list_object_summaries
from .errors import InvalidMoveRequest, S3DeleteError, log_and_reraise
from .executor import BATCH_TIMEOUT, ParallelCopyExecutor
from .filters import apply_filter
from .models import BatchResult, MoveRequest, ObjectSummary
from .planner import CopyPlanner
from .utils import chunked, is_valid_bucket_name, normalize_prefix

log = logging.getLogger(__name__)


def validate_request(request: MoveRequest) -> None:
    for side, loc in (("source", request.source), ("destination", request.destination)):
        if not is_valid_bucket_name(loc.bucket):
            raise InvalidMoveRequest(f"Missing or invalid {side} bucket: {loc.bucket!r}")
        if not isinstance(loc.prefix, str):
            raise InvalidMoveRequest(f"Invalid {side} prefix: {loc.prefix!r}")
    f = request.filter
    for name, bound in (("min size", f.min_size), ("max size", f.max_size)):
        if bound is not None and bound < 0:
            raise InvalidMoveRequest(f"{name} must be >= 0, got {bound}")
    if f.min_size is not None and f.max_size is not None and f.min_size > f.max_size:
        raise InvalidMoveRequest(f"min size {f.min_size} is greater than max size {f.max_size}")
    if (
        request.source.bucket == request.destination.bucket
        and normalize_prefix(request.source.prefix) == normalize_prefix(request.destination.prefix)
    ):
        raise InvalidMoveRequest("source and destination locations must differ")


def plan_move(
    s3_client,
    request: MoveRequest,
    include_archived: bool = True,
) -> Tuple[List[ObjectSummary], List[ObjectSummary]]:
    """Enumerate and filter the source; returns (candidates, rejected). Nothing is copied."""
    validate_request(request)
    summaries = list_object_summaries(
        s3_client, request.source.bucket, request.source.prefix, include_archived=include_archived
    )
    candidates, rejected = apply_filter(summaries, request.filter, request.source.prefix)
    log.info(
        "Found %d files at source location %s, %d won't be moved due to filtering",
        len(candidates), request.source, len(rejected),
    )
    return candidates, rejected


def delete_sources(
    s3_client,
    bucket: str,
    keys: List[str],
    batch_size: int = 1000,
    progress: bool = False,
) -> Tuple[List[str], Dict[str, str]]:
    """Batch-delete `keys`; per-key failures are returned, not raised."""
    deleted: List[str] = []
    errors: Dict[str, str] = {}
    bar = tqdm(total=len(keys), desc="Delete", unit="obj") if progress and keys else None
    for chunk in chunked(keys, min(max(int(batch_size), 1), 1000)):
        try:
            resp = s3_client.delete_objects(
                Bucket=bucket,
                Delete={"Objects": [{"Key": k} for k in chunk], "Quiet": False},
            )
            for d in resp.get("Deleted", []) or []:
                if (k := d.get("Key")):
                    deleted.append(k)
            for err in resp.get("Errors", []) or []:
                errors[err.get("Key")] = f"{err.get('Code')} {err.get('Message')}"
        except Exception as e:
            wrapped = S3DeleteError(f"delete_objects on s3://{bucket} failed: {e}")
            log.error("%s", wrapped)
            for k in chunk:
                errors[k] = str(wrapped)
        if bar:
            bar.update(len(chunk))
    if bar:
        bar.close()
    return deleted, errors


@log_and_reraise()
def move_with_filter(
    s3_client,
    request: MoveRequest,
    transfer_manager=None,
    max_workers: Optional[int] = None,
    timeout: float = BATCH_TIMEOUT,
    progress: bool = False,
    dry_run: bool = False,
    include_archived: bool = True,
    delete_batch_size: int = 1000,
    **executor_kwargs,
) -> BatchResult:
    """
    Copy every object under request.source that passes request.filter to
    request.destination, in parallel, skipping targets that already exist.

    Enumeration errors and invalid requests raise; per-object failures are
    recorded in the returned BatchResult. With dry_run only the candidate
    list is filled in.
    """
    src, dst = request.source, request.destination
    log.info(
        "Source Bucket: %s Source Prefix: %s Dest Bucket: %s Dest Prefix: %s. Copying started...",
        src.bucket, src.prefix, dst.bucket, dst.prefix,
    )
    candidates, _ = plan_move(s3_client, request, include_archived=include_archived)
    if dry_run:
        return BatchResult(candidates=candidates)

    planner = CopyPlanner(
        s3_client,
        source_prefix=src.prefix,
        dest_bucket=dst.bucket,
        dest_prefix=dst.prefix,
        replace_token=request.replace_token,
        replacement_token=request.replacement_token,
    )
    executor = ParallelCopyExecutor(
        s3_client,
        source_bucket=src.bucket,
        planner=planner,
        transfer_manager=transfer_manager,
        max_workers=max_workers,
        timeout=timeout,
        storage_class_override=request.storage_class_override,
        progress=progress,
        **executor_kwargs,
    )
    result = executor.run(candidates)

    if request.delete_source and result.moved_keys:
        result.deleted_keys, result.delete_errors = delete_sources(
            s3_client, src.bucket, result.moved_keys, batch_size=delete_batch_size, progress=progress
        )
        log.info("Deleted %d source objects, %d delete errors", len(result.deleted_keys), len(result.delete_errors))
    return result

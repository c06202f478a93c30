from __future__ import annotations
from typing import Callable, Iterator, List, Optional, Set
import logging
import time

import boto3
from boto3.s3.transfer import TransferConfig, create_transfer_manager
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .errors import EnumerationFailed
from .filters import suffix_matcher
from .models import ObjectSummary
from .utils import normalize_prefix

log = logging.getLogger(__name__)

TRANSIENT_ERROR_CODES = {"503", "ServiceUnavailable", "SlowDown"}
NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
LIST_RETRY_DELAY = 0.3


def get_s3_client(
    aws_profile: Optional[str] = None,
    aws_access_key_id: Optional[str] = None,
    aws_secret_access_key: Optional[str] = None,
    region_name: Optional[str] = None,
    retries_max_attempts: int = 8,
    retries_mode: str = "standard",
    connect_timeout: int = 10,
    read_timeout: int = 60,
    max_pool_connections: int = 50,
):
    """
    Create a boto3 S3 client with retries and timeouts applied.
    The connection pool is sized for one connection per copy worker.
    """
    cfg = Config(
        retries={"max_attempts": retries_max_attempts, "mode": retries_mode},
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        max_pool_connections=max_pool_connections,
    )
    if aws_profile:
        session = boto3.Session(profile_name=aws_profile, region_name=region_name)
    else:
        session = boto3.Session(
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
            region_name=region_name,
        )
    return session.client("s3", config=cfg)


def get_transfer_manager(s3_client, max_concurrency: int = 10):
    """
    Managed-copy engine on top of `s3_client`. `copy()` returns a future
    that can be polled with `done()` and resolved with `result()`.
    """
    return create_transfer_manager(s3_client, TransferConfig(max_concurrency=max_concurrency))


def error_code(exc: BaseException) -> str:
    if isinstance(exc, ClientError):
        return str(exc.response.get("Error", {}).get("Code", ""))
    return ""


def is_transient(exc: BaseException) -> bool:
    if not isinstance(exc, ClientError):
        return False
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return error_code(exc) in TRANSIENT_ERROR_CODES or status == 503


def _list_page(s3_client, bucket: str, prefix: str, token: Optional[str], delimiter: Optional[str],
               retry_delay: float, sleep: Callable[[float], None]) -> dict:
    kwargs = {"Bucket": bucket, "Prefix": prefix}
    if delimiter:
        kwargs["Delimiter"] = delimiter
    if token:
        kwargs["ContinuationToken"] = token
    while True:
        try:
            return s3_client.list_objects_v2(**kwargs)
        except ClientError as e:
            if is_transient(e):
                log.warning("Listing s3://%s/%s throttled (%s), retrying page", bucket, prefix, error_code(e) or "503")
                sleep(retry_delay)
                continue
            raise EnumerationFailed(f"Listing s3://{bucket}/{prefix} failed: {e}") from e
        except BotoCoreError as e:
            raise EnumerationFailed(f"Listing s3://{bucket}/{prefix} failed: {e}") from e


def _iter_pages(s3_client, bucket: str, prefix: str, delimiter: Optional[str] = None,
                retry_delay: float = LIST_RETRY_DELAY, sleep: Callable[[float], None] = time.sleep) -> Iterator[dict]:
    token: Optional[str] = None
    while True:
        page = _list_page(s3_client, bucket, prefix, token, delimiter, retry_delay, sleep)
        yield page
        token = page.get("NextContinuationToken")
        if not page.get("IsTruncated") or not token:
            return


def iter_object_summaries(
    s3_client,
    bucket: str,
    prefix: str = "",
    include_folders: bool = False,
    include_archived: bool = True,
    retry_delay: float = LIST_RETRY_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[ObjectSummary]:
    """
    Yield every object under `prefix`, page by page.
    Directory markers (keys ending in '/') are dropped unless include_folders.
    Iterating again restarts the listing from the first page.
    """
    for page in _iter_pages(s3_client, bucket, prefix, retry_delay=retry_delay, sleep=sleep):
        for obj in page.get("Contents", []) or []:
            if not obj.get("Key"):
                continue
            summary = ObjectSummary.from_listing(obj)
            if summary.is_folder and not include_folders:
                continue
            if not include_archived and summary.storage_class.is_archived:
                continue
            yield summary


def list_object_summaries(s3_client, bucket: str, prefix: str = "", **kwargs) -> List[ObjectSummary]:
    """All-or-nothing: the complete listing, or EnumerationFailed and nothing."""
    summaries = list(iter_object_summaries(s3_client, bucket, prefix, **kwargs))
    log.debug("Found %d objects under s3://%s/%s", len(summaries), bucket, prefix)
    return summaries


def list_object_summaries_with_suffix(
    s3_client,
    bucket: str,
    prefix: str = "",
    suffix: str = "",
    ignore_case: bool = True,
    **kwargs,
) -> List[ObjectSummary]:
    """
    Objects under `prefix` whose key ends with `suffix`.
    Case-insensitive by default; unrelated to the move filter, which is a
    case-sensitive substring exclusion.
    """
    match = suffix_matcher(suffix, ignore_case=ignore_case)
    return [s for s in iter_object_summaries(s3_client, bucket, prefix, **kwargs) if match(s.key)]


def list_common_prefixes(s3_client, bucket: str, root_prefix: str = "") -> Set[str]:
    """First-level folder names under root_prefix, e.g. 'a/' -> {'b', 'c'} for a/b/x, a/c/y."""
    root = normalize_prefix(root_prefix)
    names: Set[str] = set()
    for page in _iter_pages(s3_client, bucket, root, delimiter="/"):
        for cp in page.get("CommonPrefixes", []) or []:
            rel = (cp.get("Prefix") or "")[len(root):].strip("/")
            if rel:
                names.add(rel)
    return names


def get_object_summary(s3_client, bucket: str, key: str) -> Optional[ObjectSummary]:
    """HEAD the object; None on 404/NoSuchKey/NotFound, other errors propagate."""
    if not bucket:
        raise ValueError("bucket name is missing")
    if key is None:
        raise ValueError("object key is missing")
    try:
        h = s3_client.head_object(Bucket=bucket, Key=key)
    except ClientError as e:
        if error_code(e) in NOT_FOUND_CODES:
            return None
        raise
    return ObjectSummary.from_listing(
        {
            "Key": key,
            "Size": h.get("ContentLength"),
            "StorageClass": h.get("StorageClass"),
            "ETag": h.get("ETag"),
            "LastModified": h.get("LastModified"),
        }
    )


def object_exists(s3_client, bucket: str, key: str) -> bool:
    return get_object_summary(s3_client, bucket, key) is not None

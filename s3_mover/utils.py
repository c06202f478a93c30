from __future__ import annotations
from typing import Iterable, Iterator, List, Tuple, Dict, Any, Optional
import json
import re
import yaml


def read_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def read_json(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f) or {}


_S3_URI_RE = re.compile(r"^s3://[a-zA-Z0-9.\-_]+(/.*)?$")
# Legacy us-east-1 buckets may use uppercase, underscores and up to 255 characters.
_BUCKET_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._\-]{1,253}[A-Za-z0-9]$")

def is_s3_uri(uri: str) -> bool:
    return bool(_S3_URI_RE.match(uri))


def is_valid_bucket_name(name: Optional[str]) -> bool:
    if not name or not _BUCKET_RE.match(name):
        return False
    return ".." not in name


def parse_s3_uri(uri: str) -> Tuple[str, str]:
    """s3://bucket/some/prefix/ -> ("bucket", "some/prefix/"); the prefix may be empty."""
    if not is_s3_uri(uri):
        raise ValueError(f"Invalid S3 URI: {uri}")
    rest = uri.replace("s3://", "", 1)
    bucket, _, key = rest.partition("/")
    return bucket, key


def normalize_prefix(prefix: Optional[str]) -> str:
    """Non-empty prefixes end with '/'; empty or None stays ''."""
    if not prefix:
        return ""
    return prefix if prefix.endswith("/") else prefix + "/"


def parse_csv(csv: Optional[str]) -> Optional[List[str]]:
    if csv is None:
        return None
    csv = csv.strip()
    if not csv:
        return []
    return [p.strip() for p in csv.split(",") if p.strip()]


def chunked(seq: Iterable[Any], size: int) -> Iterator[list[Any]]:
    if size <= 0:
        raise ValueError("size must be > 0")
    batch: list[Any] = []
    for item in seq:
        batch.append(item)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch


def human_bytes(n: int) -> str:
    units = ["B", "KB", "MB", "GB", "TB"]
    s = float(n)
    for u in units:
        if s < 1024 or u == units[-1]:
            return f"{s:.1f} {u}"
        s /= 1024.0

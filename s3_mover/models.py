"""Value types shared by the enumerator, planner, executor and CLI."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

from .errors import InvalidMoveRequest


class StorageClass(str, Enum):
    STANDARD = "STANDARD"
    REDUCED_REDUNDANCY = "REDUCED_REDUNDANCY"
    STANDARD_IA = "STANDARD_IA"
    ONEZONE_IA = "ONEZONE_IA"
    INTELLIGENT_TIERING = "INTELLIGENT_TIERING"
    GLACIER = "GLACIER"
    GLACIER_IR = "GLACIER_IR"
    DEEP_ARCHIVE = "DEEP_ARCHIVE"
    OUTPOSTS = "OUTPOSTS"
    EXPRESS_ONEZONE = "EXPRESS_ONEZONE"

    @classmethod
    def parse(cls, value: Optional[str]) -> "StorageClass":
        """S3 omits StorageClass for STANDARD objects, so missing or unknown maps to STANDARD."""
        if not value:
            return cls.STANDARD
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.STANDARD

    @property
    def is_archived(self) -> bool:
        return self in (StorageClass.GLACIER, StorageClass.DEEP_ARCHIVE)


@dataclass(frozen=True)
class ObjectSummary:
    key: str
    size: int
    storage_class: StorageClass = StorageClass.STANDARD
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None

    @classmethod
    def from_listing(cls, obj: Mapping[str, Any]) -> "ObjectSummary":
        """Build from one `Contents` entry of a list_objects_v2 page."""
        return cls(
            key=obj["Key"],
            size=int(obj.get("Size") or 0),
            storage_class=StorageClass.parse(obj.get("StorageClass")),
            etag=(obj.get("ETag") or "").strip('"') or None,
            last_modified=obj.get("LastModified"),
        )

    @property
    def is_folder(self) -> bool:
        return self.key.endswith("/")


def _to_size(value: Any, name: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidMoveRequest(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidMoveRequest(f"{name} must be an integer, got {value!r}") from None


@dataclass(frozen=True)
class FilterSpec:
    excluded_name_fragments: FrozenSet[str] = frozenset()
    min_size: Optional[int] = None
    max_size: Optional[int] = None

    @classmethod
    def build(
        cls,
        excluded: Optional[Iterable[str]] = None,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
    ) -> "FilterSpec":
        fragments = frozenset(f for f in (excluded or []) if f)
        return cls(
            excluded_name_fragments=fragments,
            min_size=_to_size(min_size, "min size"),
            max_size=_to_size(max_size, "max size"),
        )


@dataclass(frozen=True)
class Location:
    bucket: str
    prefix: str = ""

    def __str__(self) -> str:
        return f"s3://{self.bucket}/{self.prefix}"


# JSON body keys accepted by the move endpoint, plus the YAML/snake_case spelling.
_REQUEST_KEYS = {
    "source_bucket": ("s3-source-bucket", "source_bucket"),
    "source_prefix": ("s3-source-prefix", "source_prefix"),
    "target_bucket": ("s3-target-bucket", "target_bucket"),
    "target_prefix": ("s3-target-prefix", "target_prefix"),
    "filter_names": ("filter-names", "filter_names", "exclude"),
    "min_size": ("filter-min-file-size", "min_size"),
    "max_size": ("filter-max-file-size", "max_size"),
    "storage_class": ("storage-class", "storage_class"),
    "replace_token": ("replace-token", "replace"),
    "replacement_token": ("replacement-token", "replacement"),
    "delete_source": ("delete-source", "delete_source"),
}


_TRUE = {"true", "1", "yes", "y", "on"}
_FALSE = {"false", "0", "no", "n", "off", ""}


def _to_bool(value: Any, name: str) -> bool:
    """JSON bodies sometimes carry booleans as strings; "false" must stay False."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        v = value.strip().lower()
        if v in _TRUE:
            return True
        if v in _FALSE:
            return False
    raise InvalidMoveRequest(f"{name} must be a boolean, got {value!r}")


def _pick(data: Mapping[str, Any], name: str) -> Any:
    for k in _REQUEST_KEYS[name]:
        if k in data and data[k] is not None:
            return data[k]
    return None


@dataclass(frozen=True)
class MoveRequest:
    source: Location
    destination: Location
    filter: FilterSpec = field(default_factory=FilterSpec)
    storage_class_override: Optional[StorageClass] = None
    replace_token: Optional[str] = None
    replacement_token: Optional[str] = None
    delete_source: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MoveRequest":
        names = _pick(data, "filter_names")
        if isinstance(names, str):
            names = [n.strip() for n in names.split(",")]
        sc = _pick(data, "storage_class")
        try:
            override = StorageClass(str(sc).upper()) if sc else None
        except ValueError:
            raise InvalidMoveRequest(f"Unknown storage class: {sc}") from None
        return cls(
            source=Location(_pick(data, "source_bucket"), _pick(data, "source_prefix") or ""),
            destination=Location(_pick(data, "target_bucket"), _pick(data, "target_prefix") or ""),
            filter=FilterSpec.build(names, _pick(data, "min_size"), _pick(data, "max_size")),
            storage_class_override=override,
            replace_token=_pick(data, "replace_token"),
            replacement_token=_pick(data, "replacement_token"),
            delete_source=_to_bool(_pick(data, "delete_source"), "delete-source"),
        )


class CopyStatus(str, Enum):
    COPIED = "COPIED"
    SKIPPED_EXISTS = "SKIPPED_EXISTS"
    FAILED = "FAILED"


@dataclass(frozen=True)
class CopyOutcome:
    key: str
    dest_key: str
    status: CopyStatus
    error_reason: Optional[str] = None

    @classmethod
    def copied(cls, key: str, dest_key: str) -> "CopyOutcome":
        return cls(key, dest_key, CopyStatus.COPIED)

    @classmethod
    def skipped(cls, key: str, dest_key: str) -> "CopyOutcome":
        return cls(key, dest_key, CopyStatus.SKIPPED_EXISTS)

    @classmethod
    def failed(cls, key: str, dest_key: str, reason: str) -> "CopyOutcome":
        return cls(key, dest_key, CopyStatus.FAILED, reason)


@dataclass
class BatchResult:
    candidates: List[ObjectSummary] = field(default_factory=list)
    outcomes: Dict[str, CopyOutcome] = field(default_factory=dict)
    moved_keys: List[str] = field(default_factory=list)
    elapsed: timedelta = field(default_factory=timedelta)
    timed_out: bool = False
    deleted_keys: List[str] = field(default_factory=list)
    delete_errors: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def aggregate(
        cls,
        candidates: List[ObjectSummary],
        outcomes: Iterable[CopyOutcome],
        elapsed: timedelta = timedelta(),
        timed_out: bool = False,
    ) -> "BatchResult":
        """Fan-in: order outcomes by candidate order and derive moved_keys."""
        by_key = {o.key: o for o in outcomes}
        ordered: Dict[str, CopyOutcome] = {}
        for c in candidates:
            if c.key in by_key:
                ordered[c.key] = by_key[c.key]
        moved = [k for k, o in ordered.items() if o.status is CopyStatus.COPIED]
        return cls(
            candidates=list(candidates),
            outcomes=ordered,
            moved_keys=moved,
            elapsed=elapsed,
            timed_out=timed_out,
        )

    @property
    def errors(self) -> Dict[str, str]:
        return {
            k: o.error_reason or "unknown error"
            for k, o in self.outcomes.items()
            if o.status is CopyStatus.FAILED
        }

    @property
    def failed_keys(self) -> List[str]:
        return list(self.errors)

    @property
    def skipped_keys(self) -> List[str]:
        return [k for k, o in self.outcomes.items() if o.status is CopyStatus.SKIPPED_EXISTS]

    @property
    def success(self) -> bool:
        return not self.timed_out and not self.errors

    def to_response(self) -> Dict[str, Any]:
        resp: Dict[str, Any] = {
            "successful-move": self.success,
            "moved-files": list(self.moved_keys),
            "skipped-files": self.skipped_keys,
            "failed-files": self.errors,
            "timed-out": self.timed_out,
            "total-candidates": len(self.candidates),
            "elapsed-seconds": round(self.elapsed.total_seconds(), 3),
        }
        if self.deleted_keys or self.delete_errors:
            resp["deleted-files"] = list(self.deleted_keys)
            resp["delete-errors"] = dict(self.delete_errors)
        return resp

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import logging

from .core import object_exists
from .errors import PreconditionViolation
from .utils import normalize_prefix

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CopyPlan:
    source_key: str
    dest_key: str
    exists: bool


class CopyPlanner:
    """
    Maps source keys under `source_prefix` to keys under `dest_prefix` in
    `dest_bucket` and checks whether the target is already there.
    """

    def __init__(
        self,
        s3_client,
        source_prefix: str,
        dest_bucket: str,
        dest_prefix: str = "",
        replace_token: Optional[str] = None,
        replacement_token: Optional[str] = None,
    ):
        self.s3 = s3_client
        self.source_prefix = normalize_prefix(source_prefix)
        self.dest_bucket = dest_bucket
        self.dest_prefix = normalize_prefix(dest_prefix)
        # renaming only kicks in when both tokens are non-empty
        if replace_token and replacement_token:
            self.replace_token: Optional[str] = replace_token
            self.replacement_token: Optional[str] = replacement_token
        else:
            self.replace_token = self.replacement_token = None

    def dest_key_for(self, source_key: str) -> str:
        if self.source_prefix and not source_key.startswith(self.source_prefix):
            raise PreconditionViolation(
                f"Object key must start with the source prefix {self.source_prefix!r}: {source_key!r}"
            )
        rel = source_key[len(self.source_prefix):]
        dest_key = f"{self.dest_prefix}{rel}" if self.dest_prefix else rel
        if self.replace_token:
            dest_key = dest_key.replace(self.replace_token, self.replacement_token)
            dest_key = dest_key.replace(self.replace_token.lower(), self.replacement_token.lower())
        return dest_key

    def plan(self, source_key: str) -> CopyPlan:
        dest_key = self.dest_key_for(source_key)
        exists = object_exists(self.s3, self.dest_bucket, dest_key)
        if exists:
            log.warning("Target object already exists. Source: %s, Target: %s", source_key, dest_key)
        return CopyPlan(source_key, dest_key, exists)

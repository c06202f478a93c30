from __future__ import annotations
from typing import Callable, Iterable, List, Optional, Tuple

from .models import FilterSpec, ObjectSummary


def filter_names(summary: ObjectSummary, prefix: str, excluded: Iterable[str]) -> bool:
    """False for the prefix marker itself or any key containing an excluded fragment (case-sensitive)."""
    if summary.key == prefix:
        return False
    return not any(frag and frag in summary.key for frag in excluded)


def filter_sizes(summary: ObjectSummary, min_size: Optional[int], max_size: Optional[int]) -> bool:
    """Inclusive [min_size, max_size]; a missing bound is open on that side."""
    if min_size is not None and summary.size < min_size:
        return False
    if max_size is not None and summary.size > max_size:
        return False
    return True


def passes_filter(summary: ObjectSummary, spec: FilterSpec, enumeration_prefix: str) -> bool:
    return (
        filter_names(summary, enumeration_prefix, spec.excluded_name_fragments)
        and filter_sizes(summary, spec.min_size, spec.max_size)
    )


def apply_filter(
    summaries: Iterable[ObjectSummary],
    spec: FilterSpec,
    enumeration_prefix: str,
) -> Tuple[List[ObjectSummary], List[ObjectSummary]]:
    accepted: List[ObjectSummary] = []
    rejected: List[ObjectSummary] = []
    for s in summaries:
        (accepted if passes_filter(s, spec, enumeration_prefix) else rejected).append(s)
    return accepted, rejected


def suffix_matcher(suffix: str, ignore_case: bool = True) -> Callable[[str], bool]:
    """
    Key-suffix predicate for extension-style listings ('.CSV' matches '.csv'
    when ignore_case). Not used by passes_filter.
    """
    if not suffix:
        return lambda _: True
    if ignore_case:
        want = suffix.strip().lower()
        return lambda key: key.lower().endswith(want)
    return lambda key: key.endswith(suffix)

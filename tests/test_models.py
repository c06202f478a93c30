from datetime import timedelta

import pytest

from s3_mover.errors import InvalidMoveRequest
from s3_mover.models import BatchResult, CopyOutcome, MoveRequest, ObjectSummary, StorageClass


def test_storage_class_parse_defaults_to_standard():
    assert StorageClass.parse(None) is StorageClass.STANDARD
    assert StorageClass.parse("glacier") is StorageClass.GLACIER
    assert StorageClass.parse("SOMETHING_NEW") is StorageClass.STANDARD
    assert StorageClass.DEEP_ARCHIVE.is_archived
    assert not StorageClass.GLACIER_IR.is_archived


def test_summary_from_listing():
    s = ObjectSummary.from_listing({"Key": "a/b", "Size": 12, "ETag": '"abc"'})
    assert s == ObjectSummary("a/b", 12, StorageClass.STANDARD, "abc", None)


def test_request_from_json_body():
    req = MoveRequest.from_dict(
        {
            "s3-source-bucket": "src",
            "s3-source-prefix": "in/",
            "s3-target-bucket": "dst",
            "s3-target-prefix": "out/",
            "filter-names": [".tmp", "_SUCCESS"],
            "filter-min-file-size": 1,
            "filter-max-file-size": 1024,
        }
    )
    assert req.source.bucket == "src" and req.source.prefix == "in/"
    assert req.destination.bucket == "dst" and req.destination.prefix == "out/"
    assert req.filter.excluded_name_fragments == frozenset({".tmp", "_SUCCESS"})
    assert (req.filter.min_size, req.filter.max_size) == (1, 1024)
    assert req.storage_class_override is None
    assert not req.delete_source


def test_request_from_config_section():
    req = MoveRequest.from_dict(
        {"source_bucket": "src", "target_bucket": "dst", "exclude": "a, b", "storage_class": "onezone_ia"}
    )
    assert req.source.prefix == ""
    assert req.filter.excluded_name_fragments == frozenset({"a", "b"})
    assert req.storage_class_override is StorageClass.ONEZONE_IA


def test_request_with_unknown_storage_class():
    with pytest.raises(InvalidMoveRequest):
        MoveRequest.from_dict({"source_bucket": "src", "target_bucket": "dst", "storage_class": "bogus"})


def test_aggregate_orders_by_candidates_and_derives_moved_keys():
    candidates = [ObjectSummary("in/a", 1), ObjectSummary("in/b", 1), ObjectSummary("in/c", 1)]
    outcomes = [
        CopyOutcome.failed("in/c", "out/c", "Copy failed"),
        CopyOutcome.copied("in/a", "out/a"),
        CopyOutcome.skipped("in/b", "out/b"),
    ]
    result = BatchResult.aggregate(candidates, outcomes, elapsed=timedelta(seconds=2))
    assert list(result.outcomes) == ["in/a", "in/b", "in/c"]
    assert result.moved_keys == ["in/a"]
    assert result.skipped_keys == ["in/b"]
    assert result.errors == {"in/c": "Copy failed"}
    assert not result.success


def test_skips_do_not_count_as_failure():
    candidates = [ObjectSummary("in/a", 1)]
    result = BatchResult.aggregate(candidates, [CopyOutcome.skipped("in/a", "out/a")])
    assert result.success
    assert result.moved_keys == []


def test_response_exposes_failure_reasons():
    candidates = [ObjectSummary("in/a", 1), ObjectSummary("in/b", 1)]
    result = BatchResult.aggregate(
        candidates,
        [CopyOutcome.copied("in/a", "out/a"), CopyOutcome.failed("in/b", "out/b", "boom")],
        elapsed=timedelta(seconds=1.5),
    )
    resp = result.to_response()
    assert resp["successful-move"] is False
    assert resp["moved-files"] == ["in/a"]
    assert resp["failed-files"] == {"in/b": "boom"}
    assert resp["elapsed-seconds"] == 1.5
    assert "deleted-files" not in resp


def test_timed_out_batch_is_not_successful():
    result = BatchResult.aggregate([ObjectSummary("in/a", 1)], [], timed_out=True)
    assert not result.success
    assert result.outcomes == {}


@pytest.mark.parametrize(
    "value, expected",
    [(True, True), (False, False), ("false", False), ("False", False), ("0", False), ("no", False),
     ("true", True), ("YES", True), ("1", True), (1, True), (0, False)],
)
def test_delete_source_flag_parsing(value, expected):
    req = MoveRequest.from_dict({"source_bucket": "src", "target_bucket": "dst", "delete-source": value})
    assert req.delete_source is expected


@pytest.mark.parametrize("value", ["maybe", 2, ["true"]])
def test_delete_source_rejects_non_boolean(value):
    with pytest.raises(InvalidMoveRequest):
        MoveRequest.from_dict({"source_bucket": "src", "target_bucket": "dst", "delete-source": value})


@pytest.mark.parametrize("field_name", ["filter-min-file-size", "filter-max-file-size"])
def test_non_numeric_size_bound_is_an_invalid_request(field_name):
    with pytest.raises(InvalidMoveRequest, match="must be an integer"):
        MoveRequest.from_dict({"source_bucket": "src", "target_bucket": "dst", field_name: "abc"})


def test_numeric_string_size_bound_is_accepted():
    req = MoveRequest.from_dict({"source_bucket": "src", "target_bucket": "dst", "filter-min-file-size": "10"})
    assert req.filter.min_size == 10

from __future__ import annotations
from s3_mover.core import get_s3_client
from s3_mover.models import FilterSpec, Location, MoveRequest
from s3_mover.move import move_with_filter

if __name__ == "__main__":
    s3 = get_s3_client()
    req = MoveRequest(
        source=Location("my-source", "tmp/"),
        destination=Location("my-target", "archive/tmp/"),
        filter=FilterSpec.build(excluded=[".tmp", "_SUCCESS"], min_size=1, max_size=5 * 1024**3),
    )
    res = move_with_filter(s3, req, progress=True)
    print("Moved:", len(res.moved_keys), "Skipped:", len(res.skipped_keys), "Success:", res.success)
    for key, reason in res.errors.items():
        print("Failed:", key, reason)

"""In-memory stand-ins for the boto3 S3 client and transfer manager."""
import threading
import time

from botocore.exceptions import ClientError


def client_error(code, status=400, operation="ListObjectsV2"):
    return ClientError(
        {
            "Error": {"Code": code, "Message": f"{code} raised by fake"},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class FakeS3Client:
    def __init__(self, page_size=1000):
        self.page_size = page_size
        self.store = {}
        self.lock = threading.Lock()
        self.list_errors = []
        self.head_errors = {}
        self.delete_errors = {}
        self.list_calls = []
        self.head_calls = []
        self.delete_calls = []

    def put(self, bucket, key, size=0, storage_class="STANDARD"):
        with self.lock:
            self.store[(bucket, key)] = {"Size": size, "StorageClass": storage_class}

    def keys(self, bucket):
        return sorted(k for (b, k) in self.store if b == bucket)

    def list_objects_v2(self, Bucket, Prefix="", ContinuationToken=None, Delimiter=None, **kwargs):
        self.list_calls.append((Bucket, Prefix, ContinuationToken))
        if self.list_errors:
            raise self.list_errors.pop(0)
        keys = [k for k in self.keys(Bucket) if k.startswith(Prefix)]
        if Delimiter:
            contents, prefixes = [], set()
            for k in keys:
                rest = k[len(Prefix):]
                if Delimiter in rest:
                    prefixes.add(Prefix + rest.split(Delimiter)[0] + Delimiter)
                else:
                    contents.append(k)
            return {
                "Contents": [self._entry(Bucket, k) for k in contents],
                "CommonPrefixes": [{"Prefix": p} for p in sorted(prefixes)],
                "IsTruncated": False,
            }
        start = int(ContinuationToken or 0)
        page = keys[start:start + self.page_size]
        truncated = start + self.page_size < len(keys)
        resp = {"Contents": [self._entry(Bucket, k) for k in page], "KeyCount": len(page), "IsTruncated": truncated}
        if truncated:
            resp["NextContinuationToken"] = str(start + self.page_size)
        return resp

    def _entry(self, bucket, key):
        meta = self.store[(bucket, key)]
        entry = {"Key": key, "Size": meta["Size"], "ETag": '"etag"'}
        if meta["StorageClass"]:
            entry["StorageClass"] = meta["StorageClass"]
        return entry

    def head_object(self, Bucket, Key):
        self.head_calls.append((Bucket, Key))
        if (Bucket, Key) in self.head_errors:
            raise self.head_errors[(Bucket, Key)]
        meta = self.store.get((Bucket, Key))
        if meta is None:
            raise client_error("404", 404, "HeadObject")
        resp = {"ContentLength": meta["Size"], "ETag": '"etag"'}
        if meta["StorageClass"] != "STANDARD":
            resp["StorageClass"] = meta["StorageClass"]
        return resp

    def delete_objects(self, Bucket, Delete):
        self.delete_calls.append((Bucket, [o["Key"] for o in Delete["Objects"]]))
        deleted, errors = [], []
        for o in Delete["Objects"]:
            k = o["Key"]
            if k in self.delete_errors:
                errors.append({"Key": k, "Code": "AccessDenied", "Message": self.delete_errors[k]})
                continue
            with self.lock:
                self.store.pop((Bucket, k), None)
            deleted.append({"Key": k})
        return {"Deleted": deleted, "Errors": errors}


class FakeCopyFuture:
    def __init__(self, tm, copy_source, bucket, key, extra_args):
        self.tm = tm
        self.copy_source = copy_source
        self.bucket = bucket
        self.key = key
        self.extra_args = extra_args or {}
        self.polls_left = tm.polls
        self.done_calls = 0

    def done(self):
        self.done_calls += 1
        if self.tm.gate is not None:
            self.tm.gate.wait(timeout=5)
        if self.tm.delay:
            time.sleep(self.tm.delay)
        if self.polls_left > 0:
            self.polls_left -= 1
            return False
        return True

    def result(self):
        tm = self.tm
        with tm.lock:
            tm.active -= 1
            fail = tm.complete_failures.get(self.copy_source["Key"], 0)
            if fail:
                tm.complete_failures[self.copy_source["Key"]] = fail - 1
        if fail:
            raise client_error("InternalError", 500, "CopyObject")
        src = tm.client.store[(self.copy_source["Bucket"], self.copy_source["Key"])]
        tm.client.put(
            self.bucket,
            self.key,
            size=src["Size"],
            storage_class=self.extra_args.get("StorageClass", src["StorageClass"]),
        )


class FakeTransferManager:
    """
    `fail_keys`: source key -> number of copy() calls that raise before succeeding.
    `complete_failures`: source key -> number of futures that fail in result().
    """

    def __init__(self, client, fail_keys=None, complete_failures=None, polls=0, delay=0.0, gate=None):
        self.client = client
        self.fail_keys = dict(fail_keys or {})
        self.complete_failures = dict(complete_failures or {})
        self.polls = polls
        self.delay = delay
        self.gate = gate
        self.lock = threading.Lock()
        self.calls = []
        self.futures = []
        self.active = 0
        self.peak = 0
        self.shut_down = False

    def copy(self, copy_source, bucket, key, extra_args=None, subscribers=None):
        src_key = copy_source["Key"]
        with self.lock:
            self.calls.append((src_key, bucket, key, extra_args))
            remaining = self.fail_keys.get(src_key, 0)
            if remaining:
                self.fail_keys[src_key] = remaining - 1
        if remaining:
            raise client_error("InternalError", 500, "CopyObject")
        fut = FakeCopyFuture(self, copy_source, bucket, key, extra_args)
        with self.lock:
            self.futures.append(fut)
            self.active += 1
            self.peak = max(self.peak, self.active)
        return fut

    def shutdown(self):
        self.shut_down = True

import threading

import pytest

from fakes import FakeS3Client, FakeTransferManager


class SleepRecorder:
    """Records requested sleeps instead of sleeping."""

    def __init__(self):
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, seconds):
        with self._lock:
            self.calls.append(seconds)


@pytest.fixture
def s3():
    return FakeS3Client()


@pytest.fixture
def tm(s3):
    return FakeTransferManager(s3)


@pytest.fixture
def sleeps():
    return SleepRecorder()

from __future__ import annotations
import logging
import functools
from typing import Type, Callable, Any, Optional

class S3MoverError(Exception): pass
class S3CopyError(S3MoverError): pass
class S3DeleteError(S3MoverError): pass
class EnumerationFailed(S3MoverError): pass
class PreconditionViolation(S3MoverError): pass
class InvalidMoveRequest(S3MoverError, ValueError): pass


class CopyInitiationFailed(S3CopyError):
    """A single copy could not be started (or finished) within its attempt budget."""

    def __init__(self, source_key: str, attempts: int, last_error: Optional[BaseException] = None):
        self.source_key = source_key
        self.attempts = attempts
        self.last_error = last_error
        msg = f"Copy failed after {attempts} attempts"
        if last_error is not None:
            msg = f"{msg}: {last_error}"
        super().__init__(msg)


class CopyTimedOut(S3MoverError):
    """The batch did not drain in time. `result` holds what was recorded so far."""

    def __init__(self, timeout: float, result: Any = None):
        self.timeout = timeout
        self.result = result
        super().__init__(f"Batch did not finish within {timeout:g}s")


def setup_logging(level: int = logging.INFO, logfile: str | None = None) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):  # avoid duplicate handlers
        root.removeHandler(h)
    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    stream = logging.StreamHandler()
    stream.setFormatter(fmt)
    root.addHandler(stream)
    if logfile:
        fh = logging.FileHandler(logfile)
        fh.setFormatter(fmt)
        root.addHandler(fh)
    # botocore is chatty at DEBUG
    logging.getLogger("botocore").setLevel(max(level, logging.INFO))
    logging.getLogger("s3transfer").setLevel(max(level, logging.INFO))

def log_and_reraise(exception_cls: Type[Exception] = S3MoverError):
    """Log a failure and re-raise it as `exception_cls`; package errors pass through untouched."""
    def deco(func: Callable[..., Any]):
        @functools.wraps(func)
        def wrapper(*a, **kw):
            try:
                return func(*a, **kw)
            except S3MoverError:
                raise
            except Exception as e:
                logging.getLogger(func.__module__).error("%s failed: %s", func.__name__, e)
                raise exception_cls(f"{func.__name__} failed: {e}") from e
        return wrapper
    return deco

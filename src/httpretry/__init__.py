"""
Retrying, resuming HTTP downloads on top of requests.

``HttpGetter`` wraps a request and presents a single continuous byte stream,
re-issuing the request with ``Range`` headers whenever the connection drops
or the server answers with a 5xx, pacing attempts with exponential backoff.

    import requests
    from httpretry import ExponentialBackoff, HttpGetter, client_with_timeout

    req = requests.Request("GET", "https://example.com/archive.tar.gz")
    with HttpGetter(req, backoff=ExponentialBackoff(max_elapsed_time=60),
                    session=client_with_timeout(10)) as getter:
        status, headers = getter.start()
        for chunk in getter:
            sink.write(chunk)
        print(getter.hexdigest())

Key components:
    - getter: the retrying getter state machine
    - backoff: backoff policies and the quittable latch
    - client: sessions with dial, keep-alive and inactivity timeouts
    - download: copy_stream() / download_to_file() helpers
    - logger: logging setup and a logging response observer
"""

from httpretry.backoff import (
    STOP,
    ConstantBackoff,
    ExponentialBackoff,
    QuittableBackoff,
    StopBackoff,
    WithMaxRetries,
    ZeroBackoff,
    default_backoff,
    retry,
)
from httpretry.client import client_with_timeout, client_with_timeouts
from httpretry.config import BackoffConfig, TimeoutConfig
from httpretry.download import DownloadResult, copy_stream, download_to_file
from httpretry.errors import (
    ChecksumMismatchError,
    DownloadError,
    EmptyResponseError,
    HttpRetryError,
    IncompleteBodyError,
    RetriesExhaustedError,
    UnexpectedStatusError,
)
from httpretry.getter import HttpGetter
from httpretry.logger import log_response, setup_logger

__all__ = [
    "STOP",
    "BackoffConfig",
    "ChecksumMismatchError",
    "ConstantBackoff",
    "DownloadError",
    "DownloadResult",
    "EmptyResponseError",
    "ExponentialBackoff",
    "HttpGetter",
    "HttpRetryError",
    "IncompleteBodyError",
    "QuittableBackoff",
    "RetriesExhaustedError",
    "StopBackoff",
    "TimeoutConfig",
    "UnexpectedStatusError",
    "WithMaxRetries",
    "ZeroBackoff",
    "client_with_timeout",
    "client_with_timeouts",
    "copy_stream",
    "default_backoff",
    "download_to_file",
    "log_response",
    "retry",
    "setup_logger",
]

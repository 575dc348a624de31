# httpretry/getter.py
"""
Retrying HTTP getter.

An ``HttpGetter`` turns many physical HTTP attempts into one continuous byte
stream. Transport errors, empty responses and 5xx statuses are retried with
backoff; dropped bodies are resumed with a ``Range`` header starting at the
first byte the caller hasn't seen yet.

The first response with the expected status (200) is "first contact": its
status, headers and Content-Length describe the resource for the whole
download. Every later attempt must answer 206. 4xx responses, or a first
contact without ``Accept-Ranges: bytes``, disable retries for good.

    getter = HttpGetter("https://example.com/big.tar")
    with getter:
        status, headers = getter.start()
        shutil.copyfileobj(getter, fileobj)
    print(getter.hexdigest())
"""
from __future__ import annotations

import hashlib
import logging
import time
from typing import Callable, Iterator, Optional, Tuple, Union

import requests

from httpretry.backoff import STOP, BackoffPolicy, QuittableBackoff, default_backoff, retry
from httpretry.config import TimeoutConfig
from httpretry.errors import (
    EmptyResponseError,
    HttpRetryError,
    IncompleteBodyError,
    RetriesExhaustedError,
    UnexpectedStatusError,
)

logger = logging.getLogger(__name__)

ResponseCallback = Callable[[Optional[requests.Response], Optional[BaseException]], None]
CloseCallback = Callable[["HttpGetter"], None]

ACCEPT_ENCODING_HEADER = "Accept-Encoding"
IDENTITY_ENCODING = "identity"
ACCEPT_RANGES_HEADER = "Accept-Ranges"
ACCEPT_RANGES_VALUE = "bytes"
CONTENT_LENGTH_HEADER = "Content-Length"
RANGE_HEADER = "Range"
RANGE_FORMAT = "bytes=%d-%d"
OPEN_RANGE_FORMAT = "bytes=%d-"  # length unknown

DEFAULT_CHUNK_SIZE = 64 * 1024
DRAIN_CHUNK_SIZE = 8192

# Failures that an attempt may end with and that go through the backoff policy.
RETRYABLE_ERRORS = (requests.RequestException, HttpRetryError)


def _ignore_response(response, error) -> None:
    pass


def _ignore_close(getter) -> None:
    pass


def _parse_content_length(value: Optional[str]) -> int:
    try:
        return int(value, 10)
    except (TypeError, ValueError):
        return 0


class HttpGetter:
    """
    File-like reader that retries and resumes an HTTP GET.

    Parameters
    ----------
    request
        A ``requests.Request`` or a URL (wrapped in a GET request).
    backoff
        Policy pacing retries; defaults to ``default_backoff()``.
    session
        Session executing the attempts; defaults to a session with the
        ``TimeoutConfig`` timeouts. May be shared between getters.
    hasher
        ``hashlib``-style object fed every byte delivered; defaults to SHA-256.
    on_response
        Called once per attempt with ``(response, None)`` or ``(None, error)``.
    on_close
        Called once, with the getter, when it is first closed.

    Call ``start()`` before reading to learn the status and headers; reads
    on a getter that was never started connect on demand.

    Offsets in ``Range`` count bytes of the body as sent, so the request asks
    for ``Accept-Encoding: identity`` unless it already names an encoding.
    With an explicit encoding the stream holds the encoded body undecoded.

    A body that ends early once retries are disabled raises
    ``IncompleteBodyError`` from the read, unless the getter was closed.
    """

    def __init__(
        self,
        request: Union[requests.Request, str],
        *,
        backoff: Optional[BackoffPolicy] = None,
        session: Optional[requests.Session] = None,
        hasher=None,
        on_response: Optional[ResponseCallback] = None,
        on_close: Optional[CloseCallback] = None,
    ):
        if isinstance(request, str):
            request = requests.Request("GET", request)
        if not any(k.lower() == ACCEPT_ENCODING_HEADER.lower() for k in request.headers):
            request.headers[ACCEPT_ENCODING_HEADER] = IDENTITY_ENCODING
        self.request = request
        self.response: Optional[requests.Response] = None
        self.attempts = 0
        self.content_length = 0
        self.bytes_read = 0
        self.status_code = 0
        self.headers = None
        self._closed = False
        self._eof = False
        self._truncated = False  # last body ended before the resource did

        self.set_backoff(backoff)
        self.set_session(session)
        self.set_hash(hasher)
        self.on_response(on_response)
        self.on_close(on_close)

    # ------------------------------------------------------------------ config

    def set_backoff(self, policy: Optional[BackoffPolicy]) -> "HttpGetter":
        self._backoff = QuittableBackoff(policy if policy is not None else default_backoff())
        return self

    def set_session(self, session: Optional[requests.Session]) -> "HttpGetter":
        self._session = session if session is not None else TimeoutConfig().build_session()
        return self

    def set_hash(self, hasher) -> "HttpGetter":
        self._hasher = hasher if hasher is not None else hashlib.sha256()
        return self

    def on_response(self, callback: Optional[ResponseCallback]) -> "HttpGetter":
        self._response_cb = callback if callback is not None else _ignore_response
        return self

    def on_close(self, callback: Optional[CloseCallback]) -> "HttpGetter":
        self._close_cb = callback if callback is not None else _ignore_close
        return self

    # Older name for on_response().
    set_callback = on_response

    @property
    def backoff(self) -> QuittableBackoff:
        return self._backoff

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def expected_status(self) -> int:
        return 206 if self.bytes_read > 0 else 200

    # ------------------------------------------------------------------ attempts

    def start(self) -> Tuple[int, Optional[requests.structures.CaseInsensitiveDict]]:
        """
        Connect, retrying until first contact or until the backoff policy stops.

        Returns the status code and headers of the first response that ended
        the retries (200, or a terminal status such as 404). Raises the last
        error if no response was ever recorded.
        """
        if self.status_code:
            return self.status_code, self.headers
        if self.attempts == 0 and not self._closed:
            self._backoff.reset()

        try:
            retry(
                self.connect,
                self._backoff,
                retry_on=RETRYABLE_ERRORS,
                notify=self._log_retry,
            )
        except RETRYABLE_ERRORS as exc:
            if not self.status_code:
                logger.error(
                    "Giving up on %s after %d attempt(s): %s",
                    self.request.url, self.attempts, exc,
                )
                raise
            logger.info("Retries stopped for %s: %s", self.request.url, exc)

        return self.status_code, self.headers

    def connect(self) -> None:
        """
        Make one HTTP attempt, resuming from ``bytes_read`` when possible.

        Raises on failure; whether the failure may be retried is left to the
        backoff policy, which this method latches when a response rules out
        further attempts.
        """
        if self._backoff.done:
            raise RetriesExhaustedError(f"Retries disabled for {self.request.url}")

        expected = self.expected_status
        if expected == 206:
            if self.content_length > 0:
                byte_range = RANGE_FORMAT % (self.bytes_read, self.content_length - 1)
            else:
                byte_range = OPEN_RANGE_FORMAT % self.bytes_read
            self.request.headers[RANGE_HEADER] = byte_range
            logger.info("Resuming %s with %s", self.request.url, byte_range)

        res, err = None, None
        try:
            res = self._send()
        except requests.RequestException as exc:
            err = exc
        self.attempts += 1
        self._response_cb(res, err)
        if err is not None:
            logger.warning("Attempt %d for %s failed: %s", self.attempts, self.request.url, err)
            raise err

        if not res.status_code:
            res.close()
            raise EmptyResponseError()

        # Short bodies are detected against content_length in readinto_once().
        if hasattr(res.raw, "enforce_content_length"):
            res.raw.enforce_content_length = False
        self.response = res

        if res.status_code == expected:
            self._record(res)
            return

        # A mismatched resume is never useful; don't read what it sent.
        if expected == 206:
            self._release()

        if 500 <= res.status_code <= 599:
            self._discard()
        else:
            self._record(res)
            self._backoff.mark_done()
            logger.warning(
                "Got status %d from %s, not retrying", res.status_code, self.request.url
            )

        raise UnexpectedStatusError(expected, res.status_code)

    def _send(self) -> requests.Response:
        prepared = self._session.prepare_request(self.request)
        settings = self._session.merge_environment_settings(prepared.url, {}, True, None, None)
        return self._session.send(prepared, **settings)

    def _record(self, res: requests.Response) -> None:
        """Latch status, headers and length from first contact."""
        if self.status_code:
            return

        self.status_code = res.status_code
        self.headers = res.headers
        self.content_length = _parse_content_length(res.headers.get(CONTENT_LENGTH_HEADER))

        accept = res.headers.get(ACCEPT_RANGES_HEADER, "")
        if accept.strip().lower() != ACCEPT_RANGES_VALUE:
            logger.info("%s does not accept byte ranges; retries disabled", self.request.url)
            self._backoff.mark_done()

    def _log_retry(self, exc: BaseException, wait: float) -> None:
        logger.warning("Retrying %s in %.1fs after: %s", self.request.url, wait, exc)

    # ------------------------------------------------------------------ reading

    def readinto_once(self, buffer) -> Optional[int]:
        """
        Take one step of the read loop.

        Returns the number of bytes copied into ``buffer``, 0 at the end of the
        stream, or None when the connection was lost or a failed reconnect
        has been waited out, and the call should simply be repeated. Raises
        once retries are exhausted; a dropped body that can no longer be
        resumed raises ``IncompleteBodyError``.
        """
        if self._eof:
            return 0

        if self.response is None:
            try:
                self.connect()
            except RETRYABLE_ERRORS as exc:
                wait = self._backoff.next_backoff()
                if wait is STOP:
                    if isinstance(exc, RetriesExhaustedError):
                        if self._closed or not self._truncated:
                            self._eof = True
                            return 0
                        logger.error(
                            "Stream from %s stopped at %d bytes with retries disabled",
                            self.request.url, self.bytes_read,
                        )
                        raise IncompleteBodyError(
                            self.request.url, self.bytes_read, self.content_length
                        ) from exc
                    logger.error("Read from %s failed for good: %s", self.request.url, exc)
                    raise
                self._log_retry(exc, wait)
                time.sleep(wait)
                return None

            self._truncated = False
            if not self._backoff.done:
                self._backoff.reset()

        view = memoryview(buffer).cast("B")
        if not len(view):
            return 0

        try:
            data = self.response.raw.read(len(view))
        except Exception as exc:  # any body failure is handled by reconnecting
            logger.warning(
                "Stream from %s dropped after %d bytes: %s",
                self.request.url, self.bytes_read, exc,
            )
            self._release()
            self._truncated = True
            return None

        if data:
            size = len(data)
            view[:size] = data
            self.bytes_read += size
            self._hasher.update(data)
            return size

        self._release()
        if self.content_length and self.bytes_read < self.content_length:
            logger.warning(
                "Stream from %s ended at %d of %d bytes",
                self.request.url, self.bytes_read, self.content_length,
            )
            self._truncated = True
            return None

        self._eof = True
        return 0

    def readinto(self, buffer) -> int:
        while True:
            size = self.readinto_once(buffer)
            if size is not None:
                return size

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            return self.readall()
        buf = bytearray(size)
        n = self.readinto(buf)
        return bytes(buf[:n])

    def readall(self) -> bytes:
        return b"".join(self.iter_chunks())

    def iter_chunks(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        buf = bytearray(chunk_size)
        while True:
            n = self.readinto(buf)
            if not n:
                return
            yield bytes(buf[:n])

    def __iter__(self) -> Iterator[bytes]:
        return self.iter_chunks()

    def readable(self) -> bool:
        return True

    def hexdigest(self) -> str:
        """Hex digest of every byte delivered so far."""
        return self._hasher.hexdigest()

    # ------------------------------------------------------------------ cleanup

    def close(self) -> None:
        """Stop all further attempts and release the open response, if any."""
        self._backoff.mark_done()
        if not self._closed:
            self._closed = True
            self._close_cb(self)
        self._release()

    def __enter__(self) -> "HttpGetter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _release(self) -> None:
        res, self.response = self.response, None
        if res is not None:
            res.close()

    def _discard(self) -> None:
        """Read the rest of the open body so the connection can be reused, then close it."""
        res = self.response
        if res is None:
            return
        try:
            for _ in res.iter_content(DRAIN_CHUNK_SIZE):
                pass
        except (requests.RequestException, OSError) as exc:
            logger.debug("Failed to drain response from %s: %s", self.request.url, exc)
        finally:
            self._release()

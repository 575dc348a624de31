# httpretry/errors.py
"""Exceptions raised by the getter and the download helpers."""
from __future__ import annotations


class HttpRetryError(Exception):
    """Base class for errors raised by httpretry."""


class EmptyResponseError(HttpRetryError):
    """The transport returned a response with status code 0."""

    def __init__(self, message: str = "Received response with status code 0"):
        super().__init__(message)


class UnexpectedStatusError(HttpRetryError):
    """An attempt returned a status other than the one it expected."""

    def __init__(self, expected: int, status_code: int):
        super().__init__(f"Expected status code {expected}, got {status_code}")
        self.expected = expected
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return 500 <= self.status_code <= 599


class RetriesExhaustedError(HttpRetryError):
    """An attempt was refused because retries have been disabled."""


class DownloadError(HttpRetryError):
    """A download could not be completed."""


class ChecksumMismatchError(DownloadError):
    def __init__(self, expected: str, actual: str):
        super().__init__(f"SHA-256 mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class IncompleteBodyError(HttpRetryError):
    """The body ended early and retries were disabled, so it can't be resumed."""

    def __init__(self, url: str, bytes_read: int, content_length: int):
        if content_length:
            detail = f"{bytes_read} of {content_length} bytes"
        else:
            detail = f"{bytes_read} bytes"
        super().__init__(f"Body of {url} ended after {detail} and cannot be resumed")
        self.url = url
        self.bytes_read = bytes_read
        self.content_length = content_length

# httpretry/download.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Union

import requests
from tqdm import tqdm

from httpretry.backoff import BackoffPolicy
from httpretry.errors import ChecksumMismatchError, DownloadError, IncompleteBodyError
from httpretry.getter import DEFAULT_CHUNK_SIZE, HttpGetter

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class DownloadResult:
    path: Path
    status_code: int
    bytes_read: int
    sha256: str
    attempts: int


def copy_stream(
    getter: HttpGetter,
    fileobj: BinaryIO,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress_cb: Optional[ProgressCallback] = None,
) -> int:
    """
    Write everything the getter delivers into ``fileobj``.

    ``progress_cb(bytes_read, content_length)`` is called after every chunk
    (content_length is 0 when the server didn't announce one). Returns the
    number of bytes written.
    """
    written = 0
    for chunk in getter.iter_chunks(chunk_size):
        fileobj.write(chunk)
        written += len(chunk)
        if progress_cb is not None:
            progress_cb(getter.bytes_read, getter.content_length)
    return written


def download_to_file(
    url: Union[str, requests.Request],
    dest: str | Path,
    *,
    session: Optional[requests.Session] = None,
    backoff: Optional[BackoffPolicy] = None,
    expected_sha256: Optional[str] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress_cb: Optional[ProgressCallback] = None,
    show_progress: bool = False,
) -> DownloadResult:
    """
    Download ``url`` to ``dest`` through a retrying getter.

    Bytes land in ``<dest>.part`` first and are moved into place only once the
    length matches Content-Length and, when given, the SHA-256 matches
    ``expected_sha256``. The partial file is removed on any failure.

    Raises
    ------
    DownloadError
        Non-2xx status at first contact, or a body that ended early and
        could not be resumed.
    ChecksumMismatchError
        The digest of the delivered bytes differs from ``expected_sha256``.
    requests.RequestException
        Transport failures that outlived the backoff policy.
    """
    dest = Path(dest).expanduser()
    dest.parent.mkdir(parents=True, exist_ok=True)
    part = dest.with_name(dest.name + ".part")

    with HttpGetter(url, session=session, backoff=backoff) as getter:
        status, _ = getter.start()
        if not 200 <= status < 300:
            raise DownloadError(f"Download of {getter.request.url} failed with HTTP {status}")

        try:
            with open(part, "wb") as f, tqdm(
                total=getter.content_length or None,
                desc=dest.name,
                unit="B",
                unit_scale=True,
                ncols=100,
                disable=not show_progress,
            ) as pbar:
                def _progress(done: int, total: int) -> None:
                    pbar.update(done - pbar.n)
                    if progress_cb is not None:
                        progress_cb(done, total)

                try:
                    copy_stream(getter, f, chunk_size=chunk_size, progress_cb=_progress)
                except IncompleteBodyError as exc:
                    raise DownloadError(str(exc)) from exc
                f.flush()
                os.fsync(f.fileno())

            if getter.content_length and getter.bytes_read != getter.content_length:
                raise DownloadError(
                    f"Downloaded {getter.bytes_read} bytes, expected {getter.content_length}"
                )

            digest = getter.hexdigest()
            if expected_sha256 and digest != expected_sha256.lower():
                raise ChecksumMismatchError(expected_sha256, digest)

            part.replace(dest)
        except BaseException:
            part.unlink(missing_ok=True)
            raise

    logger.info(
        "Downloaded %s to %s (%d bytes, %d attempt(s))",
        getter.request.url, dest, getter.bytes_read, getter.attempts,
    )
    return DownloadResult(
        path=dest,
        status_code=status,
        bytes_read=getter.bytes_read,
        sha256=digest,
        attempts=getter.attempts,
    )

"""Fetch utilities for streaming source tarballs into a working directory."""

from __future__ import annotations

import io
import time
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

import httpx
import structlog

from deploy_to_cf.core.exceptions import ArchiveError
from deploy_to_cf.deploy.archive import extract_tarball


logger = structlog.get_logger()


class _ChunkStream(io.RawIOBase):
    """Readable file object over an iterator of byte chunks.

    Enforces a maximum size while tarfile pulls from it.
    """

    def __init__(self, chunks: Iterable[bytes], max_size_bytes: int):
        self._chunks: Iterator[bytes] = iter(chunks)
        self._pending = b""
        self._max_size_bytes = max_size_bytes
        self.bytes_read = 0

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
            self.bytes_read += len(self._pending)
            if self.bytes_read > self._max_size_bytes:
                raise ArchiveError("Archive exceeds maximum allowed size")
        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size


def _retryable(error: Exception) -> bool:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code >= 500
    return isinstance(error, httpx.TransportError)


def _public_url(url: str) -> str:
    """URL without query or fragment; signed download links carry tokens there."""
    try:
        return str(httpx.URL(url).copy_with(query=None, fragment=None))
    except (httpx.InvalidURL, TypeError):
        return "<invalid url>"


def _describe(error: Exception) -> str:
    """Failure summary that never includes the request URL."""
    if isinstance(error, httpx.HTTPStatusError):
        return f"HTTP {error.response.status_code}"
    return error.__class__.__name__


def fetch_archive(
    url: str,
    dest: Path,
    *,
    max_size_bytes: int = 500 * 1024 * 1024,  # 500MB
    total_timeout_sec: float = 120.0,
    max_retries: int = 3,
    backoff_base: float = 0.3,
    headers: Optional[dict] = None,
) -> List[str]:
    """Download a .tar.gz and extract it into dest without touching disk first.

    Transport errors and 5xx responses are retried with bounded exponential
    backoff inside the total timeout. Client errors and corrupt archives fail
    immediately.

    Returns:
        Top-level entry names of the extracted archive.

    Raises:
        ArchiveError: if the archive cannot be downloaded or extracted.
    """
    start = time.time()
    attempt = 0
    last_error: Optional[Exception] = None
    public_url = _public_url(url)

    while attempt < max_retries and (time.time() - start) < total_timeout_sec:
        attempt += 1
        try:
            logger.info("Downloading archive", url=public_url, dest=str(dest), attempt=attempt)
            timeout = httpx.Timeout(total_timeout_sec - (time.time() - start))
            with httpx.Client(timeout=timeout, headers=headers) as client:
                with client.stream("GET", url, follow_redirects=True) as resp:
                    resp.raise_for_status()
                    stream = _ChunkStream(resp.iter_bytes(), max_size_bytes)
                    names = extract_tarball(io.BufferedReader(stream), dest)
                    logger.info("Downloaded archive", bytes=stream.bytes_read, entries=names)
                    return names
        except ArchiveError:
            raise
        except httpx.HTTPError as e:
            last_error = e
            elapsed = time.time() - start
            remaining = total_timeout_sec - elapsed
            logger.warning(
                "Archive fetch attempt failed",
                url=public_url,
                attempt=attempt,
                error=_describe(e),
                remaining_time_sec=max(0.0, remaining),
            )
            if not _retryable(e) or attempt >= max_retries or remaining <= 0:
                break
            sleep_for = min(backoff_base * (2 ** (attempt - 1)), max(0.0, remaining))
            time.sleep(sleep_for)

    reason = _describe(last_error) if last_error is not None else "timed out"
    raise ArchiveError(f"Failed to fetch archive after {attempt} attempts: {reason}")

"""Download sources while hashing them incrementally."""
import hashlib
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx

from ci_mirrors import config
from ci_mirrors.tools.errors import (
    DownloadWriteError,
    FetchError,
    FetchHttpStatusError,
    FetchNetworkError,
    TooManyRedirects,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchedFile:
    """A downloaded source on local disk and the digest of its bytes."""
    path: Path
    sha256: str
    size_bytes: int
    final_url: str  # after redirects


class Fetcher:
    """
    Streams a URL to disk, following a bounded number of redirects.

    Only a fixed-size chunk is held in memory at a time. No retries happen
    here; a failed fetch raises and the caller decides what to do.
    """

    def __init__(
        self,
        max_redirects: int = config.MAX_REDIRECTS,
        chunk_size: int = config.CHUNK_SIZE,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.max_redirects = max_redirects
        self.chunk_size = chunk_size
        self.client = httpx.Client(
            follow_redirects=True,
            max_redirects=max_redirects,
            timeout=httpx.Timeout(config.READ_TIMEOUT, connect=config.CONNECT_TIMEOUT),
            # Ask for the bytes as stored so the digest covers the real file.
            headers={"User-Agent": config.USER_AGENT, "Accept-Encoding": "identity"},
            transport=transport,
        )

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.client.close()

    def fetch(self, url: str, destination: Path) -> FetchedFile:
        """
        Download ``url`` into ``destination``.

        Raises:
            TooManyRedirects: more than ``max_redirects`` hops.
            FetchHttpStatusError: the final response was not 2xx.
            FetchNetworkError: connection, timeout or protocol failure.
            DownloadWriteError: the destination could not be written.
        """
        logger.info("downloading %s", url)
        try:
            fetched = self._stream(url, destination)
        except FetchError:
            destination.unlink(missing_ok=True)
            raise
        logger.debug("downloaded %s (%d bytes, sha256 %s)", url, fetched.size_bytes, fetched.sha256)
        return fetched

    def _stream(self, url: str, destination: Path) -> FetchedFile:
        digest = hashlib.sha256()
        size = 0
        try:
            with self.client.stream("GET", url) as response:
                if not response.is_success:
                    raise FetchHttpStatusError(url, response.status_code)
                if response.history:
                    logger.debug("%s redirected to %s", url, response.url)
                with destination.open("wb") as f:
                    # Raw bytes: the digest must not depend on transfer encoding.
                    for chunk in response.iter_raw(chunk_size=self.chunk_size):
                        digest.update(chunk)
                        f.write(chunk)
                        size += len(chunk)
                final_url = str(response.url)
        except httpx.TooManyRedirects as exc:
            raise TooManyRedirects(url, self.max_redirects) from exc
        except httpx.HTTPError as exc:
            raise FetchNetworkError(url, str(exc) or type(exc).__name__) from exc
        except OSError as exc:
            raise DownloadWriteError(url, f"cannot write {destination}: {exc}") from exc

        return FetchedFile(
            path=destination,
            sha256=digest.hexdigest(),
            size_bytes=size,
            final_url=final_url,
        )


class Downloader:
    """Temporary directory that receives one file per fetched source."""

    def __init__(self, fetcher: Optional[Fetcher] = None):
        self.fetcher = fetcher or Fetcher()
        self._owns_fetcher = fetcher is None
        self._tmp: Optional[tempfile.TemporaryDirectory] = None
        self._count = 0

    def __enter__(self) -> "Downloader":
        self._tmp = tempfile.TemporaryDirectory(prefix="ci-mirrors-")
        return self

    def __exit__(self, *exc_info) -> None:
        if self._tmp is not None:
            self._tmp.cleanup()
            self._tmp = None
        if self._owns_fetcher:
            self.fetcher.close()

    def download(self, url: str) -> FetchedFile:
        if self._tmp is None:
            raise RuntimeError("Downloader must be used as a context manager")
        self._count += 1
        destination = Path(self._tmp.name) / f"download-{self._count}"
        return self.fetcher.fetch(url, destination)

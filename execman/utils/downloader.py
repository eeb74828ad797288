"""
File Downloader for Release Assets

Streams an asset to disk in one pass with:
- Progress tracking and callbacks
- Owner-only permissions on the written file
- Removal of partial files when a transfer fails

No resume and no retry; a failed transfer is reported immediately.
"""

import os
import time
import logging
from pathlib import Path
from typing import Optional, Callable
from dataclasses import dataclass

import requests

from .. import __version__
from ..exceptions import DownloadError


@dataclass
class DownloadResult:
    """
    Container for download operation results.

    Attributes:
        file_path: Path to the downloaded file
        file_size: Size of the downloaded file in bytes
        download_time: Time taken for download in seconds
        http_status: HTTP status code from the request
    """
    file_path: Path
    file_size: int = 0
    download_time: float = 0.0
    http_status: Optional[int] = None


@dataclass
class DownloadProgress:
    """
    Container for download progress information.

    Attributes:
        downloaded_bytes: Number of bytes downloaded so far
        total_bytes: Total file size in bytes (0 if unknown)
        percentage: Download completion percentage (0-100)
    """
    downloaded_bytes: int
    total_bytes: int
    percentage: float


def _content_length(headers) -> int:
    """Declared body size, or 0 when the header is missing or malformed."""
    try:
        return max(int(headers.get('content-length') or 0), 0)
    except (TypeError, ValueError):
        return 0


class FileDownloader:
    """
    Downloads release assets over HTTP.
    """

    def __init__(self,
                 chunk_size: int = 64 * 1024,
                 timeout: float = 30,
                 session: Optional[requests.Session] = None):
        """
        Initialize the file downloader.

        Args:
            chunk_size: Size of chunks to download at a time (bytes)
            timeout: Request timeout in seconds
            session: Optional pre-configured requests session
        """
        self.chunk_size = chunk_size
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

        # Session for connection pooling and header persistence
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': f'execman/{__version__}'
        })

    def download_file(self,
                      url: str,
                      target_path: Path,
                      progress_callback: Optional[Callable[[DownloadProgress], None]] = None
                      ) -> DownloadResult:
        """
        Download a URL to a file.

        Args:
            url: URL to download from
            target_path: File to write; parent directories are created
            progress_callback: Function to call with progress updates

        Returns:
            DownloadResult: Details about the download operation

        Raises:
            DownloadError: On a non-200 status, transport error or write error
        """
        start_time = time.time()
        target_path.parent.mkdir(parents=True, exist_ok=True)
        context = {"url": url, "file": target_path.name}

        self.logger.info(f"Downloading {url}")

        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as response:
                if response.status_code != 200:
                    raise DownloadError(
                        f"Download of {target_path.name} failed: "
                        f"HTTP {response.status_code} {response.reason}",
                        context, status_code=response.status_code,
                    )

                total_size = _content_length(response.headers)
                downloaded_size = self._write_stream(
                    response, target_path, total_size, progress_callback
                )
                status = response.status_code

        except requests.exceptions.Timeout as e:
            self.cleanup_partial_download(target_path)
            raise DownloadError(f"Download of {target_path.name} timed out", context) from e
        except requests.exceptions.RequestException as e:
            self.cleanup_partial_download(target_path)
            raise DownloadError(f"Download of {target_path.name} failed: {e}", context) from e
        except OSError as e:
            self.cleanup_partial_download(target_path)
            raise DownloadError(f"File system error writing {target_path}: {e}", context) from e
        except DownloadError:
            self.cleanup_partial_download(target_path)
            raise

        download_time = time.time() - start_time
        self.logger.debug(
            f"Downloaded {downloaded_size} bytes to {target_path} in {download_time:.2f}s"
        )
        return DownloadResult(
            file_path=target_path,
            file_size=downloaded_size,
            download_time=download_time,
            http_status=status,
        )

    def _write_stream(self, response: requests.Response, target_path: Path, total_size: int,
                      progress_callback: Optional[Callable[[DownloadProgress], None]]) -> int:
        downloaded_size = 0
        fd = os.open(target_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, 'wb') as f:
            for chunk in response.iter_content(chunk_size=self.chunk_size):
                if not chunk:  # Filter out keep-alive chunks
                    continue
                f.write(chunk)
                downloaded_size += len(chunk)
                if progress_callback:
                    percentage = (downloaded_size / total_size * 100) if total_size > 0 else 0.0
                    progress_callback(DownloadProgress(
                        downloaded_bytes=downloaded_size,
                        total_bytes=total_size,
                        percentage=percentage,
                    ))
        return downloaded_size

    def fetch_text(self, url: str) -> str:
        """
        Download a small text resource, such as a checksums manifest.

        Raises:
            DownloadError: On a non-200 status or transport error
        """
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise DownloadError(f"Download of {url} failed: {e}", {"url": url}) from e

        if response.status_code != 200:
            raise DownloadError(
                f"Download of {url} failed: HTTP {response.status_code}",
                {"url": url}, status_code=response.status_code,
            )
        return response.text

    def cleanup_partial_download(self, file_path: Path) -> None:
        """Remove a partially written file, if any."""
        try:
            if file_path.exists():
                file_path.unlink()
                self.logger.debug(f"Cleaned up partial download: {file_path}")
        except OSError as e:
            self.logger.warning(f"Failed to cleanup partial download {file_path}: {e}")

    def close(self) -> None:
        self.session.close()

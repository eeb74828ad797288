"""
Executable Extraction for Release Archives

Pulls the executable payload out of a downloaded asset:
- gzip-compressed tar archives (.tar.gz, .tgz)
- ZIP archives carrying Unix permission bits
- bare binaries, used as-is

The payload is the first regular file, in archive order, with any executable
permission bit set. This is a policy for single-binary archives; for archives
holding several executables the choice follows upstream entry order.
"""

import os
import stat
import shutil
import tarfile
import zipfile
import zlib
import logging
import tempfile
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Optional
from dataclasses import dataclass

from ..exceptions import ArchiveError, NoExecutableFoundError

EXECUTABLE_BITS = 0o111


@dataclass
class ExtractionResult:
    """
    Container for extraction results.

    Attributes:
        extracted_path: Path the executable was written to
        member_name: Archive entry the executable came from
        file_size: Size of the executable in bytes
    """
    extracted_path: Path
    member_name: str
    file_size: int = 0


def archive_kind(name: str) -> str:
    """Classify an asset name as ``tar``, ``zip`` or ``binary``."""
    lower = name.lower()
    if lower.endswith(('.tar.gz', '.tgz')):
        return 'tar'
    if lower.endswith('.zip'):
        return 'zip'
    return 'binary'


class ArchiveExtractor:
    """
    Extracts a single executable from an asset into a fixed destination.

    The destination path is the only place anything is written. Entry names
    are inspected but never joined into an output path, and entries whose
    names would escape their archive root are skipped.
    """

    def __init__(self, buffer_size: int = 64 * 1024):
        """
        Initialize the extractor.

        Args:
            buffer_size: Size of buffer for file copy operations (bytes)
        """
        self.buffer_size = buffer_size
        self.logger = logging.getLogger(__name__)

    def extract_executable(self, archive_path: Path, dest_path: Path,
                           asset_name: Optional[str] = None) -> ExtractionResult:
        """
        Extract the executable payload of an asset to ``dest_path``.

        Args:
            archive_path: Downloaded asset
            dest_path: Final executable path; replaced atomically
            asset_name: Upstream asset name used to pick the format

        Returns:
            ExtractionResult: Where the executable went and where it came from

        Raises:
            NoExecutableFoundError: No entry has an executable bit
            ArchiveError: The archive is corrupt or unreadable
        """
        kind = archive_kind(asset_name or archive_path.name)
        self.logger.info(f"Extracting executable from {archive_path.name} ({kind})")

        try:
            if kind == 'tar':
                return self._extract_from_tar(archive_path, dest_path)
            if kind == 'zip':
                return self._extract_from_zip(archive_path, dest_path)
            with open(archive_path, 'rb') as source:
                return self._install_stream(source, dest_path, archive_path.name)
        except (tarfile.TarError, zipfile.BadZipFile, zlib.error, EOFError) as e:
            raise ArchiveError(
                f"Corrupted archive {archive_path.name}: {e}", {"archive": archive_path.name}
            ) from e
        except OSError as e:
            raise ArchiveError(
                f"Failed to extract {archive_path.name}: {e}", {"archive": archive_path.name}
            ) from e

    def _extract_from_tar(self, archive_path: Path, dest_path: Path) -> ExtractionResult:
        with tarfile.open(archive_path, mode='r:gz') as tar:
            for member in tar:
                # Skips directories, links and device entries
                if not member.isreg():
                    continue
                if not member.mode & EXECUTABLE_BITS:
                    continue
                if not self._is_safe_path(member.name):
                    self.logger.warning(f"Skipping unsafe path: {member.name}")
                    continue
                source = tar.extractfile(member)
                if source is None:
                    continue
                with source:
                    return self._install_stream(source, dest_path, member.name)

        raise NoExecutableFoundError(
            f"No executable file found in archive {archive_path.name}",
            {"archive": archive_path.name},
        )

    def _extract_from_zip(self, archive_path: Path, dest_path: Path) -> ExtractionResult:
        with zipfile.ZipFile(archive_path, 'r') as zip_ref:
            for info in zip_ref.infolist():
                if info.is_dir():
                    continue
                mode = info.external_attr >> 16
                if stat.S_ISLNK(mode) or not mode & EXECUTABLE_BITS:
                    continue
                if not self._is_safe_path(info.filename):
                    self.logger.warning(f"Skipping unsafe path: {info.filename}")
                    continue
                with zip_ref.open(info) as source:
                    return self._install_stream(source, dest_path, info.filename)

        raise NoExecutableFoundError(
            f"No executable file found in archive {archive_path.name}",
            {"archive": archive_path.name},
        )

    def _install_stream(self, source: BinaryIO, dest_path: Path,
                        member_name: str) -> ExtractionResult:
        """
        Copy a stream to ``dest_path`` through a temp file in the same directory.

        The destination only ever holds a complete executable; the temp file
        is removed when the copy fails.
        """
        dest_dir = dest_path.parent
        dest_dir.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=dest_dir, prefix=f".{dest_path.name}.", suffix=".tmp")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, 'wb') as target:
                shutil.copyfileobj(source, target, self.buffer_size)
                target.flush()
                os.fchmod(target.fileno(), 0o755)
            os.replace(tmp_path, dest_path)
        except BaseException:
            self._remove_quietly(tmp_path)
            raise

        size = dest_path.stat().st_size
        self.logger.debug(f"Extracted {member_name} to {dest_path} ({size} bytes)")
        return ExtractionResult(extracted_path=dest_path, member_name=member_name, file_size=size)

    def _remove_quietly(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning(f"Failed to remove temporary file {path}: {e}")

    @staticmethod
    def _is_safe_path(member_name: str) -> bool:
        """
        Check that an entry name stays inside its archive root.

        Args:
            member_name: Entry name from the archive

        Returns:
            bool: False for absolute names or names climbing out with ``..``
        """
        normalized = member_name.replace('\\', '/')
        path = PurePosixPath(normalized)
        if path.is_absolute() or (len(normalized) > 1 and normalized[1] == ':'):
            return False
        return '..' not in path.parts

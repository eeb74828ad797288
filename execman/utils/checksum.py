"""
SHA-256 checksum calculation and manifest verification.

Manifests are the ``checksums.txt`` files goreleaser and similar tools
publish next to release assets::

    3b0c...e1f2  tool_linux_amd64.tar.gz
    9a8d...07bc *dist/tool_darwin_arm64.tar.gz
"""

import hashlib
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from ..exceptions import ChecksumMismatchError, ChecksumMissingError

PREFIX = "sha256:"

_DIGEST_RE = re.compile(r"^[0-9a-fA-F]{64}$")
_CHECKSUM_RE = re.compile(r"^sha256:[0-9a-f]{64}$")

logger = logging.getLogger(__name__)


def calculate_checksum(file_path: Path, chunk_size: int = 64 * 1024) -> str:
    """Return the ``sha256:<hex>`` digest of a file."""
    hasher = hashlib.sha256()
    with open(file_path, 'rb') as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            hasher.update(chunk)
    return PREFIX + hasher.hexdigest()


def is_valid_checksum(value: str) -> bool:
    return isinstance(value, str) and _CHECKSUM_RE.fullmatch(value) is not None


def parse_checksums(text: str) -> Dict[str, str]:
    """
    Parse a checksums manifest into ``{basename: "sha256:<hex>"}``.

    Lines whose first field is not a 64-character hex digest are ignored.
    """
    entries: Dict[str, str] = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 2 or not _DIGEST_RE.match(parts[0]):
            continue
        # "*" marks binary mode in sha256sum output
        filename = parts[-1].lstrip('*')
        filename = os.path.basename(filename.replace('\\', '/'))
        entries.setdefault(filename, PREFIX + parts[0].lower())
    return entries


def find_checksum(manifest_text: str, filename: str) -> Optional[str]:
    """Return the expected digest for ``filename``, or None if not listed."""
    return parse_checksums(manifest_text).get(os.path.basename(filename))


@dataclass
class VerificationResult:
    """
    Outcome of a checksum verification.

    Attributes:
        actual: Digest of the downloaded file
        expected: Digest from the manifest, None when no entry was found
        verified: True only when a manifest entry existed and matched
    """
    actual: str
    expected: Optional[str] = None
    verified: bool = False


class ChecksumVerifier:
    """
    Checks downloaded assets against a published manifest.

    A missing manifest, or a manifest without an entry for the asset, skips
    verification unless ``strict`` is set.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict

    def verify(self, file_path: Path, asset_name: str,
               manifest_text: Optional[str] = None) -> VerificationResult:
        """
        Verify a downloaded file.

        Args:
            file_path: Downloaded asset
            asset_name: Upstream asset name looked up in the manifest
            manifest_text: Manifest contents, None if the release has none

        Raises:
            ChecksumMismatchError: Manifest entry found and digests differ
            ChecksumMissingError: Strict mode and no manifest entry
        """
        actual = calculate_checksum(file_path)

        expected = None
        if manifest_text is not None:
            expected = find_checksum(manifest_text, asset_name)

        if expected is None:
            reason = "no checksums manifest" if manifest_text is None else "no manifest entry"
            if self.strict:
                raise ChecksumMissingError(
                    f"Cannot verify {asset_name}: {reason}", {"asset": asset_name}
                )
            logger.warning(f"Checksum verification skipped for {asset_name} ({reason})")
            return VerificationResult(actual=actual)

        if actual != expected:
            logger.error(
                f"Checksum mismatch for {asset_name}. Expected: {expected}, Got: {actual}"
            )
            raise ChecksumMismatchError(asset_name, expected, actual)

        logger.info(f"Checksum verified for {asset_name}")
        return VerificationResult(actual=actual, expected=expected, verified=True)

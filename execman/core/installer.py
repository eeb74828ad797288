"""
Installation Pipeline

Drives one managed name through resolve → select → match → download →
verify → extract → register, and runs check/update across many names on a
thread pool. Only the final register step touches the registry, so a failure
anywhere earlier leaves installed state exactly as it was.
"""

import logging
import tempfile
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Optional, TypeVar
from dataclasses import dataclass
from concurrent.futures import ThreadPoolExecutor

from ..exceptions import ExecmanError, PipelineError
from ..utils.checksum import ChecksumVerifier
from ..utils.downloader import FileDownloader
from ..utils.extractor import ArchiveExtractor
from .assets import AssetMatcher, detect_platform, find_checksums_asset
from .config import ConfigManager
from .github_client import GitHubAPIClient
from .registry import ExecutableRecord, Registry
from .source import parse_source

T = TypeVar('T')


class PipelineStage(Enum):
    IDLE = "Idle"
    RESOLVING = "Resolving"
    SELECTING = "Selecting"
    MATCHING = "Matching"
    DOWNLOADING = "Downloading"
    VERIFYING = "Verifying"
    EXTRACTING = "Extracting"
    REGISTERING = "Registering"
    DONE = "Done"
    FAILED = "Failed"


@dataclass
class InstallResult:
    """
    Outcome of one pipeline run.

    Attributes:
        name: Local name
        version: Tag now installed
        previous_version: Tag installed before, None for a fresh install
        path: Executable path
        checksum: Digest of the downloaded asset
        verified: Whether a manifest entry confirmed the digest
        changed: False when the release was already installed
    """
    name: str
    version: str
    previous_version: Optional[str]
    path: str
    checksum: str = ""
    verified: bool = False
    changed: bool = True


@dataclass
class CheckResult:
    """Update status of one managed name."""
    name: str
    current_version: str
    latest_version: Optional[str] = None
    update_available: bool = False
    error: Optional[ExecmanError] = None


@dataclass
class UpdateResult:
    """Outcome of updating one managed name."""
    name: str
    previous_version: str
    version: Optional[str] = None
    updated: bool = False
    error: Optional[ExecmanError] = None


class Installer:
    """
    Runs the acquisition pipeline against an explicit registry.

    The registry is passed in rather than loaded here, so every operation
    works on the same in-memory model and the caller decides when it is
    loaded.
    """

    def __init__(self,
                 registry: Registry,
                 client: GitHubAPIClient,
                 downloader: Optional[FileDownloader] = None,
                 extractor: Optional[ArchiveExtractor] = None,
                 verifier: Optional[ChecksumVerifier] = None,
                 os_name: Optional[str] = None,
                 arch: Optional[str] = None,
                 install_dir: Optional[Path] = None,
                 include_prereleases: bool = False,
                 max_workers: int = 4,
                 status_callback: Optional[Callable[[str, PipelineStage], None]] = None):
        """
        Initialize the installer.

        Args:
            registry: Loaded registry the results are recorded in
            client: Release API client
            downloader: Asset downloader
            extractor: Archive extractor
            verifier: Checksum verifier
            os_name: Target OS, defaults to the host
            arch: Target architecture, defaults to the host
            install_dir: Directory for new installs, defaults to the registry's
            include_prereleases: Whether pre-releases count as latest
            max_workers: Parallel workers for batch check/update
            status_callback: Called with (name, stage) on every transition
        """
        self.logger = logging.getLogger(__name__)
        self.registry = registry
        self.client = client
        self.downloader = downloader or FileDownloader(timeout=client.timeout)
        self.extractor = extractor or ArchiveExtractor()
        self.verifier = verifier or ChecksumVerifier()

        host_os, host_arch = detect_platform()
        self.matcher = AssetMatcher(os_name or host_os, arch or host_arch)
        self.install_dir = install_dir
        self.include_prereleases = include_prereleases
        self.max_workers = max_workers
        self.status_callback = status_callback

    @classmethod
    def from_config(cls, config: ConfigManager, registry: Registry, **kwargs) -> "Installer":
        """Build an installer wired with the user's settings."""
        timeout = config.get_request_timeout()
        client = GitHubAPIClient(github_token=config.get_github_token() or None, timeout=timeout)
        kwargs.setdefault('include_prereleases', config.get_include_prereleases())
        kwargs.setdefault('install_dir', config.get_install_dir())
        kwargs.setdefault('max_workers', config.get_max_workers())
        kwargs.setdefault('verifier', ChecksumVerifier(strict=config.get_require_checksums()))
        kwargs.setdefault('downloader', FileDownloader(timeout=timeout))
        return cls(registry, client, **kwargs)

    @property
    def platform(self) -> str:
        return self.matcher.platform

    def install(self, source: str, name: Optional[str] = None,
                install_dir: Optional[Path] = None, force: bool = False) -> InstallResult:
        """
        Install an executable from a source identifier and save the registry.

        Args:
            source: Source identifier, optionally pinned with ``@version``
            name: Local name, defaults to the project name
            install_dir: Directory to install into
            force: Reinstall even when the release is already installed

        Raises:
            PipelineError: A stage failed; the registry is unchanged
        """
        result = self._run_pipeline(source, name=name, install_dir=install_dir, force=force)
        if result.changed:
            self.registry.save()
        return result

    def check(self, names: Optional[Iterable[str]] = None) -> List[CheckResult]:
        """
        Compare installed versions with the latest upstream releases.

        Never modifies the registry. Failures are reported per name.
        """
        return self._run_batch(self._resolve_names(names), self._check_one)

    def update(self, names: Optional[Iterable[str]] = None,
               force: bool = False) -> List[UpdateResult]:
        """
        Update managed executables whose latest release differs.

        Each name runs independently; the registry is saved once after all
        successful updates have been merged.
        """
        results = self._run_batch(
            self._resolve_names(names), lambda name: self._update_one(name, force)
        )
        if any(result.updated for result in results):
            self.registry.save()
        return results

    def remove(self, name: str, delete_file: bool = True) -> Optional[ExecutableRecord]:
        """
        Stop managing ``name`` and save the registry.

        Args:
            name: Local name
            delete_file: Also delete the installed executable

        Returns:
            The removed record, or None if the name was not managed
        """
        record, found = self.registry.get(name)
        if not found:
            return None

        if delete_file:
            path = Path(record.path)
            try:
                path.unlink()
                self.logger.info(f"Deleted {path}")
            except FileNotFoundError:
                self.logger.warning(f"{path} was already gone")

        self.registry.remove(name)
        self.registry.save()
        return record

    def _run_pipeline(self, source_text: str, name: Optional[str] = None,
                      install_dir: Optional[Path] = None, dest_path: Optional[Path] = None,
                      force: bool = False) -> InstallResult:
        """Run every stage for one name; records the result in memory only."""
        label = name or source_text
        stage = PipelineStage.IDLE

        def advance(next_stage: PipelineStage) -> None:
            nonlocal stage
            stage = next_stage
            self.logger.debug(f"{label}: {stage.value}")
            if self.status_callback:
                self.status_callback(label, stage)

        try:
            advance(PipelineStage.RESOLVING)
            source = parse_source(source_text)
            name = name or source.project
            label = name
            existing, _ = self.registry.get(name)

            advance(PipelineStage.SELECTING)
            release = self.client.select_release(source, self.include_prereleases)

            if (existing is not None and not force and existing.version == release.tag
                    and existing.source == source.url):
                self.logger.info(f"{name} {release.tag} is already installed")
                advance(PipelineStage.DONE)
                return InstallResult(
                    name=name, version=existing.version, previous_version=existing.version,
                    path=existing.path, checksum=existing.checksum, changed=False,
                )

            advance(PipelineStage.MATCHING)
            asset = self.matcher.find(release.assets)
            manifest_asset = find_checksums_asset(release.assets)

            if dest_path is None:
                directory = install_dir or self.install_dir or Path(self.registry.default_install_dir)
                dest_path = Path(directory).expanduser() / name

            with tempfile.TemporaryDirectory(prefix='execman-') as tmp:
                advance(PipelineStage.DOWNLOADING)
                download = self.downloader.download_file(asset.download_url, Path(tmp) / asset.name)
                manifest_text = None
                if manifest_asset is not None:
                    manifest_text = self.downloader.fetch_text(manifest_asset.download_url)

                advance(PipelineStage.VERIFYING)
                verification = self.verifier.verify(download.file_path, asset.name, manifest_text)

                advance(PipelineStage.EXTRACTING)
                self.extractor.extract_executable(download.file_path, dest_path, asset.name)

            advance(PipelineStage.REGISTERING)
            record = ExecutableRecord(
                source=source.url,
                version=release.tag,
                installed_at=datetime.now(timezone.utc),
                path=str(dest_path.resolve()),
                platform=self.platform,
                checksum=verification.actual,
            )
            self.registry.upsert(name, record)
            advance(PipelineStage.DONE)

        except ExecmanError as e:
            failed_at = stage
            advance(PipelineStage.FAILED)
            self.logger.error(f"{label}: {failed_at.value.lower()} failed: {e}")
            raise PipelineError(label, failed_at.value, e) from e
        except OSError as e:
            failed_at = stage
            advance(PipelineStage.FAILED)
            self.logger.error(f"{label}: {failed_at.value.lower()} failed: {e}")
            raise PipelineError(label, failed_at.value, ExecmanError(str(e))) from e
        except Exception as e:
            failed_at = stage
            advance(PipelineStage.FAILED)
            self.logger.exception(f"{label}: unexpected error while {failed_at.value.lower()}")
            cause = ExecmanError(f"Unexpected error: {e}", {"error": type(e).__name__})
            raise PipelineError(label, failed_at.value, cause) from e

        self.logger.info(f"Installed {name} {release.tag} to {dest_path}")
        return InstallResult(
            name=name,
            version=release.tag,
            previous_version=existing.version if existing else None,
            path=record.path,
            checksum=record.checksum,
            verified=verification.verified,
        )

    def _check_one(self, name: str) -> CheckResult:
        record, _ = self.registry.get(name)
        result = CheckResult(name=name, current_version=record.version)
        try:
            source = parse_source(record.source)
            release = self.client.select_release(source, self.include_prereleases)
        except ExecmanError as e:
            self.logger.warning(f"Check failed for {name}: {e}")
            result.error = e
            return result
        except Exception as e:
            self.logger.exception(f"Unexpected error checking {name}")
            result.error = ExecmanError(f"Unexpected error: {e}", {"error": type(e).__name__})
            return result

        result.latest_version = release.tag
        result.update_available = record.version != release.tag
        return result

    def _update_one(self, name: str, force: bool) -> UpdateResult:
        record, _ = self.registry.get(name)
        result = UpdateResult(name=name, previous_version=record.version)
        try:
            installed = self._run_pipeline(
                record.source, name=name, dest_path=Path(record.path), force=force
            )
        except PipelineError as e:
            result.error = e
            return result

        result.version = installed.version
        result.updated = installed.changed
        return result

    def _resolve_names(self, names: Optional[Iterable[str]]) -> List[str]:
        if names is None:
            return sorted(self.registry.list())

        resolved = []
        for name in names:
            _, found = self.registry.get(name)
            if not found:
                raise ExecmanError(f"Executable {name!r} is not managed by execman", {"name": name})
            resolved.append(name)
        return sorted(set(resolved))

    def _run_batch(self, names: List[str], work: Callable[[str], T]) -> List[T]:
        if not names:
            return []
        workers = max(1, min(self.max_workers, len(names)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='execman') as pool:
            return list(pool.map(work, names))

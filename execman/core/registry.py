"""
Registry of managed executables.

The registry is a single JSON document mapping each local name to the record
of what is installed under it. It is loaded wholesale, mutated in memory and
saved wholesale; only ``save()`` touches the disk.
"""

import os
import json
import logging
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, asdict

from ..exceptions import RegistryIOError
from ..utils.checksum import is_valid_checksum

SCHEMA_VERSION = 1

REGISTRY_FILENAME = "registry.json"


def config_dir() -> Path:
    """Return execman's configuration directory (``$XDG_CONFIG_HOME/execman``)."""
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / "execman"


def default_registry_path() -> Path:
    return config_dir() / REGISTRY_FILENAME


def default_bin_dir() -> Path:
    return Path.home() / ".local" / "bin"


def _format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_timestamp(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class ExecutableRecord:
    """
    What is installed under one local name.

    Attributes:
        source: Canonical project URL
        version: Tag of the installed release
        installed_at: When the install completed (UTC)
        path: Absolute path of the executable
        platform: ``os/arch`` the asset was built for
        checksum: ``sha256:<hex>`` digest of the downloaded asset
    """
    source: str
    version: str
    installed_at: datetime
    path: str
    platform: str
    checksum: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["installed_at"] = _format_timestamp(self.installed_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutableRecord":
        checksum = data.get("checksum") or ""
        if checksum and not is_valid_checksum(checksum):
            raise ValueError(f"invalid checksum {checksum!r}")
        return cls(
            source=data["source"],
            version=data["version"],
            installed_at=_parse_timestamp(data["installed_at"]),
            path=data["path"],
            platform=data.get("platform", ""),
            checksum=checksum,
        )


class Registry:
    """
    In-memory registry model bound to its backing file.

    Mutations are serialized by a lock so concurrent per-name pipelines can
    record results safely; callers save once after merging a batch.
    """

    def __init__(self, path: Path, default_install_dir: Optional[str] = None,
                 executables: Optional[Dict[str, ExecutableRecord]] = None,
                 schema_version: int = SCHEMA_VERSION):
        self.path = Path(path)
        self.schema_version = schema_version
        self.default_install_dir = default_install_dir or str(default_bin_dir())
        self.executables: Dict[str, ExecutableRecord] = dict(executables or {})
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Registry":
        """
        Load the registry, or return a fresh one if it was never written.

        Raises:
            RegistryIOError: The file exists but cannot be read or parsed
        """
        path = Path(path) if path is not None else default_registry_path()
        logger = logging.getLogger(__name__)

        if not path.exists():
            logger.debug(f"No registry at {path}, starting empty")
            return cls(path)

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise RegistryIOError(f"Failed to read registry {path}: {e}", {"path": str(path)}) from e
        except json.JSONDecodeError as e:
            raise RegistryIOError(f"Failed to parse registry {path}: {e}", {"path": str(path)}) from e

        try:
            executables = {
                name: ExecutableRecord.from_dict(record)
                for name, record in (data.get("executables") or {}).items()
            }
            registry = cls(
                path,
                default_install_dir=data.get("default_install_dir") or None,
                executables=executables,
                schema_version=int(data.get("schema_version", SCHEMA_VERSION)),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise RegistryIOError(f"Invalid registry {path}: {e}", {"path": str(path)}) from e

        logger.debug(f"Loaded {len(executables)} executables from {path}")
        return registry

    def get(self, name: str) -> Tuple[Optional[ExecutableRecord], bool]:
        record = self.executables.get(name)
        return record, record is not None

    def upsert(self, name: str, record: ExecutableRecord) -> None:
        """Add or replace the record for ``name``."""
        with self._lock:
            self.executables[name] = record

    def remove(self, name: str) -> None:
        """Delete ``name`` if present."""
        with self._lock:
            self.executables.pop(name, None)

    def list(self) -> List[str]:
        """All managed names, in no particular order."""
        with self._lock:
            return list(self.executables)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "default_install_dir": self.default_install_dir,
            "executables": {
                name: record.to_dict() for name, record in self.executables.items()
            },
        }

    def save(self) -> None:
        """
        Write the registry atomically with owner-only permissions.

        Raises:
            RegistryIOError: The file or its directory cannot be written
        """
        with self._lock:
            content = json.dumps(self.to_dict(), indent=2, ensure_ascii=False) + "\n"
            try:
                self._write_atomic(content)
            except OSError as e:
                raise RegistryIOError(
                    f"Failed to write registry {self.path}: {e}", {"path": str(self.path)}
                ) from e
        self.logger.debug(f"Registry saved to {self.path}")

    def _write_atomic(self, content: str) -> None:
        directory = self.path.parent
        if not directory.exists():
            directory.mkdir(mode=0o700, parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=".registry_", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            # mkstemp already creates the file 0600
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

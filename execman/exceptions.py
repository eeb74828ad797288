"""
Exception hierarchy for execman

Every failure raised by the acquisition pipeline derives from ExecmanError,
carries a short error code and a context dictionary (owner/project, asset
name, HTTP status, ...) and can be serialized for JSON output.
"""

from typing import Any, Dict, Optional


class ExecmanError(Exception):
    """Base class for all execman errors."""

    default_code = "E000"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    @property
    def code(self) -> str:
        return self.default_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a JSON-friendly dictionary."""
        return {
            "code": self.code,
            "type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }

    def __str__(self) -> str:
        return self.message


class InvalidSourceError(ExecmanError):
    """Source identifier could not be parsed into owner/project."""

    default_code = "E100"


class ConfigError(ExecmanError):
    """Settings file is unreadable or holds an invalid value."""

    default_code = "E110"


class APIError(ExecmanError):
    """Release API request failed."""

    default_code = "E200"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None,
                 status_code: Optional[int] = None):
        super().__init__(message, context)
        self.status_code = status_code
        if status_code is not None:
            self.context["status_code"] = status_code


class NotFoundError(APIError):
    """Repository, tag or release does not exist."""

    default_code = "E404"


class RateLimitedError(APIError):
    """Access forbidden or API rate limit exhausted."""

    default_code = "E403"


class UnauthorizedError(APIError):
    """Authentication required or token rejected."""

    default_code = "E401"


class MalformedResponseError(APIError):
    """API response body could not be interpreted."""

    default_code = "E210"


class NoSuitableReleaseError(APIError):
    """Releases exist but none passes the prerelease filter."""

    default_code = "E220"


class AssetNotFoundError(ExecmanError):
    """No release asset matches the host platform."""

    default_code = "E300"


class DownloadError(ExecmanError):
    """Asset transfer failed."""

    default_code = "E310"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None,
                 status_code: Optional[int] = None):
        super().__init__(message, context)
        self.status_code = status_code
        if status_code is not None:
            self.context["status_code"] = status_code


class ChecksumError(ExecmanError):
    """Integrity verification failed."""

    default_code = "E320"


class ChecksumMismatchError(ChecksumError):
    """Downloaded bytes do not match the manifest digest."""

    default_code = "E321"

    def __init__(self, asset: str, expected: str, actual: str):
        super().__init__(
            f"Checksum mismatch for {asset}: expected {expected}, got {actual}",
            {"asset": asset, "expected": expected, "actual": actual},
        )
        self.asset = asset
        self.expected = expected
        self.actual = actual


class ChecksumMissingError(ChecksumError):
    """Strict verification requested but no manifest entry exists."""

    default_code = "E322"


class ArchiveError(ExecmanError):
    """Archive is corrupt or cannot be read."""

    default_code = "E330"


class NoExecutableFoundError(ArchiveError):
    """Archive holds no entry with an executable permission bit."""

    default_code = "E331"


class RegistryIOError(ExecmanError):
    """Registry file could not be read, parsed or written."""

    default_code = "E400"


class PipelineError(ExecmanError):
    """
    A pipeline stage failed.

    Wraps the stage error together with the stage that was reached so callers
    can report where a name's install or update stopped.
    """

    default_code = "E500"

    def __init__(self, name: str, stage: str, cause: ExecmanError):
        context = {"name": name, "stage": stage}
        context.update(cause.context)
        super().__init__(f"{name}: {stage.lower()} failed: {cause}", context)
        self.name = name
        self.stage = stage
        self.cause = cause

    @property
    def code(self) -> str:
        return self.cause.code


__all__ = [
    "ExecmanError",
    "InvalidSourceError",
    "ConfigError",
    "APIError",
    "NotFoundError",
    "RateLimitedError",
    "UnauthorizedError",
    "MalformedResponseError",
    "NoSuitableReleaseError",
    "AssetNotFoundError",
    "DownloadError",
    "ChecksumError",
    "ChecksumMismatchError",
    "ChecksumMissingError",
    "ArchiveError",
    "NoExecutableFoundError",
    "RegistryIOError",
    "PipelineError",
]

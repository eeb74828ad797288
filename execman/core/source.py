"""
Source identifier parsing.

A source names a project on the forge, for example::

    github.com/owner/project
    https://github.com/owner/project@v1.2.0
    owner/project
"""

from dataclasses import dataclass

from ..exceptions import InvalidSourceError

DEFAULT_HOST = "github.com"


@dataclass(frozen=True)
class Source:
    """
    A parsed source identifier.

    Attributes:
        owner: Account or organisation owning the project
        project: Repository name
        version: Pinned release tag, empty when the latest release is wanted
        host: Forge host name
    """
    owner: str
    project: str
    version: str = ""
    host: str = DEFAULT_HOST

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.project}"

    @property
    def url(self) -> str:
        """Canonical project URL, as stored in registry records."""
        return f"https://{self.host}/{self.owner}/{self.project}"

    @property
    def is_pinned(self) -> bool:
        return bool(self.version)

    def __str__(self) -> str:
        if self.version:
            return f"{self.slug}@{self.version}"
        return self.slug


def _is_host(segment: str) -> bool:
    return "." in segment or ":" in segment


def parse_source(source: str) -> Source:
    """
    Parse a source identifier into owner, project and pinned version.

    Args:
        source: Free-form identifier, optionally with scheme, host and @version

    Returns:
        Source: The parsed identifier

    Raises:
        InvalidSourceError: If fewer than two path segments remain
    """
    text = source.strip()
    for scheme in ("https://", "http://"):
        if text.lower().startswith(scheme):
            text = text[len(scheme):]
            break

    version = ""
    if "@" in text:
        text, version = text.split("@", 1)
        version = version.strip()

    parts = [part for part in text.split("/") if part]
    host = DEFAULT_HOST
    # Owner names cannot contain dots, so a dotted first segment is a host
    if parts and _is_host(parts[0]):
        host = parts.pop(0).lower()

    if len(parts) < 2:
        raise InvalidSourceError(
            f"Invalid source format: {source!r} (expected owner/project)",
            {"source": source},
        )

    owner, project = parts[0], parts[1]
    if project.endswith(".git"):
        project = project[:-len(".git")]
    if not owner or not project:
        raise InvalidSourceError(
            f"Invalid source format: {source!r} (empty owner or project)",
            {"source": source},
        )

    return Source(owner=owner, project=project, version=version, host=host)

"""Typed interfaces for the external systems the lifecycle talks to.

Each external system (cluster, image builder, repository host) gets an
abstract client returning structured results, so the orchestrators never parse
command output. Implementations live next to this module; tests use fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class ClientError(Exception):
    """Base class for errors raised by external clients."""


class ClusterError(ClientError):
    """The cluster rejected or failed a request."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ClusterPermissionError(ClusterError):
    """The service account lacks rights for the request (HTTP 403)."""

    def __init__(self, message: str):
        super().__init__(message, status=403)


class ImageBuildError(ClientError):
    """Building a container image failed."""


class RepositoryHostError(ClientError):
    """The hosted repository API failed or returned something unexpected."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class DeleteStatus(str, Enum):
    DELETED = "deleted"
    ABSENT = "absent"


@dataclass
class ApplyResult:
    """Outcome of applying one manifest."""

    kind: str
    name: str
    namespace: Optional[str]
    action: str  # "created" or "configured"

    def describe(self) -> str:
        return f"{self.kind.lower()}/{self.name} {self.action}"


@dataclass
class BuildResult:
    tag: str
    image_id: Optional[str] = None
    log_lines: List[str] = field(default_factory=list)


@dataclass
class RepositoryInfo:
    name: str
    owner: str
    html_url: str
    clone_url: str


class ClusterClient(ABC):
    """Operations the lifecycle needs from the container orchestrator."""

    @abstractmethod
    async def ensure_namespace(self, namespace: str, labels: Optional[Dict[str, str]] = None) -> bool:
        """Create the namespace if absent.

        Returns:
            True if it was created, False if it already existed.

        Raises:
            ClusterPermissionError: If namespace creation is forbidden.
            ClusterError: On any other failure.
        """

    @abstractmethod
    async def apply(self, manifest: Dict[str, Any], namespace: str) -> ApplyResult:
        """Create or update a resource from a manifest dict."""

    @abstractmethod
    async def get_pod_phase(self, namespace: str, selector: str) -> Optional[str]:
        """Phase of the first pod matching the label selector, None if no pod yet."""

    @abstractmethod
    async def tail_logs(self, namespace: str, selector: str, lines: int) -> str:
        """Last lines of output of the first pod matching the selector."""

    @abstractmethod
    async def delete(self, api_kind: str, name: str, namespace: str) -> DeleteStatus:
        """Delete a resource; an already absent resource is not an error."""


class ImageBuilder(ABC):
    """Builds deployable images from a project directory."""

    @abstractmethod
    async def build(self, context_dir: Path, tag: str) -> BuildResult:
        """Build an image, raising ImageBuildError on failure."""


class RepositoryHost(ABC):
    """A version-control host where scaffolded projects are published."""

    owner: str = ""

    @abstractmethod
    async def repository_exists(self, name: str) -> bool:
        """Whether ``owner/name`` exists. Raises RepositoryHostError when unsure."""

    @abstractmethod
    async def create_repository(self, name: str, description: str) -> RepositoryInfo:
        """Create ``owner/name``."""

    @abstractmethod
    async def push(self, project_dir: Path, repo: RepositoryInfo, commit_message: str) -> str:
        """Commit the project directory and push it; returns the public URL."""

    @abstractmethod
    async def delete_repository(self, name: str) -> DeleteStatus:
        """Delete ``owner/name``; an already absent repository is not an error."""

"""External system clients - cluster, image builder, repository host."""

from .base import (
    ApplyResult,
    BuildResult,
    ClientError,
    ClusterClient,
    ClusterError,
    ClusterPermissionError,
    DeleteStatus,
    ImageBuilder,
    ImageBuildError,
    RepositoryHost,
    RepositoryHostError,
    RepositoryInfo,
)

__all__ = [
    "ApplyResult",
    "BuildResult",
    "ClientError",
    "ClusterClient",
    "ClusterError",
    "ClusterPermissionError",
    "DeleteStatus",
    "ImageBuilder",
    "ImageBuildError",
    "RepositoryHost",
    "RepositoryHostError",
    "RepositoryInfo",
]

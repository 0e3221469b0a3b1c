"""Local container image builds through the Docker Engine API."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import docker
from docker.errors import APIError, BuildError, DockerException
from requests.exceptions import RequestException

from .base import BuildResult, ImageBuilder, ImageBuildError

logger = logging.getLogger(__name__)


class DockerImageBuilder(ImageBuilder):
    """Builds project images with the host Docker daemon.

    Connects via DOCKER_HOST when set (socket proxy), otherwise the local
    socket. The connection is opened on first build.
    """

    def __init__(self, docker_host: Optional[str] = None):
        self.docker_host = docker_host
        self._client = None

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            try:
                if self.docker_host:
                    self._client = docker.DockerClient(base_url=self.docker_host)
                else:
                    self._client = docker.from_env()
            except DockerException as e:
                raise ImageBuildError(f"Cannot connect to Docker daemon: {e}") from e
            logger.info(f"[BUILD] Docker client connected (docker_host={self.docker_host or 'local socket'})")
        return self._client

    def _build_sync(self, context_dir: Path, tag: str) -> BuildResult:
        # The SDK talks to the daemon over requests; a dropped connection
        # mid-stream surfaces as a RequestException, not a DockerException.
        try:
            image, stream = self.client.images.build(path=str(context_dir), tag=tag, rm=True)
            lines = []
            for chunk in stream:
                text = chunk.get("stream") if isinstance(chunk, dict) else None
                if text and text.strip():
                    lines.append(text.rstrip())
        except BuildError as e:
            raise ImageBuildError(f"Docker build failed: {e.msg}") from e
        except (APIError, DockerException) as e:
            raise ImageBuildError(f"Docker build failed: {e}") from e
        except (RequestException, OSError) as e:
            raise ImageBuildError(f"Docker build failed, daemon connection lost: {e}") from e
        return BuildResult(tag=tag, image_id=image.id, log_lines=lines)

    async def build(self, context_dir: Path, tag: str) -> BuildResult:
        logger.info(f"[BUILD] Building {tag} from {context_dir}")
        result = await asyncio.to_thread(self._build_sync, context_dir, tag)
        logger.info(f"[BUILD] Docker image {tag} built successfully")
        return result

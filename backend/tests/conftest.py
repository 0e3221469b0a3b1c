"""Shared fixtures and in-memory fakes for backend tests."""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from api.app import create_app
from clients.base import (
    ApplyResult,
    BuildResult,
    ClusterClient,
    ClusterError,
    DeleteStatus,
    ImageBuilder,
    ImageBuildError,
    RepositoryHost,
    RepositoryInfo,
)
from lifecycle.metadata_store import MetadataStore
from lifecycle.retry import Clock
from utils.config import Config, ReadinessConfig, WorkspaceConfig


class FakeClusterClient(ClusterClient):
    """Records every call; phases are scripted per label selector."""

    def __init__(self):
        self.applied: List[Tuple[str, str, str]] = []
        self.deleted: List[Tuple[str, str, str]] = []
        self.namespaces: List[str] = []
        self.existing: Set[Tuple[str, str]] = set()
        self.phases: Dict[str, List[Optional[str]]] = {}
        self.phase_calls: Dict[str, int] = {}
        self.apply_failures: Set[str] = set()
        self.delete_failures: Set[str] = set()
        self.namespace_error: Optional[Exception] = None
        self.logs = "Started Application in 3.2 seconds"
        self.log_error: Optional[Exception] = None

    async def ensure_namespace(self, namespace, labels=None):
        if self.namespace_error is not None:
            raise self.namespace_error
        created = namespace not in self.namespaces
        self.namespaces.append(namespace)
        return created

    async def apply(self, manifest: Dict[str, Any], namespace: str) -> ApplyResult:
        kind = manifest["kind"]
        name = manifest["metadata"]["name"]
        if name in self.apply_failures:
            raise ClusterError(f"admission webhook denied {kind} {name}", status=422)
        self.applied.append((kind, name, namespace))
        action = "configured" if (kind, name) in self.existing else "created"
        self.existing.add((kind, name))
        return ApplyResult(kind=kind, name=name, namespace=namespace, action=action)

    async def get_pod_phase(self, namespace, selector):
        self.phase_calls[selector] = self.phase_calls.get(selector, 0) + 1
        script = self.phases.get(selector, ["Running"])
        index = min(self.phase_calls[selector], len(script)) - 1
        return script[index]

    async def tail_logs(self, namespace, selector, lines):
        if self.log_error is not None:
            raise self.log_error
        return self.logs

    async def delete(self, api_kind, name, namespace):
        if name in self.delete_failures:
            raise ClusterError(f"delete {api_kind} {name} timed out", status=504)
        self.deleted.append((api_kind, name, namespace))
        if (api_kind, name) in self.existing:
            self.existing.discard((api_kind, name))
            return DeleteStatus.DELETED
        return DeleteStatus.ABSENT


class FakeImageBuilder(ImageBuilder):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.builds: List[Tuple[Path, str]] = []

    async def build(self, context_dir, tag):
        self.builds.append((Path(context_dir), tag))
        if self.fail:
            raise ImageBuildError("docker daemon not reachable")
        return BuildResult(tag=tag, image_id="sha256:abc", log_lines=["Step 1/8", "Successfully built"])


class FakeRepositoryHost(RepositoryHost):
    def __init__(self, owner: str = "acme"):
        self.owner = owner
        self.repos: Set[str] = set()
        self.pushed: List[str] = []
        self.exists_error: Optional[Exception] = None
        self.push_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None

    async def repository_exists(self, name):
        if self.exists_error is not None:
            raise self.exists_error
        return name in self.repos

    async def create_repository(self, name, description):
        self.repos.add(name)
        return RepositoryInfo(
            name=name,
            owner=self.owner,
            html_url=f"https://github.com/{self.owner}/{name}",
            clone_url=f"https://github.com/{self.owner}/{name}.git",
        )

    async def push(self, project_dir, repo, commit_message):
        if self.push_error is not None:
            raise self.push_error
        self.pushed.append(repo.name)
        return repo.html_url

    async def delete_repository(self, name):
        if self.delete_error is not None:
            raise self.delete_error
        if name in self.repos:
            self.repos.discard(name)
            return DeleteStatus.DELETED
        return DeleteStatus.ABSENT


class FakeClock(Clock):
    """Records requested sleeps instead of sleeping."""

    def __init__(self):
        self.sleeps: List[float] = []
        self.now = 0.0

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds

    def monotonic(self):
        return self.now


@pytest.fixture
def workspace(tmp_path):
    return tmp_path / "projects"


@pytest.fixture
def config(workspace):
    return Config(
        workspace=WorkspaceConfig(base_path=str(workspace)),
        readiness=ReadinessConfig(max_attempts=3, interval=2.0, settle_delay=5.0),
    )


@pytest.fixture
def store(workspace):
    return MetadataStore(workspace)


@pytest.fixture
def cluster():
    return FakeClusterClient()


@pytest.fixture
def builder():
    return FakeImageBuilder()


@pytest.fixture
def failing_builder():
    return FakeImageBuilder(fail=True)


@pytest.fixture
def repo_host():
    return FakeRepositoryHost()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app(config, cluster, builder, clock):
    """FastAPI application wired to in-memory fakes, GitHub disabled."""
    return create_app(config=config, cluster=cluster, builder=builder, clock=clock)


@pytest.fixture
def github_app(config, cluster, builder, repo_host, clock):
    """Same as ``app`` with a fake GitHub host."""
    return create_app(
        config=config, cluster=cluster, builder=builder,
        repository_host=repo_host, clock=clock,
    )


@pytest_asyncio.fixture
async def client(app):
    """Async HTTP client for testing API endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def github_client(github_app):
    transport = ASGITransport(app=github_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

"""Lifecycle service - wires the guard, store, generator and orchestrators together.

This is the object the API talks to. It owns the per-identifier locks, so
create, deploy and teardown of the same project never overlap.
"""

import asyncio
import io
import logging
import os
import tarfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from clients.base import ClientError, ClusterClient, ImageBuilder, RepositoryHost
from generator import ProjectGenerator, next_steps
from utils.config import Config

from .conflict_guard import ConflictGuard
from .errors import LifecycleError, MetadataError, ValidationError
from .locks import KeyedLock
from .metadata_store import MetadataStore
from .models import CleanupResult, PersistenceMode, ProjectRecord
from .progress import ProgressEmitter
from .provisioner import Provisioner
from .retry import Clock, RetryPolicy
from .teardown import Teardown
from .validation import resolve_namespace_hint, validate_identifier

logger = logging.getLogger(__name__)

SUPPORTED_JAVA_VERSIONS = ("17", "21")
DEFAULT_DESCRIPTION = "A Spring Boot microservice created with Backstage and Scaffolder"


@dataclass
class ScaffoldResult:
    """What a successful create returns to the caller."""

    record: ProjectRecord
    project_dir: Path
    files: List[str] = field(default_factory=list)
    repository_url: Optional[str] = None
    next_steps: List[str] = field(default_factory=list)


class LifecycleService:
    """Create, deploy and tear down scaffolded projects."""

    def __init__(
        self,
        config: Config,
        cluster: ClusterClient,
        builder: Optional[ImageBuilder] = None,
        repository_host: Optional[RepositoryHost] = None,
        clock: Optional[Clock] = None,
        base_path: Optional[Path] = None,
    ):
        self.config = config
        self.repository_host = repository_host
        self.store = MetadataStore(
            base_path or Path(config.workspace.base_path),
            forbidden_namespaces=config.cluster.forbidden_namespaces,
        )
        self.locks = KeyedLock()
        self.guard = ConflictGuard(self.store, repository_host)
        self.generator = ProjectGenerator(self.store.base_path)
        self.provisioner = Provisioner(
            self.store,
            cluster,
            builder=builder if config.build.enabled else None,
            policy=RetryPolicy.from_config(config.readiness),
            clock=clock,
            default_namespace=config.cluster.default_namespace,
            create_namespaces=config.cluster.create_namespaces,
            log_tail_lines=config.readiness.log_tail_lines,
        )
        self.teardown_orchestrator = Teardown(
            self.store,
            cluster,
            repository_host=repository_host,
            default_namespace=config.cluster.default_namespace,
            locks=self.locks,
        )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def build_record(
        self,
        identifier: str,
        description: Optional[str] = None,
        owner: Optional[str] = None,
        port: int = 8080,
        java_version: str = "17",
        persistence: str = PersistenceMode.NONE.value,
        namespace_hint: Optional[str] = None,
        include_docker: bool = True,
        include_k8s: bool = True,
    ) -> ProjectRecord:
        """Validate a creation request into a record. Raises ValidationError."""
        validate_identifier(identifier)
        if not 1 <= int(port) <= 65535:
            raise ValidationError(f"Invalid port {port}. Must be between 1 and 65535.")
        if str(java_version) not in SUPPORTED_JAVA_VERSIONS:
            raise ValidationError(
                f"Unsupported java_version {java_version}. Use one of {', '.join(SUPPORTED_JAVA_VERSIONS)}."
            )
        try:
            mode = PersistenceMode(persistence)
        except ValueError:
            raise ValidationError(
                f"Invalid persistence '{persistence}'. Use 'none' or 'stateful-store'."
            )
        namespace = resolve_namespace_hint(
            namespace_hint,
            self.config.cluster.default_namespace,
            self.config.cluster.forbidden_namespaces,
        )
        return ProjectRecord(
            identifier=identifier,
            namespace=namespace,
            owner=owner or "unknown",
            description=description or DEFAULT_DESCRIPTION,
            port=int(port),
            java_version=str(java_version),
            persistence=mode,
            features={"docker": bool(include_docker), "k8s": bool(include_k8s)},
        )

    async def create(self, record: ProjectRecord) -> ScaffoldResult:
        """Scaffold a project after the conflict check passes.

        Raises:
            ConflictError: If the identifier exists remotely or locally
            RepositoryHostError: If the remote check cannot be completed
        """
        ident = record.identifier
        logger.info(f"[SCAFFOLD] Creating service: {ident}")

        async with self.locks.hold(ident):
            await self.guard.ensure_clear(ident)

            try:
                files = self.generator.generate(record)
                metadata_path = self.store.put(record)
            except OSError as e:
                raise LifecycleError(
                    f"Failed to write project {ident}: {e}. "
                    f"Remove leftovers with DELETE /api/cleanup/{ident}."
                ) from e
            files.append(str(Path(ident) / metadata_path.name))

            repository_url = await self._publish(record)

        project_dir = self.store.project_dir(ident)
        return ScaffoldResult(
            record=record,
            project_dir=project_dir,
            files=files,
            repository_url=repository_url,
            next_steps=next_steps(record, project_dir, repository_url),
        )

    async def _publish(self, record: ProjectRecord) -> Optional[str]:
        """Create the hosted repository and push; a failure leaves the project local-only."""
        if self.repository_host is None:
            logger.info("[GITHUB] Skipping git push - GitHub integration disabled")
            return None
        ident = record.identifier
        try:
            repo = await self.repository_host.create_repository(ident, record.description)
            url = await self.repository_host.push(
                self.store.project_dir(ident),
                repo,
                f"Initial commit: {ident} service scaffolded by Backstage",
            )
        except ClientError as e:
            logger.error(f"[GITHUB] GitHub integration failed: {e}")
            return None
        logger.info(f"[GITHUB] Code pushed to {url}")
        return url

    # ------------------------------------------------------------------
    # Deploy
    # ------------------------------------------------------------------

    def ensure_deployable(self, identifier: str) -> ProjectRecord:
        """Checks that run before a progress stream opens."""
        validate_identifier(identifier)
        return self.store.get(identifier)

    async def provision(self, identifier: str, emitter: ProgressEmitter) -> bool:
        async with self.locks.hold(identifier):
            return await self.provisioner.provision(identifier, emitter)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def teardown(self, identifier: str) -> CleanupResult:
        validate_identifier(identifier)
        return await self.teardown_orchestrator.teardown(identifier)

    async def teardown_all(self) -> List[CleanupResult]:
        return await self.teardown_orchestrator.teardown_all()

    # ------------------------------------------------------------------
    # Listing and download
    # ------------------------------------------------------------------

    def list_projects(self) -> List[Dict[str, Any]]:
        projects = []
        for ident in self.store.list_ids():
            try:
                record = self.store.find(ident)
            except MetadataError as e:
                projects.append({"identifier": ident, "error": e.message})
                continue
            if record is None:
                projects.append({"identifier": ident, "error": "no metadata"})
            else:
                projects.append(record.to_dict())
        return projects

    def get_project(self, identifier: str) -> ProjectRecord:
        validate_identifier(identifier)
        return self.store.get(identifier)

    async def archive(self, identifier: str) -> bytes:
        """tar.gz of a project directory, symlinks left out."""
        validate_identifier(identifier)
        self.store.get(identifier)
        return await asyncio.to_thread(self._make_archive, identifier)

    def _make_archive(self, identifier: str) -> bytes:
        project_dir = self.store.project_dir(identifier)
        root = str(project_dir)
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w:gz") as tar:
            for dirpath, dirnames, filenames in os.walk(project_dir, followlinks=False):
                dirnames[:] = [d for d in dirnames if not os.path.islink(os.path.join(dirpath, d))]
                for fname in sorted(filenames):
                    full = os.path.join(dirpath, fname)
                    if os.path.islink(full):
                        continue
                    arcname = os.path.join(identifier, os.path.relpath(full, root))
                    tar.add(full, arcname=arcname)
        logger.info(f"[DOWNLOAD] Created archive for {identifier}")
        return buf.getvalue()

"""Provisioning Orchestrator - applies a project's resources in dependency order.

Sequence for one run:

1. ensure the namespace (soft-fail)
2. build the image (soft-fail)
3. apply credential, stateful endpoint, stateful workload (stateful-store only)
4. wait for the stateful workload, then let it settle
5. apply app workload, app endpoint
6. wait for the app workload
7. tail logs (best-effort) and report success

Every fatal step ends the stream with exactly one error event.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from clients.base import ClientError, ClusterClient, ClusterPermissionError, ImageBuilder

from .errors import LifecycleError, ProvisioningError
from .metadata_store import MetadataStore
from .models import (
    ProjectRecord,
    ResourceKind,
    ResourceSet,
    ResourceSpec,
    app_selector,
    stateful_selector,
)
from .progress import ProgressEmitter
from .retry import Clock, RetryPolicy, wait_for_phase

logger = logging.getLogger(__name__)

MANIFEST_DIR = "k8s"

STEP_LOAD = "load-manifests"
STEP_PLACEMENT = "ensure-namespace"
STEP_BUILD = "build-image"
STEP_APPLY_STATEFUL = "apply-stateful-store"
STEP_WAIT_STATEFUL = "wait-stateful-store"
STEP_APPLY_APP = "apply-app"
STEP_WAIT_APP = "wait-app"


class Provisioner:
    """Deploys scaffolded projects to the cluster, reporting through a ProgressEmitter."""

    def __init__(
        self,
        store: MetadataStore,
        cluster: ClusterClient,
        builder: Optional[ImageBuilder] = None,
        policy: Optional[RetryPolicy] = None,
        clock: Optional[Clock] = None,
        default_namespace: str = "default",
        create_namespaces: bool = True,
        log_tail_lines: int = 50,
    ):
        self.store = store
        self.cluster = cluster
        self.builder = builder
        self.policy = policy or RetryPolicy()
        self.clock = clock or Clock()
        self.default_namespace = default_namespace
        self.create_namespaces = create_namespaces
        self.log_tail_lines = log_tail_lines

    async def provision(self, identifier: str, emitter: ProgressEmitter) -> bool:
        """Run the full deployment of a project.

        Lifecycle errors end the stream with an error event instead of
        propagating. Cancellation propagates: the step in flight finishes in
        its worker thread, no further step starts.

        Returns:
            True if the run ended with a success event.
        """
        try:
            await self._run(identifier, emitter)
            return True
        except LifecycleError as e:
            emitter.fail(e)
        except ClientError as e:
            emitter.error(f"Deployment failed: {e}")
        return False

    async def _run(self, identifier: str, emitter: ProgressEmitter) -> None:
        record = self.store.get(identifier)
        namespace = record.namespace or self.default_namespace
        resources = ResourceSet.for_record(record)

        emitter.log(f"Starting deployment for {identifier}...")
        manifests = self._load_manifests(record, resources)

        await self._ensure_placement(namespace, emitter)
        await self._build_image(record, emitter)

        if record.uses_stateful_store:
            emitter.log("Provisioning stateful store...")
            for spec in resources.stateful:
                await self._apply(spec, manifests[spec.kind], namespace, STEP_APPLY_STATEFUL, emitter)

            workload = resources.get(ResourceKind.STATEFUL_WORKLOAD)
            emitter.log(f"Waiting for {workload.name} to be ready...")
            await self._wait_ready(namespace, stateful_selector(identifier),
                                   workload, STEP_WAIT_STATEFUL, emitter)
            if self.policy.settle_delay > 0:
                emitter.log(f"Letting {workload.name} settle for {self.policy.settle_delay:g}s...")
                await self.clock.sleep(self.policy.settle_delay)

        for spec in resources.app:
            await self._apply(spec, manifests[spec.kind], namespace, STEP_APPLY_APP, emitter)

        workload = resources.get(ResourceKind.APP_WORKLOAD)
        emitter.log("Waiting for pod to be ready...")
        await self._wait_ready(namespace, app_selector(identifier), workload, STEP_WAIT_APP, emitter)

        await self._tail_logs(namespace, identifier, emitter)

        emitter.success(
            name=identifier,
            port=record.port,
            namespace=namespace,
            message=f"Deployment complete! Service {identifier} is running on port {record.port}",
        )

    def _load_manifests(self, record: ProjectRecord, resources: ResourceSet) -> Dict[ResourceKind, Dict[str, Any]]:
        k8s_dir = self.store.project_dir(record.identifier) / MANIFEST_DIR
        if not k8s_dir.is_dir():
            raise ProvisioningError(
                "No k8s directory found. Service was created without Kubernetes manifests.",
                step=STEP_LOAD,
                resource=str(k8s_dir),
            )

        manifests = {}
        for spec in resources:
            manifests[spec.kind] = self._read_manifest(k8s_dir / spec.filename, spec)
        return manifests

    @staticmethod
    def _read_manifest(path: Path, spec: ResourceSpec) -> Dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                manifest = yaml.safe_load(f)
        except FileNotFoundError:
            raise ProvisioningError(
                f"Manifest {path.name} for {spec.kind.value} {spec.name} is missing",
                step=STEP_LOAD, resource=str(path),
            )
        except yaml.YAMLError as e:
            raise ProvisioningError(
                f"Manifest {path.name} is not valid YAML: {e}",
                step=STEP_LOAD, resource=str(path),
            ) from e
        if not isinstance(manifest, dict):
            raise ProvisioningError(
                f"Manifest {path.name} does not describe a resource",
                step=STEP_LOAD, resource=str(path),
            )
        return manifest

    async def _ensure_placement(self, namespace: str, emitter: ProgressEmitter) -> None:
        if not self.create_namespaces:
            emitter.log(f"Namespace creation disabled, assuming '{namespace}' exists")
            return

        emitter.log(f"Ensuring namespace '{namespace}' exists...")
        try:
            created = await self.cluster.ensure_namespace(namespace)
        except ClusterPermissionError as e:
            emitter.log(f"No permission to create namespace {namespace}, continuing: {e}")
            return
        except ClientError as e:
            emitter.log(f"Could not ensure namespace {namespace}, continuing: {e}")
            return
        emitter.log(f"Namespace {namespace} {'created' if created else 'ensured'}")

    async def _build_image(self, record: ProjectRecord, emitter: ProgressEmitter) -> None:
        project_dir = self.store.project_dir(record.identifier)
        if self.builder is None:
            emitter.log("Image builds disabled, skipping image build")
            return
        if not record.has_feature("docker") or not (project_dir / "Dockerfile").exists():
            emitter.log("No Dockerfile present, skipping image build")
            return

        tag = f"{record.identifier}:latest"
        emitter.log(f"Dockerfile found, building image {tag}...")
        try:
            result = await self.builder.build(project_dir, tag)
        except ClientError as e:
            # The image may already be available from a previous run
            emitter.log(f"Docker build failed, continuing: {e}")
            return
        if result.log_lines:
            emitter.log("\n".join(result.log_lines[-20:]))
        emitter.log(f"Docker image {tag} built successfully")

    async def _apply(self, spec: ResourceSpec, manifest: Dict[str, Any], namespace: str,
                     step: str, emitter: ProgressEmitter) -> None:
        emitter.log(f"Applying {spec.api_kind} {spec.name}...")
        try:
            result = await self.cluster.apply(manifest, namespace)
        except ClientError as e:
            raise ProvisioningError(
                f"Applying {spec.api_kind} {spec.name} failed: {e}",
                step=step,
                resource=f"{spec.api_kind}/{spec.name}",
            ) from e
        emitter.log(result.describe())

    async def _wait_ready(self, namespace: str, selector: str, spec: ResourceSpec,
                          step: str, emitter: ProgressEmitter) -> None:
        max_attempts = self.policy.max_attempts

        async def on_poll(attempt: int, phase: Optional[str], error: Optional[Exception]) -> None:
            if phase:
                emitter.log(f"Pod status: {phase}")
            else:
                emitter.log(f"Waiting for pod... ({attempt}/{max_attempts})")

        await wait_for_phase(
            lambda: self.cluster.get_pod_phase(namespace, selector),
            self.policy,
            self.clock,
            resource=f"{spec.api_kind}/{spec.name}",
            step=step,
            on_poll=on_poll,
        )
        emitter.log(f"✓ {spec.name} is running!")

    async def _tail_logs(self, namespace: str, identifier: str, emitter: ProgressEmitter) -> None:
        emitter.log("--- Pod Logs ---")
        try:
            logs = await self.cluster.tail_logs(namespace, app_selector(identifier), self.log_tail_lines)
        except ClientError as e:
            logger.debug(f"[DEPLOY] Log tail for {identifier} failed: {e}")
            emitter.log("Could not retrieve logs yet")
            return
        emitter.log(logs if logs else "(no output yet)")

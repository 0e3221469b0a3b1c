"""Teardown Orchestrator - best-effort removal across repository host, cluster and disk.

Each resource is deleted independently. Deleting something already gone is a
success ("absent"); a failure is recorded for that resource and the remaining
deletions still run.
"""

import logging
from typing import Awaitable, Callable, List, Optional, Tuple

from clients.base import ClientError, ClusterClient, DeleteStatus, RepositoryHost

from .errors import MetadataError
from .locks import KeyedLock
from .metadata_store import MetadataStore
from .models import (
    CleanupResult,
    OutcomeStatus,
    ResourceOutcome,
    Subsystem,
    app_endpoint_name,
    app_workload_name,
    credential_name,
    stateful_endpoint_name,
    stateful_workload_name,
    volume_claim_name,
)

logger = logging.getLogger(__name__)

PLACEMENT_FROM_METADATA = "metadata"
PLACEMENT_DEFAULT = "default"


def _cluster_targets(identifier: str) -> List[Tuple[Subsystem, str, str]]:
    return [
        (Subsystem.CLUSTER_WORKLOAD, "Deployment", app_workload_name(identifier)),
        (Subsystem.CLUSTER_ENDPOINT, "Service", app_endpoint_name(identifier)),
        (Subsystem.STATEFUL_WORKLOAD, "StatefulSet", stateful_workload_name(identifier)),
        (Subsystem.STATEFUL_ENDPOINT, "Service", stateful_endpoint_name(identifier)),
        (Subsystem.CREDENTIAL, "Secret", credential_name(identifier)),
        (Subsystem.VOLUME_CLAIM, "PersistentVolumeClaim", volume_claim_name(identifier)),
    ]


def _outcome(status: DeleteStatus) -> ResourceOutcome:
    if status == DeleteStatus.ABSENT:
        return ResourceOutcome(OutcomeStatus.ABSENT)
    return ResourceOutcome(OutcomeStatus.DELETED)


class Teardown:
    """Reverses provisioning and scaffolding for one or all projects."""

    def __init__(
        self,
        store: MetadataStore,
        cluster: ClusterClient,
        repository_host: Optional[RepositoryHost] = None,
        default_namespace: str = "default",
        locks: Optional[KeyedLock] = None,
    ):
        self.store = store
        self.cluster = cluster
        self.repository_host = repository_host
        self.default_namespace = default_namespace
        self.locks = locks or KeyedLock()

    def _resolve_placement(self, identifier: str) -> Tuple[str, str]:
        try:
            record = self.store.find(identifier)
        except MetadataError as e:
            logger.warning(f"[CLEANUP] {e}; using default namespace {self.default_namespace}")
            record = None
        if record is not None and record.namespace:
            return record.namespace, PLACEMENT_FROM_METADATA
        return self.default_namespace, PLACEMENT_DEFAULT

    async def teardown(self, identifier: str) -> CleanupResult:
        """Delete everything belonging to one project.

        Returns:
            Per-subsystem outcomes. Sub-resource failures are reported, not raised.
        """
        async with self.locks.hold(identifier):
            return await self._teardown(identifier)

    async def _teardown(self, identifier: str) -> CleanupResult:
        namespace, source = self._resolve_placement(identifier)
        logger.info(f"[CLEANUP] Starting cleanup for {identifier} (namespace={namespace}, from {source})")
        result = CleanupResult(identifier=identifier, namespace=namespace, placement_source=source)

        result.record(Subsystem.HOSTED_REPOSITORY, await self._delete_repository(identifier))

        for subsystem, api_kind, name in _cluster_targets(identifier):
            result.record(subsystem, await self._attempt(
                f"{api_kind} {name}",
                lambda kind=api_kind, n=name: self.cluster.delete(kind, n, namespace),
            ))

        # Last, so the record stays readable while the rest is attempted
        result.record(Subsystem.LOCAL_ARTIFACTS, self._delete_local(identifier))

        if result.partial_failure:
            logger.warning(f"[CLEANUP] {identifier}: failed subsystems {result.failed_subsystems}")
        else:
            logger.info(f"[CLEANUP] Cleaned up service: {identifier}")
        return result

    async def teardown_all(self) -> List[CleanupResult]:
        """Tear down every local project; one project's failure never stops the rest."""
        identifiers = self.store.list_ids()
        logger.info(f"[CLEANUP-ALL] Found {len(identifiers)} services: {', '.join(identifiers)}")

        results = []
        for identifier in identifiers:
            try:
                results.append(await self.teardown(identifier))
            except Exception as e:
                logger.exception(f"[CLEANUP-ALL] Cleanup of {identifier} broke")
                results.append(CleanupResult(identifier=identifier, error=str(e)))
        return results

    async def _attempt(self, label: str, action: Callable[[], Awaitable[DeleteStatus]]) -> ResourceOutcome:
        try:
            return _outcome(await action())
        except ClientError as e:
            logger.warning(f"[CLEANUP] Deleting {label} failed: {e}")
            return ResourceOutcome(OutcomeStatus.FAILED, error=str(e))
        except Exception as e:
            logger.exception(f"[CLEANUP] Deleting {label} failed unexpectedly")
            return ResourceOutcome(OutcomeStatus.FAILED, error=f"{type(e).__name__}: {e}")

    async def _delete_repository(self, identifier: str) -> ResourceOutcome:
        if self.repository_host is None:
            return ResourceOutcome(OutcomeStatus.SKIPPED, detail="GitHub integration disabled")
        return await self._attempt(
            f"repository {identifier}",
            lambda: self.repository_host.delete_repository(identifier),
        )

    def _delete_local(self, identifier: str) -> ResourceOutcome:
        if not self.store.exists(identifier):
            return ResourceOutcome(OutcomeStatus.ABSENT)
        try:
            deleted, skipped = self.store.delete_project(identifier)
        except OSError as e:
            logger.warning(f"[CLEANUP] Deleting local storage of {identifier} failed: {e}")
            return ResourceOutcome(OutcomeStatus.FAILED, error=str(e))
        if skipped:
            return ResourceOutcome(
                OutcomeStatus.FAILED,
                error=f"{skipped} files could not be deleted",
                detail=f"{deleted} files deleted",
            )
        logger.info(f"[CLEANUP] Deleted local storage: {self.store.project_dir(identifier)}")
        return ResourceOutcome(OutcomeStatus.DELETED, detail=f"{deleted} files deleted")

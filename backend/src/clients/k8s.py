"""Kubernetes cluster client built on the official python client.

The blocking API calls run in worker threads via ``asyncio.to_thread``. A
call already handed to a thread cannot be aborted; cancelling the awaiting
task only stops the caller from starting the next one.
"""

import asyncio
import copy
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from .base import (
    ApplyResult,
    ClusterClient,
    ClusterError,
    ClusterPermissionError,
    DeleteStatus,
)

logger = logging.getLogger(__name__)

# manifest kind -> (api group attribute, method suffix)
_KIND_API: Dict[str, Tuple[str, str]] = {
    "Secret": ("core_v1", "secret"),
    "Service": ("core_v1", "service"),
    "PersistentVolumeClaim": ("core_v1", "persistent_volume_claim"),
    "Deployment": ("apps_v1", "deployment"),
    "StatefulSet": ("apps_v1", "stateful_set"),
}

# Kinds whose spec is immutable once created; a 409 means "already there".
_IMMUTABLE_KINDS = frozenset({"PersistentVolumeClaim"})


def _translate(e: ApiException, action: str) -> ClusterError:
    if e.status == 403:
        return ClusterPermissionError(f"{action} forbidden: {e.reason}")
    return ClusterError(f"{action} failed: {e.status} {e.reason}", status=e.status)


class KubernetesClusterClient(ClusterClient):
    """Manages project resources on a Kubernetes cluster.

    Configuration is loaded on first use so the service can start (and serve
    scaffolding requests) without cluster access. Pass ``api_client`` to skip
    config loading and talk through an already configured ApiClient.
    """

    def __init__(
        self,
        in_cluster: bool = False,
        context: Optional[str] = None,
        api_client: Optional[client.ApiClient] = None,
    ):
        self.in_cluster = in_cluster
        self.context = context
        self.api_client = api_client
        self._core_v1: Optional[client.CoreV1Api] = None
        self._apps_v1: Optional[client.AppsV1Api] = None

    def _load(self) -> None:
        if self._core_v1 is not None:
            return
        if self.api_client is None:
            try:
                if self.in_cluster:
                    config.load_incluster_config()
                    logger.info("Loaded in-cluster Kubernetes configuration")
                else:
                    try:
                        config.load_incluster_config()
                        logger.info("Loaded in-cluster Kubernetes configuration")
                    except config.ConfigException:
                        config.load_kube_config(context=self.context)
                        logger.info("Loaded kubeconfig for development")
            except config.ConfigException as e:
                logger.error(f"Failed to load Kubernetes config: {e}")
                raise ClusterError(f"Cannot load Kubernetes configuration: {e}") from e

        self._core_v1 = client.CoreV1Api(self.api_client)
        self._apps_v1 = client.AppsV1Api(self.api_client)

    @property
    def core_v1(self) -> client.CoreV1Api:
        self._load()
        return self._core_v1

    @property
    def apps_v1(self) -> client.AppsV1Api:
        self._load()
        return self._apps_v1

    def _api_for(self, kind: str) -> Tuple[Any, str]:
        if kind not in _KIND_API:
            raise ClusterError(f"Unsupported resource kind: {kind}")
        group, suffix = _KIND_API[kind]
        return getattr(self, group), suffix

    async def _call(self, action: str, fn: Callable[..., Any], **kwargs: Any) -> Any:
        """Run one API call in a worker thread.

        ApiException propagates so callers can act on the status code.
        Connection level failures never carry one and become ClusterError.
        """
        try:
            return await asyncio.to_thread(fn, **kwargs)
        except (HTTPError, OSError) as e:
            logger.warning(f"[K8S] {action} failed, cluster unreachable: {e}")
            raise ClusterError(f"{action} failed: cluster unreachable: {e}") from e

    # =========================================================================
    # NAMESPACES
    # =========================================================================

    async def ensure_namespace(self, namespace: str, labels: Optional[Dict[str, str]] = None) -> bool:
        action = f"Reading namespace {namespace}"
        try:
            await self._call(action, self.core_v1.read_namespace, name=namespace)
            logger.debug(f"[K8S] Namespace {namespace} already exists")
            return False
        except ApiException as e:
            if e.status != 404:
                raise _translate(e, action) from e

        body = client.V1Namespace(
            metadata=client.V1ObjectMeta(
                name=namespace,
                labels={"managed-by": "scaffolder", **(labels or {})},
            )
        )
        action = f"Creating namespace {namespace}"
        try:
            await self._call(action, self.core_v1.create_namespace, body=body)
        except ApiException as e:
            if e.status == 409:
                return False
            raise _translate(e, action) from e
        logger.info(f"[K8S] Created namespace: {namespace}")
        return True

    # =========================================================================
    # APPLY / DELETE
    # =========================================================================

    async def apply(self, manifest: Dict[str, Any], namespace: str) -> ApplyResult:
        """Create a resource, or patch it in place when it already exists."""
        kind = manifest.get("kind", "")
        name = (manifest.get("metadata") or {}).get("name")
        if not name:
            raise ClusterError(f"{kind or 'Manifest'} has no metadata.name")

        body = copy.deepcopy(manifest)
        body.setdefault("metadata", {})["namespace"] = namespace
        api, suffix = self._api_for(kind)

        action = f"Creating {kind} {name}"
        try:
            await self._call(
                action,
                getattr(api, f"create_namespaced_{suffix}"),
                namespace=namespace,
                body=body,
            )
            logger.info(f"[K8S] Created {kind.lower()}: {name} in {namespace}")
            return ApplyResult(kind=kind, name=name, namespace=namespace, action="created")
        except ApiException as e:
            if e.status != 409:
                raise _translate(e, action) from e

        if kind in _IMMUTABLE_KINDS:
            logger.info(f"[K8S] {kind} {name} already exists, skipping")
            return ApplyResult(kind=kind, name=name, namespace=namespace, action="unchanged")

        logger.info(f"[K8S] {kind} {name} exists, updating...")
        action = f"Updating {kind} {name}"
        try:
            await self._call(
                action,
                getattr(api, f"patch_namespaced_{suffix}"),
                name=name,
                namespace=namespace,
                body=body,
            )
        except ApiException as e:
            raise _translate(e, action) from e
        return ApplyResult(kind=kind, name=name, namespace=namespace, action="configured")

    async def delete(self, api_kind: str, name: str, namespace: str) -> DeleteStatus:
        api, suffix = self._api_for(api_kind)
        action = f"Deleting {api_kind} {name}"
        try:
            await self._call(
                action,
                getattr(api, f"delete_namespaced_{suffix}"),
                name=name,
                namespace=namespace,
            )
        except ApiException as e:
            if e.status == 404:
                logger.debug(f"[K8S] {api_kind} {name} already absent in {namespace}")
                return DeleteStatus.ABSENT
            raise _translate(e, action) from e
        logger.info(f"[K8S] Deleted {api_kind.lower()}: {name} in {namespace}")
        return DeleteStatus.DELETED

    # =========================================================================
    # PODS
    # =========================================================================

    async def _first_pod(self, namespace: str, selector: str) -> Optional[client.V1Pod]:
        action = f"Listing pods {selector}"
        try:
            pods = await self._call(
                action,
                self.core_v1.list_namespaced_pod,
                namespace=namespace,
                label_selector=selector,
            )
        except ApiException as e:
            raise _translate(e, action) from e
        if not pods.items:
            return None
        return pods.items[0]

    async def get_pod_phase(self, namespace: str, selector: str) -> Optional[str]:
        pod = await self._first_pod(namespace, selector)
        if pod is None or pod.status is None:
            return None
        return pod.status.phase

    async def tail_logs(self, namespace: str, selector: str, lines: int) -> str:
        pod = await self._first_pod(namespace, selector)
        if pod is None:
            raise ClusterError(f"No pod matches {selector} in {namespace}", status=404)
        action = f"Reading logs of {pod.metadata.name}"
        try:
            return await self._call(
                action,
                self.core_v1.read_namespaced_pod_log,
                name=pod.metadata.name,
                namespace=namespace,
                tail_lines=lines,
            )
        except ApiException as e:
            raise _translate(e, action) from e

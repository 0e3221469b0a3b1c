"""Kubernetes manifests for a project's ResourceSet, rendered as YAML documents."""

import secrets
from typing import Any, Callable, Dict

import yaml

from lifecycle.models import (
    ProjectRecord,
    ResourceKind,
    ResourceSpec,
    app_workload_name,
    credential_name,
    stateful_endpoint_name,
    stateful_workload_name,
)

from .templates import POSTGRES_PORT, database_name

POSTGRES_IMAGE = "postgres:16-alpine"
STORE_VOLUME_SIZE = "1Gi"


def _metadata(record: ProjectRecord, name: str, app: str) -> Dict[str, Any]:
    meta: Dict[str, Any] = {
        "name": name,
        "labels": {
            "app": app,
            "owner": record.owner,
            "managed-by": "scaffolder",
        },
    }
    if record.namespace:
        meta["namespace"] = record.namespace
    return meta


def _app_env(record: ProjectRecord) -> list:
    if not record.uses_stateful_store:
        return []
    secret = credential_name(record.identifier)
    url = (f"jdbc:postgresql://{stateful_endpoint_name(record.identifier)}:{POSTGRES_PORT}/"
           f"{database_name(record.identifier)}")
    return [
        {"name": "SPRING_DATASOURCE_URL", "value": url},
        {"name": "SPRING_DATASOURCE_USERNAME",
         "valueFrom": {"secretKeyRef": {"name": secret, "key": "POSTGRES_USER"}}},
        {"name": "SPRING_DATASOURCE_PASSWORD",
         "valueFrom": {"secretKeyRef": {"name": secret, "key": "POSTGRES_PASSWORD"}}},
    ]


def app_deployment(record: ProjectRecord, spec: ResourceSpec) -> Dict[str, Any]:
    app = app_workload_name(record.identifier)
    container: Dict[str, Any] = {
        "name": app,
        "image": f"{record.identifier}:latest",
        "imagePullPolicy": "IfNotPresent",
        "ports": [{"containerPort": record.port}],
        "readinessProbe": {
            "httpGet": {"path": "/actuator/health/readiness", "port": record.port},
            "initialDelaySeconds": 20,
            "periodSeconds": 5,
        },
    }
    env = _app_env(record)
    if env:
        container["env"] = env
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": _metadata(record, spec.name, app),
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": {"app": app}},
            "template": {
                "metadata": {"labels": {"app": app}},
                "spec": {"containers": [container]},
            },
        },
    }


def app_service(record: ProjectRecord, spec: ResourceSpec) -> Dict[str, Any]:
    app = app_workload_name(record.identifier)
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": _metadata(record, spec.name, app),
        "spec": {
            "type": "ClusterIP",
            "selector": {"app": app},
            "ports": [{"port": record.port, "targetPort": record.port, "protocol": "TCP"}],
        },
    }


def store_secret(record: ProjectRecord, spec: ResourceSpec) -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "type": "Opaque",
        "metadata": _metadata(record, spec.name, stateful_workload_name(record.identifier)),
        "stringData": {
            "POSTGRES_USER": "app",
            "POSTGRES_PASSWORD": secrets.token_urlsafe(24),
            "POSTGRES_DB": database_name(record.identifier),
        },
    }


def store_service(record: ProjectRecord, spec: ResourceSpec) -> Dict[str, Any]:
    app = stateful_workload_name(record.identifier)
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": _metadata(record, spec.name, app),
        "spec": {
            "clusterIP": "None",
            "selector": {"app": app},
            "ports": [{"port": POSTGRES_PORT, "targetPort": POSTGRES_PORT, "name": "postgres"}],
        },
    }


def store_statefulset(record: ProjectRecord, spec: ResourceSpec) -> Dict[str, Any]:
    app = stateful_workload_name(record.identifier)
    return {
        "apiVersion": "apps/v1",
        "kind": "StatefulSet",
        "metadata": _metadata(record, spec.name, app),
        "spec": {
            "serviceName": stateful_endpoint_name(record.identifier),
            "replicas": 1,
            "selector": {"matchLabels": {"app": app}},
            "template": {
                "metadata": {"labels": {"app": app}},
                "spec": {
                    "containers": [{
                        "name": "postgres",
                        "image": POSTGRES_IMAGE,
                        "ports": [{"containerPort": POSTGRES_PORT, "name": "postgres"}],
                        "envFrom": [{"secretRef": {"name": credential_name(record.identifier)}}],
                        "env": [{"name": "PGDATA", "value": "/var/lib/postgresql/data/pgdata"}],
                        "volumeMounts": [{"name": "data", "mountPath": "/var/lib/postgresql/data"}],
                        "readinessProbe": {
                            "exec": {"command": ["pg_isready", "-U", "app"]},
                            "periodSeconds": 5,
                        },
                    }],
                },
            },
            "volumeClaimTemplates": [{
                "metadata": {"name": "data"},
                "spec": {
                    "accessModes": ["ReadWriteOnce"],
                    "resources": {"requests": {"storage": STORE_VOLUME_SIZE}},
                },
            }],
        },
    }


_RENDERERS: Dict[ResourceKind, Callable[[ProjectRecord, ResourceSpec], Dict[str, Any]]] = {
    ResourceKind.CREDENTIAL: store_secret,
    ResourceKind.STATEFUL_ENDPOINT: store_service,
    ResourceKind.STATEFUL_WORKLOAD: store_statefulset,
    ResourceKind.APP_WORKLOAD: app_deployment,
    ResourceKind.APP_ENDPOINT: app_service,
}


def render_manifest(record: ProjectRecord, spec: ResourceSpec) -> Dict[str, Any]:
    return _RENDERERS[spec.kind](record, spec)


def dump_manifest(manifest: Dict[str, Any]) -> str:
    return yaml.safe_dump(manifest, sort_keys=False, default_flow_style=False)

"""Lifecycle data model: project records, resource sets, progress events, cleanup reports."""

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Union

RECORD_SCHEMA_VERSION = 2


class PersistenceMode(str, Enum):
    """Whether a project gets a stateful data store next to its workload."""
    NONE = "none"
    STATEFUL_STORE = "stateful-store"


class ResourceKind(str, Enum):
    """Role of a resource inside a project's ResourceSet."""
    CREDENTIAL = "credential"
    STATEFUL_ENDPOINT = "stateful-endpoint"
    STATEFUL_WORKLOAD = "stateful-workload"
    APP_WORKLOAD = "app-workload"
    APP_ENDPOINT = "app-endpoint"


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class ProjectRecord:
    """Placement and configuration chosen when a project was created.

    Written once by the metadata store, read by provisioning and teardown.
    """

    identifier: str
    namespace: Optional[str] = None
    owner: str = "unknown"
    description: str = ""
    lifecycle: str = "experimental"
    created_at: str = field(default_factory=_utcnow)
    port: int = 8080
    java_version: str = "17"
    persistence: PersistenceMode = PersistenceMode.NONE
    features: Dict[str, bool] = field(default_factory=lambda: {"docker": True, "k8s": True})
    schema_version: int = RECORD_SCHEMA_VERSION

    @property
    def uses_stateful_store(self) -> bool:
        return self.persistence == PersistenceMode.STATEFUL_STORE

    def has_feature(self, name: str) -> bool:
        return bool(self.features.get(name, False))

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["persistence"] = self.persistence.value
        data["features"] = dict(self.features)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], identifier: Optional[str] = None) -> "ProjectRecord":
        """Build a record from stored JSON, tolerating older and newer schemas.

        Version 1 records only stored ``namespace``; the identifier then comes
        from the project directory name. Unknown keys are ignored.
        """
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values.setdefault("identifier", identifier)
        if values.get("identifier") is None:
            raise ValueError("project record has no identifier")
        values.setdefault("schema_version", 1)
        values["persistence"] = PersistenceMode(values.get("persistence") or PersistenceMode.NONE.value)
        if "port" in values:
            values["port"] = int(values["port"])
        if "java_version" in values:
            values["java_version"] = str(values["java_version"])
        return cls(**values)


# ---------------------------------------------------------------------------
# Resource naming
# ---------------------------------------------------------------------------

def app_workload_name(identifier: str) -> str:
    return identifier


def app_endpoint_name(identifier: str) -> str:
    return f"{identifier}-service"


def stateful_workload_name(identifier: str) -> str:
    return f"{identifier}-db"


def stateful_endpoint_name(identifier: str) -> str:
    return f"{identifier}-db"


def credential_name(identifier: str) -> str:
    return f"{identifier}-db-credentials"


def volume_claim_name(identifier: str) -> str:
    # StatefulSet claim templates are named <template>-<statefulset>-<ordinal>
    return f"data-{stateful_workload_name(identifier)}-0"


def app_selector(identifier: str) -> str:
    return f"app={app_workload_name(identifier)}"


def stateful_selector(identifier: str) -> str:
    return f"app={stateful_workload_name(identifier)}"


@dataclass(frozen=True)
class ResourceSpec:
    """One named, typed resource description stored under ``k8s/``."""

    kind: ResourceKind
    name: str
    api_kind: str
    filename: str


@dataclass
class ResourceSet:
    """Ordered resource descriptions of a project.

    Order is credential, stateful endpoint, stateful workload, app workload,
    app endpoint. Stateful entries exist only for the stateful-store mode.
    """

    identifier: str
    specs: List[ResourceSpec] = field(default_factory=list)

    @classmethod
    def for_record(cls, record: ProjectRecord) -> "ResourceSet":
        ident = record.identifier
        specs: List[ResourceSpec] = []
        if record.uses_stateful_store:
            specs.extend([
                ResourceSpec(ResourceKind.CREDENTIAL, credential_name(ident),
                             "Secret", "db-secret.yaml"),
                ResourceSpec(ResourceKind.STATEFUL_ENDPOINT, stateful_endpoint_name(ident),
                             "Service", "db-service.yaml"),
                ResourceSpec(ResourceKind.STATEFUL_WORKLOAD, stateful_workload_name(ident),
                             "StatefulSet", "db-statefulset.yaml"),
            ])
        specs.extend([
            ResourceSpec(ResourceKind.APP_WORKLOAD, app_workload_name(ident),
                         "Deployment", "deployment.yaml"),
            ResourceSpec(ResourceKind.APP_ENDPOINT, app_endpoint_name(ident),
                         "Service", "service.yaml"),
        ])
        return cls(identifier=ident, specs=specs)

    def __iter__(self) -> Iterator[ResourceSpec]:
        return iter(self.specs)

    def __len__(self) -> int:
        return len(self.specs)

    def get(self, kind: ResourceKind) -> Optional[ResourceSpec]:
        for spec in self.specs:
            if spec.kind == kind:
                return spec
        return None

    @property
    def stateful(self) -> List[ResourceSpec]:
        return [s for s in self.specs if s.kind in (
            ResourceKind.CREDENTIAL, ResourceKind.STATEFUL_ENDPOINT, ResourceKind.STATEFUL_WORKLOAD)]

    @property
    def app(self) -> List[ResourceSpec]:
        return [s for s in self.specs if s.kind in (ResourceKind.APP_WORKLOAD, ResourceKind.APP_ENDPOINT)]


# ---------------------------------------------------------------------------
# Progress events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LogEvent:
    message: str
    terminal = False

    def to_wire(self) -> Dict[str, Any]:
        return {"log": self.message}


@dataclass(frozen=True)
class ErrorEvent:
    message: str
    error_type: str = "ProvisioningError"
    step: Optional[str] = None
    resource: Optional[str] = None
    terminal = True

    def to_wire(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "errorType": self.error_type,
            "step": self.step,
            "resource": self.resource,
        }


@dataclass(frozen=True)
class SuccessEvent:
    """Terminal event carrying the access summary of a deployed project."""

    name: str
    port: int
    namespace: Optional[str] = None
    message: str = ""
    terminal = True

    def to_wire(self) -> Dict[str, Any]:
        return {
            "success": True,
            "log": self.message,
            "serviceName": self.name,
            "namespace": self.namespace,
            "port": self.port,
        }


ProgressEvent = Union[LogEvent, ErrorEvent, SuccessEvent]


# ---------------------------------------------------------------------------
# Cleanup reporting
# ---------------------------------------------------------------------------

class Subsystem(str, Enum):
    """Everything teardown tries to remove, in wire naming."""
    HOSTED_REPOSITORY = "hostedRepository"
    CLUSTER_WORKLOAD = "clusterWorkload"
    CLUSTER_ENDPOINT = "clusterEndpoint"
    STATEFUL_WORKLOAD = "statefulWorkload"
    STATEFUL_ENDPOINT = "statefulEndpoint"
    CREDENTIAL = "credential"
    VOLUME_CLAIM = "volumeClaim"
    LOCAL_ARTIFACTS = "localArtifacts"


class OutcomeStatus(str, Enum):
    DELETED = "deleted"
    ABSENT = "absent"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ResourceOutcome:
    status: OutcomeStatus
    error: Optional[str] = None
    detail: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status == OutcomeStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "status": self.status.value,
            "deleted": self.status == OutcomeStatus.DELETED,
            "alreadyAbsent": self.status == OutcomeStatus.ABSENT,
            "skipped": self.status == OutcomeStatus.SKIPPED,
            "error": self.error,
        }
        if self.detail:
            data["detail"] = self.detail
        return data


@dataclass
class CleanupResult:
    """Per-subsystem outcome of tearing down one project.

    Failures of individual subsystems are data; ``error`` is only set when the
    teardown of this project broke as a whole.
    """

    identifier: str
    namespace: Optional[str] = None
    placement_source: str = "metadata"
    outcomes: Dict[Subsystem, ResourceOutcome] = field(default_factory=dict)
    error: Optional[str] = None

    def record(self, subsystem: Subsystem, outcome: ResourceOutcome) -> None:
        self.outcomes[subsystem] = outcome

    @property
    def failed_subsystems(self) -> List[str]:
        return [s.value for s, o in self.outcomes.items() if o.failed]

    @property
    def partial_failure(self) -> bool:
        return bool(self.failed_subsystems)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "serviceName": self.identifier,
            "namespace": self.namespace,
            "placementSource": self.placement_source,
            "error": self.error,
            "partialFailure": self.partial_failure,
            "failedSubsystems": self.failed_subsystems,
            **{s.value: o.to_dict() for s, o in self.outcomes.items()},
        }

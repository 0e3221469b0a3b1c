"""Tests for project generation and resource sets."""

import yaml

from generator import ProjectGenerator, next_steps
from lifecycle.models import PersistenceMode, ProjectRecord, ResourceKind, ResourceSet


def test_stateless_resource_set_has_two_entries():
    resources = ResourceSet.for_record(ProjectRecord(identifier="user-service"))
    assert [(s.api_kind, s.name) for s in resources] == [
        ("Deployment", "user-service"),
        ("Service", "user-service-service"),
    ]
    assert resources.stateful == []


def test_stateful_resource_set_order():
    record = ProjectRecord(identifier="orders-svc", persistence=PersistenceMode.STATEFUL_STORE)
    resources = ResourceSet.for_record(record)
    assert [s.kind for s in resources] == [
        ResourceKind.CREDENTIAL,
        ResourceKind.STATEFUL_ENDPOINT,
        ResourceKind.STATEFUL_WORKLOAD,
        ResourceKind.APP_WORKLOAD,
        ResourceKind.APP_ENDPOINT,
    ]
    assert resources.get(ResourceKind.CREDENTIAL).name == "orders-svc-db-credentials"


def test_generate_stateless_project(workspace):
    record = ProjectRecord(identifier="user-service", namespace="default", port=9090)
    files = ProjectGenerator(workspace).generate(record)

    assert "user-service/pom.xml" in files
    assert "user-service/Dockerfile" in files
    assert "user-service/k8s/deployment.yaml" in files
    assert "user-service/k8s/service.yaml" in files
    assert not any("db-" in f for f in files)
    assert (workspace / "user-service" / "src" / "main" / "java" / "com" / "example"
            / "userservice" / "UserServiceApplication.java").exists()

    deployment = yaml.safe_load((workspace / "user-service/k8s/deployment.yaml").read_text())
    assert deployment["kind"] == "Deployment"
    assert deployment["spec"]["selector"]["matchLabels"] == {"app": "user-service"}
    container = deployment["spec"]["template"]["spec"]["containers"][0]
    assert container["image"] == "user-service:latest"
    assert container["ports"] == [{"containerPort": 9090}]
    assert "env" not in container


def test_generate_stateful_project_wires_credentials(workspace):
    record = ProjectRecord(identifier="orders-svc", namespace="team-a",
                           persistence=PersistenceMode.STATEFUL_STORE)
    ProjectGenerator(workspace).generate(record)
    k8s = workspace / "orders-svc" / "k8s"

    statefulset = yaml.safe_load((k8s / "db-statefulset.yaml").read_text())
    assert statefulset["metadata"]["namespace"] == "team-a"
    assert statefulset["spec"]["volumeClaimTemplates"][0]["metadata"]["name"] == "data"

    secret = yaml.safe_load((k8s / "db-secret.yaml").read_text())
    assert secret["metadata"]["name"] == "orders-svc-db-credentials"
    assert len(secret["stringData"]["POSTGRES_PASSWORD"]) >= 24

    deployment = yaml.safe_load((k8s / "deployment.yaml").read_text())
    env = {e["name"]: e for e in deployment["spec"]["template"]["spec"]["containers"][0]["env"]}
    assert env["SPRING_DATASOURCE_PASSWORD"]["valueFrom"]["secretKeyRef"]["name"] == \
        "orders-svc-db-credentials"

    gitignore = (workspace / "orders-svc" / ".gitignore").read_text()
    assert "k8s/db-secret.yaml" in gitignore
    assert (workspace / "orders-svc" / "src/main/resources/schema.sql").exists()


def test_features_control_optional_files(workspace):
    record = ProjectRecord(identifier="lean-svc", features={"docker": False, "k8s": False})
    files = ProjectGenerator(workspace).generate(record)
    assert "lean-svc/Dockerfile" not in files
    assert not any("/k8s/" in f for f in files)


def test_next_steps_apply_in_resource_order(workspace):
    record = ProjectRecord(identifier="orders-svc", namespace="team-a",
                           persistence=PersistenceMode.STATEFUL_STORE)
    steps = next_steps(record, workspace / "orders-svc")
    applies = [s for s in steps if s.startswith("kubectl apply")]
    assert applies == [
        "kubectl apply -n team-a -f k8s/db-secret.yaml",
        "kubectl apply -n team-a -f k8s/db-service.yaml",
        "kubectl apply -n team-a -f k8s/db-statefulset.yaml",
        "kubectl apply -n team-a -f k8s/deployment.yaml",
        "kubectl apply -n team-a -f k8s/service.yaml",
    ]
    assert steps[-1] == "kubectl port-forward -n team-a svc/orders-svc-service 8080:8080"


def test_next_steps_with_repository(workspace):
    record = ProjectRecord(identifier="user-service", namespace="default")
    steps = next_steps(record, workspace / "user-service", "https://github.com/acme/user-service")
    assert steps[:2] == ["git clone https://github.com/acme/user-service", "cd user-service"]

"""Tests for the scaffold, project listing and download endpoints."""

import asyncio
import io
import json
import tarfile

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from api.app import create_app
from clients.base import RepositoryHostError
from clients.github import GitHubRepositoryHost


@pytest.mark.asyncio
async def test_scaffold_creates_project(client, workspace):
    resp = await client.post("/api/scaffold", json={
        "component_id": "user-service",
        "owner": "team-x",
        "description": "Users",
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["githubRepo"] is None
    assert data["namespace"] == "default"
    assert "user-service/k8s/deployment.yaml" in data["files"]
    assert "user-service/scaffold-metadata.json" in data["files"]
    assert data["nextSteps"][-1] == "kubectl port-forward -n default svc/user-service-service 8080:8080"

    stored = json.loads((workspace / "user-service" / "scaffold-metadata.json").read_text())
    assert stored["namespace"] == "default"
    assert stored["owner"] == "team-x"
    assert stored["schema_version"] == 2


@pytest.mark.asyncio
async def test_scaffold_stores_requested_namespace(client, workspace):
    resp = await client.post("/api/scaffold", json={
        "component_id": "orders-svc",
        "persistence": "stateful-store",
        "target_namespace": "team-a",
    })
    assert resp.status_code == 200
    stored = json.loads((workspace / "orders-svc" / "scaffold-metadata.json").read_text())
    assert stored["namespace"] == "team-a"
    assert stored["persistence"] == "stateful-store"


@pytest.mark.asyncio
async def test_recreate_conflicts_before_any_write(client, workspace):
    first = await client.post("/api/scaffold", json={"component_id": "user-service"})
    assert first.status_code == 200
    metadata = workspace / "user-service" / "scaffold-metadata.json"
    before = metadata.read_text()

    resp = await client.post("/api/scaffold", json={
        "component_id": "user-service", "description": "changed",
    })
    assert resp.status_code == 409
    assert resp.json()["conflictType"] == "local-directory"
    assert metadata.read_text() == before


@pytest.mark.asyncio
async def test_hosted_repository_conflict(github_client, repo_host, workspace):
    repo_host.repos.add("user-service")
    resp = await github_client.post("/api/scaffold", json={"component_id": "user-service"})
    assert resp.status_code == 409
    assert resp.json()["conflictType"] == "hosted-repository"
    assert not (workspace / "user-service").exists()


@pytest.mark.asyncio
async def test_scaffold_pushes_to_github(github_client, repo_host):
    resp = await github_client.post("/api/scaffold", json={"component_id": "user-service"})
    data = resp.json()
    assert data["githubRepo"] == "https://github.com/acme/user-service"
    assert repo_host.pushed == ["user-service"]
    assert data["nextSteps"][0] == "git clone https://github.com/acme/user-service"


@pytest.mark.asyncio
async def test_push_failure_keeps_local_project(github_client, repo_host, workspace):
    repo_host.push_error = RepositoryHostError("git push failed")
    resp = await github_client.post("/api/scaffold", json={"component_id": "user-service"})
    assert resp.status_code == 200
    assert resp.json()["githubRepo"] is None
    assert (workspace / "user-service" / "pom.xml").exists()


@pytest.mark.asyncio
async def test_scaffold_succeeds_when_git_cannot_run(
    config, cluster, builder, clock, workspace, monkeypatch,
):
    def github_api(request):
        if request.method == "GET":
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(201, json={
            "name": "user-service",
            "owner": {"login": "acme"},
            "html_url": "https://github.com/acme/user-service",
            "clone_url": "https://github.com/acme/user-service.git",
        })

    async def missing_git(*args, **kwargs):
        raise FileNotFoundError(2, "No such file or directory", "git")

    monkeypatch.setattr(asyncio, "create_subprocess_exec", missing_git)
    host = GitHubRepositoryHost(token="ghp_secret", owner="acme", transport=httpx.MockTransport(github_api))
    app = create_app(config=config, cluster=cluster, builder=builder, repository_host=host, clock=clock)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        resp = await ac.post("/api/scaffold", json={"component_id": "user-service"})

    assert resp.status_code == 200
    assert resp.json()["githubRepo"] is None
    assert (workspace / "user-service" / "scaffold-metadata.json").exists()


@pytest.mark.asyncio
async def test_remote_check_failure_returns_502(github_client, repo_host, workspace):
    repo_host.exists_error = RepositoryHostError("HTTP 503", status=503)
    resp = await github_client.post("/api/scaffold", json={"component_id": "user-service"})
    assert resp.status_code == 502
    assert not (workspace / "user-service").exists()


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"component_id": "User_Service"},
    {"component_id": "user-service", "port": 70000},
    {"component_id": "user-service", "java_version": "11"},
    {"component_id": "user-service", "persistence": "mongo"},
    {"component_id": "user-service", "target_namespace": "kube-system"},
    {"description": "no id"},
])
async def test_invalid_requests_rejected(client, workspace, body):
    resp = await client.post("/api/scaffold", json=body)
    assert resp.status_code == 400
    assert "error" in resp.json()
    assert not (workspace / "user-service").exists()


@pytest.mark.asyncio
async def test_list_and_get_projects(client):
    await client.post("/api/scaffold", json={"component_id": "beta"})
    await client.post("/api/scaffold", json={"component_id": "alpha"})

    listed = (await client.get("/api/projects")).json()
    assert [p["identifier"] for p in listed] == ["alpha", "beta"]

    resp = await client.get("/api/projects/beta")
    assert resp.status_code == 200
    assert resp.json()["namespace"] == "default"

    assert (await client.get("/api/projects/ghost")).status_code == 404


@pytest.mark.asyncio
async def test_download_archive(client):
    await client.post("/api/scaffold", json={"component_id": "user-service"})
    resp = await client.get("/download/user-service")

    assert resp.status_code == 200
    assert "user-service.tar.gz" in resp.headers["content-disposition"]
    with tarfile.open(fileobj=io.BytesIO(resp.content), mode="r:gz") as tar:
        names = tar.getnames()
    assert "user-service/pom.xml" in names
    assert "user-service/k8s/service.yaml" in names


@pytest.mark.asyncio
async def test_download_unknown_project(client):
    resp = await client.get("/download/ghost")
    assert resp.status_code == 404

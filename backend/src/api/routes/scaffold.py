"""Scaffold creation and project download endpoints."""

from typing import Literal, Optional

from fastapi import APIRouter, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field

router = APIRouter(tags=["scaffold"])
download_router = APIRouter(tags=["scaffold"])


class ScaffoldRequest(BaseModel):
    component_id: str
    description: Optional[str] = None
    owner: Optional[str] = None
    port: int = Field(default=8080, ge=1, le=65535)
    java_version: Literal["17", "21"] = "17"
    persistence: Literal["none", "stateful-store"] = "none"
    target_namespace: Optional[str] = None
    include_docker: bool = True
    include_k8s: bool = True


@router.post("/scaffold")
async def create_scaffold(body: ScaffoldRequest, request: Request):
    """Create a new service project, optionally pushed to GitHub."""
    lifecycle = request.app.state.lifecycle
    record = lifecycle.build_record(
        body.component_id,
        description=body.description,
        owner=body.owner,
        port=body.port,
        java_version=body.java_version,
        persistence=body.persistence,
        namespace_hint=body.target_namespace,
        include_docker=body.include_docker,
        include_k8s=body.include_k8s,
    )
    result = await lifecycle.create(record)

    message = f"Service {record.identifier} created successfully"
    if result.repository_url:
        message += " and pushed to GitHub"
    return {
        "success": True,
        "message": message,
        "projectPath": str(result.project_dir),
        "githubRepo": result.repository_url,
        "namespace": record.namespace,
        "files": result.files,
        "nextSteps": result.next_steps,
    }


@download_router.get("/download/{identifier}")
async def download_project(identifier: str, request: Request):
    """Download a generated project as a tar.gz archive."""
    data = await request.app.state.lifecycle.archive(identifier)
    return Response(
        content=data,
        media_type="application/gzip",
        headers={"Content-Disposition": f'attachment; filename="{identifier}.tar.gz"'},
    )

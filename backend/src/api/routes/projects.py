"""Read-only project listing endpoints."""

from fastapi import APIRouter, Request

router = APIRouter(tags=["projects"])


@router.get("/projects")
async def list_projects(request: Request):
    """List all scaffolded projects with their stored metadata."""
    return request.app.state.lifecycle.list_projects()


@router.get("/projects/{identifier}")
async def get_project(identifier: str, request: Request):
    record = request.app.state.lifecycle.get_project(identifier)
    return record.to_dict()

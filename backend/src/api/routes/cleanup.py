"""Teardown endpoints for one or all scaffolded projects."""

import logging

from fastapi import APIRouter, Request

logger = logging.getLogger(__name__)

router = APIRouter(tags=["cleanup"])


@router.delete("/cleanup/{identifier}")
async def cleanup_project(identifier: str, request: Request):
    """Delete the repository, cluster resources and local files of a project."""
    result = await request.app.state.lifecycle.teardown(identifier)
    if result.partial_failure:
        message = (
            f"Cleanup of {identifier} incomplete, failed: "
            f"{', '.join(result.failed_subsystems)}"
        )
    else:
        message = f"Cleanup completed for {identifier}"
    return {
        "success": not result.partial_failure,
        "message": message,
        "details": result.to_dict(),
    }


@router.delete("/cleanup-all")
async def cleanup_all(request: Request):
    """Tear down every project found in the workspace."""
    results = await request.app.state.lifecycle.teardown_all()
    if not results:
        return {
            "success": True,
            "message": "No services found to clean up",
            "servicesFound": 0,
            "details": [],
        }

    broken = [r.identifier for r in results if not r.ok or r.partial_failure]
    message = f"Cleaned up {len(results) - len(broken)} of {len(results)} services"
    if broken:
        message += f"; incomplete: {', '.join(broken)}"
    logger.info(f"[CLEANUP-ALL] {message}")
    return {
        "success": not broken,
        "message": message,
        "servicesFound": len(results),
        "details": [r.to_dict() for r in results],
    }

"""Health check endpoint."""

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request):
    config = request.app.state.config
    return {
        "status": "ok",
        "service": "scaffolder",
        "version": request.app.version,
        "integrations": config.integrations(),
    }

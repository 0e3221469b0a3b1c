"""SSE endpoint streaming the progress of a deployment."""

import asyncio
import json
import logging

from fastapi import APIRouter, Request
from sse_starlette.sse import EventSourceResponse

from lifecycle.progress import ProgressEmitter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["deploy"])


def _on_provision_done(emitter: ProgressEmitter):
    def callback(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None and not emitter.closed:
            logger.exception(f"[DEPLOY] Unexpected failure for {emitter.request_id}", exc_info=exc)
            emitter.error(f"Deployment failed: {exc}", error_type=type(exc).__name__)
    return callback


@router.get("/deploy/{identifier}/stream")
async def deploy_stream(identifier: str, request: Request):
    """Deploy a project and stream its progress as server-sent events.

    Identifier validation and the project lookup happen before the stream
    opens, so those failures are plain 400/404 responses.
    """
    lifecycle = request.app.state.lifecycle
    lifecycle.ensure_deployable(identifier)
    emitter = ProgressEmitter(request_id=identifier)

    async def generate():
        task = asyncio.create_task(lifecycle.provision(identifier, emitter))
        task.add_done_callback(_on_provision_done(emitter))
        try:
            async for event in emitter.events():
                yield {"data": json.dumps(event.to_wire())}
        finally:
            if not task.done():
                logger.info(f"[DEPLOY] Client for {identifier} disconnected, cancelling deployment")
                task.cancel()

    return EventSourceResponse(generate(), ping=20)

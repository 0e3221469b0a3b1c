"""FastAPI application factory for the Scaffolder API."""

import os
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import cleanup, deploy, health, projects, scaffold
from clients.base import ClientError, ClusterClient, ImageBuilder, RepositoryHost
from clients.docker_builder import DockerImageBuilder
from clients.github import GitHubRepositoryHost
from clients.k8s import KubernetesClusterClient
from lifecycle.errors import LifecycleError
from lifecycle.retry import Clock
from lifecycle.service import LifecycleService
from utils.config import Config, load_config
from utils.logger import get_logger, setup_logger

VERSION = "0.1.0"


def _build_repository_host(config: Config) -> Optional[RepositoryHost]:
    if not config.github.enabled:
        return None
    gh = config.github
    return GitHubRepositoryHost(
        token=gh.token,
        owner=gh.owner,
        api_url=gh.api_url,
        organization=gh.organization,
        private=gh.private,
        timeout=gh.timeout,
    )


def create_app(
    config: Optional[Config] = None,
    cluster: Optional[ClusterClient] = None,
    builder: Optional[ImageBuilder] = None,
    repository_host: Optional[RepositoryHost] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Clients that are not passed in are built from the configuration. They
    connect lazily, so the app starts without a reachable cluster or daemon.
    """
    backend_root = Path(__file__).parent.parent.parent
    if config is None:
        config = load_config(str(backend_root / "config.yaml"))

    setup_logger(
        level=config.logging.level,
        log_format=config.logging.format,
        log_file=config.logging.file,
    )
    log = get_logger(__name__)

    app = FastAPI(
        title="Scaffolder API",
        description="Create, deploy and tear down scaffolded Spring Boot services",
        version=VERSION,
    )

    frontend_url = os.environ.get("FRONTEND_URL", "http://localhost:3000")
    cors_origins = [frontend_url]
    for host in ("localhost", "127.0.0.1"):
        for port in ("3000", "7007"):
            variant = f"http://{host}:{port}"
            if variant not in cors_origins:
                cors_origins.append(variant)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if cluster is None:
        cluster = KubernetesClusterClient(
            in_cluster=config.cluster.in_cluster,
            context=config.cluster.context,
        )
    if builder is None and config.build.enabled:
        builder = DockerImageBuilder(docker_host=config.build.docker_host)
    if repository_host is None:
        repository_host = _build_repository_host(config)

    workspace = Path(config.workspace.base_path)
    if not workspace.is_absolute():
        workspace = backend_root / workspace

    app.state.config = config
    app.state.lifecycle = LifecycleService(
        config,
        cluster,
        builder=builder,
        repository_host=repository_host,
        clock=clock,
        base_path=workspace.resolve(),
    )

    @app.exception_handler(LifecycleError)
    async def lifecycle_error_handler(request: Request, exc: LifecycleError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
            for err in exc.errors()
        )
        return JSONResponse(
            status_code=400,
            content={"error": f"Invalid request: {problems}", "errorType": "ValidationError"},
        )

    @app.exception_handler(ClientError)
    async def client_error_handler(request: Request, exc: ClientError):
        log.error("external_service_failed", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=502,
            content={"error": str(exc), "errorType": type(exc).__name__},
        )

    app.include_router(health.router)
    app.include_router(scaffold.router, prefix="/api")
    app.include_router(scaffold.download_router)
    app.include_router(deploy.router, prefix="/api")
    app.include_router(cleanup.router, prefix="/api")
    app.include_router(projects.router, prefix="/api")

    log.info(
        "app_created",
        workspace=str(workspace),
        integrations=config.integrations(),
    )
    return app

"""Configuration loader for the scaffolder service.

This module loads configuration from config.yaml and environment variables.
Secrets (GitHub token) and hosts (Docker daemon) come from the environment so
that the YAML file can be committed.
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv


DEFAULT_FORBIDDEN_NAMESPACES = ["kube-system", "kube-public", "kube-node-lease"]


@dataclass
class WorkspaceConfig:
    """Where scaffolded projects are materialized."""

    base_path: str = "./projects"


@dataclass
class GitHubConfig:
    """Hosted repository integration. Disabled when no token is configured."""

    token: Optional[str] = None
    owner: str = ""
    api_url: str = "https://api.github.com"
    organization: bool = False
    private: bool = False
    timeout: float = 30.0

    @property
    def enabled(self) -> bool:
        return bool(self.token)


@dataclass
class ClusterConfig:
    """Kubernetes placement policy."""

    default_namespace: str = "default"
    create_namespaces: bool = True
    forbidden_namespaces: List[str] = field(
        default_factory=lambda: list(DEFAULT_FORBIDDEN_NAMESPACES)
    )
    in_cluster: bool = False
    context: Optional[str] = None


@dataclass
class BuildConfig:
    """Local image build before deployment."""

    enabled: bool = True
    docker_host: Optional[str] = None


@dataclass
class ReadinessConfig:
    """Bounded readiness polling for applied workloads."""

    max_attempts: int = 30
    interval: float = 2.0
    backoff: float = 1.0
    max_interval: float = 10.0
    settle_delay: float = 5.0
    log_tail_lines: int = 50


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "text"
    file: Optional[str] = None


@dataclass
class Config:
    """Main configuration for the scaffolder service."""

    workspace: WorkspaceConfig = field(default_factory=WorkspaceConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    readiness: ReadinessConfig = field(default_factory=ReadinessConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def integrations(self) -> Dict[str, bool]:
        """Summary of which optional integrations are switched on."""
        return {
            "github": self.github.enabled,
            "image_build": self.build.enabled,
            "namespace_creation": self.cluster.create_namespaces,
        }


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    return data.get(name) or {}


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from YAML file and environment variables.

    Args:
        config_path: Path to config.yaml file. If None, looks in default locations.

    Returns:
        Loaded Config object.

    Raises:
        FileNotFoundError: If config file not found.
        yaml.YAMLError: If config file is invalid.
    """
    load_dotenv()

    if config_path is None:
        possible_paths = [
            Path("config.yaml"),
            Path("backend/config.yaml"),
            Path("../config.yaml"),
        ]
        for path in possible_paths:
            if path.exists():
                config_path = path
                break

        if config_path is None:
            raise FileNotFoundError("config.yaml not found in default locations")

    with open(config_path, 'r') as f:
        data = yaml.safe_load(f) or {}

    ws_data = _section(data, 'workspace')
    workspace = WorkspaceConfig(
        base_path=os.getenv('PROJECTS_DIR', ws_data.get('base_path', './projects')),
    )

    # Token and owner only ever come from the environment
    gh_data = _section(data, 'github')
    github = GitHubConfig(
        token=os.getenv('GITHUB_TOKEN') or None,
        owner=os.getenv('GITHUB_OWNER', gh_data.get('owner', '')),
        api_url=gh_data.get('api_url', 'https://api.github.com'),
        organization=gh_data.get('organization', False),
        private=gh_data.get('private', False),
        timeout=float(gh_data.get('timeout', 30.0)),
    )

    cluster_data = _section(data, 'cluster')
    cluster = ClusterConfig(
        default_namespace=os.getenv(
            'DEFAULT_NAMESPACE', cluster_data.get('default_namespace', 'default')
        ),
        create_namespaces=cluster_data.get('create_namespaces', True),
        forbidden_namespaces=cluster_data.get(
            'forbidden_namespaces', list(DEFAULT_FORBIDDEN_NAMESPACES)
        ),
        in_cluster=cluster_data.get('in_cluster', False),
        context=cluster_data.get('context'),
    )

    build_data = _section(data, 'build')
    build = BuildConfig(
        enabled=build_data.get('enabled', True),
        docker_host=os.getenv('DOCKER_HOST', build_data.get('docker_host')),
    )

    ready_data = _section(data, 'readiness')
    readiness = ReadinessConfig(
        max_attempts=int(ready_data.get('max_attempts', 30)),
        interval=float(ready_data.get('interval', 2.0)),
        backoff=float(ready_data.get('backoff', 1.0)),
        max_interval=float(ready_data.get('max_interval', 10.0)),
        settle_delay=float(ready_data.get('settle_delay', 5.0)),
        log_tail_lines=int(ready_data.get('log_tail_lines', 50)),
    )

    log_data = _section(data, 'logging')
    logging_config = LoggingConfig(
        level=os.getenv('LOG_LEVEL', log_data.get('level', 'INFO')),
        format=log_data.get('format', 'text'),
        file=log_data.get('file'),
    )

    return Config(
        workspace=workspace,
        github=github,
        cluster=cluster,
        build=build,
        readiness=readiness,
        logging=logging_config,
    )

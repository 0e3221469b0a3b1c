"""Project Generator - materializes a scaffolded service on disk.

The lifecycle treats everything written here as opaque files; only the
manifest file names are shared with the provisioner through ResourceSet.
"""

import logging
from pathlib import Path
from typing import List, Optional

from lifecycle.models import ProjectRecord, ResourceSet, app_endpoint_name

from . import templates
from .manifests import dump_manifest, render_manifest

logger = logging.getLogger(__name__)


class ProjectGenerator:
    """Writes the source tree, Dockerfile and Kubernetes manifests of a project."""

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)

    def generate(self, record: ProjectRecord) -> List[str]:
        """Write all files of a new project.

        Args:
            record: Configuration of the project being created

        Returns:
            Paths of the generated files, relative to the workspace
        """
        ident = record.identifier
        project_dir = self.base_path / ident
        java_dir = Path("src", "main", "java", *templates.package_name(ident).split("."))
        resources_dir = Path("src", "main", "resources")

        files = {
            Path("pom.xml"): templates.render_pom(record),
            resources_dir / "application.properties": templates.render_application_properties(record),
            java_dir / f"{templates.application_class_name(ident)}.java":
                templates.render_application_class(record),
            java_dir / f"{templates.controller_class_name(ident)}.java":
                templates.render_controller(record),
            Path("catalog-info.yaml"): templates.render_catalog_info(record),
            Path("README.md"): templates.render_readme(record),
            Path(".gitignore"): templates.render_gitignore(record),
        }
        if record.uses_stateful_store:
            files[resources_dir / "schema.sql"] = templates.render_schema_sql(record)
        if record.has_feature("docker"):
            files[Path("Dockerfile")] = templates.render_dockerfile(record)
        if record.has_feature("k8s"):
            for spec in ResourceSet.for_record(record):
                files[Path("k8s") / spec.filename] = dump_manifest(render_manifest(record, spec))

        written = []
        for rel_path, content in files.items():
            target = project_dir / rel_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
            written.append(str(Path(ident) / rel_path).replace("\\", "/"))

        logger.info(f"[SCAFFOLD] Project created at {project_dir} ({len(written)} files)")
        return written


def next_steps(record: ProjectRecord, project_dir: Path, repo_url: Optional[str] = None) -> List[str]:
    """Literal commands a user runs to build and deploy the project by hand."""
    ident = record.identifier
    ns = f" -n {record.namespace}" if record.namespace else ""
    head = [f"git clone {repo_url}", f"cd {ident}"] if repo_url else [f"cd {project_dir}"]
    steps = head + [
        "mvn clean package",
        f"docker build -t {ident}:latest .",
        f"minikube image load {ident}:latest",
    ]
    steps += [f"kubectl apply{ns} -f k8s/{spec.filename}" for spec in ResourceSet.for_record(record)]
    steps.append(f"kubectl port-forward{ns} svc/{app_endpoint_name(ident)} {record.port}:{record.port}")
    return steps

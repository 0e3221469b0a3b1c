"""Metadata Store - Persists one lifecycle record per project to disk.

Each scaffolded project keeps ``scaffold-metadata.json`` at its root. The file
is the single source of truth for where a project's resources were placed, so
writes are flushed to stable storage before ``put`` returns.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from utils.config import DEFAULT_FORBIDDEN_NAMESPACES

from .errors import MetadataError, NotFoundError, ValidationError
from .models import ProjectRecord
from .validation import validate_namespace

logger = logging.getLogger(__name__)

METADATA_FILENAME = "scaffold-metadata.json"


class MetadataStore:
    """Manages project records under a workspace directory."""

    def __init__(self, base_path: Path, forbidden_namespaces: Optional[Iterable[str]] = None):
        """Initialize the store.

        Args:
            base_path: Directory holding one subdirectory per project
            forbidden_namespaces: Namespaces a stored record may never point at
        """
        self.base_path = Path(base_path)
        self.forbidden_namespaces = list(
            DEFAULT_FORBIDDEN_NAMESPACES if forbidden_namespaces is None else forbidden_namespaces
        )
        self.base_path.mkdir(parents=True, exist_ok=True)

    def project_dir(self, identifier: str) -> Path:
        return self.base_path / identifier

    def metadata_path(self, identifier: str) -> Path:
        return self.project_dir(identifier) / METADATA_FILENAME

    def exists(self, identifier: str) -> bool:
        """Whether a project directory is materialized locally."""
        return self.project_dir(identifier).is_dir()

    def list_ids(self) -> List[str]:
        """List all local projects, sorted by name."""
        if not self.base_path.exists():
            return []
        return [
            entry.name
            for entry in sorted(self.base_path.iterdir())
            if entry.is_dir() and not entry.name.startswith(".")
        ]

    def put(self, record: ProjectRecord) -> Path:
        """Create or overwrite the record of a project durably.

        The JSON is written to a temporary sibling, fsynced, renamed over the
        target, and the directory entry is fsynced before returning.

        Args:
            record: Record to persist

        Returns:
            Path of the metadata file
        """
        target = self.metadata_path(record.identifier)
        target.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(record.to_dict(), indent=2, sort_keys=True) + "\n"

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{METADATA_FILENAME}.", dir=str(target.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, target)
        except OSError:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise
        self._fsync_dir(target.parent)

        logger.info(f"[SCAFFOLD] Wrote scaffold metadata to {target}: {payload.strip()}")
        return target

    def get(self, identifier: str) -> ProjectRecord:
        """Load the record of a project.

        Raises:
            NotFoundError: If no record is stored for the identifier
            MetadataError: If the stored record cannot be parsed
        """
        record = self.find(identifier)
        if record is None:
            raise NotFoundError(f"Project {identifier} not found")
        return record

    def find(self, identifier: str) -> Optional[ProjectRecord]:
        """Load the record of a project, or None when it has none."""
        path = self.metadata_path(identifier)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            record = ProjectRecord.from_dict(data, identifier=identifier)
        except (json.JSONDecodeError, OSError, TypeError, ValueError) as e:
            raise MetadataError(f"Could not read metadata for {identifier}: {e}") from e
        # A hand-edited record must not redirect deletes into a protected namespace
        if record.namespace is not None:
            try:
                validate_namespace(record.namespace, self.forbidden_namespaces)
            except (ValidationError, TypeError) as e:
                raise MetadataError(f"Metadata for {identifier} is invalid: {e}") from e
        return record

    def delete_project(self, identifier: str) -> Tuple[int, int]:
        """Safely delete a project directory and everything in it.

        - Path containment validation against the project root
        - Symlinks are unlinked, never followed
        - Mount points are never removed
        - Undeletable files are logged and skipped

        Returns:
            Tuple of (files_deleted, files_skipped).
        """
        project_resolved = self.project_dir(identifier).resolve()

        if not project_resolved.exists():
            return 0, 0

        if os.path.ismount(str(project_resolved)):
            logger.error(f"Refusing to delete mount point: {project_resolved}")
            return 0, 1

        deleted = 0
        skipped = 0

        for dirpath, dirnames, filenames in os.walk(str(project_resolved), topdown=False):
            dirpath_p = Path(dirpath)

            for fname in filenames:
                fpath = dirpath_p / fname
                try:
                    if fpath.is_symlink():
                        link_loc = fpath.parent.resolve() / fpath.name
                        link_loc.relative_to(project_resolved)
                    else:
                        fpath.resolve().relative_to(project_resolved)
                except ValueError:
                    logger.warning(f"Skipping out-of-scope file: {fpath}")
                    skipped += 1
                    continue

                try:
                    fpath.unlink()
                    deleted += 1
                except OSError as e:
                    logger.warning(f"Could not delete {fpath}: {e}")
                    skipped += 1

            for dname in dirnames:
                dpath = dirpath_p / dname
                if dpath.is_symlink():
                    try:
                        dpath.unlink()
                    except OSError as e:
                        logger.warning(f"Could not unlink {dpath}: {e}")
                        skipped += 1
                    continue
                if os.path.ismount(str(dpath)):
                    logger.warning(f"Skipping mount point: {dpath}")
                    skipped += 1
                    continue
                try:
                    dpath.rmdir()
                except OSError:
                    pass

        try:
            project_resolved.rmdir()
        except OSError:
            logger.warning(
                f"Project directory not empty after cleanup "
                f"(skipped {skipped} files): {project_resolved}"
            )
            skipped = max(skipped, 1)

        return deleted, skipped

    @staticmethod
    def _fsync_dir(path: Path) -> None:
        try:
            dir_fd = os.open(str(path), os.O_RDONLY)
        except OSError:
            return
        try:
            os.fsync(dir_fd)
        except OSError:
            pass
        finally:
            os.close(dir_fd)

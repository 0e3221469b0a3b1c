"""Conflict Guard - refuses identifiers that already exist, before any write."""

import logging
from dataclasses import dataclass
from typing import Optional

from clients.base import RepositoryHost

from .errors import ConflictError
from .metadata_store import MetadataStore

logger = logging.getLogger(__name__)

HOSTED_REPOSITORY = "hosted-repository"
LOCAL_DIRECTORY = "local-directory"


@dataclass(frozen=True)
class ConflictCheck:
    """Result of a conflict check: clear, or the kind of conflict found."""

    kind: Optional[str] = None
    message: str = ""

    @property
    def clear(self) -> bool:
        return self.kind is None


CLEAR = ConflictCheck()


class ConflictGuard:
    """Checks the hosted repository first, then the local workspace.

    The remote check is authoritative across restarts; the local one only
    catches projects materialized on this host. With the repository host
    disabled the remote check is skipped; with it enabled, a failing remote
    check propagates as RepositoryHostError instead of passing as clear.
    """

    def __init__(self, store: MetadataStore, repository_host: Optional[RepositoryHost] = None):
        self.store = store
        self.repository_host = repository_host

    async def check(self, identifier: str) -> ConflictCheck:
        if self.repository_host is not None:
            if await self.repository_host.repository_exists(identifier):
                owner = self.repository_host.owner
                return ConflictCheck(
                    kind=HOSTED_REPOSITORY,
                    message=f"GitHub repository {owner}/{identifier} already exists",
                )

        if self.store.exists(identifier):
            return ConflictCheck(
                kind=LOCAL_DIRECTORY,
                message=f"Project {identifier} already exists in local storage",
            )

        return CLEAR

    async def ensure_clear(self, identifier: str) -> None:
        """Raise ConflictError unless the identifier is free."""
        result = await self.check(identifier)
        if not result.clear:
            logger.info(f"[SCAFFOLD] Conflict for {identifier}: {result.kind}")
            raise ConflictError(result.message, kind=result.kind)

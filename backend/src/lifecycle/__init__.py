"""Lifecycle module - conflict checks, metadata, provisioning and teardown.

``lifecycle.service`` is imported directly by the API; it is not re-exported
here because it pulls in the generator, which itself depends on the models.
"""

from .errors import (
    ConflictError,
    LifecycleError,
    MetadataError,
    NotFoundError,
    ProvisioningError,
    ReadinessTimeoutError,
    ValidationError,
)
from .metadata_store import MetadataStore
from .models import CleanupResult, PersistenceMode, ProjectRecord, ResourceSet
from .progress import ProgressEmitter

__all__ = [
    'CleanupResult',
    'ConflictError',
    'LifecycleError',
    'MetadataError',
    'MetadataStore',
    'NotFoundError',
    'PersistenceMode',
    'ProgressEmitter',
    'ProjectRecord',
    'ProvisioningError',
    'ReadinessTimeoutError',
    'ResourceSet',
    'ValidationError',
]

"""Identifier and placement validation (DNS-1123 labels)."""

import re
from typing import Iterable, Optional

from .errors import ValidationError

DNS_LABEL_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")
DNS_LABEL_MAX_LENGTH = 63


def is_dns_label(value: Optional[str]) -> bool:
    if not value or len(value) > DNS_LABEL_MAX_LENGTH:
        return False
    return bool(DNS_LABEL_PATTERN.match(value))


def validate_identifier(identifier: Optional[str]) -> str:
    """Return the identifier unchanged or raise ValidationError."""
    if not is_dns_label(identifier):
        raise ValidationError(
            f"Invalid component_id '{identifier}'. "
            "Must be lowercase alphanumeric with hyphens."
        )
    return identifier


def validate_namespace(namespace: Optional[str], forbidden: Iterable[str]) -> str:
    """Validate a placement namespace against the pattern and the denylist."""
    if not is_dns_label(namespace) or namespace in set(forbidden):
        raise ValidationError(f"Invalid or forbidden namespace: {namespace}")
    return namespace


def resolve_namespace_hint(hint: Optional[str], default: str, forbidden: Iterable[str]) -> str:
    """Pick the placement for a new project.

    A supplied hint is honored after validation; an empty hint resolves to the
    configured default, which is validated too.
    """
    if hint is not None and hint.strip():
        return validate_namespace(hint.strip(), forbidden)
    return validate_namespace(default, forbidden)

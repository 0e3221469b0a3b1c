"""Tests for identifier and namespace validation."""

import pytest

from lifecycle.errors import ValidationError
from lifecycle.validation import (
    is_dns_label,
    resolve_namespace_hint,
    validate_identifier,
    validate_namespace,
)

FORBIDDEN = ["kube-system", "kube-public", "kube-node-lease"]


@pytest.mark.parametrize("value", ["user-service", "a", "orders-svc", "svc1", "a" * 63])
def test_valid_labels(value):
    assert is_dns_label(value)
    assert validate_identifier(value) == value


@pytest.mark.parametrize("value", [
    "", None, "User-Service", "-svc", "svc-", "my_service", "a.b", "a" * 64, "svc name",
])
def test_invalid_identifiers_raise(value):
    with pytest.raises(ValidationError) as exc_info:
        validate_identifier(value)
    assert exc_info.value.status_code == 400


@pytest.mark.parametrize("namespace", FORBIDDEN)
def test_forbidden_namespaces_rejected(namespace):
    with pytest.raises(ValidationError):
        validate_namespace(namespace, FORBIDDEN)


def test_namespace_hint_honored():
    assert resolve_namespace_hint("team-a", "default", FORBIDDEN) == "team-a"


def test_missing_hint_resolves_to_default():
    assert resolve_namespace_hint(None, "default", FORBIDDEN) == "default"
    assert resolve_namespace_hint("  ", "sandbox", FORBIDDEN) == "sandbox"


def test_invalid_hint_rejected():
    with pytest.raises(ValidationError):
        resolve_namespace_hint("Team_A", "default", FORBIDDEN)

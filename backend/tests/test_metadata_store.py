"""Tests for the on-disk project record store."""

import json

import pytest

from lifecycle.errors import MetadataError, NotFoundError
from lifecycle.metadata_store import METADATA_FILENAME, MetadataStore
from lifecycle.models import PersistenceMode, ProjectRecord


def test_put_then_get(store):
    record = ProjectRecord(identifier="orders-svc", namespace="team-a",
                           persistence=PersistenceMode.STATEFUL_STORE, port=9090)
    path = store.put(record)

    assert path.name == METADATA_FILENAME
    loaded = store.get("orders-svc")
    assert loaded.namespace == "team-a"
    assert loaded.port == 9090
    assert loaded.uses_stateful_store
    assert loaded.schema_version == 2


def test_put_leaves_no_temp_files(store):
    store.put(ProjectRecord(identifier="user-service", namespace="default"))
    names = [p.name for p in store.project_dir("user-service").iterdir()]
    assert names == [METADATA_FILENAME]


def test_get_missing_raises_not_found(store):
    with pytest.raises(NotFoundError):
        store.get("ghost")
    assert store.find("ghost") is None


def test_corrupt_record_raises_metadata_error(store):
    project = store.project_dir("broken")
    project.mkdir(parents=True)
    (project / METADATA_FILENAME).write_text("{not json")
    with pytest.raises(MetadataError):
        store.find("broken")


@pytest.mark.parametrize("namespace", ["kube-system", "Team_A", ""])
def test_stored_namespace_must_be_a_valid_placement(store, namespace):
    project = store.project_dir("user-service")
    project.mkdir(parents=True)
    (project / METADATA_FILENAME).write_text(json.dumps({"namespace": namespace}))
    with pytest.raises(MetadataError, match="invalid"):
        store.find("user-service")


def test_forbidden_namespaces_are_configurable(workspace):
    store = MetadataStore(workspace, forbidden_namespaces=["restricted"])
    store.put(ProjectRecord(identifier="user-service", namespace="restricted"))
    with pytest.raises(MetadataError):
        store.get("user-service")


def test_version_one_record_is_readable(store):
    project = store.project_dir("legacy-svc")
    project.mkdir(parents=True)
    (project / METADATA_FILENAME).write_text(json.dumps({
        "namespace": "legacy", "createdAt": "2024-01-01T00:00:00Z",
    }))
    record = store.get("legacy-svc")
    assert record.identifier == "legacy-svc"
    assert record.namespace == "legacy"
    assert record.schema_version == 1
    assert record.persistence == PersistenceMode.NONE


def test_list_ids_sorted_and_skips_hidden(store, workspace):
    for name in ["zeta", "alpha", ".git"]:
        (workspace / name).mkdir(parents=True)
    (workspace / "stray.txt").write_text("x")
    assert store.list_ids() == ["alpha", "zeta"]


def test_delete_project_removes_tree(store):
    store.put(ProjectRecord(identifier="user-service"))
    nested = store.project_dir("user-service") / "src" / "main"
    nested.mkdir(parents=True)
    (nested / "App.java").write_text("class App {}")

    deleted, skipped = store.delete_project("user-service")
    assert deleted == 2
    assert skipped == 0
    assert not store.exists("user-service")


def test_delete_project_does_not_follow_symlinks(store, tmp_path):
    outside = tmp_path / "outside.txt"
    outside.write_text("keep me")
    store.put(ProjectRecord(identifier="user-service"))
    (store.project_dir("user-service") / "link.txt").symlink_to(outside)

    store.delete_project("user-service")
    assert outside.read_text() == "keep me"
    assert not store.exists("user-service")

"""Tests for the in-memory and JSON file gallery repositories."""

from __future__ import annotations

import json
import os
from pathlib import Path

import numpy as np
import pytest

from unilink_faceid.exceptions import IdentityNotFoundError, StorageError
from unilink_faceid.storage import InMemoryGalleryRepository, JsonFileGalleryRepository


def test_memory_unknown_identity_is_none() -> None:
    assert InMemoryGalleryRepository().load_gallery("nobody") is None


def test_memory_provision_creates_unenrolled_record() -> None:
    repository = InMemoryGalleryRepository()

    repository.provision("user-1")
    record = repository.load_gallery("user-1")

    assert record.is_enrolled is False
    assert record.gallery == []


def test_memory_requires_provisioning_when_configured(make_descriptor) -> None:
    repository = InMemoryGalleryRepository(auto_provision=False)

    with pytest.raises(IdentityNotFoundError):
        repository.save_gallery("user-1", [make_descriptor()])

    repository.provision("user-1")
    repository.save_gallery("user-1", [make_descriptor()])
    assert repository.load_gallery("user-1").is_enrolled is True


def test_memory_returns_copies(make_descriptor) -> None:
    repository = InMemoryGalleryRepository()
    repository.save_gallery("user-1", [make_descriptor()])

    loaded = repository.load_gallery("user-1")
    loaded.gallery.clear()

    assert len(repository.load_gallery("user-1").gallery) == 1


def test_memory_stored_descriptors_are_read_only(query) -> None:
    repository = InMemoryGalleryRepository()
    sample = query.copy()
    repository.save_gallery("user-1", [sample])
    sample[0] = 5.0

    loaded = repository.load_gallery("user-1").gallery[0]
    with pytest.raises(ValueError):
        loaded[0] = 9.0

    assert repository.load_gallery("user-1").gallery[0][0] == 0.0
    assert next(repository.iter_enrolled()).gallery[0][0] == 0.0


def test_memory_iter_enrolled_skips_revoked(make_descriptor) -> None:
    repository = InMemoryGalleryRepository()
    repository.save_gallery("a", [make_descriptor()])
    repository.save_gallery("b", [make_descriptor()])
    repository.provision("c")
    repository.clear_gallery("b")

    assert [r.identity for r in repository.iter_enrolled()] == ["a"]


def test_json_round_trip_across_instances(tmp_path: Path, make_descriptor) -> None:
    path = tmp_path / "store" / "galleries.json"
    samples = [make_descriptor(), make_descriptor()]

    JsonFileGalleryRepository(path).save_gallery("user-1", samples)
    record = JsonFileGalleryRepository(path).load_gallery("user-1")

    assert record.has_face_recognition is True
    assert len(record.gallery) == 2
    assert np.allclose(record.gallery[1], samples[1])


def test_json_uses_user_document_fields(tmp_path: Path, make_descriptor) -> None:
    path = tmp_path / "galleries.json"

    JsonFileGalleryRepository(path).save_gallery("user-1", [make_descriptor()])
    document = json.loads(path.read_text())["identities"]["user-1"]

    assert document["hasFaceRecognition"] is True
    assert len(document["faceDescriptors"][0]) == 128


def test_json_missing_file_is_empty(tmp_path: Path) -> None:
    repository = JsonFileGalleryRepository(tmp_path / "missing.json")

    assert repository.load_gallery("user-1") is None
    assert list(repository.iter_enrolled()) == []


def test_json_clear(tmp_path: Path, make_descriptor) -> None:
    repository = JsonFileGalleryRepository(tmp_path / "galleries.json")
    repository.save_gallery("user-1", [make_descriptor()])

    repository.clear_gallery("user-1")
    repository.clear_gallery("never-seen")

    record = repository.load_gallery("user-1")
    assert record.has_face_recognition is False
    assert record.gallery == []
    assert repository.load_gallery("never-seen") is None


def test_json_corrupted_store_raises(tmp_path: Path) -> None:
    path = tmp_path / "galleries.json"
    path.write_text("{not json")

    with pytest.raises(StorageError):
        JsonFileGalleryRepository(path).load_gallery("user-1")


@pytest.mark.parametrize("content", ["[]", "42", '{"identities": []}'])
def test_json_store_with_wrong_shape_raises(tmp_path: Path, content: str) -> None:
    path = tmp_path / "galleries.json"
    path.write_text(content)

    with pytest.raises(StorageError) as excinfo:
        JsonFileGalleryRepository(path).load_gallery("user-1")

    assert excinfo.value.context["path"] == str(path)


def test_json_failed_write_keeps_previous_gallery(
    tmp_path: Path, make_descriptor, monkeypatch
) -> None:
    path = tmp_path / "galleries.json"
    repository = JsonFileGalleryRepository(path)
    stored = make_descriptor()
    repository.save_gallery("user-1", [stored])

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", broken_replace)

    with pytest.raises(StorageError):
        repository.save_gallery("user-1", [make_descriptor(), make_descriptor()])

    monkeypatch.undo()
    record = repository.load_gallery("user-1")
    assert len(record.gallery) == 1
    assert np.allclose(record.gallery[0], stored)
    assert sorted(p.name for p in tmp_path.iterdir()) == ["galleries.json"]

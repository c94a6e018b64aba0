"""
Gallery storage collaborators for the UniLink FaceID core.

The core never issues database queries itself. It talks to storage through
the narrow ``GalleryRepository`` interface: load a gallery, replace it
wholesale, clear it, and (for identification) iterate enrolled identities.
Every write is a single atomic replace-or-clear so a failure never leaves a
half-written gallery behind.

Concurrent enrollments for one identity are last-write-wins. A deployment
that needs stronger guarantees must add a conditional write at this
boundary.
"""

import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union
import numpy as np
import structlog

from .constants import FIELD_FACE_DESCRIPTORS, FIELD_HAS_FACE_RECOGNITION
from .data_models import EnrollmentRecord
from .exceptions import IdentityNotFoundError, StorageError

# Initialize structured logger
logger = structlog.get_logger(__name__)


class GalleryRepository(ABC):
    """Interface for loading and replacing per-identity descriptor galleries."""

    @abstractmethod
    def load_gallery(self, identity: str) -> Optional[EnrollmentRecord]:
        """
        Load the enrollment record of an identity.

        Args:
            identity: Identity whose record to load

        Returns:
            The record, or None if the identity is unknown

        Raises:
            StorageError: If the storage backend fails
        """

    @abstractmethod
    def save_gallery(self, identity: str, gallery: Sequence[np.ndarray]) -> None:
        """
        Replace the identity's gallery and enable face recognition.

        The previous gallery is discarded, never merged.

        Raises:
            StorageError: If the storage backend fails
            IdentityNotFoundError: If the backend requires provisioned
                identities and this one does not exist
        """

    @abstractmethod
    def clear_gallery(self, identity: str) -> None:
        """
        Remove the identity's gallery and disable face recognition.

        Succeeds for identities that are already unenrolled.

        Raises:
            StorageError: If the storage backend fails
        """

    @abstractmethod
    def iter_enrolled(self) -> Iterator[EnrollmentRecord]:
        """Yield the records of every identity with face recognition enabled."""

    def close(self) -> None:
        """Release backend resources. The default holds none."""


def _to_plain_lists(gallery: Sequence[Any]) -> List[List[float]]:
    return [
        d.tolist() if isinstance(d, np.ndarray) else [float(v) for v in d]
        for d in gallery
    ]


def _frozen_copy(descriptor: Any) -> np.ndarray:
    # Loads hand out the stored arrays themselves; keep them read-only.
    array = np.array(descriptor, dtype=np.float64)
    array.setflags(write=False)
    return array


class InMemoryGalleryRepository(GalleryRepository):
    """
    Process-local repository backed by a dictionary.

    Parameters
    ----------
    auto_provision : bool, default=True
        Create records on first save. When False, saving for an identity
        that was never ``provision``-ed raises ``IdentityNotFoundError``.
    """

    def __init__(self, auto_provision: bool = True) -> None:
        self.auto_provision = auto_provision
        self._records: Dict[str, EnrollmentRecord] = {}
        self._lock = threading.Lock()

    def provision(self, identity: str) -> None:
        """Create an empty, unenrolled record for a new identity."""
        with self._lock:
            self._records.setdefault(identity, EnrollmentRecord(identity=identity))

    def load_gallery(self, identity: str) -> Optional[EnrollmentRecord]:
        with self._lock:
            record = self._records.get(identity)
            if record is None:
                return None
            return EnrollmentRecord(
                identity=record.identity,
                gallery=list(record.gallery),
                has_face_recognition=record.has_face_recognition,
            )

    def save_gallery(self, identity: str, gallery: Sequence[np.ndarray]) -> None:
        replacement = EnrollmentRecord(
            identity=identity,
            gallery=[_frozen_copy(d) for d in gallery],
            has_face_recognition=True,
        )
        with self._lock:
            if identity not in self._records and not self.auto_provision:
                raise IdentityNotFoundError(identity)
            self._records[identity] = replacement

    def clear_gallery(self, identity: str) -> None:
        with self._lock:
            if identity in self._records:
                self._records[identity] = EnrollmentRecord(identity=identity)

    def iter_enrolled(self) -> Iterator[EnrollmentRecord]:
        with self._lock:
            snapshot = [r for r in self._records.values() if r.is_enrolled]
        for record in snapshot:
            yield EnrollmentRecord(
                identity=record.identity,
                gallery=list(record.gallery),
                has_face_recognition=True,
            )

    def __len__(self) -> int:
        return len(self._records)


class JsonFileGalleryRepository(GalleryRepository):
    """
    Repository persisting all galleries in a single JSON file.

    Writes go to a temporary file in the same directory which then replaces
    the store with ``os.replace``, so readers only ever see a complete file.
    Intended for local use and the command line; not safe across processes.

    Parameters
    ----------
    path : Union[str, Path]
        Location of the JSON store. Parent directories are created on first
        write.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

        logger.debug("JsonFileGalleryRepository initialized", path=str(self.path))

    def _read(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(
                f"Failed to read gallery store: {e}", operation="read"
            ) from e
        identities = data.get("identities", {}) if isinstance(data, dict) else None
        if not isinstance(identities, dict):
            raise StorageError(
                "Gallery store is not a JSON object with an identities mapping",
                operation="read",
                context={"path": str(self.path)},
            )
        return identities

    def _write(self, identities: Dict[str, Dict[str, Any]]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=".galleries_", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump({"identities": identities}, f)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageError(
                f"Failed to write gallery store: {e}", operation="write"
            ) from e

    @staticmethod
    def _to_record(identity: str, document: Dict[str, Any]) -> EnrollmentRecord:
        return EnrollmentRecord(
            identity=identity,
            gallery=list(document.get(FIELD_FACE_DESCRIPTORS) or []),
            has_face_recognition=bool(document.get(FIELD_HAS_FACE_RECOGNITION)),
        )

    def load_gallery(self, identity: str) -> Optional[EnrollmentRecord]:
        with self._lock:
            document = self._read().get(identity)
        if document is None:
            return None
        return self._to_record(identity, document)

    def save_gallery(self, identity: str, gallery: Sequence[np.ndarray]) -> None:
        with self._lock:
            identities = self._read()
            identities[identity] = {
                FIELD_FACE_DESCRIPTORS: _to_plain_lists(gallery),
                FIELD_HAS_FACE_RECOGNITION: True,
            }
            self._write(identities)

        logger.debug("Gallery written", identity=identity, path=str(self.path))

    def clear_gallery(self, identity: str) -> None:
        with self._lock:
            identities = self._read()
            if identity not in identities:
                return
            identities[identity] = {
                FIELD_FACE_DESCRIPTORS: [],
                FIELD_HAS_FACE_RECOGNITION: False,
            }
            self._write(identities)

    def iter_enrolled(self) -> Iterator[EnrollmentRecord]:
        with self._lock:
            identities = self._read()
        for identity, document in identities.items():
            record = self._to_record(identity, document)
            if record.is_enrolled:
                yield record

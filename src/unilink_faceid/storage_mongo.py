"""
MongoDB gallery repository for the UniLink FaceID core.

Galleries live on the web application's user documents, in the
``faceDescriptors`` and ``hasFaceRecognition`` fields. User documents are
created by the account layer; this repository only ever updates those two
fields, always together, in a single ``$set`` so the document is never left
with one updated and not the other.
"""

from typing import Any, Dict, Iterator, Optional, Sequence
import numpy as np
import structlog
from bson import ObjectId
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from . import config
from .constants import FIELD_FACE_DESCRIPTORS, FIELD_HAS_FACE_RECOGNITION
from .data_models import EnrollmentRecord
from .exceptions import IdentityNotFoundError, StorageError
from .storage import GalleryRepository, _to_plain_lists

# Initialize structured logger
logger = structlog.get_logger(__name__)

_PROJECTION = {FIELD_FACE_DESCRIPTORS: 1, FIELD_HAS_FACE_RECOGNITION: 1}


def _document_id(identity: str) -> Any:
    """Map an identity to the document ``_id`` (ObjectId for 24-hex ids)."""
    if len(identity) == 24 and ObjectId.is_valid(identity):
        return ObjectId(identity)
    return identity


class MongoGalleryRepository(GalleryRepository):
    """
    Repository over the MongoDB users collection.

    Parameters
    ----------
    collection : Optional[Collection], default=None
        Collection to use. When omitted a client is created from
        ``MONGO_URI`` / ``MONGO_DB`` / ``MONGO_USERS_COLLECTION``.

    Examples
    --------
    >>> repository = MongoGalleryRepository()
    >>> record = repository.load_gallery("65f1c0ffee0000000000beef")
    """

    def __init__(self, collection: Optional[Collection] = None) -> None:
        self.client: Optional[MongoClient] = None

        if collection is None:
            try:
                self.client = MongoClient(
                    config.MONGO_URI, serverSelectionTimeoutMS=config.MONGO_TIMEOUT_MS
                )
                collection = self.client[config.MONGO_DB][config.MONGO_USERS_COLLECTION]
            except PyMongoError as e:
                raise StorageError(
                    f"Failed to connect to MongoDB: {e}", operation="connect"
                ) from e

            logger.info(
                "Connected to MongoDB",
                database=config.MONGO_DB,
                collection=config.MONGO_USERS_COLLECTION,
            )

        self.collection = collection

    @staticmethod
    def _to_record(document: Dict[str, Any]) -> EnrollmentRecord:
        return EnrollmentRecord(
            identity=str(document["_id"]),
            gallery=list(document.get(FIELD_FACE_DESCRIPTORS) or []),
            has_face_recognition=bool(document.get(FIELD_HAS_FACE_RECOGNITION)),
        )

    def load_gallery(self, identity: str) -> Optional[EnrollmentRecord]:
        try:
            document = self.collection.find_one(
                {"_id": _document_id(identity)}, _PROJECTION
            )
        except PyMongoError as e:
            raise StorageError(
                f"Failed to load gallery: {e}", operation="load_gallery", identity=identity
            ) from e

        if document is None:
            return None
        return self._to_record(document)

    def save_gallery(self, identity: str, gallery: Sequence[np.ndarray]) -> None:
        update = {
            "$set": {
                FIELD_FACE_DESCRIPTORS: _to_plain_lists(gallery),
                FIELD_HAS_FACE_RECOGNITION: True,
            }
        }
        try:
            result = self.collection.update_one({"_id": _document_id(identity)}, update)
        except PyMongoError as e:
            raise StorageError(
                f"Failed to save gallery: {e}", operation="save_gallery", identity=identity
            ) from e

        if result.matched_count == 0:
            raise IdentityNotFoundError(identity)

    def clear_gallery(self, identity: str) -> None:
        update = {
            "$set": {FIELD_FACE_DESCRIPTORS: [], FIELD_HAS_FACE_RECOGNITION: False}
        }
        try:
            result = self.collection.update_one({"_id": _document_id(identity)}, update)
        except PyMongoError as e:
            raise StorageError(
                f"Failed to clear gallery: {e}", operation="clear_gallery", identity=identity
            ) from e

        if result.matched_count == 0:
            logger.warning("Clear requested for unknown identity", identity=identity)

    def iter_enrolled(self) -> Iterator[EnrollmentRecord]:
        query = {
            FIELD_HAS_FACE_RECOGNITION: True,
            FIELD_FACE_DESCRIPTORS: {"$exists": True, "$ne": []},
        }
        try:
            for document in self.collection.find(query, _PROJECTION):
                yield self._to_record(document)
        except PyMongoError as e:
            raise StorageError(
                f"Failed to scan enrolled galleries: {e}", operation="iter_enrolled"
            ) from e

    def close(self) -> None:
        """Close the client if this repository created it."""
        if self.client is not None:
            self.client.close()
            logger.info("MongoDB connection closed")

"""
Constants for the UniLink FaceID core.

This module centralizes the fixed parameters of the face descriptor
pipeline. Policy values (thresholds) have defaults here but are exposed as
configuration in ``config.py`` so deployments can tune them.
"""

from typing import Final

# =============================================================================
# Descriptor Dimensions
# =============================================================================

# Face descriptor dimension produced by the client-side embedding model
DESCRIPTOR_DIM: Final[int] = 128

# =============================================================================
# Match Policy Defaults
# =============================================================================

# Maximum Euclidean distance at which two descriptors are the same person
DEFAULT_MATCH_THRESHOLD: Final[float] = 0.6

# Confident-match bound; gallery scanning stops once the best distance
# drops to or below this value
DEFAULT_EARLY_EXIT_THRESHOLD: Final[float] = 0.3

# Confident-match bound for 1:N identification across identities
DEFAULT_IDENTIFY_EARLY_EXIT_THRESHOLD: Final[float] = 0.4

# =============================================================================
# Storage Document Fields
# =============================================================================

# Field names on the user document, shared with the web application
FIELD_FACE_DESCRIPTORS: Final[str] = "faceDescriptors"
FIELD_HAS_FACE_RECOGNITION: Final[str] = "hasFaceRecognition"

# Default collection holding user documents
DEFAULT_USERS_COLLECTION: Final[str] = "users"

# =============================================================================
# Local Storage
# =============================================================================

# Default file for the JSON gallery repository
DEFAULT_GALLERY_STORE_FILE: Final[str] = "galleries.json"

# Supported storage backends
STORAGE_BACKENDS: Final[tuple] = ("memory", "json", "mongo")

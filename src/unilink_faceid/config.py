"""
Configuration management for the UniLink FaceID core.

This module loads configuration from environment variables and .env files
so the match policy and storage backend can be tuned per deployment without
code changes.
"""

import math
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

from .constants import (
    DEFAULT_MATCH_THRESHOLD,
    DEFAULT_EARLY_EXIT_THRESHOLD,
    DEFAULT_IDENTIFY_EARLY_EXIT_THRESHOLD,
    DEFAULT_USERS_COLLECTION,
    DEFAULT_GALLERY_STORE_FILE,
    STORAGE_BACKENDS,
)
from .exceptions import ConfigurationError

# Load environment variables from .env file if it exists
load_dotenv()


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be a number", config_key=name, config_value=raw
        )


def _optional_float_env(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is not None and raw.strip().lower() in ("none", "off", "disabled"):
        return None
    return _float_env(name, default)


def _bool_env(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


# =============================================================================
# Base Paths
# =============================================================================
# Project root directory (parent of src/)
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent.parent

# =============================================================================
# Match Policy Configuration
# =============================================================================
# Maximum Euclidean distance accepted as the same person
FACE_MATCH_THRESHOLD: float = _float_env("FACE_MATCH_THRESHOLD", DEFAULT_MATCH_THRESHOLD)

# Confident-match bound that stops a gallery scan ("none" disables early exit)
FACE_EARLY_EXIT_THRESHOLD: Optional[float] = _optional_float_env(
    "FACE_EARLY_EXIT_THRESHOLD", DEFAULT_EARLY_EXIT_THRESHOLD
)

# Confident-match bound that stops a 1:N identification search
FACE_IDENTIFY_EARLY_EXIT_THRESHOLD: Optional[float] = _optional_float_env(
    "FACE_IDENTIFY_EARLY_EXIT_THRESHOLD", DEFAULT_IDENTIFY_EARLY_EXIT_THRESHOLD
)

# Store a single averaged descriptor instead of every raw sample
STORE_AVERAGE_DESCRIPTOR: bool = _bool_env("STORE_AVERAGE_DESCRIPTOR", "false")

# =============================================================================
# Storage Configuration
# =============================================================================
# Gallery storage backend: memory, json or mongo
STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "json").lower()

# JSON gallery file used by the json backend
GALLERY_STORE_PATH: Path = Path(
    os.getenv(
        "GALLERY_STORE_PATH", str(PROJECT_ROOT / "data" / DEFAULT_GALLERY_STORE_FILE)
    )
)

# MongoDB connection used by the mongo backend
MONGO_URI: str = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB: str = os.getenv("MONGO_DB", "unilink")
MONGO_USERS_COLLECTION: str = os.getenv(
    "MONGO_USERS_COLLECTION", DEFAULT_USERS_COLLECTION
)

# Server selection timeout for the Mongo client in milliseconds
MONGO_TIMEOUT_MS: int = int(os.getenv("MONGO_TIMEOUT_MS", "5000"))

# =============================================================================
# Logging Configuration
# =============================================================================
# Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Emit JSON log lines instead of console output
STRUCTURED_LOGGING: bool = _bool_env("STRUCTURED_LOGGING", "false")

# =============================================================================
# Development and Debugging Configuration
# =============================================================================
# Enable debug mode (skips configuration validation on import)
DEBUG_MODE: bool = _bool_env("DEBUG_MODE", "false")


# =============================================================================
# Configuration Validation
# =============================================================================
def validate_configuration() -> bool:
    """
    Validate the current configuration settings.

    Returns
    -------
    bool
        True if configuration is valid.

    Raises
    ------
    ConfigurationError
        If any configuration parameter is invalid. Every problem found is
        listed in the message.
    """
    errors = []

    if not math.isfinite(FACE_MATCH_THRESHOLD) or FACE_MATCH_THRESHOLD < 0:
        errors.append("FACE_MATCH_THRESHOLD must be a finite non-negative number")

    for name, value in (
        ("FACE_EARLY_EXIT_THRESHOLD", FACE_EARLY_EXIT_THRESHOLD),
        ("FACE_IDENTIFY_EARLY_EXIT_THRESHOLD", FACE_IDENTIFY_EARLY_EXIT_THRESHOLD),
    ):
        if value is None:
            continue
        if not math.isfinite(value) or value < 0:
            errors.append(f"{name} must be a finite non-negative number")
        elif name == "FACE_EARLY_EXIT_THRESHOLD" and value > FACE_MATCH_THRESHOLD:
            errors.append(f"{name} must not exceed FACE_MATCH_THRESHOLD")

    if STORAGE_BACKEND not in STORAGE_BACKENDS:
        errors.append(f"STORAGE_BACKEND must be one of {list(STORAGE_BACKENDS)}")

    if MONGO_TIMEOUT_MS < 1:
        errors.append("MONGO_TIMEOUT_MS must be at least 1")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if LOG_LEVEL not in valid_log_levels:
        errors.append(f"LOG_LEVEL must be one of {valid_log_levels}")

    if errors:
        raise ConfigurationError(
            "Configuration validation failed:\n"
            + "\n".join(f"- {error}" for error in errors)
        )

    return True


def get_config_summary() -> dict:
    """
    Get a summary of the current configuration.

    Returns
    -------
    dict
        Dictionary containing key configuration parameters. The Mongo URI
        is omitted since it may carry credentials.
    """
    return {
        "match_policy": {
            "threshold": FACE_MATCH_THRESHOLD,
            "early_exit_threshold": FACE_EARLY_EXIT_THRESHOLD,
            "identify_early_exit_threshold": FACE_IDENTIFY_EARLY_EXIT_THRESHOLD,
            "store_average_descriptor": STORE_AVERAGE_DESCRIPTOR,
        },
        "storage": {
            "backend": STORAGE_BACKEND,
            "gallery_store_path": str(GALLERY_STORE_PATH),
            "mongo_db": MONGO_DB,
            "mongo_users_collection": MONGO_USERS_COLLECTION,
        },
        "logging": {
            "level": LOG_LEVEL,
            "structured": STRUCTURED_LOGGING,
        },
        "debug_mode": DEBUG_MODE,
    }


# Validate configuration on import
if not DEBUG_MODE:
    validate_configuration()

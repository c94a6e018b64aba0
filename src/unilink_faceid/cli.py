import json
import sys
import argparse
from pathlib import Path
from typing import Any, Optional, List
import structlog

from . import config
from .enrollment import EnrollmentLifecycle
from .exceptions import FaceIdError, ConfigurationError
from .storage import GalleryRepository, InMemoryGalleryRepository, JsonFileGalleryRepository
from .utils import configure_logging

# Initialize structured logger
logger = structlog.get_logger(__name__)


def create_repository(backend: str, store_path: Optional[Path] = None) -> GalleryRepository:
    """Instantiate the gallery repository for a storage backend name."""
    if backend == "memory":
        return InMemoryGalleryRepository()
    if backend == "json":
        return JsonFileGalleryRepository(store_path or config.GALLERY_STORE_PATH)
    if backend == "mongo":
        from .storage_mongo import MongoGalleryRepository

        return MongoGalleryRepository()
    raise ConfigurationError(
        f"Unknown storage backend '{backend}'",
        config_key="STORAGE_BACKEND",
        config_value=backend,
    )


def _load_json(path: str) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise FaceIdError(f"Cannot read descriptor file {path}: {e}") from e


class FaceIdCLI:
    """Command-line interface for the UniLink FaceID core."""

    def __init__(self) -> None:
        configure_logging(config.LOG_LEVEL, config.STRUCTURED_LOGGING)
        self.parser = self._create_argument_parser()
        logger.debug("FaceID CLI initialized")

    def _create_argument_parser(self) -> argparse.ArgumentParser:
        """Creates the argument parser for the CLI."""
        parser = argparse.ArgumentParser(
            prog="unilink-faceid",
            description="UniLink FaceID - face descriptor enrollment and verification",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        parser.add_argument(
            "--backend",
            choices=["memory", "json", "mongo"],
            default=config.STORAGE_BACKEND,
            help=f"Gallery storage backend. Default: {config.STORAGE_BACKEND}.",
        )
        parser.add_argument(
            "--store",
            type=Path,
            default=None,
            help="JSON gallery file for the json backend.",
        )

        subparsers = parser.add_subparsers(dest="command", required=True)

        enroll_parser = subparsers.add_parser(
            "enroll", help="Replace an identity's gallery with the given samples."
        )
        enroll_parser.add_argument("identity")
        enroll_parser.add_argument(
            "samples", help="JSON file holding an array of 128-value descriptors."
        )

        verify_parser = subparsers.add_parser(
            "verify", help="Verify a query descriptor against an identity."
        )
        verify_parser.add_argument("identity")
        verify_parser.add_argument("query", help="JSON file holding one descriptor.")

        identify_parser = subparsers.add_parser(
            "identify", help="Search all enrolled identities for a query descriptor."
        )
        identify_parser.add_argument("query", help="JSON file holding one descriptor.")

        revoke_parser = subparsers.add_parser(
            "revoke", help="Remove an identity's gallery."
        )
        revoke_parser.add_argument("identity")

        status_parser = subparsers.add_parser(
            "status", help="Show an identity's enrollment state."
        )
        status_parser.add_argument("identity")

        return parser

    def _execute(self, args: argparse.Namespace) -> dict:
        repository = create_repository(args.backend, args.store)
        try:
            return self._dispatch(args, EnrollmentLifecycle(repository))
        finally:
            repository.close()

    def _dispatch(self, args: argparse.Namespace, lifecycle: EnrollmentLifecycle) -> dict:
        if args.command == "enroll":
            return lifecycle.enroll(args.identity, _load_json(args.samples)).to_dict()
        if args.command == "verify":
            return lifecycle.verify(args.identity, _load_json(args.query)).to_dict()
        if args.command == "identify":
            return lifecycle.identify(_load_json(args.query)).to_dict()
        if args.command == "revoke":
            lifecycle.revoke(args.identity)
            return {"hasFaceRecognition": False}
        return lifecycle.status(args.identity)

    def run_from_args(self, args_list: Optional[List[str]] = None) -> int:
        """Run the CLI with provided arguments."""
        try:
            args = self.parser.parse_args(args_list)
            result = self._execute(args)
            print(json.dumps(result, allow_nan=False))
            return 0
        except FaceIdError as e:
            logger.error("Command failed", **e.to_dict())
            print(f"[ERROR] {e}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            print("\nOperation cancelled by user.", file=sys.stderr)
            return 130


def main() -> int:
    """Main entry point for the CLI."""
    cli = FaceIdCLI()
    return cli.run_from_args()


if __name__ == "__main__":
    sys.exit(main())

"""Command line entry point for the image gallery store."""
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys

from .controller import ImageStoreController
from .key_utils import compose_key, parse_size_bytes, suggest_filename
from .models import StoredObject
from .presenter import ImageStorePresenter, OperationError
from .profiles import ProfileStorage, load_profile_from_env
from .settings import INGEST_MODES, FOLDER_IDENTITIES, SettingsStorage

LOGGER = logging.getLogger("s3_gallery")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="s3_gallery", description="Browse and ingest images in an S3 bucket.")
    parser.add_argument("--profile", help="saved connection profile (defaults to S3_* environment variables)")
    parser.add_argument("--profiles-file", type=Path, help="connection profile store")
    parser.add_argument("--settings", type=Path, help="settings file")
    parser.add_argument("--max-upload", help="upload size limit, e.g. 10MB")
    parser.add_argument("--ingest-mode", choices=INGEST_MODES)
    parser.add_argument("--folder-identity", choices=FOLDER_IDENTITIES)
    parser.add_argument("-v", "--verbose", action="store_true")

    commands = parser.add_subparsers(dest="command", required=True)
    images = commands.add_parser("images", help="list image keys")
    images.add_argument("--prefix", default="")
    commands.add_parser("folders", help="print the synthesized folder tree")
    put = commands.add_parser("put", help="validate and upload an image")
    put.add_argument("name")
    put.add_argument("source", type=Path)
    put.add_argument("--mime")
    put.add_argument("--prefix", default="", help="folder to upload into")
    get = commands.add_parser("get", help="download an image")
    get.add_argument("name")
    get.add_argument("destination", type=Path, nargs="?")
    delete = commands.add_parser("delete", help="delete an image")
    delete.add_argument("name")
    return parser


def build_controller(args: argparse.Namespace) -> ImageStoreController:
    settings = SettingsStorage(args.settings).load()
    if args.max_upload:
        limit = parse_size_bytes(args.max_upload)
        if limit is None:
            raise ValueError(f"invalid upload limit '{args.max_upload}'")
        settings.max_upload_bytes = limit
    if args.ingest_mode:
        settings.ingest_mode = args.ingest_mode
    if args.folder_identity:
        settings.folder_identity = args.folder_identity
    if args.profile:
        profile = ProfileStorage(args.profiles_file).get(args.profile)
    else:
        profile = load_profile_from_env()
    return ImageStoreController.from_profile(profile, settings)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )
    try:
        controller = build_controller(args)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    outcome: dict[str, object] = {}
    presenter = ImageStorePresenter(controller, runner=lambda task: task())

    def on_success(result: object) -> None:
        outcome["result"] = result

    def on_error(error: OperationError) -> None:
        outcome["error"] = error

    if args.command == "images":
        presenter.list_images(prefix=args.prefix, on_success=on_success, on_error=on_error)
    elif args.command == "folders":
        presenter.list_folders(on_success=on_success, on_error=on_error)
    elif args.command == "put":
        try:
            payload = args.source.read_bytes()
            name = compose_key(args.prefix, args.name)
        except (OSError, ValueError) as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1
        presenter.insert_image(
            name=name,
            payload=payload,
            mime_type=args.mime,
            on_success=on_success,
            on_error=on_error,
        )
    elif args.command == "get":
        presenter.get_image(name=args.name, on_success=on_success, on_error=on_error)
    else:
        presenter.delete_image(name=args.name, on_success=on_success, on_error=on_error)

    error = outcome.get("error")
    if isinstance(error, OperationError):
        print(f"error: {error.message}", file=sys.stderr)
        return 1 if error.is_client_error else 2

    result = outcome.get("result")
    if isinstance(result, StoredObject):
        destination = args.destination or Path(suggest_filename(result.key))
        try:
            destination.write_bytes(result.data)
        except OSError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1
        LOGGER.debug("Wrote %d bytes to %s", len(result.data), destination)
        result = str(destination)
    if result is not None:
        print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())

import argparse
import asyncio
from pathlib import Path
from typing import Optional

from photostore.app_logging import init_logging
from photostore.config import StoreConfig
from photostore.containers import build_container
from photostore.errors import PhotoStoreError
from photostore.lib.migrations import CURRENT_VERSION, MIN_VERSION, current_version
from photostore.models.records import Coordinates


def _store_config(args) -> StoreConfig:
    # A config already resolved by main() wins; CLI overrides (if provided)
    # take precedence over values from the config file.
    cfg = getattr(args, "store_config", None)
    if cfg is None:
        cfg = StoreConfig.load(getattr(args, "config", None))
    if getattr(args, "database", None):
        cfg.database = args.database
    if getattr(args, "photo_dir", None):
        cfg.photo_dir = args.photo_dir
    return cfg


def _run(args, body) -> int:
    """Build the container, run ``body(container)`` and map typed failures to exit code 1."""

    async def _main():
        container = build_container(_store_config(args))
        async with container:
            return await body(container)

    try:
        return asyncio.run(_main())
    except PhotoStoreError as exc:
        print(f"ERROR: {exc}")
        return 1


def _format_coords(coords: Optional[Coordinates]) -> str:
    if coords is None:
        return "-"
    return f"{coords.latitude:.6f},{coords.longitude:.6f}"


def init(args):
    async def body(container):
        version = await container.initialize()
        print(f"Photo store initialized: schema v{version} ({container.config.database})")
        return 0

    return _run(args, body)


def migrate(args):
    target = getattr(args, "target", None) or CURRENT_VERSION

    async def body(container):
        before = await current_version(container.engine)
        after = await container.initialize(target)
        print(f"Schema v{before} -> v{after}")
        return 0

    return _run(args, body)


def add(args):
    lat = getattr(args, "lat", None)
    lon = getattr(args, "lon", None)
    if (lat is None) != (lon is None):
        print("ERROR: --lat and --lon must be given together")
        return 1
    try:
        coords = Coordinates(lat, lon) if lat is not None else None
    except ValueError as exc:
        print(f"ERROR: {exc}")
        return 1

    async def body(container):
        await container.initialize()
        record = await container.capture_service.import_file(Path(args.file), coords)
        print(f"Added {record.uri} (id={record.id}) coords={_format_coords(record.coordinates)}")
        return 0

    return _run(args, body)


def list_photos(args):
    descending = bool(getattr(args, "desc", False))

    async def body(container):
        await container.initialize()
        gallery = container.gallery
        gallery.descending = descending
        items = await gallery.refresh()
        if gallery.last_error is not None:
            print(f"ERROR: {gallery.last_error}")
            return 1
        if not items:
            print("No photos stored")
            return 0
        for item in items:
            if item.placeholder:
                print(f"{item.record_id}\t<invalid record: {item.error}>")
            else:
                print(f"{item.record_id}\t{item.uri}\t{_format_coords(item.coordinates)}")
        return 0

    return _run(args, body)


def delete(args):
    strict = bool(getattr(args, "strict", False))

    async def body(container):
        await container.initialize()
        removed = await container.capture_service.delete(args.uri, missing_ok=not strict)
        if removed:
            print(f"Deleted {args.uri} ({removed} record(s))")
        else:
            print(f"No record for {args.uri}; nothing to delete")
        return 0

    return _run(args, body)


def reconcile(args):
    prune = bool(getattr(args, "prune", False))

    async def body(container):
        await container.initialize()
        report = await container.reconciler.sweep(prune=prune)
        for record in report.dangling:
            print(f"dangling record: id={record.id} uri={record.uri or '<empty>'}")
        for path in report.orphans:
            print(f"orphan file: {path}")
        if report.clean:
            print("Store is consistent")
        else:
            print(f"{len(report.dangling)} dangling record(s), {len(report.orphans)} orphan file(s)")
        if prune:
            print(f"Pruned {report.pruned} record(s)")
        return 0

    return _run(args, body)


def main(argv=None):
    parser = argparse.ArgumentParser(prog="photostore")
    parser.add_argument("--config", help="Path to JSON config file (default: ./config.json)")
    parser.add_argument("--database", help="Override config: SQLite file path or SQLAlchemy URL")
    parser.add_argument("--photo-dir", help="Override config: directory holding photo files")
    sub = parser.add_subparsers(dest="cmd")

    p_init = sub.add_parser("init", help="Create or upgrade the photo database")
    p_init.set_defaults(func=init)

    p_migrate = sub.add_parser("migrate", help="Move the schema to a specific version")
    p_migrate.add_argument("--target", type=int, choices=range(MIN_VERSION, CURRENT_VERSION + 1), default=CURRENT_VERSION)
    p_migrate.set_defaults(func=migrate)

    p_add = sub.add_parser("add", help="Store a copy of an image file as a new photo")
    p_add.add_argument("file")
    p_add.add_argument("--lat", type=float, help="Latitude of the capture")
    p_add.add_argument("--lon", type=float, help="Longitude of the capture")
    p_add.set_defaults(func=add)

    p_list = sub.add_parser("list", help="List stored photos in insertion order")
    p_list.add_argument("--desc", action="store_true", help="Newest first")
    p_list.set_defaults(func=list_photos)

    p_delete = sub.add_parser("delete", help="Delete a photo file and its record")
    p_delete.add_argument("uri")
    p_delete.add_argument("--strict", action="store_true", help="Fail when no record matches")
    p_delete.set_defaults(func=delete)

    p_reconcile = sub.add_parser("reconcile", help="Report records without files and files without records")
    p_reconcile.add_argument("--prune", action="store_true", help="Delete records whose file is missing")
    p_reconcile.set_defaults(func=reconcile)

    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 1
    args.store_config = _store_config(args)
    init_logging(args.store_config.log_dir, args.store_config.log_level)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())

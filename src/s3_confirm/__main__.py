#!/usr/bin/env python3
"""
s3-confirm Command Line Interface

Bucket and object operations that only report success once the change is
visible on the storage service.

Commands:
  buckets   ls, create, rm, exists
  objects   ls, put, rm, rm-batch, get
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .client import StorageClient
from .config import build_client_config
from .errors import ConfigError, InvalidRequestError
from .logging_config import setup_logging
from .outcomes import ItemIdentity, OperationOutcome, batch_succeeded

logger = logging.getLogger(__name__)


def format_size(size_bytes: int) -> str:
    """Format size in human-readable format."""
    size_float = float(size_bytes)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_float < 1024.0:
            return f"{size_float:.1f} {unit}"
        size_float = size_float / 1024.0
    return f"{size_float:.1f} PB"


def report(label: str, outcome: OperationOutcome) -> int:
    """Print an outcome line and return the matching exit status."""
    if outcome.ok:
        print(f"✅ {label}")
        return 0
    print(f"❌ {label}: {outcome}")
    return 1


async def cmd_buckets(args, storage: StorageClient) -> int:
    if args.action == "ls":
        containers, outcome = await storage.containers.list_all()
        if not outcome.ok:
            return report("List buckets", outcome)
        if not containers:
            print("No buckets")
        for container in containers:
            created = container.created_at.strftime("%Y-%m-%d %H:%M:%S") if container.created_at else "-"
            print(f"  {container.name:50} {created}")
        return 0

    if args.action == "create":
        outcome = await storage.containers.create(args.name, args.bucket_region)
        return report(f"Create bucket {args.name}", outcome)

    if args.action == "rm":
        outcome = await storage.containers.delete(args.name)
        return report(f"Delete bucket {args.name}", outcome)

    exists, outcome = await storage.containers.exists(args.name)
    print(f"{args.name}: {'exists' if exists else 'does not exist'} ({outcome.kind.value})")
    return 0 if exists else 1


async def cmd_objects(args, storage: StorageClient) -> int:
    if args.action == "ls":
        items, outcome = await storage.items.list_all(args.bucket, prefix=args.prefix or "")
        if not outcome.ok:
            return report(f"List {args.bucket}", outcome)
        if not items:
            print("  (empty)")
        for item in sorted(items, key=lambda i: i.key):
            print(f"  {item.key:60} {format_size(item.size_bytes):>10}")
        print(f"\nTotal: {len(items):,} objects, {format_size(sum(i.size_bytes for i in items))}")
        return 0

    if args.action == "put":
        key, outcome = await storage.items.upload_file(args.bucket, args.key, args.file, algorithm=args.algorithm)
        return report(f"Upload {args.file} to {args.bucket}/{args.key}", outcome)

    if args.action == "rm":
        outcome = await storage.items.delete(
            args.bucket, args.key, version_id=args.version_id, bypass_governance=args.bypass_governance
        )
        return report(f"Delete {args.bucket}/{args.key}", outcome)

    if args.action == "rm-batch":
        identities = [ItemIdentity(key) for key in args.keys]
        results = await storage.items.batch_delete(args.bucket, identities, bypass_governance=args.bypass_governance)
        for result in results:
            report(f"Delete {args.bucket}/{result.item.key}", result.outcome)
        return 0 if batch_succeeded(results) else 1

    outcome = await storage.items.download(args.bucket, args.key, args.destination)
    return report(f"Download {args.bucket}/{args.key} to {args.destination}", outcome)


async def run_command(args, storage: StorageClient) -> int:
    """Dispatch parsed arguments against an open storage client."""
    try:
        if args.command == "buckets":
            return await cmd_buckets(args, storage)
        return await cmd_objects(args, storage)
    except InvalidRequestError as e:
        print(f"❌ Invalid request: {e}")
        return 2


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="s3-confirm",
        description="S3 bucket and object operations confirmed against an eventually-consistent store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create a bucket and wait until it is visible
  s3-confirm buckets create my-bucket --bucket-region eu-west-1

  # Upload a file with a SHA-256 checksum
  s3-confirm objects put my-bucket reports/2024.csv ./2024.csv

  # Delete several objects, one result line per object
  s3-confirm objects rm-batch my-bucket a.txt b.txt c.txt

  # Download an object, creating directories as needed
  s3-confirm objects get my-bucket reports/2024.csv ./downloads/2024.csv
        """,
    )
    parser.add_argument("--config", type=Path, help="JSON file with client configuration")
    parser.add_argument("--region", help="Storage region (default: from config or environment)")
    parser.add_argument("--endpoint-url", help="Endpoint for S3-compatible services (MinIO, R2)")
    parser.add_argument("--timeout", type=float, help="Seconds to wait for changes to become visible")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", type=Path, help="Log file (default: timestamped file in logs/)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    buckets_parser = subparsers.add_parser("buckets", help="Manage buckets")
    bucket_actions = buckets_parser.add_subparsers(dest="action", required=True)
    bucket_actions.add_parser("ls", help="List buckets")
    create_parser_ = bucket_actions.add_parser("create", help="Create a bucket")
    create_parser_.add_argument("name")
    create_parser_.add_argument("--bucket-region", help="Region for the new bucket (default: client region)")
    bucket_actions.add_parser("rm", help="Delete an empty bucket").add_argument("name")
    bucket_actions.add_parser("exists", help="Check whether a bucket exists").add_argument("name")

    objects_parser = subparsers.add_parser("objects", help="Manage objects")
    object_actions = objects_parser.add_subparsers(dest="action", required=True)

    ls_parser = object_actions.add_parser("ls", help="List objects in a bucket")
    ls_parser.add_argument("bucket")
    ls_parser.add_argument("--prefix", help="Only list keys with this prefix")

    put_parser = object_actions.add_parser("put", help="Upload a local file")
    put_parser.add_argument("bucket")
    put_parser.add_argument("key")
    put_parser.add_argument("file", type=Path)
    put_parser.add_argument("--algorithm", default="SHA256", choices=["SHA256", "SHA1", "CRC32"])

    rm_parser = object_actions.add_parser("rm", help="Delete an object")
    rm_parser.add_argument("bucket")
    rm_parser.add_argument("key")
    rm_parser.add_argument("--version-id", help="Delete a specific version")
    rm_parser.add_argument(
        "--bypass-governance", action="store_true", help="Override governance retention (dangerous!)"
    )

    batch_parser = object_actions.add_parser("rm-batch", help="Delete several objects in one request")
    batch_parser.add_argument("bucket")
    batch_parser.add_argument("keys", nargs="+")
    batch_parser.add_argument(
        "--bypass-governance", action="store_true", help="Override governance retention (dangerous!)"
    )

    get_parser = object_actions.add_parser("get", help="Download an object to a local path")
    get_parser.add_argument("bucket")
    get_parser.add_argument("key")
    get_parser.add_argument("destination", type=Path)

    return parser


async def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.log_level, args.log_file)
    logger.debug(f"Running {args.command} {args.action}")

    try:
        config = build_client_config(
            args.config,
            overrides={"region": args.region, "endpoint_url": args.endpoint_url, "operation_timeout": args.timeout},
        )
    except ConfigError as e:
        print(f"❌ Configuration error: {e}")
        return 2

    async with StorageClient(config) as storage:
        return await run_command(args, storage)


def entry_point() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    entry_point()

from __future__ import annotations
"""Command line entry point for s3desk."""
import argparse
import logging
import sys
from typing import Optional

from .controller import S3DeskController
from .models import OperationResult
from .profiles import DEFAULT_PROFILE, profile_type_description
from .settings import AppStateStorage

LOGGER = logging.getLogger(__name__)


def _fail(result: OperationResult) -> int:
    info = result.error_info
    if info is not None:
        print(f"{info.title}: {info.message}", file=sys.stderr)
        if info.suggestion:
            print(info.suggestion, file=sys.stderr)
    else:
        print(result.error or "Unknown error", file=sys.stderr)
    return 1


def _cmd_profiles(controller: S3DeskController, args: argparse.Namespace) -> int:
    result = controller.list_profile_summaries()
    if not result.success:
        return _fail(result)
    for summary in result.value:
        status = "ok" if summary.is_valid else summary.validation_message
        print(
            f"{summary.name}\t{profile_type_description(summary.profile_type)}\t"
            f"{summary.region or '-'}\t{status}"
        )
    return 0


def _cmd_buckets(controller: S3DeskController, args: argparse.Namespace) -> int:
    result = controller.list_buckets()
    if not result.success:
        return _fail(result)
    for bucket in result.value:
        created = bucket.creation_date.isoformat() if bucket.creation_date else ""
        print(f"{bucket.name}\t{created}")
    return 0


def _cmd_ls(controller: S3DeskController, args: argparse.Namespace) -> int:
    if args.all:
        result = controller.list_all_objects(bucket_name=args.bucket, prefix=args.prefix)
    else:
        result = controller.list_objects(
            bucket_name=args.bucket, prefix=args.prefix, max_keys=args.page_size
        )
    if not result.success:
        return _fail(result)
    page = result.value
    for folder in page.folders:
        print(f"{'DIR':>12}  {folder.key}")
    for entry in page.files:
        print(f"{entry.size:>12}  {entry.key}")
    if page.is_truncated:
        print(f"(more results, continuation token: {page.continuation_token})", file=sys.stderr)
    return 0


def _resolve_location(controller: S3DeskController, url: str):
    parsed = controller.parse_url(url)
    if not parsed.success:
        return None, _fail(parsed)
    return parsed.value, 0


def _cmd_cat(controller: S3DeskController, args: argparse.Namespace) -> int:
    location, status = _resolve_location(controller, args.url)
    if location is None:
        return status
    result = controller.read_text(bucket_name=location.bucket, key=location.key)
    if not result.success:
        return _fail(result)
    sys.stdout.write(result.value)
    return 0


def _cmd_rm(controller: S3DeskController, args: argparse.Namespace) -> int:
    location, status = _resolve_location(controller, args.url)
    if location is None:
        return status
    if not args.recursive:
        result = controller.delete_file(bucket_name=location.bucket, key=location.key)
        return 0 if result.success else _fail(result)

    prefix = location.key
    if prefix and not prefix.endswith("/"):
        prefix += "/"
    result = controller.delete_prefix(
        bucket_name=location.bucket,
        prefix=prefix,
        on_progress=lambda done, total: LOGGER.info("Deleted %d/%d", done, total),
    )
    outcome = result.value
    if outcome is not None:
        print(f"deleted {outcome.deleted_count}, failed {outcome.failed_count}")
        for item in outcome.results:
            if not item.success:
                print(f"  {item.key}: {item.error}", file=sys.stderr)
    return 0 if result.success else _fail(result)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="s3desk", description="Browse S3 using local AWS profiles")
    parser.add_argument(
        "-p",
        "--profile",
        help="AWS profile to use (defaults to the last profile used, then 'default')",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subcommands = parser.add_subparsers(dest="command", required=True)

    subcommands.add_parser("profiles", help="List AWS profiles and whether they are usable").set_defaults(
        handler=_cmd_profiles, needs_profile=False
    )
    subcommands.add_parser("buckets", help="List buckets").set_defaults(handler=_cmd_buckets)

    ls_parser = subcommands.add_parser("ls", help="List a bucket prefix as folders and files")
    ls_parser.add_argument("bucket")
    ls_parser.add_argument("prefix", nargs="?", default="")
    ls_parser.add_argument("--all", action="store_true", help="Follow continuation tokens to the end")
    ls_parser.add_argument("--page-size", type=int, default=None)
    ls_parser.set_defaults(handler=_cmd_ls)

    cat_parser = subcommands.add_parser("cat", help="Print an object as text (gunzipping .gz keys)")
    cat_parser.add_argument("url", help="s3://bucket/key or an https S3 URL")
    cat_parser.set_defaults(handler=_cmd_cat)

    rm_parser = subcommands.add_parser("rm", help="Delete an object or, with --recursive, a folder")
    rm_parser.add_argument("url", help="s3://bucket/key or an https S3 URL")
    rm_parser.add_argument("-r", "--recursive", action="store_true")
    rm_parser.set_defaults(handler=_cmd_rm)
    return parser


def main(
    argv: Optional[list[str]] = None,
    controller: S3DeskController | None = None,
    storage: AppStateStorage | None = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    storage = storage or AppStateStorage()
    state = storage.load()
    if getattr(args, "page_size", None) is None:
        args.page_size = state.page_size
    controller = controller or S3DeskController()

    if getattr(args, "needs_profile", True):
        profile_name = args.profile or state.last_profile or DEFAULT_PROFILE
        selected = controller.set_profile(profile_name)
        if not selected.success:
            print(selected.error, file=sys.stderr)
            return 1
        storage.save(last_profile=profile_name)

    return args.handler(controller, args)


if __name__ == "__main__":
    sys.exit(main())

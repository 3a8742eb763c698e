from __future__ import annotations
"""Command line interface: parse arguments, run one command, persist state."""

import argparse
from importlib.metadata import PackageNotFoundError, version
import logging
from typing import Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from .controller import (
    DEFAULT_RESTORE_DAYS,
    DEFAULT_STORAGE_CLASS,
    GlobalOptions,
    RestoreOutcome,
    S3FtpController,
    ServiceFactory,
)
from .errors import S3FtpError
from .output import print_plain, render_listing, render_stat, transfer_progress
from .settings import ConfigStorage
from .state import StateStorage

DIST_NAME = "pys3ftp"

LOGGER = logging.getLogger(__name__)


def _package_version() -> str:
    try:
        return version(DIST_NAME)
    except PackageNotFoundError:
        return "unknown"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pys3ftp",
        description="S3/Glacier client with FTP-style navigation.",
    )
    parser.add_argument("--bucket", default="", help="S3 bucket name")
    parser.add_argument("--region", default="", help="AWS region")
    parser.add_argument("--profile", default="", help="AWS shared config profile")
    parser.add_argument("--endpoint-url", default="", help="S3-compatible endpoint URL")
    parser.add_argument("--config", default=None, help="config file path")
    parser.add_argument("--state", default=None, help="navigation state file path")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {_package_version()}")

    subparsers = parser.add_subparsers(dest="command", required=True, metavar="<command>")

    ls_parser = subparsers.add_parser("ls", help="list objects and prefixes")
    ls_parser.add_argument("-l", dest="long", action="store_true", help="long format")
    ls_parser.add_argument("-R", dest="recursive", action="store_true", help="recursive listing")
    ls_parser.add_argument("path", nargs="?", default=None)

    get_parser = subparsers.add_parser("get", help="download an object")
    get_parser.add_argument("remote")
    get_parser.add_argument("local", nargs="?", default=None, help="local path, or - for stdout")

    put_parser = subparsers.add_parser("put", help="upload an object")
    put_parser.add_argument("--storage-class", default=DEFAULT_STORAGE_CLASS, help="S3 storage class")
    put_parser.add_argument("local")
    put_parser.add_argument("remote", nargs="?", default=None)

    restore_parser = subparsers.add_parser("restore", help="initiate an archive restore")
    restore_parser.add_argument(
        "--days", type=int, default=DEFAULT_RESTORE_DAYS, help="days to keep the restored copy"
    )
    restore_parser.add_argument("--tier", default="Standard", help="Standard, Bulk or Expedited")
    restore_parser.add_argument("path")

    stat_parser = subparsers.add_parser("stat", help="show object metadata")
    stat_parser.add_argument("path")

    cd_parser = subparsers.add_parser("cd", help="set working directory")
    cd_parser.add_argument("path")

    subparsers.add_parser("pwd", help="show current bucket and prefix")

    buckets_parser = subparsers.add_parser("buckets", help="manage configured buckets")
    buckets_sub = buckets_parser.add_subparsers(dest="buckets_command", metavar="{list,add,remove,default}")
    list_parser = buckets_sub.add_parser("list", help="list configured buckets")
    list_parser.add_argument("--remote", action="store_true", help="list buckets from S3")
    add_parser = buckets_sub.add_parser("add", help="add or update a bucket")
    add_parser.add_argument("name")
    add_parser.add_argument("--region", dest="bucket_region", default="")
    add_parser.add_argument("--profile", dest="bucket_profile", default="")
    remove_parser = buckets_sub.add_parser("remove", help="remove a configured bucket")
    remove_parser.add_argument("name")
    default_parser = buckets_sub.add_parser("default", help="show or set the default bucket")
    default_parser.add_argument("name", nargs="?", default=None)

    return parser


def setup_logging(console: Console, verbose: bool = False) -> None:
    logger = logging.getLogger("s3_ftp")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = RichHandler(console=console, show_time=False, show_path=False)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if verbose:
        logging.getLogger("botocore").setLevel(logging.INFO)


def run_command(
    args: argparse.Namespace,
    controller: S3FtpController,
    out: Console,
    err: Console,
) -> None:
    command = args.command
    if command == "ls":
        objects = controller.list_objects(args.path, recursive=args.recursive)
        if not objects:
            print_plain(err, "no objects found")
            return
        render_listing(out, objects, long=args.long)
    elif command == "get":
        with transfer_progress(args.remote, err) as progress:
            destination = controller.get(args.remote, args.local, progress=progress)
        if destination != "-":
            print_plain(err, f"{args.remote} -> {destination}")
    elif command == "put":
        with transfer_progress(args.local, err) as progress:
            key = controller.put(
                args.local, args.remote, storage_class=args.storage_class, progress=progress
            )
        print_plain(
            err, f"{args.local} -> s3://{controller.resolve_bucket()}/{key} ({args.storage_class.upper()})"
        )
    elif command == "restore":
        result = controller.restore(args.path, days=args.days, tier=args.tier)
        if result.outcome is RestoreOutcome.ALREADY_IN_PROGRESS:
            print_plain(err, f"restore already in progress for {result.key}")
        elif result.outcome is RestoreOutcome.ALREADY_AVAILABLE:
            print_plain(err, f"object {result.key} is already restored and available")
        else:
            print_plain(
                err, f"restore initiated: {result.key} (tier={result.tier.value}, days={result.days})"
            )
    elif command == "stat":
        render_stat(out, controller.stat(args.path))
    elif command == "cd":
        prefix = controller.cd(args.path)
        print_plain(err, f"/{prefix}")
    elif command == "pwd":
        location = controller.pwd()
        print_plain(out, location if location else "(no bucket set)")
    elif command == "buckets":
        _run_buckets(args, controller, out, err)


def _run_buckets(args: argparse.Namespace, controller: S3FtpController, out: Console, err: Console) -> None:
    sub = args.buckets_command or "list"
    if sub == "list":
        configured = controller.list_configured_buckets()
        if getattr(args, "remote", False) or not configured:
            for name in controller.list_remote_buckets():
                print_plain(out, name)
            return
        for bucket in configured:
            marker = "* " if bucket.name == controller.default_bucket else "  "
            line = marker + bucket.name
            if bucket.region:
                line += f" (region={bucket.region})"
            if bucket.profile:
                line += f" (profile={bucket.profile})"
            print_plain(out, line)
    elif sub == "add":
        controller.add_bucket(args.name, region=args.bucket_region, profile=args.bucket_profile)
        print_plain(err, f"added bucket {args.name}")
    elif sub == "remove":
        controller.remove_bucket(args.name)
        print_plain(err, f"removed bucket {args.name}")
    elif sub == "default":
        if args.name is None:
            print_plain(out, controller.default_bucket or "(no default bucket set)")
            return
        controller.set_default_bucket(args.name)
        print_plain(err, f"default bucket set to {args.name}")


def main(
    argv: Sequence[str] | None = None,
    *,
    out: Console | None = None,
    err: Console | None = None,
    service_factory: ServiceFactory | None = None,
) -> int:
    """Run one command and return the process exit code."""

    out = out or Console(soft_wrap=True)
    err = err or Console(stderr=True, soft_wrap=True)
    args = build_parser().parse_args(argv)
    setup_logging(err, args.verbose)

    config_storage = ConfigStorage(args.config)
    state_storage = StateStorage(args.state)
    try:
        config = config_storage.load()
        state = state_storage.load()
        controller = S3FtpController(
            config=config,
            state=state,
            options=GlobalOptions(
                bucket=args.bucket,
                region=args.region,
                profile=args.profile,
                endpoint_url=args.endpoint_url,
            ),
            service_factory=service_factory,
        )
        run_command(args, controller, out, err)
        if controller.config_changed:
            config_storage.save(config)
        if controller.state_changed:
            state_storage.save(state)
    except S3FtpError as exc:
        LOGGER.debug("Command %s failed", args.command, exc_info=True)
        err.print(f"[bold red]error:[/] {escape(str(exc))}", highlight=False)
        if exc.hint:
            print_plain(err, f"  {exc.hint}")
        return 1
    except BrokenPipeError:
        LOGGER.debug("Output closed early while running %s", args.command)
        return 1
    return 0

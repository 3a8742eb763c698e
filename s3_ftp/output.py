from __future__ import annotations
"""Formatting for listings, object metadata and transfer progress."""
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TransferSpeedColumn,
)
from rich.table import Table
from rich.text import Text

from .models import ObjectDetails
from .transfer import ProgressFn

SIZE_SUFFIXES = ("B", "KB", "MB", "GB", "TB")


def format_size(size: int | None) -> str:
    if size is None:
        return "-"
    value = float(max(size, 0))
    for suffix in SIZE_SUFFIXES:
        if value < 1024 or suffix == SIZE_SUFFIXES[-1]:
            return f"{value:.1f} {suffix}" if suffix != "B" else f"{int(value)} {suffix}"
        value /= 1024
    return f"{size} B"


def format_date(timestamp: str) -> str:
    """Trim ``YYYY-MM-DDTHH:MM:SSZ`` timestamps to the date."""
    return timestamp[:10] if len(timestamp) >= 10 else timestamp


def print_plain(console: Console, line: str) -> None:
    """Write a line without markup, emoji or tab expansion."""
    console.file.write(f"{line}\n")


def listing_lines(objects: Iterable[ObjectDetails], *, long: bool) -> list[str]:
    """Plain lines for piping: bare keys, or tab separated columns with ``long``."""

    lines = []
    for obj in objects:
        if not long:
            lines.append(obj.key)
        elif obj.is_prefix:
            lines.append(f"{obj.key}\t-\tPREFIX\t-")
        else:
            lines.append(f"{obj.key}\t{obj.size}\t{obj.storage_class}\t{obj.last_modified}")
    return lines


def render_listing(console: Console, objects: list[ObjectDetails], *, long: bool) -> None:
    if not console.is_terminal or not long:
        for line in listing_lines(objects, long=long):
            print_plain(console, line)
        return

    table = Table(box=None, show_header=False, pad_edge=False, padding=(0, 2, 0, 0))
    for _ in range(4):
        table.add_column(no_wrap=True)
    for obj in objects:
        if obj.is_prefix:
            table.add_row("PRE", "-", "", Text(obj.key))
        else:
            table.add_row(obj.storage_class, format_size(obj.size), format_date(obj.last_modified), Text(obj.key))
    console.print(table)


def stat_fields(details: ObjectDetails) -> list[tuple[str, str, str]]:
    """(label, key, value) rows shown by ``stat``."""

    rows = [
        ("Key", "key", details.key),
        ("Size", "size", str(details.size)),
        ("Class", "class", details.storage_class),
        ("Modified", "modified", details.last_modified),
        ("Type", "type", details.content_type),
        ("ETag", "etag", details.etag),
    ]
    if details.restore_status.value:
        rows.append(("Restore", "restore", details.restore_status.value))
    return rows


def render_stat(console: Console, details: ObjectDetails) -> None:
    if not console.is_terminal:
        for _, name, value in stat_fields(details):
            print_plain(console, f"{name}={value}")
        return

    table = Table(box=box.SIMPLE, show_header=False, pad_edge=False)
    table.add_column(justify="right", style="bold")
    table.add_column()
    for label, name, value in stat_fields(details):
        if name == "size":
            value = f"{format_size(details.size)} ({details.size} bytes)"
        table.add_row(f"{label}:", Text(value))
    console.print(table)


@contextmanager
def transfer_progress(label: str, console: Console) -> Iterator[Optional[ProgressFn]]:
    """Yield a progress callback rendering to ``console``.

    Yields ``None`` when the console is not a terminal so pipes stay clean.
    The bar is only drawn once the first chunk has been transferred.
    """

    if not console.is_terminal:
        yield None
        return

    progress = Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        console=console,
        transient=False,
    )
    task_ids: list[TaskID] = []

    def _update(transferred: int, total: Optional[int]) -> None:
        if not task_ids:
            progress.start()
            task_ids.append(progress.add_task(escape(label), total=None))
        progress.update(task_ids[0], completed=transferred, total=total if total and total > 0 else None)

    try:
        yield _update
    finally:
        if task_ids:
            progress.stop()

"""
Terminal rendering.

Everything the user sees on stdout goes through here: tables for listings,
one-line status messages, and the upload progress bar. Command handlers
pass in a rich Console so tests can record output instead of printing.
"""

from datetime import datetime
from typing import Any, Iterable, Optional

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from ..infrastructure.storage.client import BucketInfo, ObjectAttributes, ObjectInfo
from ..infrastructure.storage.lifecycle import rule_prefix


def format_time(value: Optional[datetime]) -> str:
    if value is None:
        return "Unknown"
    return value.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def success(console: Console, message: str) -> None:
    console.print(f"[green]✔[/green] {message}")


def warning(console: Console, message: str) -> None:
    console.print(f"[yellow]{message}[/yellow]")


def failure(console: Console, stage: str, message: str) -> None:
    """Print a failure naming the stage that failed."""
    console.print(f"[bold red]✘ {escape(stage)}:[/bold red] {escape(message)}", highlight=False)


def render_buckets(console: Console, buckets: Iterable[BucketInfo]) -> None:
    buckets = list(buckets)
    if not buckets:
        warning(console, "No buckets found.")
        return

    table = Table("Name", "Creation Date")
    for bucket in buckets:
        table.add_row(bucket.name, format_time(bucket.creation_date))
    console.print(table)


def render_objects(console: Console, objects: Iterable[ObjectInfo]) -> None:
    objects = list(objects)
    if not objects:
        warning(console, "No objects found.")
        return

    table = Table("Key", "Size", "Last Modified")
    for obj in objects:
        table.add_row(escape(obj.key), str(obj.size), format_time(obj.last_modified))
    console.print(table)


def _describe_transitions(wire_rule: dict[str, Any]) -> str:
    transitions = wire_rule.get("Transitions") or []
    return ", ".join(
        f"{t.get('Days', '?')}d → {t.get('StorageClass', '?')}" for t in transitions
    ) or "-"


def render_lifecycle_rules(console: Console, bucket: str, rules: Iterable[dict[str, Any]]) -> None:
    rules = list(rules)
    if not rules:
        warning(console, f"No lifecycle rules on '{bucket}'.")
        return

    table = Table("ID", "Status", "Prefix", "Transitions", "Expiration", title=bucket)
    for rule in rules:
        expiration = (rule.get("Expiration") or {}).get("Days")
        table.add_row(
            escape(rule.get("ID", "<unnamed>")),
            rule.get("Status", "?"),
            escape(rule_prefix(rule) or "(all objects)"),
            _describe_transitions(rule),
            f"{expiration}d" if expiration is not None else "-",
        )
    console.print(table)


def render_bucket_location(console: Console, bucket: str, region: str) -> None:
    console.print(f"Bucket: [bold]{bucket}[/bold]")
    console.print(f"Region: [cyan]{region}[/cyan]")


def render_object_attributes(console: Console, attributes: ObjectAttributes) -> None:
    console.print(f"Object: [bold]{escape(attributes.key)}[/bold]", highlight=False)
    console.print(f"Size: {attributes.size} bytes")
    console.print(f"Content Type: {attributes.content_type or 'unknown'}", highlight=False)
    console.print(f"Storage Class: {attributes.storage_class or 'STANDARD'}")
    console.print(f"Last Modified: {format_time(attributes.last_modified)}")


class RichProgressSink:
    """
    Progress sink that drives a rich progress bar.

    Use as a context manager around the upload, and pass the instance as
    the pipeline's progress_sink.
    """

    def __init__(self, console: Console, description: str) -> None:
        self._progress = Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=console,
        )
        self._description = description
        self._task_id = None
        self.last_reported: Optional[tuple[int, int]] = None

    def __enter__(self) -> "RichProgressSink":
        self._progress.start()
        self._task_id = self._progress.add_task(self._description, total=None)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._progress.stop()

    def __call__(self, bytes_sent: int, total_size: int) -> None:
        self.last_reported = (bytes_sent, total_size)
        if self._task_id is not None:
            self._progress.update(self._task_id, completed=bytes_sent, total=total_size)

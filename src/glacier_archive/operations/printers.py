"""
Human-readable output formatting.

Centralizes all CLI output formatting so CLI commands stay thin and focused.
"""
from __future__ import annotations

from typing import Iterable, Sequence

import typer
from rich.console import Console
from rich.table import Table

from ..models import JobDescription, JobOutput, MultipartUploadDescription, PartListEntry, VaultDescription
from ..planner import ByteRange
from .facade import TreeHashResult, UploadResult

_console = Console()


def print_tree_hash(result: TreeHashResult, verbose: bool = False) -> None:
    """Print the tree hash of a file; the bare hash line comes first for scripting."""
    typer.echo(result.tree_hash)
    if verbose:
        _console.print(f"[bold]File:[/] {result.path}")
        _console.print(f"[bold]Size:[/] {_format_bytes(result.size)} ({result.size} bytes)")
        _console.print(f"[bold]SHA-256:[/] [dim]{result.sha256}[/]")


def print_upload_summary(result: UploadResult, verbose: bool = False) -> None:
    """
    Print the outcome of a completed upload.

    Args:
        result: Upload result from the Operations facade
        verbose: Also show the upload id, part size and part count
    """
    typer.echo(f"Archive: {result.archive_id}")
    _console.print(f"[bold]Tree hash:[/] {result.tree_hash}")
    _console.print(f"[bold]Size:[/] {_format_bytes(result.size)}")
    if verbose:
        _console.print(f"[bold]Upload id:[/] {result.upload_id}")
        _console.print(f"[bold]Parts:[/] {result.parts} x {_format_bytes(result.part_size)}")


def print_vaults(vaults: Iterable[VaultDescription]) -> int:
    table = Table(title="Vaults")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Archives", justify="right")
    table.add_column("Size", justify="right", style="yellow")
    table.add_column("Created")
    count = 0
    for vault in vaults:
        table.add_row(
            vault.vault_name,
            str(vault.number_of_archives),
            _format_bytes(vault.size_in_bytes),
            vault.creation_date or "",
        )
        count += 1
    _print_table(table, count, "No vaults")
    return count


def print_uploads(uploads: Iterable[MultipartUploadDescription]) -> int:
    table = Table(title="In-progress uploads")
    table.add_column("Upload id", style="cyan", no_wrap=True, overflow="fold")
    table.add_column("Part size", justify="right", style="yellow")
    table.add_column("Description")
    table.add_column("Created")
    count = 0
    for upload in uploads:
        table.add_row(
            upload.upload_id,
            _format_bytes(upload.part_size),
            upload.archive_description or "",
            upload.creation_date or "",
        )
        count += 1
    _print_table(table, count, "No in-progress uploads")
    return count


def print_parts(parts: Iterable[PartListEntry]) -> int:
    table = Table(title="Uploaded parts")
    table.add_column("Range", style="cyan", no_wrap=True)
    table.add_column("Tree hash", style="dim", overflow="fold")
    count = 0
    for part in parts:
        table.add_row(part.range_in_bytes, part.tree_hash)
        count += 1
    _print_table(table, count, "No parts uploaded")
    return count


def print_jobs(jobs: Iterable[JobDescription]) -> int:
    table = Table(title="Jobs")
    table.add_column("Job id", style="cyan", overflow="fold")
    table.add_column("Action")
    table.add_column("Status", style="yellow")
    table.add_column("Created")
    count = 0
    for job in jobs:
        table.add_row(job.job_id, job.action.value, job.status_code.value, job.creation_date or "")
        count += 1
    _print_table(table, count, "No jobs")
    return count


def print_job_output(output: JobOutput, dest: str) -> None:
    typer.echo(f"Wrote {len(output.body)} bytes to {dest}")
    if output.tree_hash is not None:
        status = "[green]verified[/]" if output.verified else "[yellow]not verified[/]"
        _console.print(f"[bold]Tree hash:[/] {output.tree_hash} ({status})")


def print_missing_parts(missing: Sequence[ByteRange], max_display: int = 5) -> None:
    """
    Print ranges still missing from an upload.

    Args:
        missing: Ranges that were never acknowledged
        max_display: Maximum number of ranges to show
    """
    if not missing:
        return
    typer.echo(f"{len(missing)} part(s) missing:", err=True)
    for byte_range in missing[:max_display]:
        typer.echo(f"  {byte_range}", err=True)
    if len(missing) > max_display:
        typer.echo(f"  ... and {len(missing) - max_display} more", err=True)


def _print_table(table: Table, count: int, empty_message: str) -> None:
    if count:
        _console.print(table)
    else:
        _console.print(f"[dim]{empty_message}[/]")


def _format_bytes(size_bytes: int) -> str:
    """
    Format byte count as human-readable string.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string (e.g., "1.5 MB", "42 KB")
    """
    if size_bytes == 0:
        return "0 B"
    elif size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.1f} GB"

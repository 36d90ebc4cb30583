"""
Glacier Archive CLI

Verbs built on the Operations facade:
- tree-hash: Compute the tree hash of a local file
- upload/resume/abort: Multipart archive uploads
- vaults/uploads/parts/jobs: Paginated listings
- job-output: Download and verify retrieval job output
"""
from __future__ import annotations

import logging
from typing import Optional

import typer

from .cli_context import CLIContext
from .operations import Operations, OpsConfig, run_and_exit
from .operations.printers import (
    print_job_output, print_jobs, print_parts, print_tree_hash, print_upload_summary,
    print_uploads, print_vaults
)
from .planner import ByteRange

app = typer.Typer(name="glacier-archive", help="Cold archive upload and retrieval CLI")


@app.callback()
def main_callback(
    log_level: str = typer.Option("WARNING", "--log-level", envvar="GLACIER_LOG_LEVEL", help="Logging level"),
) -> None:
    """Configure logging for all commands."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _operations(config: OpsConfig) -> Operations:
    context = CLIContext.from_env()
    return Operations(config=config, client=context.client)


@app.command("tree-hash")
def tree_hash(
    path: str = typer.Argument(..., help="File to hash"),
    verbose: bool = typer.Option(False, "--verbose", help="Show size and linear SHA-256"),
) -> None:
    """Compute the SHA-256 tree hash of a local file."""

    def _tree_hash() -> None:
        # No service access needed
        ops = Operations(config=OpsConfig(verbose=verbose), client=None)
        print_tree_hash(ops.tree_hash(path), verbose=verbose)

    run_and_exit(_tree_hash)


@app.command()
def upload(
    vault: str = typer.Argument(..., help="Target vault"),
    path: str = typer.Argument(..., help="File to upload"),
    part_size: Optional[int] = typer.Option(None, "--part-size", help="Part size in bytes (power of two, 1 MiB - 4 GiB)"),
    description: Optional[str] = typer.Option(None, "--description", help="Archive description (default: file name)"),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", min=1, help="Parts uploaded at once"),
    keep_on_failure: bool = typer.Option(False, "--keep-on-failure", help="Leave the upload open for resume if a part fails"),
    verbose: bool = typer.Option(False, "--verbose", help="Show detailed output"),
) -> None:
    """Upload a file as a multipart archive."""

    def _upload() -> None:
        config = OpsConfig(verbose=verbose, max_concurrency=concurrency, abort_on_failure=not keep_on_failure)
        result = _operations(config).upload(vault, path, part_size=part_size, description=description)
        print_upload_summary(result, verbose=verbose)

    run_and_exit(_upload)


@app.command()
def resume(
    vault: str = typer.Argument(..., help="Vault holding the upload"),
    upload_id: str = typer.Argument(..., help="Multipart upload id"),
    path: str = typer.Argument(..., help="The same file the upload started from"),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", min=1, help="Parts uploaded at once"),
    verbose: bool = typer.Option(False, "--verbose", help="Show detailed output"),
) -> None:
    """Finish an interrupted multipart upload."""

    def _resume() -> None:
        config = OpsConfig(verbose=verbose, max_concurrency=concurrency)
        result = _operations(config).resume(vault, upload_id, path)
        print_upload_summary(result, verbose=verbose)

    run_and_exit(_resume)


@app.command()
def abort(
    vault: str = typer.Argument(..., help="Vault holding the upload"),
    upload_id: str = typer.Argument(..., help="Multipart upload id"),
) -> None:
    """Abort a multipart upload and release its id."""

    def _abort() -> None:
        _operations(OpsConfig()).abort(vault, upload_id)
        typer.echo(f"Aborted {upload_id}")

    run_and_exit(_abort)


@app.command()
def vaults(
    page_size: Optional[int] = typer.Option(None, "--page-size", min=1, help="Records per request"),
) -> None:
    """List vaults."""
    run_and_exit(lambda: print_vaults(_operations(OpsConfig(page_size=page_size)).vaults()))


@app.command()
def uploads(
    vault: str = typer.Argument(..., help="Vault name"),
    page_size: Optional[int] = typer.Option(None, "--page-size", min=1, help="Records per request"),
) -> None:
    """List in-progress multipart uploads."""
    run_and_exit(lambda: print_uploads(_operations(OpsConfig(page_size=page_size)).uploads(vault)))


@app.command()
def parts(
    vault: str = typer.Argument(..., help="Vault name"),
    upload_id: str = typer.Argument(..., help="Multipart upload id"),
    page_size: Optional[int] = typer.Option(None, "--page-size", min=1, help="Records per request"),
) -> None:
    """List the parts the service holds for an upload."""
    run_and_exit(lambda: print_parts(_operations(OpsConfig(page_size=page_size)).parts(vault, upload_id)))


@app.command()
def jobs(
    vault: str = typer.Argument(..., help="Vault name"),
    completed: Optional[bool] = typer.Option(None, "--completed/--in-progress", help="Filter by completion"),
    page_size: Optional[int] = typer.Option(None, "--page-size", min=1, help="Records per request"),
) -> None:
    """List retrieval jobs."""
    run_and_exit(
        lambda: print_jobs(_operations(OpsConfig(page_size=page_size)).jobs(vault, completed=completed))
    )


@app.command("job-output")
def job_output(
    vault: str = typer.Argument(..., help="Vault name"),
    job_id: str = typer.Argument(..., help="Completed job id"),
    dest: str = typer.Argument(..., help="File to write"),
    byte_range: Optional[str] = typer.Option(None, "--range", help="Inclusive byte range, e.g. 0-1048575"),
) -> None:
    """Download job output, verifying its tree hash when the service sends one."""

    def _job_output() -> None:
        parsed = ByteRange.parse_inclusive(byte_range) if byte_range else None
        output = _operations(OpsConfig()).job_output(vault, job_id, dest, parsed)
        print_job_output(output, dest)

    run_and_exit(_job_output)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()

"""
Error mapping and CLI utilities.

Provides centralized exception-to-exit-code mapping and CLI command wrappers
to ensure consistent error handling across all Typer commands.
"""
from __future__ import annotations

import logging

import typer
from typing import Callable, TypeVar

T = TypeVar('T')

logger = logging.getLogger(__name__)

# Keyed by class name so subclasses must be listed explicitly
EXIT_CODES = {
    "FileNotFoundError": 1,
    "ValidationError": 2,
    "ValueError": 2,
    "ChecksumInputError": 2,
    "InvalidPartSizeError": 2,
    "TransportError": 3,
    "TransportConnectionError": 3,
    "ServiceError": 3,
    "PageFetchError": 3,
    "PartUploadError": 3,
    "IntegrityMismatchError": 10,
    "IncompletePartsError": 11,
    "PartRangeConflictError": 12,
    "SessionStateError": 13,
    "SessionBusyError": 13,
    "SessionAbortedError": 13,
}


def exit_code_for(exc: BaseException) -> int:
    """
    Map exception to standardized exit code.

    Returns:
    - 0: Success
    - 1: Local file not found
    - 2: Invalid input (ValueError, ValidationError, bad part size or chunk)
    - 3: Network/service error, or unknown error
    - 10: Tree hash or size rejected (IntegrityMismatchError)
    - 11: Parts missing at completion (IncompletePartsError)
    - 12: Conflicting part upload (PartRangeConflictError)
    - 13: Upload session in the wrong state

    Args:
        exc: Exception to map

    Returns:
        Exit code, with 3 as fallback for unknown exceptions
    """
    return EXIT_CODES.get(type(exc).__name__, 3)


def run_and_exit(func: Callable[[], T]) -> T:
    """
    Unified error wrapper for CLI commands.

    Executes the given function and maps any exceptions to appropriate
    exit codes using typer.Exit. This centralizes error handling so
    CLI commands don't need individual try/except blocks.

    Args:
        func: Function to execute

    Returns:
        Function result if successful

    Raises:
        typer.Exit: With appropriate exit code if function raises exception
    """
    try:
        return func()
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        typer.echo(f"Error: {e}", err=True)
        # Show which ranges still need uploading
        if type(e).__name__ == "IncompletePartsError" and hasattr(e, 'missing'):
            from .printers import print_missing_parts
            print_missing_parts(e.missing)
        raise typer.Exit(code=exit_code_for(e)) from e

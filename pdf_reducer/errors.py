"""
errors.py - Exception types raised by the reducer.

- PreconditionError: caller misuse, raised before any pass runs
- CompressionToolError: one Ghostscript pass failed (recoverable)
"""

from typing import Optional


class ReducerError(Exception):
    """Base class for reducer errors."""


class PreconditionError(ReducerError, ValueError):
    """Missing or invalid policy values, or an input that does not exist."""


class CompressionToolError(ReducerError):
    """
    A single compressor invocation failed.

    Covers non-zero exits, launch failures, timeouts and outputs that are
    not a readable PDF. The driver treats it as a skipped pass.
    """

    def __init__(
        self,
        level: str,
        message: str,
        returncode: Optional[int] = None,
        stderr: str = ""
    ):
        self.level = level
        self.returncode = returncode
        self.stderr = stderr
        detail = f"[{level}] {message}"
        if stderr:
            detail += f": {stderr.strip()[-2000:]}"
        super().__init__(detail)

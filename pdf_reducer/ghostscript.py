"""
ghostscript.py - Ghostscript pdfwrite adapter.

Runs one compression pass: input PDF + CompressionProfile -> output PDF.
Any failure (non-zero exit, missing binary, timeout, unreadable output)
is raised as CompressionToolError carrying the level name and stderr.
"""

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional

import pikepdf

from .errors import CompressionToolError
from .profiles import CompressionProfile

logger = logging.getLogger(__name__)

GS_CANDIDATES = ("gs", "gswin64c", "gswin32c")

# Device/paging flags shared by every pass
BASE_ARGS = [
    "-sDEVICE=pdfwrite",
    "-dCompatibilityLevel=1.4",
    "-dNOPAUSE",
    "-dQUIET",
    "-dBATCH",
    "-dSAFER",
]


def get_gs_command(override: Optional[str] = None) -> str:
    """
    Get Ghostscript command for this platform.

    Uses the explicit override (or GS_BINARY) when given, otherwise the
    first of gs / gswin64c / gswin32c found on PATH.
    """
    override = override or os.environ.get("GS_BINARY")
    if override:
        return override

    for candidate in GS_CANDIDATES:
        if shutil.which(candidate):
            return candidate

    raise RuntimeError("Ghostscript not found. Install gs or gswin64c.")


def get_page_count(pdf_path: Path) -> Optional[int]:
    """Get total page count, or None if pikepdf cannot read the file."""
    try:
        with pikepdf.open(pdf_path) as pdf:
            return len(pdf.pages)
    except (pikepdf.PdfError, OSError) as e:
        logger.warning(f"Could not read {Path(pdf_path).name}: {e}")
        return None


def build_command(
    gs_cmd: str,
    input_path: Path,
    output_path: Path,
    profile: CompressionProfile
) -> List[str]:
    """Full argv for one pass; the input always follows -f."""
    cmd = [gs_cmd, *BASE_ARGS, *profile.gs_args(), f"-sOutputFile={output_path}"]
    params = profile.distiller_params()
    if params:
        cmd += ["-c", params]
    cmd += ["-f", str(input_path)]
    return cmd


class GhostscriptCompressor:
    """
    Compressor backed by the gs binary.

    One instance can be shared between concurrent runs; it holds no
    per-run state.
    """

    def __init__(self, gs_cmd: Optional[str] = None, timeout: Optional[float] = None):
        self._gs_cmd = gs_cmd
        self.timeout = timeout

    @property
    def gs_cmd(self) -> str:
        if self._gs_cmd is None:
            self._gs_cmd = get_gs_command()
        return self._gs_cmd

    def compress(
        self,
        input_path: Path,
        output_path: Path,
        profile: CompressionProfile,
        timeout: Optional[float] = None
    ) -> None:
        """
        Compress input_path into output_path with the given profile.

        Args:
            input_path: Existing PDF to compress
            output_path: Destination; must not be in use by another pass
            profile: Ladder level to apply
            timeout: Seconds before the pass is abandoned (default: instance timeout)

        Raises:
            CompressionToolError: the pass failed; output_path must be treated as absent
        """
        timeout = timeout if timeout is not None else self.timeout
        try:
            cmd = build_command(self.gs_cmd, input_path, output_path, profile)
        except RuntimeError as e:
            raise CompressionToolError(profile.name, str(e)) from e

        logger.debug(f"[{profile.name}] {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout
            )
        except subprocess.TimeoutExpired as e:
            raise CompressionToolError(
                profile.name,
                f"Ghostscript timed out after {timeout}s",
                stderr=_decode(e.stderr)
            ) from e
        except OSError as e:
            raise CompressionToolError(profile.name, f"Ghostscript could not start: {e}") from e

        if result.returncode != 0:
            raise CompressionToolError(
                profile.name,
                f"Ghostscript exit {result.returncode}",
                returncode=result.returncode,
                stderr=result.stderr or ""
            )

        verify_output(output_path, profile.name)


def verify_output(output_path: Path, level: str) -> None:
    """Check that a pass left a non-empty PDF that pikepdf can open."""
    output_path = Path(output_path)
    if not output_path.exists() or output_path.stat().st_size == 0:
        raise CompressionToolError(level, "Ghostscript produced no output")

    try:
        with pikepdf.open(output_path) as pdf:
            if len(pdf.pages) == 0:
                raise CompressionToolError(level, "Ghostscript output has no pages")
    except pikepdf.PdfError as e:
        raise CompressionToolError(level, f"Ghostscript output is not a valid PDF: {e}") from e


def _decode(stream) -> str:
    if stream is None:
        return ""
    if isinstance(stream, bytes):
        return stream.decode("utf-8", errors="replace")
    return stream

"""
service.py - Run the ladder for one document and decide what to keep.

Decision rule:
- input below the skip floor -> nothing runs
- best artifact strictly smaller than the original -> handed to the store
- otherwise -> no-op, the original is left untouched

Storage and notification are injected. A failing store or notifier turns
the report into ok=False; it is never raised to the caller.
"""

import logging
import os
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol

from .config import TargetPolicy
from .errors import PreconditionError
from .pipeline import AdaptiveDriver, CompressionResult
from .tracker import ORIGINAL_LABEL, size_ratio, within_target

logger = logging.getLogger(__name__)

Notifier = Callable[[str], None]


class ArtifactStore(Protocol):
    """Persists a compressed artifact. Raises on failure."""

    def store(self, artifact: Path) -> None:
        ...


class LocalFileStore:
    """Copies the artifact to a destination path on the local filesystem."""

    def __init__(self, destination: Path, overwrite: bool = True):
        self.destination = Path(destination)
        self.overwrite = overwrite

    def store(self, artifact: Path) -> None:
        if self.destination.exists() and not self.overwrite:
            raise FileExistsError(f"Refusing to overwrite {self.destination}")

        self.destination.parent.mkdir(parents=True, exist_ok=True)

        # Copy next to the destination, then swap in atomically
        partial = self.destination.with_name(
            f".{self.destination.name}.{uuid.uuid4().hex[:8]}.part"
        )
        try:
            shutil.copyfile(artifact, partial)
            os.replace(partial, self.destination)
        finally:
            if partial.exists():
                partial.unlink()

        logger.info(f"Saved {self.destination}")


@dataclass
class ReductionReport:
    """What a caller sees after one document has been processed."""
    input_path: Path
    ok: bool
    original_bytes: int
    compressed_bytes: int
    target_max_bytes: int
    quality: str = ORIGINAL_LABEL
    pass_used: int = 0
    overwrote: bool = False
    skipped: bool = False
    error: Optional[str] = None

    @property
    def hit_target(self) -> bool:
        return within_target(self.compressed_bytes, self.target_max_bytes)

    @property
    def ratio(self) -> float:
        return size_ratio(self.compressed_bytes, self.original_bytes)

    @classmethod
    def from_result(cls, result: CompressionResult) -> "ReductionReport":
        return cls(
            input_path=result.input_path,
            ok=True,
            original_bytes=result.original_bytes,
            compressed_bytes=result.best_bytes,
            target_max_bytes=result.target_max_bytes,
            quality=result.best_level,
            pass_used=result.pass_used,
        )

    def to_dict(self) -> Dict[str, object]:
        data = {
            "ok": self.ok,
            "overwrote": self.overwrote,
            "skipped": self.skipped,
            "original_bytes": self.original_bytes,
            "compressed_bytes": self.compressed_bytes,
            "ratio": self.ratio,
            "quality": self.quality,
            "pass_used": self.pass_used,
            "hit_target": self.hit_target,
        }
        if self.error:
            data["error"] = self.error
        return data

    def summary(self) -> str:
        if self.skipped:
            return f"{self.input_path.name}: {self.original_bytes:,} bytes, below skip floor"
        outcome = "saved" if self.overwrote else "kept original"
        if not self.ok:
            outcome = f"failed ({self.error})"
        return (
            f"{self.input_path.name}: {self.original_bytes:,} -> {self.compressed_bytes:,} bytes "
            f"(ratio {self.ratio}, {self.quality}, {self.pass_used} passes) - {outcome}"
        )


def reduce_document(
    input_path: Path,
    policy: TargetPolicy,
    store: Optional[ArtifactStore] = None,
    notify: Optional[Notifier] = None,
    document_id: Optional[str] = None,
    driver: Optional[AdaptiveDriver] = None
) -> ReductionReport:
    """
    Compress one document and persist the result if it got smaller.

    Args:
        input_path: Input PDF (never modified)
        policy: Target, skip floor and per-pass limits
        store: Receives the artifact when it beats the original
        notify: Called with document_id once the document is handled
        document_id: Identifier passed to notify (default: input file name)
        driver: Ladder driver (default: Ghostscript with the process ladder)

    Returns:
        ReductionReport

    Raises:
        PreconditionError: invalid policy or missing input
    """
    if input_path is None:
        raise PreconditionError("input_path is required")
    if policy is None:
        raise PreconditionError("policy is required")
    input_path = Path(input_path)
    policy.validate()
    if not input_path.is_file():
        raise PreconditionError(f"Input not found: {input_path}")

    document_id = document_id or input_path.name
    original_size = input_path.stat().st_size

    if policy.skip_below_bytes is not None and original_size < policy.skip_below_bytes:
        logger.info(
            f"Skipping {input_path.name}: {original_size:,} bytes is below "
            f"{policy.skip_below_bytes:,}"
        )
        report = ReductionReport(
            input_path=input_path,
            ok=True,
            original_bytes=original_size,
            compressed_bytes=original_size,
            target_max_bytes=policy.target_max_bytes,
            skipped=True,
        )
        return _notify(report, notify, document_id)

    driver = driver or AdaptiveDriver()
    result = driver.run(input_path, policy)
    report = ReductionReport.from_result(result)

    try:
        if result.improved and store is not None:
            try:
                store.store(result.artifact_path)
            except Exception as e:
                logger.error(f"Store failed for {document_id}: {e}")
                report.ok = False
                report.error = f"store_failed: {e}"
                return report
            report.overwrote = True
        elif not result.improved:
            logger.info(f"{input_path.name}: no pass beat the original, leaving it untouched")
    finally:
        result.discard()

    return _notify(report, notify, document_id)


def _notify(report: ReductionReport, notify: Optional[Notifier], document_id: str) -> ReductionReport:
    if notify is None:
        return report
    try:
        notify(document_id)
    except Exception as e:
        logger.error(f"Notify failed for {document_id}: {e}")
        report.ok = False
        report.error = f"notify_failed: {e}"
    return report

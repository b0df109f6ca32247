"""
pipeline.py - Adaptive multi-pass compression.

Pipeline:
1. Start from the original file as the best artifact ("original", 0 passes)
2. For each ladder level, compress the current best artifact
3. Keep the candidate only if it is strictly smaller; delete the loser
4. Stop as soon as the best artifact fits the target, else run the full ladder

Tool failures skip a level and never abort the run. The returned artifact
is owned by the caller.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Sequence

from .config import TargetPolicy
from .errors import CompressionToolError, PreconditionError
from .ghostscript import GhostscriptCompressor
from .profiles import CompressionProfile, profiles, validate_ladder
from .tracker import (
    ORIGINAL_LABEL,
    CompressionAttempt,
    Failed,
    Improved,
    PassOutcome,
    PassTracker,
    Rejected,
    size_ratio,
    within_target,
)

logger = logging.getLogger(__name__)


class Compressor(Protocol):
    """File-in/file-out compressor. Raises CompressionToolError on failure."""

    def compress(
        self,
        input_path: Path,
        output_path: Path,
        profile: CompressionProfile,
        timeout: Optional[float] = None
    ) -> None:
        ...


class RunState(str, Enum):
    STOPPED_TARGET = "stopped_target"
    EXHAUSTED = "exhausted"


def safe_unlink(path: Optional[Path]) -> None:
    """Delete a temp file; never raises."""
    if path is None:
        return
    try:
        Path(path).unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not delete temp file {path}: {e}")


@dataclass
class CompressionResult:
    """Result of running the ladder on one input."""
    input_path: Path
    artifact_path: Path
    original_bytes: int
    best_bytes: int
    target_max_bytes: int
    best_level: str = ORIGINAL_LABEL
    pass_used: int = 0
    state: RunState = RunState.EXHAUSTED
    total_time: float = 0.0

    attempts: List[CompressionAttempt] = field(default_factory=list)

    @property
    def hit_target(self) -> bool:
        return within_target(self.best_bytes, self.target_max_bytes)

    @property
    def improved(self) -> bool:
        """True if the artifact is eligible to replace the original."""
        return self.best_bytes < self.original_bytes

    @property
    def owns_artifact(self) -> bool:
        return self.artifact_path != self.input_path

    @property
    def ratio(self) -> float:
        return size_ratio(self.best_bytes, self.original_bytes)

    @property
    def reduction_pct(self) -> float:
        if self.original_bytes == 0:
            return 0
        return (1 - self.best_bytes / self.original_bytes) * 100

    @property
    def failed_passes(self) -> int:
        return sum(1 for a in self.attempts if not a.success)

    def discard(self) -> None:
        """Delete the artifact if the engine created it."""
        if self.owns_artifact:
            safe_unlink(self.artifact_path)

    def to_dict(self) -> Dict[str, object]:
        return {
            "original_bytes": self.original_bytes,
            "compressed_bytes": self.best_bytes,
            "quality": self.best_level,
            "pass_used": self.pass_used,
            "hit_target": self.hit_target,
            "ratio": self.ratio,
        }

    def summary(self) -> str:
        return (
            f"Input:  {self.input_path.name} ({self.original_bytes:,} bytes)\n"
            f"Best:   {self.best_level} ({self.best_bytes:,} bytes)\n"
            f"Reduction: {self.reduction_pct:.1f}% (ratio {self.ratio})\n"
            f"Target: {self.target_max_bytes:,} bytes ({'hit' if self.hit_target else 'missed'})\n"
            f"Passes: {self.pass_used} ({self.failed_passes} failed)\n"
            f"Time: {self.total_time:.1f}s"
        )


class AdaptiveDriver:
    """
    Walks the ladder against one input at a time.

    Holds no per-run state, so one driver can serve concurrent runs.
    """

    def __init__(
        self,
        compressor: Optional[Compressor] = None,
        ladder: Optional[Sequence[CompressionProfile]] = None,
        on_pass: Optional[Callable[[CompressionAttempt, PassOutcome], None]] = None
    ):
        self.compressor = compressor or GhostscriptCompressor()
        self.ladder = validate_ladder(ladder) if ladder is not None else profiles()
        self.on_pass = on_pass

    def run(self, input_path: Path, policy: TargetPolicy) -> CompressionResult:
        """
        Run the full ladder against input_path.

        Args:
            input_path: Existing file to compress (never modified)
            policy: Target and per-pass limits

        Returns:
            CompressionResult; its artifact is the input itself when no pass helped

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

        start_time = time.time()
        original_size = input_path.stat().st_size
        tracker = PassTracker(input_path, original_size)
        run_id = uuid.uuid4().hex
        work_dir = policy.temp_dir
        state = RunState.EXHAUSTED
        attempts: List[CompressionAttempt] = []

        logger.info(
            f"Processing {input_path.name}: {original_size:,} bytes, "
            f"target {policy.target_max_bytes:,} bytes, {len(self.ladder)} levels"
        )

        try:
            for pass_num, profile in enumerate(self.ladder, start=1):
                source = tracker.begin_pass(pass_num)
                output_path = work_dir / f"{run_id}-p{pass_num}-{profile.name}.pdf"

                attempt = self._attempt(pass_num, profile, source, output_path, policy.timeout_seconds)
                attempts.append(attempt)

                outcome = tracker.record(attempt)
                self._settle(attempt, outcome)

                if self.on_pass:
                    self.on_pass(attempt, outcome)

                if tracker.hit_target(policy.target_max_bytes):
                    state = RunState.STOPPED_TARGET
                    break
        except BaseException:
            safe_unlink(tracker.temp_artifact)
            raise

        best = tracker.best
        result = CompressionResult(
            input_path=input_path,
            artifact_path=best.path,
            original_bytes=original_size,
            best_bytes=best.size,
            target_max_bytes=policy.target_max_bytes,
            best_level=best.label,
            pass_used=best.passes,
            state=state,
            total_time=time.time() - start_time,
            attempts=attempts,
        )

        logger.info(f"\n{result.summary()}")
        return result

    def _attempt(
        self,
        pass_num: int,
        profile: CompressionProfile,
        source: Path,
        output_path: Path,
        timeout: Optional[float]
    ) -> CompressionAttempt:
        """Run one pass; the output file exists afterwards only on success."""
        attempt = CompressionAttempt(
            pass_num=pass_num,
            profile=profile,
            input_path=source,
            output_path=output_path,
        )
        start = time.time()

        try:
            self.compressor.compress(source, output_path, profile, timeout=timeout)
            attempt.size = output_path.stat().st_size
        except CompressionToolError as e:
            attempt.error = str(e)
            safe_unlink(output_path)
        except OSError as e:
            # stat failed: output vanished or is unreadable
            attempt.error = f"[{profile.name}] output unreadable: {e}"
            safe_unlink(output_path)
        except BaseException:
            safe_unlink(output_path)
            raise
        finally:
            attempt.duration = time.time() - start

        return attempt

    def _settle(self, attempt: CompressionAttempt, outcome: PassOutcome) -> None:
        """Delete whatever the outcome left unreferenced, and log it."""
        prefix = f"Pass {attempt.pass_num} [{attempt.level}]"

        if isinstance(outcome, Improved):
            safe_unlink(outcome.superseded)
            logger.info(
                f"{prefix}: {outcome.previous_size:,} -> {outcome.size:,} bytes "
                f"({attempt.duration:.1f}s)"
            )
        elif isinstance(outcome, Rejected):
            safe_unlink(outcome.discard)
            logger.info(
                f"{prefix}: {outcome.size:,} bytes, no improvement on {outcome.best_size:,}"
            )
        elif isinstance(outcome, Failed):
            logger.warning(f"{prefix} failed: {outcome.reason}")


def compress_to_target(
    input_path: Path,
    target_max_bytes: int,
    ladder: Optional[Sequence[CompressionProfile]] = None,
    compressor: Optional[Compressor] = None,
    timeout_seconds: Optional[float] = None,
    work_dir: Optional[Path] = None
) -> CompressionResult:
    """
    Compress a PDF until it fits target_max_bytes or the ladder runs out.

    Args:
        input_path: Input PDF
        target_max_bytes: Stop-early goal in bytes
        ladder: Profiles to try (default: the process ladder)
        compressor: Compressor to use (default: Ghostscript)
        timeout_seconds: Limit per pass (default: unbounded)
        work_dir: Directory for temp artifacts (default: system temp)

    Returns:
        CompressionResult with statistics
    """
    policy = TargetPolicy(
        target_max_bytes=target_max_bytes,
        timeout_seconds=timeout_seconds,
        work_dir=work_dir,
    )
    return AdaptiveDriver(compressor=compressor, ladder=ladder).run(input_path, policy)

"""
tracker.py - Best-result bookkeeping for one ladder run.

PassTracker holds the smallest artifact seen so far, starting with the
unmodified input as level "original". record() folds one attempt into that
state and returns what happened:

- Improved: candidate is strictly smaller, it becomes the best
- Rejected: candidate is not smaller, it should be discarded
- Failed: the pass did not produce a candidate

No filesystem access happens here. The outcome names the file (if any)
the caller must delete.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .profiles import CompressionProfile

ORIGINAL_LABEL = "original"


def size_ratio(size: int, original_size: int) -> float:
    """size / original_size to three places; 1.0 for an empty original."""
    if original_size == 0:
        return 1.0
    return round(size / original_size, 3)


def within_target(size: int, target_max_bytes: int) -> bool:
    return size <= target_max_bytes


@dataclass
class CompressionAttempt:
    """One pass of the compressor."""
    pass_num: int
    profile: CompressionProfile
    input_path: Path
    output_path: Path
    size: Optional[int] = None
    error: Optional[str] = None
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return self.error is None and self.size is not None

    @property
    def level(self) -> str:
        return self.profile.name


@dataclass
class BestResult:
    """Smallest valid artifact observed so far."""
    path: Path
    size: int
    label: str = ORIGINAL_LABEL
    passes: int = 0

    @property
    def is_original(self) -> bool:
        return self.label == ORIGINAL_LABEL


@dataclass(frozen=True)
class Improved:
    artifact: Path
    size: int
    previous_size: int
    superseded: Optional[Path] = None  # previous temp best, now unreferenced


@dataclass(frozen=True)
class Rejected:
    discard: Path
    size: int
    best_size: int


@dataclass(frozen=True)
class Failed:
    reason: str


PassOutcome = Union[Improved, Rejected, Failed]


class PassTracker:
    """Running optimum across the ladder."""

    def __init__(self, original_path: Path, original_size: int):
        self.original_path = Path(original_path)
        self.original_size = original_size
        self.best = BestResult(path=self.original_path, size=original_size)

    def begin_pass(self, pass_num: int) -> Path:
        """Mark pass_num as attempted; returns the artifact it should compress."""
        self.best.passes = pass_num
        return self.best.path

    def record(self, attempt: CompressionAttempt) -> PassOutcome:
        """Fold one attempt into the running best."""
        if not attempt.success:
            return Failed(reason=attempt.error or "no output")

        if attempt.size < self.best.size:
            previous = self.best
            superseded = None if previous.is_original else previous.path
            self.best = BestResult(
                path=attempt.output_path,
                size=attempt.size,
                label=attempt.level,
                passes=previous.passes,
            )
            return Improved(
                artifact=attempt.output_path,
                size=attempt.size,
                previous_size=previous.size,
                superseded=superseded,
            )

        return Rejected(discard=attempt.output_path, size=attempt.size, best_size=self.best.size)

    def hit_target(self, target_max_bytes: int) -> bool:
        return within_target(self.best.size, target_max_bytes)

    @property
    def temp_artifact(self) -> Optional[Path]:
        """The best artifact if the engine created it, else None."""
        return None if self.best.is_original else self.best.path

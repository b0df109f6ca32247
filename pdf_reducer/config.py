"""
config.py - Target policy and environment settings.

Environment (all optional):
- GS_QUALITY: Ghostscript PDFSETTINGS preset for the ladder (default: ebook)
- TARGET_MAX_MB: stop-early goal in MB (default: 10)
- SKIP_BELOW_MB: do not compress inputs smaller than this (default: unset)
- GS_TIMEOUT: seconds allowed per Ghostscript pass (default: 300)
- GS_BINARY: explicit Ghostscript executable
- REDUCER_WORK_DIR: directory for temp artifacts (default: system temp)

Nothing here is read by the driver itself. Callers build a TargetPolicy
and pass it in.
"""

import logging
import os
import tempfile
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from .errors import PreconditionError

logger = logging.getLogger(__name__)

MB = 1024 * 1024

DEFAULT_PRESET = "ebook"
DEFAULT_TARGET_MB = 10.0
DEFAULT_TIMEOUT = 300.0

PRESETS = ("screen", "ebook", "printer", "prepress", "default")


def mb_to_bytes(mb: float) -> int:
    """Convert megabytes to bytes."""
    return int(mb * MB)


@dataclass(frozen=True)
class TargetPolicy:
    """
    Thresholds for one compression run.

    target_max_bytes: stop once the best artifact is at or below this
    skip_below_bytes: inputs smaller than this are not compressed at all
    timeout_seconds: limit for each compressor pass (None = unbounded)
    work_dir: where temp artifacts are written
    """
    target_max_bytes: int
    skip_below_bytes: Optional[int] = None
    timeout_seconds: Optional[float] = DEFAULT_TIMEOUT
    work_dir: Optional[Path] = None

    def validate(self) -> "TargetPolicy":
        """Raise PreconditionError for missing or out-of-range values."""
        if self.target_max_bytes is None:
            raise PreconditionError("target_max_bytes is required")
        if isinstance(self.target_max_bytes, bool) or not isinstance(self.target_max_bytes, int):
            raise PreconditionError(
                f"target_max_bytes must be an integer, got {self.target_max_bytes!r}"
            )
        if self.target_max_bytes <= 0:
            raise PreconditionError(
                f"target_max_bytes must be positive, got {self.target_max_bytes}"
            )
        if self.skip_below_bytes is not None and self.skip_below_bytes < 0:
            raise PreconditionError(
                f"skip_below_bytes must not be negative, got {self.skip_below_bytes}"
            )
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise PreconditionError(
                f"timeout_seconds must be positive, got {self.timeout_seconds}"
            )
        if self.work_dir is not None and not Path(self.work_dir).is_dir():
            raise PreconditionError(f"work_dir does not exist: {self.work_dir}")
        return self

    @property
    def temp_dir(self) -> Path:
        return Path(self.work_dir) if self.work_dir else Path(tempfile.gettempdir())


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not a number")
        return default


@dataclass(frozen=True)
class Settings:
    """Process-wide defaults, usually read once from the environment."""
    preset: str = DEFAULT_PRESET
    target_mb: float = DEFAULT_TARGET_MB
    skip_below_mb: Optional[float] = None
    timeout_seconds: Optional[float] = DEFAULT_TIMEOUT
    gs_binary: Optional[str] = None
    work_dir: Optional[Path] = None

    @classmethod
    def from_env(cls) -> "Settings":
        preset = os.environ.get("GS_QUALITY", DEFAULT_PRESET).strip().lstrip("/") or DEFAULT_PRESET
        if preset not in PRESETS:
            logger.warning(f"Unknown GS_QUALITY {preset!r}, using {DEFAULT_PRESET}")
            preset = DEFAULT_PRESET

        work_dir = os.environ.get("REDUCER_WORK_DIR")

        return cls(
            preset=preset,
            target_mb=_env_float("TARGET_MAX_MB", DEFAULT_TARGET_MB),
            skip_below_mb=_env_float("SKIP_BELOW_MB", None),
            timeout_seconds=_env_float("GS_TIMEOUT", DEFAULT_TIMEOUT),
            gs_binary=os.environ.get("GS_BINARY") or None,
            work_dir=Path(work_dir) if work_dir else None,
        )

    def policy(self) -> TargetPolicy:
        return TargetPolicy(
            target_max_bytes=mb_to_bytes(self.target_mb),
            skip_below_bytes=(
                mb_to_bytes(self.skip_below_mb) if self.skip_below_mb is not None else None
            ),
            timeout_seconds=self.timeout_seconds,
            work_dir=self.work_dir,
        )


def load_policy(settings: Optional[Settings] = None, **overrides) -> TargetPolicy:
    """
    Build a validated TargetPolicy.

    Args:
        settings: Base settings (default: read from the environment)
        **overrides: TargetPolicy fields that replace the settings' values

    Returns:
        Validated TargetPolicy
    """
    settings = settings or Settings.from_env()
    policy = settings.policy()
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if overrides:
        policy = replace(policy, **overrides)
    return policy.validate()

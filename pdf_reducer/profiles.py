"""
profiles.py - The compression level ladder.

Each level is an immutable CompressionProfile. The ladder is ordered from
loosest to most aggressive:

    baseline  preset defaults only
    aggr72    color/gray 72 DPI, mono 150 DPI, JPEG q=60 (QFactor 0.80)
    aggr50    color/gray 50 DPI, mono 120 DPI, JPEG q=45 (QFactor 1.11)
    ultra36   color/gray 36 DPI, mono 100 DPI, JPEG q=30 (QFactor 1.67)

Mono planes drop more slowly: text-heavy 1-bit scans stay small at
higher DPI and lose legibility fast below ~100 DPI.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .config import DEFAULT_PRESET, PRESETS, Settings
from .errors import PreconditionError

logger = logging.getLogger(__name__)

RESAMPLE_FILTERS = ("Bicubic", "Average", "Subsample")


@dataclass(frozen=True)
class ImageDownsample:
    """Downsampling for one image plane (color, gray or mono)."""
    dpi: int
    resample: str = "Bicubic"
    quality: Optional[int] = None  # JPEG quality 0-100, lossy planes only

    def __post_init__(self):
        if self.dpi <= 0:
            raise ValueError(f"dpi must be positive, got {self.dpi}")
        if self.resample not in RESAMPLE_FILTERS:
            raise ValueError(f"Unknown resample filter: {self.resample}")
        if self.quality is not None and not 0 <= self.quality <= 100:
            raise ValueError(f"quality must be 0-100, got {self.quality}")


def jpeg_qfactor(quality: int) -> float:
    """Map a 0-100 JPEG quality onto the DCTEncode QFactor (IJG scaling)."""
    quality = max(1, quality)
    scale = 5000 / quality if quality < 50 else 200 - 2 * quality
    return scale / 100


@dataclass(frozen=True)
class CompressionProfile:
    """One rung of the ladder."""
    name: str
    preset: str = DEFAULT_PRESET
    color: Optional[ImageDownsample] = None
    gray: Optional[ImageDownsample] = None
    mono: Optional[ImageDownsample] = None
    subset_fonts: bool = True
    compress_fonts: bool = True

    def __post_init__(self):
        if not self.name:
            raise ValueError("profile name is required")
        if self.preset not in PRESETS:
            raise ValueError(f"Unknown preset: {self.preset}")

    @property
    def quality(self) -> Optional[int]:
        """Lowest encoder quality used by any lossy plane."""
        values = [p.quality for p in (self.color, self.gray) if p and p.quality is not None]
        return min(values) if values else None

    def gs_args(self) -> List[str]:
        """
        Ghostscript pdfwrite flags for this profile.

        Does not include device, paging or file arguments; the adapter adds
        those.
        """
        args = [f"-dPDFSETTINGS=/{self.preset}"]

        for plane, settings in (("Color", self.color), ("Gray", self.gray)):
            if settings is None:
                continue
            args += [
                f"-dDownsample{plane}Images=true",
                f"-d{plane}ImageDownsampleType=/{settings.resample}",
                f"-d{plane}ImageResolution={settings.dpi}",
                # Only downsample images above the target resolution
                f"-d{plane}ImageDownsampleThreshold=1.0",
            ]
            if settings.quality is not None:
                args += [
                    f"-dAutoFilter{plane}Images=false",
                    f"-d{plane}ImageFilter=/DCTEncode",
                ]

        if self.mono is not None:
            args += [
                "-dDownsampleMonoImages=true",
                f"-dMonoImageDownsampleType=/{self.mono.resample}",
                f"-dMonoImageResolution={self.mono.dpi}",
                "-dMonoImageDownsampleThreshold=1.0",
            ]

        args += [
            f"-dSubsetFonts={'true' if self.subset_fonts else 'false'}",
            f"-dCompressFonts={'true' if self.compress_fonts else 'false'}",
        ]
        return args

    def distiller_params(self) -> Optional[str]:
        """
        PostScript that sets the DCT QFactor for lossy planes.

        pdfwrite reads JPEG quality only from the image dicts, so this is
        passed after -c on the command line. None when no plane is lossy.
        """
        dicts = []
        for plane, settings in (("Color", self.color), ("Gray", self.gray)):
            if settings is None or settings.quality is None:
                continue
            dicts.append(
                f"/{plane}ImageDict << /QFactor {jpeg_qfactor(settings.quality):.2f} "
                f"/Blend 1 /HSamples [2 1 1 2] /VSamples [2 1 1 2] >>"
            )
        if not dicts:
            return None
        return f"<< {' '.join(dicts)} >> setdistillerparams"

    def describe(self) -> str:
        if self.color is None and self.gray is None and self.mono is None:
            return f"{self.name} (/{self.preset})"
        color = self.color.dpi if self.color else "-"
        mono = self.mono.dpi if self.mono else "-"
        return f"{self.name} (/{self.preset}, {color}/{mono} DPI, q={self.quality})"


def _aggressive(name: str, preset: str, dpi: int, mono_dpi: int, quality: int) -> CompressionProfile:
    lossy = ImageDownsample(dpi=dpi, resample="Bicubic", quality=quality)
    return CompressionProfile(
        name=name,
        preset=preset,
        color=lossy,
        gray=lossy,
        mono=ImageDownsample(dpi=mono_dpi, resample="Subsample"),
    )


# (name, color/gray DPI, mono DPI, JPEG quality)
LADDER_STEPS: Tuple[Tuple[str, int, int, int], ...] = (
    ("aggr72", 72, 150, 60),
    ("aggr50", 50, 120, 45),
    ("ultra36", 36, 100, 30),
)


def build_ladder(preset: str = DEFAULT_PRESET) -> Tuple[CompressionProfile, ...]:
    """
    Build the standard four-level ladder for a quality preset.

    Args:
        preset: Ghostscript PDFSETTINGS name (screen, ebook, ...)

    Returns:
        Profiles ordered from loosest to most aggressive
    """
    ladder = [CompressionProfile(name="baseline", preset=preset)]
    for name, dpi, mono_dpi, quality in LADDER_STEPS:
        ladder.append(_aggressive(name, preset, dpi, mono_dpi, quality))
    return validate_ladder(ladder)


def validate_ladder(ladder: Sequence[CompressionProfile]) -> Tuple[CompressionProfile, ...]:
    """Check a ladder is non-empty with unique level names."""
    ladder = tuple(ladder)
    if not ladder:
        raise PreconditionError("ladder must contain at least one profile")

    seen = set()
    for profile in ladder:
        if profile.name in seen:
            raise PreconditionError(f"duplicate ladder level: {profile.name}")
        if profile.name == "original":
            raise PreconditionError("'original' is reserved for the unmodified input")
        seen.add(profile.name)

    return ladder


_DEFAULT_LADDER: Optional[Tuple[CompressionProfile, ...]] = None


def default_ladder() -> Tuple[CompressionProfile, ...]:
    """The ladder for the configured preset, built once per process."""
    global _DEFAULT_LADDER
    if _DEFAULT_LADDER is None:
        _DEFAULT_LADDER = build_ladder(Settings.from_env().preset)
        logger.debug("Ladder: " + ", ".join(p.describe() for p in _DEFAULT_LADDER))
    return _DEFAULT_LADDER


def profiles() -> Tuple[CompressionProfile, ...]:
    """Ordered profiles tried in a single run."""
    return default_ladder()


def get_profile(name: str, ladder: Optional[Sequence[CompressionProfile]] = None) -> CompressionProfile:
    """Look up a ladder level by name."""
    for profile in ladder or profiles():
        if profile.name == name:
            return profile
    raise KeyError(f"Unknown ladder level: {name}")

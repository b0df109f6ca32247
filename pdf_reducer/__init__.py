"""
PDF Reducer - adaptive multi-pass PDF compression.

This package walks a fixed ladder of Ghostscript profiles, from loosest to
most aggressive, keeping the smallest output seen and stopping as soon as a
size target is met. The result is never larger than the original.
"""

from .config import TargetPolicy, Settings, load_policy
from .errors import ReducerError, PreconditionError, CompressionToolError
from .profiles import CompressionProfile, ImageDownsample, build_ladder
from .pipeline import AdaptiveDriver, CompressionResult, compress_to_target
from .service import LocalFileStore, ReductionReport, reduce_document

__version__ = "1.0.0"
__author__ = "PDF Reducer"

__all__ = [
    "AdaptiveDriver",
    "CompressionProfile",
    "CompressionResult",
    "CompressionToolError",
    "ImageDownsample",
    "LocalFileStore",
    "PreconditionError",
    "ReducerError",
    "ReductionReport",
    "Settings",
    "TargetPolicy",
    "build_ladder",
    "compress_to_target",
    "load_policy",
    "reduce_document",
]

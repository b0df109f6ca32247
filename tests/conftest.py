import sys
import threading
from pathlib import Path
from typing import List, Optional

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from pdf_reducer.config import TargetPolicy
from pdf_reducer.errors import CompressionToolError
from pdf_reducer.profiles import CompressionProfile, ImageDownsample


class ScriptedCompressor:
    """
    Writes outputs of preset sizes instead of running Ghostscript.

    sizes[i] is the byte size produced by the i-th call; None makes that
    call fail the way a non-zero gs exit would.
    """

    def __init__(self, sizes: List[Optional[int]]):
        self.sizes = list(sizes)
        self.calls = []
        self._lock = threading.Lock()

    def compress(self, input_path, output_path, profile, timeout=None):
        assert Path(input_path).exists(), f"compressing a missing file: {input_path}"
        with self._lock:
            index = len(self.calls)
            self.calls.append((Path(input_path), Path(output_path), profile.name))

        size = self.sizes[index]
        if size is None:
            raise CompressionToolError(profile.name, "Ghostscript exit 1", returncode=1, stderr="boom")
        Path(output_path).write_bytes(b"%" * size)

    @property
    def levels(self):
        return [level for _, _, level in self.calls]


def make_ladder(count: int) -> List[CompressionProfile]:
    ladder = [CompressionProfile(name="baseline")]
    for i in range(1, count):
        dpi = max(10, 100 - 20 * i)
        ladder.append(CompressionProfile(
            name=f"level{i}",
            color=ImageDownsample(dpi=dpi, quality=max(5, 80 - 15 * i)),
            gray=ImageDownsample(dpi=dpi, quality=max(5, 80 - 15 * i)),
        ))
    return ladder


@pytest.fixture
def work_dir(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def make_input(tmp_path):
    def _make(size: int, name: str = "input.pdf") -> Path:
        path = tmp_path / name
        path.write_bytes(b"#" * size)
        return path
    return _make


@pytest.fixture
def policy_for(work_dir):
    def _policy(target: int, skip_below: Optional[int] = None) -> TargetPolicy:
        return TargetPolicy(
            target_max_bytes=target,
            skip_below_bytes=skip_below,
            timeout_seconds=30,
            work_dir=work_dir,
        )
    return _policy

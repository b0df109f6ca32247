import pytest

from pdf_reducer.errors import PreconditionError
from pdf_reducer.pipeline import AdaptiveDriver
from pdf_reducer.service import LocalFileStore, reduce_document

from tests.conftest import ScriptedCompressor, make_ladder


class RecordingStore:
    def __init__(self, fail=False):
        self.fail = fail
        self.stored = []

    def store(self, artifact):
        if self.fail:
            raise IOError("bucket unavailable")
        self.stored.append((artifact, artifact.read_bytes()))


def driver_for(sizes):
    compressor = ScriptedCompressor(sizes)
    return AdaptiveDriver(compressor=compressor, ladder=make_ladder(len(sizes))), compressor


def test_improved_artifact_is_stored(make_input, policy_for, work_dir):
    driver, _ = driver_for([700, 400])
    store = RecordingStore()
    notified = []

    report = reduce_document(
        make_input(1000), policy_for(500), store=store, notify=notified.append,
        document_id="docs/a.pdf", driver=driver,
    )

    assert report.ok and report.overwrote
    assert report.to_dict() == {
        "ok": True,
        "overwrote": True,
        "skipped": False,
        "original_bytes": 1000,
        "compressed_bytes": 400,
        "ratio": 0.4,
        "quality": "level1",
        "pass_used": 2,
        "hit_target": True,
    }
    assert len(store.stored[0][1]) == 400
    assert notified == ["docs/a.pdf"]
    # temp artifact is released once stored
    assert list(work_dir.iterdir()) == []


def test_no_improvement_is_a_noop(make_input, policy_for):
    driver, _ = driver_for([1000, 1200])
    store = RecordingStore()
    source = make_input(1000)
    before = source.read_bytes()

    report = reduce_document(source, policy_for(500), store=store, driver=driver)

    assert report.ok
    assert not report.overwrote
    assert report.quality == "original"
    assert not report.hit_target
    assert store.stored == []
    assert source.read_bytes() == before


def test_noop_still_notifies(make_input, policy_for):
    driver, _ = driver_for([1000])
    notified = []

    report = reduce_document(
        make_input(1000), policy_for(500), store=RecordingStore(),
        notify=notified.append, document_id="docs/b.pdf", driver=driver,
    )

    assert report.ok and not report.overwrote
    assert notified == ["docs/b.pdf"]


def test_skip_floor_runs_nothing(make_input, policy_for):
    driver, compressor = driver_for([10])
    notified = []

    report = reduce_document(
        make_input(100), policy_for(50, skip_below=200), store=RecordingStore(),
        notify=notified.append, driver=driver,
    )

    assert report.skipped
    assert report.ok
    assert report.pass_used == 0
    assert report.ratio == 1.0
    assert compressor.calls == []
    assert notified == ["input.pdf"]


def test_skip_floor_is_strict(make_input, policy_for):
    driver, compressor = driver_for([10])

    report = reduce_document(make_input(200), policy_for(50, skip_below=200), driver=driver)

    assert not report.skipped
    assert len(compressor.calls) == 1


def test_store_failure_reported_not_raised(make_input, policy_for, work_dir):
    driver, _ = driver_for([300])
    notified = []

    report = reduce_document(
        make_input(1000), policy_for(500), store=RecordingStore(fail=True),
        notify=notified.append, driver=driver,
    )

    assert not report.ok
    assert report.error.startswith("store_failed")
    assert "error" in report.to_dict()
    assert notified == []
    assert list(work_dir.iterdir()) == []


def test_notify_failure_reported(make_input, policy_for):
    driver, _ = driver_for([300])

    def broken(document_id):
        raise RuntimeError("queue down")

    report = reduce_document(make_input(1000), policy_for(500), notify=broken, driver=driver)

    assert not report.ok
    assert "queue down" in report.error


def test_all_failures_still_succeed(make_input, policy_for):
    driver, _ = driver_for([None, None, None])

    report = reduce_document(make_input(1000), policy_for(500), store=RecordingStore(), driver=driver)

    assert report.ok
    assert report.compressed_bytes == 1000
    assert report.pass_used == 3


def test_missing_input(tmp_path, policy_for):
    driver, _ = driver_for([10])

    with pytest.raises(PreconditionError):
        reduce_document(tmp_path / "nope.pdf", policy_for(50), driver=driver)


def test_local_file_store(tmp_path):
    artifact = tmp_path / "artifact.pdf"
    artifact.write_bytes(b"small")
    destination = tmp_path / "out" / "result.pdf"

    LocalFileStore(destination).store(artifact)

    assert destination.read_bytes() == b"small"
    assert artifact.exists()
    assert sorted(p.name for p in destination.parent.iterdir()) == ["result.pdf"]


def test_local_file_store_refuses_overwrite(tmp_path):
    artifact = tmp_path / "artifact.pdf"
    artifact.write_bytes(b"small")
    destination = tmp_path / "result.pdf"
    destination.write_bytes(b"existing")

    with pytest.raises(FileExistsError):
        LocalFileStore(destination, overwrite=False).store(artifact)
    assert destination.read_bytes() == b"existing"


def test_in_place_overwrite(make_input, policy_for):
    driver, _ = driver_for([250])
    source = make_input(1000)

    report = reduce_document(source, policy_for(500), store=LocalFileStore(source), driver=driver)

    assert report.overwrote
    assert source.stat().st_size == 250

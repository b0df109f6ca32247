import pytest

from pdf_reducer.config import MB, Settings, TargetPolicy, load_policy
from pdf_reducer.errors import PreconditionError

ENV_VARS = ("GS_QUALITY", "TARGET_MAX_MB", "SKIP_BELOW_MB", "GS_TIMEOUT", "GS_BINARY", "REDUCER_WORK_DIR")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings.from_env()

    assert settings.preset == "ebook"
    assert settings.target_mb == 10.0
    assert settings.skip_below_mb is None
    assert settings.timeout_seconds == 300.0


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("GS_QUALITY", "/screen")
    monkeypatch.setenv("TARGET_MAX_MB", "2.5")
    monkeypatch.setenv("SKIP_BELOW_MB", "1")
    monkeypatch.setenv("GS_TIMEOUT", "60")
    monkeypatch.setenv("REDUCER_WORK_DIR", str(tmp_path))

    policy = Settings.from_env().policy()

    assert Settings.from_env().preset == "screen"
    assert policy.target_max_bytes == int(2.5 * MB)
    assert policy.skip_below_bytes == MB
    assert policy.timeout_seconds == 60
    assert policy.temp_dir == tmp_path


def test_bad_env_values_fall_back(monkeypatch):
    monkeypatch.setenv("GS_QUALITY", "potato")
    monkeypatch.setenv("TARGET_MAX_MB", "lots")

    settings = Settings.from_env()

    assert settings.preset == "ebook"
    assert settings.target_mb == 10.0


def test_load_policy_overrides():
    policy = load_policy(Settings(), target_max_bytes=1234, timeout_seconds=None)

    assert policy.target_max_bytes == 1234
    assert policy.timeout_seconds == 300.0


@pytest.mark.parametrize("kwargs", [
    {"target_max_bytes": None},
    {"target_max_bytes": 0},
    {"target_max_bytes": 1.5},
    {"target_max_bytes": True},
    {"target_max_bytes": 10, "skip_below_bytes": -1},
    {"target_max_bytes": 10, "timeout_seconds": 0},
    {"target_max_bytes": 10, "work_dir": "/does/not/exist"},
])
def test_invalid_policy(kwargs):
    with pytest.raises(PreconditionError):
        TargetPolicy(**kwargs).validate()


def test_precondition_error_is_value_error():
    with pytest.raises(ValueError):
        TargetPolicy(target_max_bytes=0).validate()

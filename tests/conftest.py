"""Pytest configuration and fixtures for edfplus tests."""

import io

import pytest

from tests.helpers.builders import make_header, make_signal, scenario_header, write_edfplus


def pytest_configure(config):
    """Register custom test markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that do not require external dependencies"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests combining multiple components"
    )


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the config file at an empty temp location."""
    config_path = tmp_path / "config.toml"
    monkeypatch.setenv("EDFPLUS_CONFIG", str(config_path))
    return config_path


@pytest.fixture
def eeg_signal():
    """Return a 4-sample EEG signal with a +/-200 uV range."""
    return make_signal()


@pytest.fixture
def plain_header(eeg_signal):
    """Return a plain EDF header with one signal and a known count of 0."""
    return make_header([eeg_signal])


@pytest.fixture
def edfplus_header():
    """Return an EDF+C header with an EEG signal and a 12-sample annotation channel."""
    return scenario_header()


@pytest.fixture
def edfplus_bytes():
    """Return a three-record EDF+C file with an annotation in record 1."""
    from edfplus.models import Annotation

    return write_edfplus(
        [
            [0, 1, 2, 3],
            [4, 5, 6, 7],
            [8, 9, 10, 11],
        ],
        annotations_per_record={
            1: [Annotation(onset=1.5, duration=2.0, texts=["Obstructive apnea"])]
        },
    )


@pytest.fixture
def edfplus_path(tmp_path, edfplus_bytes):
    """Write the EDF+C fixture to disk and return its path."""
    path = tmp_path / "recording.edf"
    path.write_bytes(edfplus_bytes)
    return path


@pytest.fixture
def edfplus_stream(edfplus_bytes):
    """Return the EDF+C fixture as a seekable in-memory stream."""
    return io.BytesIO(edfplus_bytes)

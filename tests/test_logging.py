"""Tests for the loguru setup."""

import pytest
from loguru import logger

from silos.logging_config import setup_logging

pytestmark = pytest.mark.fast


@pytest.fixture
def log_dir(tmp_path, monkeypatch):
    path = tmp_path / "logs"
    monkeypatch.setenv("SILOS_LOG_DIR", str(path))
    yield path
    # Close the file sink before tmp_path goes away
    setup_logging(level="DEBUG", suppress_console=True, enable_file_logging=False, force=True)


def test_file_logging_is_opt_in(log_dir, monkeypatch):
    monkeypatch.delenv("SILOS_FILE_LOGGING", raising=False)

    setup_logging(suppress_console=True, force=True)
    logger.info("not written")

    assert not log_dir.exists()


def test_file_logging_from_env(log_dir, monkeypatch):
    monkeypatch.setenv("SILOS_FILE_LOGGING", "yes")

    setup_logging(suppress_console=True, force=True)
    logger.info("indexed 3 snippets")
    logger.complete()

    assert "indexed 3 snippets" in (log_dir / "silos.log").read_text(encoding="utf-8")


def test_second_call_without_force_is_noop(log_dir):
    setup_logging(suppress_console=True, enable_file_logging=False, force=True)
    setup_logging(suppress_console=True, enable_file_logging=True)

    assert not log_dir.exists()

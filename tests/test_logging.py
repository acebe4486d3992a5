"""Tests for formula_engine.utils.logging."""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

import pytest

from formula_engine.utils.logging import get_logger, setup_root_logger


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupRootLogger:
    """Tests for setup_root_logger."""

    def test_console_only(self) -> None:
        root = setup_root_logger(level="debug")

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0], logging.StreamHandler)

    def test_rotating_file(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "formula_engine.log"

        root = setup_root_logger(log_file, "INFO", max_file_size_mb=1, backup_count=2)
        get_logger("formula_engine.test").info("installed bake")

        file_handlers = [h for h in root.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].maxBytes == 1024 * 1024
        assert file_handlers[0].backupCount == 2
        file_handlers[0].flush()
        assert "installed bake" in log_file.read_text()

    def test_replaces_existing_handlers(self) -> None:
        setup_root_logger()
        root = setup_root_logger()
        assert len(root.handlers) == 1

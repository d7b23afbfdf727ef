from __future__ import annotations

import logging
from pathlib import Path

from ontogen.logging import ConsoleFormatter, configure_logging, get_logger, record_warning


def _record(name: str, message: str = "scanned 3 files") -> logging.LogRecord:
    return logging.LogRecord(name, logging.INFO, __file__, 1, message, None, None)


def test_console_formatter_prefixes() -> None:
    assert ConsoleFormatter().format(_record("ontogen.semantics")) == "[ontogen] INFO scanned 3 files"
    assert (
        ConsoleFormatter(show_source=True).format(_record("ontogen.domain.synthesizer"))
        == "[ontogen:domain.synthesizer] INFO scanned 3 files"
    )
    assert ConsoleFormatter(show_source=True).format(_record("ontogen")) == "[ontogen] INFO scanned 3 files"


def test_configure_logging_replaces_handlers(tmp_path: Path) -> None:
    configure_logging(log_file=tmp_path / "first.log")
    logger = configure_logging(verbose=True)

    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG
    assert logger.propagate is False

    logger = configure_logging()
    assert logger.level == logging.INFO


def test_log_file_records_debug_with_logger_name(tmp_path: Path) -> None:
    log_file = tmp_path / "nested" / "run.log"
    logger = configure_logging(log_file=log_file)

    get_logger("incremental").debug("Domain cache retained")
    for handler in logger.handlers:
        handler.flush()

    assert "DEBUG   ontogen.incremental: Domain cache retained" in log_file.read_text(encoding="utf-8")
    configure_logging()


def test_record_warning_logs_and_collects() -> None:
    sink: list[str] = []
    seen: list[str] = []

    class _Capture(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            seen.append(record.getMessage())

    logger = get_logger("tests.record_warning")
    handler = _Capture()
    logger.addHandler(handler)
    try:
        record_warning(logger, sink, "Domain layer skipped")
    finally:
        logger.removeHandler(handler)

    assert sink == ["Domain layer skipped"]
    assert seen == ["Domain layer skipped"]

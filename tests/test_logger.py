import logging
from datetime import datetime

import click

from gcch_migration.logger import (SUCCESS, ColorConsoleFormatter, log_migration_action, run_timestamp,
                                   setup_logging)


def test_run_timestamp_format():
    assert run_timestamp(datetime(2024, 1, 5, 9, 30, 0)) == "20240105_093000"


def test_run_writes_main_and_error_logs(tmp_path):
    logger, main_log, error_log = setup_logging("INFO", log_dir=str(tmp_path), log_prefix="import",
                                                timestamp="20240105_093000")
    logging.getLogger("gcch_migration.test").info("plain line")
    logging.getLogger("gcch_migration.test").error("broken line")
    for handler in logger.handlers:
        handler.flush()

    assert main_log.name == "import_20240105_093000.log"
    assert error_log.name == "import_errors_20240105_093000.log"
    main_text = main_log.read_text(encoding="utf-8")
    error_text = error_log.read_text(encoding="utf-8")
    assert "plain line" in main_text and "broken line" in main_text
    assert "broken line" in error_text
    assert "plain line" not in error_text


def test_action_levels(caplog):
    caplog.set_level(logging.DEBUG)
    log_migration_action("Ops", "CREATE_GROUP", "SUCCESS", "id=g-1")
    log_migration_action("Ops -> Alice", "ADD_MEMBER", "NOT_FOUND")
    log_migration_action("Ops", "CREATE_GROUP", "SKIPPED")
    log_migration_action("Ops", "CREATE_GROUP", "PREVIEW")

    assert [r.levelno for r in caplog.records] == [SUCCESS, logging.ERROR, logging.WARNING, logging.INFO]
    assert caplog.records[0].getMessage() == "MIGRATION_ACTION | Ops | CREATE_GROUP | SUCCESS | id=g-1"


def test_console_formatter_colors_by_level():
    formatter = ColorConsoleFormatter(fmt="%(message)s")
    error = logging.LogRecord("x", logging.ERROR, __file__, 1, "boom", None, None)
    info = logging.LogRecord("x", logging.INFO, __file__, 1, "fine", None, None)

    assert formatter.format(error) == click.style("boom", fg="red", bold=True)
    assert formatter.format(info) == "fine"

import logging

from logging_config import ContextualFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("services.monitor", logging.INFO, __file__, 1, "Alert triggered", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_appends_known_extra_keys() -> None:
    formatter = ContextualFormatter(fmt="%(message)s")

    line = formatter.format(_record(location="main_entrance", count=450, unrelated="x"))

    assert line == "Alert triggered | location=main_entrance count=450"


def test_values_with_spaces_are_quoted() -> None:
    formatter = ContextualFormatter(fmt="%(message)s")

    line = formatter.format(_record(reason="feed offline", source="file"))

    assert line == "Alert triggered | reason='feed offline' source=file"


def test_formatter_without_context_is_plain() -> None:
    formatter = ContextualFormatter(fmt="%(levelname)s %(message)s")

    assert formatter.format(_record()) == "INFO Alert triggered"

import logging
import sys

from miso_agent.utils.logging import AgentFormatter, RED, YELLOW, get_logger, strip_ansi


def _record(level: int, msg: str, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord("miso_agent", level, __file__, 1, msg, None, exc_info)


def test_warning_is_tagged_and_colored():
    line = AgentFormatter(color=True).format(_record(logging.WARNING, "tool not called"))
    assert YELLOW in line
    assert "warn: tool not called" in line


def test_plain_output_has_no_escape_codes():
    line = AgentFormatter(color=False).format(_record(logging.ERROR, f"{RED}✗ failed"))
    assert "\x1b" not in line
    assert line.endswith("error: ✗ failed")
    assert line.startswith("[")


def test_info_is_untagged():
    line = AgentFormatter(color=False).format(_record(logging.INFO, "reading 1/2"))
    assert line.endswith("] reading 1/2")


def test_traceback_is_appended():
    try:
        raise TimeoutError("model timed out")
    except TimeoutError:
        exc_info = sys.exc_info()
    line = AgentFormatter(color=False).format(_record(logging.DEBUG, "Failure detail", exc_info))
    assert line.splitlines()[0].endswith("Failure detail")
    assert "TimeoutError: model timed out" in line


def test_strip_ansi():
    assert strip_ansi(f"{YELLOW}warn{RED}!\x1b[0m") == "warn!"


def test_explicit_level_wins():
    logger = get_logger("miso_agent.test_level", level="debug")
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    get_logger("miso_agent.test_level", level="warning")
    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1

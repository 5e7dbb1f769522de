import io

import pytest

from searchchannel.logger import configure_logging


def test_error_line_format():
    out = io.StringIO()
    logger = configure_logging("error", out)
    logger.error("disk full")
    assert out.getvalue() == "(ERROR) - disk full\n"


def test_warning_uses_short_name():
    out = io.StringIO()
    logger = configure_logging("warn", out)
    logger.warning("slow")
    assert out.getvalue() == "(WARN) - slow\n"


def test_level_filters_lower_records():
    out = io.StringIO()
    logger = configure_logging("info", out)
    logger.debug("hidden detail")
    logger.info("ready")
    assert "hidden detail" not in out.getvalue()
    assert "(INFO) - ready" in out.getvalue()


def test_trace_records_are_never_written():
    out = io.StringIO()
    logger = configure_logging("trace", out)
    logger.log(5, "deep")
    logger.debug("details")
    assert "deep" not in out.getvalue()
    assert "details" in out.getvalue()


def test_level_name_is_case_insensitive():
    out = io.StringIO()
    logger = configure_logging("ERROR", out)
    logger.warning("ignored warning")
    logger.error("failure")
    assert "ignored warning" not in out.getvalue()
    assert "failure" in out.getvalue()


def test_off_silences_everything():
    out = io.StringIO()
    logger = configure_logging("off", out)
    logger.error("silent")
    logger.critical("silent too")
    assert "silent" not in out.getvalue()


def test_unknown_level_raises():
    with pytest.raises(ValueError):
        configure_logging("verbose", io.StringIO())


def test_reconfiguring_replaces_previous_handler():
    first = io.StringIO()
    second = io.StringIO()
    configure_logging("info", first)
    logger = configure_logging("info", second)
    logger.info("once")
    assert "once" not in first.getvalue()
    assert second.getvalue().count("\n") == 1
    assert "once" in second.getvalue()
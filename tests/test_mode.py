import pytest

from searchchannel.mode import ChannelMode, parse_mode


def test_parses_search():
    assert parse_mode("search") is ChannelMode.SEARCH


def test_parses_ingest_and_control():
    assert parse_mode("ingest") is ChannelMode.INGEST
    assert parse_mode("control") is ChannelMode.CONTROL


@pytest.mark.parametrize("mode", list(ChannelMode))
def test_round_trip(mode):
    assert parse_mode(str(mode)) is mode
    assert str(mode) == mode.value


@pytest.mark.parametrize("value", ["", "SEARCH", "Search", "query", " search"])
def test_rejects_unknown_modes(value):
    with pytest.raises(ValueError):
        parse_mode(value)


def test_has_three_modes():
    parsed = {parse_mode(value) for value in ("search", "ingest", "control")}
    assert parsed == set(ChannelMode)
    assert len(parsed) == 3
from datetime import date, datetime, timedelta, timezone

from grafica.utils.datetime import format_date, format_datetime, map_locale, parse_date_input

UTC = timezone.utc


def test_map_locale():
    assert map_locale(None) == "pt-BR"
    assert map_locale("pt-PT") == "pt-BR"
    assert map_locale("en-GB") == "en-US"
    assert map_locale("es") == "en-US"


def test_parse_date_input_variants():
    assert parse_date_input("2024-03-05") == datetime(2024, 3, 5, tzinfo=UTC)
    assert parse_date_input("2024-03-05T10:00:00Z") == datetime(2024, 3, 5, 10, tzinfo=UTC)
    assert parse_date_input("05/03/2024") == datetime(2024, 3, 5, tzinfo=UTC)
    assert parse_date_input(date(2024, 3, 5)) == datetime(2024, 3, 5, tzinfo=UTC)
    assert parse_date_input(0) == datetime(1970, 1, 1, tzinfo=UTC)
    assert parse_date_input("31/02/2024") is None
    assert parse_date_input("ontem") is None
    assert parse_date_input("") is None
    assert parse_date_input(True) is None


def test_parsed_dates_are_always_utc():
    inputs = [
        "2024-03-05",
        "2024-03-05T10:00:00-03:00",
        "05/03/2024",
        date(2024, 3, 5),
        datetime(2024, 3, 5, 12, 0),
        1709640000000,
    ]
    for value in inputs:
        parsed = parse_date_input(value)
        assert parsed.utcoffset() == timedelta(0), value

    assert parse_date_input("2024-03-05T10:00:00-03:00").hour == 13


def test_format_date_by_locale():
    d = datetime(2024, 3, 5, 14, 30)
    assert format_date(d, "pt-BR") == "05/03/2024"
    assert format_date(d, "en-US") == "03/05/2024"
    assert format_date("2024-03-05") == "05/03/2024"
    assert format_date(None) == "-"
    assert format_date("garbage", "en-US") == "-"


def test_format_datetime():
    d = datetime(2024, 3, 5, 14, 30)
    assert format_datetime(d, "pt-BR") == "05/03/2024 14:30"
    assert format_datetime(d, "en-US") == "03/05/2024 02:30 PM"
    assert format_datetime(d, fmt="%Y") == "2024"

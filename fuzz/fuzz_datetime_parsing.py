import sys
from datetime import datetime, timedelta, timezone

import atheris

with atheris.instrument_imports():
    from herald.datetime_utils import (
        AmbiguousDate,
        parse_absolute,
        parse_iso_timestamp,
        resolve,
        resolve_range,
        scan_time_of_day,
    )

REFERENCE = datetime(2026, 1, 17, 10, 0, tzinfo=timezone(timedelta(hours=5, minutes=30)))


def TestOneInput(data: bytes) -> None:
    """Fuzz the loose date/time resolver with arbitrary input."""
    value = data.decode("utf-8", errors="ignore")

    # Plain parsers return None for invalid input
    parse_iso_timestamp(value, REFERENCE.tzinfo)
    parse_absolute(value, REFERENCE.tzinfo)

    time_of_day = scan_time_of_day(value)
    if time_of_day is not None:
        hour, minute = time_of_day
        assert 0 <= hour < 24 and 0 <= minute < 60

    try:
        resolve(value, REFERENCE)
    except AmbiguousDate:
        pass  # Expected for text without a date or time

    # The lenient range never raises and never inverts
    window = resolve_range(value, value, REFERENCE)
    assert window.start <= window.end


def main() -> None:
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()

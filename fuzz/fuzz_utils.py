import sys

import atheris

with atheris.instrument_imports():
    from herald.utils import (
        coerce_int,
        coerce_str,
        coerce_str_list,
        parse_bool,
        parse_int,
        split_csv,
        strip_or_none,
    )


def TestOneInput(data: bytes) -> None:
    """Fuzz utility parsing functions with arbitrary input."""
    value = data.decode("utf-8", errors="ignore")

    # Env-style parsers fall back to defaults (should never raise)
    parse_bool(value)
    parse_int(value, default=0)
    split_csv(value)
    strip_or_none(value)

    # Details coercion accepts anything the LLM might emit
    coerce_str(value)
    coerce_int(value)
    coerce_str_list(value)
    coerce_str_list(value.split(";"))


def main() -> None:
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()

import sys

import atheris

with atheris.instrument_imports():
    from herald.assistant.email_normalizer import extract_email_and_body
    from herald.assistant.intent_parser import ParseError, parse_envelope


def TestOneInput(data: bytes) -> None:
    """Fuzz LLM reply parsing and spoken-address recovery with arbitrary input."""
    value = data.decode("utf-8", errors="ignore")

    try:
        parse_envelope("fuzz", value)
    except ParseError:
        pass  # Expected for replies without a JSON object

    email, _ = extract_email_and_body(value)
    if email is not None:
        assert " " not in email.local_part
        assert email.domain == email.domain.lower()


def main() -> None:
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()

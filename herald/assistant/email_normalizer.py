"""Recover email addresses from voice-transcribed sentences.

Speech-to-text turns "rohit.verma1569@gmail.com" into things like
"rohit verma 1569 at gmail dot com". The helpers here rebuild the address and
hand back whatever text surrounded it, which usually is the message body.
"""

from __future__ import annotations

import re
from dataclasses import replace

from .models import EmailDetails, ExtractedEmail

_DOMAIN_AHEAD = r"[a-z0-9\-]+(?:(?:\.|\s+dot\s+)[a-z0-9\-]+)*(?:\.|\s+dot\s+)[a-z]{2,}\b"

# " at " only counts as "@" when a domain-looking token follows it, so
# "meet at 3pm" survives untouched.
SPOKEN_AT = re.compile(rf"\s+at\s+(?={_DOMAIN_AHEAD})", re.IGNORECASE)
SPOKEN_DOMAIN = re.compile(r"@([a-z0-9\-]+(?:\s+dot\s+[a-z0-9\-]+)+)", re.IGNORECASE)
EMAIL_PATTERN = re.compile(r"([a-zA-Z0-9._%+\-\s]+)@([a-zA-Z0-9.\-]+\.[a-zA-Z]{2,})")

_WHITESPACE = re.compile(r"\s+")


def normalize_spoken_separators(text: str) -> str:
    """Rewrite spoken " at " / " dot " separators into "@" and "."."""
    text = SPOKEN_AT.sub("@", text)
    return SPOKEN_DOMAIN.sub(lambda match: "@" + re.sub(r"\s+dot\s+", ".", match.group(1), flags=re.IGNORECASE), text)


def extract_email_and_body(text: str | None) -> tuple[ExtractedEmail | None, str]:
    """Split `text` into the first email address it contains and the residual text.

    The local part may contain spaces, which are removed; the domain is
    lowercased. When no address is found the original text is returned as-is.
    """
    if not text:
        return None, ""
    normalized = normalize_spoken_separators(text)
    match = EMAIL_PATTERN.search(normalized)
    if not match:
        return None, text
    local_part = _WHITESPACE.sub("", match.group(1))
    if not local_part:
        return None, text
    email = ExtractedEmail(local_part=local_part, domain=match.group(2).lower())
    residual = normalized[: match.start()] + " " + normalized[match.end() :]
    return email, _WHITESPACE.sub(" ", residual).strip()


def normalize_email_details(details: EmailDetails) -> EmailDetails:
    """Extract the recipient from `to` (or, failing that, `body`).

    The address replaces `to` when one is found; any non-empty residual text
    becomes the body.
    """
    source = details.to if details.to else details.body
    if not source:
        return details
    email, residual = extract_email_and_body(source)
    updated = details
    if email is not None:
        updated = replace(updated, to=email.address)
    if residual and (email is not None or not details.to):
        updated = replace(updated, body=residual)
    return updated

"""Tests for spoken email-address recovery (herald/assistant/email_normalizer.py)."""

from __future__ import annotations

import pytest

from herald.assistant.email_normalizer import (
    extract_email_and_body,
    normalize_email_details,
    normalize_spoken_separators,
)
from herald.assistant.models import EmailDetails


class TestNormalizeSpokenSeparators:
    """' at ' and ' dot ' rewriting."""

    def test_spoken_at(self):
        assert normalize_spoken_separators("rohit at gmail.com") == "rohit@gmail.com"

    def test_spoken_at_and_dot(self):
        assert normalize_spoken_separators("rohit at gmail dot com") == "rohit@gmail.com"

    def test_plain_at_is_kept(self):
        """'at' followed by something that is not a domain stays a word."""
        assert normalize_spoken_separators("meet at 3pm tomorrow") == "meet at 3pm tomorrow"

    def test_uppercase_at(self):
        assert normalize_spoken_separators("asha AT example.org") == "asha@example.org"


class TestExtractEmailAndBody:
    """Address extraction with the residual body."""

    def test_spaces_in_local_part_removed(self):
        email, residual = extract_email_and_body("rohit verma 1569@gmail.com")
        assert email is not None
        assert email.address == "rohitverma1569@gmail.com"
        assert residual == ""

    def test_spoken_address(self):
        email, _ = extract_email_and_body("rohit at gmail.com")
        assert str(email) == "rohit@gmail.com"

    def test_spoken_address_with_dot(self):
        email, _ = extract_email_and_body("rohit at gmail dot com")
        assert email.address == "rohit@gmail.com"

    def test_residual_becomes_body(self):
        email, residual = extract_email_and_body("rohit at gmail.com   that I am running   late")
        assert email.address == "rohit@gmail.com"
        assert residual == "that I am running late"

    def test_domain_lowercased(self):
        email, _ = extract_email_and_body("Rohit@Gmail.COM")
        assert email.local_part == "Rohit"
        assert email.domain == "gmail.com"

    @pytest.mark.parametrize("text", ["meet at 3pm", "call john", "no address here"])
    def test_no_address(self, text):
        email, residual = extract_email_and_body(text)
        assert email is None
        assert residual == text

    def test_empty(self):
        assert extract_email_and_body("") == (None, "")
        assert extract_email_and_body(None) == (None, "")


class TestNormalizeEmailDetails:
    """Details rewriting before the email agent sees them."""

    def test_recipient_from_to(self):
        details = normalize_email_details(EmailDetails(to="rohit verma 1569@gmail.com", body="hi"))
        assert details.to == "rohitverma1569@gmail.com"
        assert details.body == "hi"

    def test_recipient_and_body_from_body(self):
        details = normalize_email_details(EmailDetails(body="rohit at gmail.com I'll be late"))
        assert details.to == "rohit@gmail.com"
        assert details.body == "I'll be late"

    def test_residual_in_to_replaces_body(self):
        details = normalize_email_details(EmailDetails(to="asha@example.org the report is ready", body=""))
        assert details.to == "asha@example.org"
        assert details.body == "the report is ready"

    def test_name_without_address_is_untouched(self):
        """A bare name in `to` does not clobber the body."""
        original = EmailDetails(to="john", body="hello")
        assert normalize_email_details(original) == original

    def test_empty_details(self):
        assert normalize_email_details(EmailDetails()) == EmailDetails()

    def test_other_fields_survive(self):
        details = normalize_email_details(EmailDetails(to="rohit at gmail.com", subject="Update", labels=["work"]))
        assert details.subject == "Update"
        assert details.labels == ["work"]

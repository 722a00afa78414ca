"""
Command assistant: intent parsing, routing, and action agents

This package turns one natural-language command into one action:

- Intent parsing: LLM prompt contract producing a JSON command envelope
- Routing: Email-address normalization and dispatch by service
- Email: Gmail send/draft/reply/search/label/summarize
- Calendar: Google Calendar create/modify/delete/list and free-slot search
- Calls: Twilio/Exotel outbound calls and the live call conversation
- Confirmations: Optional summary email after a successful command

Key modules:
- config: Configuration management from environment variables
- intent_parser: Prompt construction and reply parsing
- router: Envelope normalization and dispatch
- availability: Free-slot finder over busy intervals
- command_service: End-to-end handling of a command
"""

from __future__ import annotations

__all__ = [
    "availability",
    "calendar_agent",
    "call_agent",
    "call_session",
    "command_service",
    "config",
    "credentials",
    "email_agent",
    "email_normalizer",
    "google_client",
    "intent_parser",
    "llm",
    "models",
    "notifications",
    "router",
    "session_store",
    "telephony",
]

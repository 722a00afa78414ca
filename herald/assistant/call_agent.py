"""Phone-call action: place an outbound call through the configured provider."""

from __future__ import annotations

import logging

from .models import ActionResult, CallDetails
from .telephony import CallError, CallProvider, UnverifiedNumberError

LOGGER = logging.getLogger(__name__)

DEFAULT_PURPOSE = "Identify as an AI assistant and help with the user's request"
UNVERIFIED_MESSAGE = (
    "I can only call verified numbers in this development environment. "
    "Please verify your number with the call provider first."
)


class CallAgent:
    def __init__(self, provider: CallProvider, logger: logging.Logger | None = None) -> None:
        self._provider = provider
        self._logger = logger or LOGGER

    async def perform(self, action: str, details: CallDetails, user_id: str) -> ActionResult:
        if action != "call":
            return ActionResult.failure(f"Unsupported call action: {action}", error="unknown_action", action=action)
        if not details.phone_number:
            return ActionResult.failure("Please provide a phone number to call.", action=action)

        purpose = details.purpose or DEFAULT_PURPOSE
        self._logger.info("Calling %s via %s for %s", details.phone_number, self._provider.name, user_id)
        try:
            handle = await self._provider.initiate_call(details.phone_number, purpose, user_id)
        except UnverifiedNumberError as exc:
            self._logger.warning("Call to %s rejected: %s", details.phone_number, exc)
            return ActionResult.failure(UNVERIFIED_MESSAGE, action=action)
        except CallError as exc:
            self._logger.exception("Call to %s failed", details.phone_number)
            return ActionResult.failure(f"Failed to initiate call: {exc}", action=action)

        recipient = details.recipient_name or details.phone_number
        return ActionResult.success(
            "call_initiated",
            f"Okay, I'm calling {recipient} right now regarding {details.purpose or 'your request'}.",
            call_sid=handle.sid,
            provider=handle.provider,
            phone_number=details.phone_number,
            purpose=details.purpose,
            recipient_name=details.recipient_name,
        )

#!/usr/bin/env python3
"""Run a single Herald command and print the JSON response."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from herald.assistant.command_service import build_assistant
from herald.assistant.config import AssistantConfig
from herald.assistant.credentials import Credential

LOGGER = logging.getLogger("herald-command")


async def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("text", nargs="+", help="Command text, e.g. 'email rohit at gmail.com that I am late'")
    parser.add_argument("--user", default=None, help="User id (defaults to HERALD_USER_ID)")
    parser.add_argument("--access-token", default=None, help="Google access token to use for this run")
    parser.add_argument("--email", default=None, help="Address of the Google account behind --access-token")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    config = AssistantConfig.from_env()
    user_id = args.user or config.default_user_id
    assistant = build_assistant(config, LOGGER)
    if args.access_token:
        set_credential = getattr(assistant.credentials, "set_credential", None)
        if set_credential is None:
            LOGGER.error("Credential store does not accept tokens")
            return 2
        await set_credential(user_id, Credential(access_token=args.access_token, email=args.email))

    response = await assistant.commands.handle(" ".join(args.text), user_id)
    json.dump(response.to_dict(), sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
    return 0 if response.success else 1


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass

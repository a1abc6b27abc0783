#!/usr/bin/env python3
"""
Send one WhatsApp text message with the configured credentials.
Usage: python scripts/send_test_message.py <phone> [message] [--preview]
"""

import asyncio
import sys

from wabot.config import settings
from wabot.logging_config import setup_logging
from wabot.services.whatsapp_service import WhatsAppClient


async def main(argv: list[str]) -> int:
    args = [arg for arg in argv if arg != "--preview"]
    if not args:
        print(__doc__)
        return 2

    phone = args[0]
    message = args[1] if len(args) > 1 else "Hello from WhatsApp API!"
    client = WhatsAppClient(settings.dispatch_config())

    if "--preview" in argv:
        result = await client.send_with_url_preview(phone, message)
    else:
        result = await client.send(phone, message)

    if result.ok:
        print(f"Sent: provider_id={result.value}")
        return 0
    print(f"Failed ({result.error_code}): {result.error}")
    return 1


if __name__ == "__main__":
    setup_logging(settings.log_level)
    sys.exit(asyncio.run(main(sys.argv[1:])))

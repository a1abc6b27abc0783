#!/usr/bin/env python3
"""
Post a sample Cloud API text-message webhook to a running server.
Usage: python scripts/post_test_webhook.py [url] [from_phone] [text]
"""

import sys
import time
import uuid

import httpx

DEFAULT_URL = "http://localhost:8000/webhook"


def build_payload(from_phone: str, text: str) -> dict:
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "0",
                "changes": [
                    {
                        "field": "messages",
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {"display_phone_number": "15550000000", "phone_number_id": "0"},
                            "contacts": [{"profile": {"name": "Test Sender"}, "wa_id": from_phone}],
                            "messages": [
                                {
                                    "from": from_phone,
                                    "id": f"wamid.test-{uuid.uuid4().hex}",
                                    "timestamp": str(int(time.time())),
                                    "text": {"body": text},
                                    "type": "text",
                                }
                            ],
                        },
                    }
                ],
            }
        ],
    }


def main():
    url = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_URL
    from_phone = sys.argv[2] if len(sys.argv) > 2 else "26657683501"
    text = sys.argv[3] if len(sys.argv) > 3 else "Hi, how are you doing today?"

    response = httpx.post(url, json=build_payload(from_phone, text), timeout=10.0)
    print(f"Response status: {response.status_code}")
    print(response.text)


if __name__ == "__main__":
    main()

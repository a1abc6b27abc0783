from typing import Optional

import httpx

from wabot.config import DispatchConfig
from wabot.logging_config import get_logger
from wabot.services.result import Result

logger = get_logger("whatsapp_service")


def _provider_error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text[:200]}"
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return f"API Error: {error['message']}"
    return f"API Error: Unknown error (HTTP {response.status_code})"


class WhatsAppClient:
    """Sends text messages through the WhatsApp Business Cloud API."""

    def __init__(self, config: DispatchConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.config.access_token and self.config.phone_number_id)

    def build_payload(self, address: str, body: str, preview_url: bool = False) -> dict:
        text = {"body": body}
        if preview_url:
            text["preview_url"] = True
        return {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": address,
            "type": "text",
            "text": text,
        }

    async def send(self, address: str, body: str, preview_url: bool = False) -> Result[str]:
        """Deliver one text message.

        Returns ``Result.success(provider_message_id)`` when the provider accepted the
        message. Provider rejections (``provider_error``), transport failures
        (``transport_error``) and missing credentials (``not_configured``) come back as
        ``Result.failure``; only a missing address or body raises.
        """
        if not address or not address.strip():
            raise ValueError("address is required")
        if not body or not body.strip():
            raise ValueError("body is required")

        if not self.is_configured:
            logger.error("WhatsApp credentials are missing (access token / phone number id)")
            return Result.failure("WhatsApp dispatch is not configured", "not_configured")

        try:
            async with httpx.AsyncClient(timeout=self.config.timeout_seconds, transport=self._transport) as client:
                response = await client.post(
                    self.config.messages_url,
                    headers={
                        "Authorization": f"Bearer {self.config.access_token}",
                        "Content-Type": "application/json",
                    },
                    json=self.build_payload(address, body, preview_url=preview_url),
                )
        except Exception as e:
            logger.error(
                "WhatsApp transport error",
                extra={"context": {"to": address, "error": str(e), "error_type": type(e).__name__}},
            )
            return Result.failure(str(e) or type(e).__name__, "transport_error")

        if not response.is_success:
            error = _provider_error_message(response)
            logger.warning(
                "WhatsApp provider rejected message",
                extra={"context": {"to": address, "status": response.status_code, "error": error}},
            )
            return Result.failure(error, "provider_error")

        try:
            data = response.json()
        except ValueError:
            data = {}
        messages = data.get("messages") if isinstance(data, dict) else None
        provider_id = messages[0].get("id") if messages else None
        logger.info("WhatsApp message sent", extra={"context": {"to": address, "provider_id": provider_id}})
        return Result.success(provider_id)

    async def send_with_url_preview(self, address: str, body: str) -> Result[str]:
        return await self.send(address, body, preview_url=True)

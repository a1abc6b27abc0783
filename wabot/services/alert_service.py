"""Operational alerts for pipeline failures, delivered to a Telegram chat."""

from typing import Optional

import httpx

from wabot.config import AlertConfig
from wabot.logging_config import get_logger

logger = get_logger("alert_service")

LEVEL_EMOJI = {"INFO": "ℹ️", "WARNING": "⚠️", "ERROR": "❌", "CRITICAL": "🔥"}


def format_alert(level: str, message: str, context: Optional[dict] = None) -> str:
    text = f"{LEVEL_EMOJI.get(level, '📢')} *{level}*\n\n{message}"
    if context:
        context_str = "\n".join(f"  {k}: {v}" for k, v in context.items())
        text += f"\n\n```\n{context_str}\n```"
    return text


class AlertService:
    """Posts alerts to Telegram; a no-op (returns False) when not configured."""

    def __init__(self, config: AlertConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.config.bot_token and self.config.chat_id)

    async def send(self, level: str, message: str, context: Optional[dict] = None) -> bool:
        if not self.is_configured:
            logger.warning(f"Alert not configured: {level} - {message}", extra={"context": context or {}})
            return False

        try:
            async with httpx.AsyncClient(timeout=self.config.timeout_seconds, transport=self._transport) as client:
                response = await client.post(
                    f"https://api.telegram.org/bot{self.config.bot_token}/sendMessage",
                    json={
                        "chat_id": self.config.chat_id,
                        "text": format_alert(level, message, context),
                        "parse_mode": "Markdown",
                    },
                )
            return response.status_code == 200
        except Exception as e:
            logger.error(f"Failed to send alert: {e}")
            return False

    async def error(self, message: str, context: Optional[dict] = None) -> bool:
        return await self.send("ERROR", message, context)

    async def warning(self, message: str, context: Optional[dict] = None) -> bool:
        return await self.send("WARNING", message, context)

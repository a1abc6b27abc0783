"""Reply generation on top of an LLM provider, with a fixed fallback on any failure."""

import asyncio
from typing import List, Optional

from wabot.config import CompletionConfig
from wabot.logging_config import get_logger
from wabot.services.llm import LLMProvider, OpenAIProvider

logger = get_logger("completion_service")

SYSTEM_PROMPT = (
    "You are a helpful customer service assistant for WhatsApp. "
    "Keep your responses concise, friendly, and helpful. "
    "Respond in a conversational tone suitable for messaging."
)
FALLBACK_REPLY = "I'm sorry, I'm having trouble processing your message right now. Please try again later."


class CompletionClient:
    """Turns a user message (or a whole history) into a reply string. Never raises."""

    def __init__(self, provider: LLMProvider, config: CompletionConfig):
        self.provider = provider
        self.config = config

    @classmethod
    def from_config(cls, config: CompletionConfig) -> "CompletionClient":
        provider = OpenAIProvider(
            api_key=config.api_key or "",
            default_model=config.model,
            base_url=config.base_url,
            timeout_seconds=config.timeout_seconds,
        )
        return cls(provider, config)

    def build_messages(self, user_text: str, history: Optional[List[dict]] = None) -> List[dict]:
        system = {"role": "system", "content": SYSTEM_PROMPT}
        if history:
            return [system, *history]
        return [system, {"role": "user", "content": user_text}]

    async def generate_reply(self, user_text: str, history: Optional[List[dict]] = None) -> str:
        messages = self.build_messages(user_text, history)
        try:
            response = await asyncio.wait_for(
                self.provider.generate(
                    messages,
                    model=self.config.model,
                    temperature=self.config.temperature,
                    max_tokens=self.config.max_tokens,
                ),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Completion timed out, using fallback reply",
                extra={"context": {"timeout_seconds": self.config.timeout_seconds}},
            )
            return FALLBACK_REPLY
        except Exception as exc:
            logger.error(
                "Completion failed, using fallback reply",
                extra={"context": {"error": str(exc), "error_type": type(exc).__name__}},
            )
            return FALLBACK_REPLY

        content = (response.content or "").strip()
        if not content:
            logger.warning("Completion returned empty content, using fallback reply")
            return FALLBACK_REPLY
        return content

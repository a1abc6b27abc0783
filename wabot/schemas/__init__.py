from wabot.schemas.webhook import InboundEvent, WebhookResponse, WhatsAppWebhookPayload

__all__ = ["InboundEvent", "WebhookResponse", "WhatsAppWebhookPayload"]

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from wabot.errors import MalformedEventError

SUPPORTED_KINDS = {"text"}


class WhatsAppText(BaseModel):
    body: Optional[str] = None
    preview_url: Optional[bool] = None


class WhatsAppInboundMessage(BaseModel):
    id: Optional[str] = None
    from_user: Optional[str] = None  # "from" is reserved in Python
    timestamp: Optional[int] = None
    type: Optional[str] = None
    text: Optional[WhatsAppText] = None

    model_config = ConfigDict(populate_by_name=True)

    def __init__(self, **data):
        if "from" in data:
            data["from_user"] = data.pop("from")
        super().__init__(**data)


class WhatsAppProfile(BaseModel):
    name: Optional[str] = None


class WhatsAppContact(BaseModel):
    wa_id: Optional[str] = None
    profile: Optional[WhatsAppProfile] = None


class WhatsAppValue(BaseModel):
    messaging_product: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    contacts: list[WhatsAppContact] = []
    messages: list[WhatsAppInboundMessage] = []
    statuses: list[dict[str, Any]] = []


class WhatsAppChange(BaseModel):
    field: Optional[str] = None
    value: Optional[WhatsAppValue] = None


class WhatsAppEntry(BaseModel):
    id: Optional[str] = None
    changes: list[WhatsAppChange] = []


class WhatsAppWebhookPayload(BaseModel):
    object: Optional[str] = None
    entry: list[WhatsAppEntry] = []


class InboundEvent(BaseModel):
    """One normalized inbound chat message, as handed to the pipeline."""

    sender: Optional[str] = None
    body: Optional[str] = None
    kind: str = "text"
    provider_message_id: Optional[str] = None
    timestamp: Optional[int] = None
    profile_name: Optional[str] = None

    def check_processable(self) -> None:
        """Raise MalformedEventError unless this is a text message with sender and body."""
        if self.kind not in SUPPORTED_KINDS:
            raise MalformedEventError(f"Unsupported message kind: {self.kind}", kind=self.kind)
        if not self.sender or not self.sender.strip():
            raise MalformedEventError("Missing sender address", kind=self.kind)
        if not self.body or not self.body.strip():
            raise MalformedEventError("Missing message body", kind=self.kind)

    @classmethod
    def from_provider_message(
        cls,
        message: WhatsAppInboundMessage,
        contacts: Optional[list[WhatsAppContact]] = None,
    ) -> "InboundEvent":
        profile_name = None
        for contact in contacts or []:
            if contact.wa_id == message.from_user and contact.profile:
                profile_name = contact.profile.name
                break

        event = cls(
            sender=message.from_user,
            body=message.text.body if message.text else None,
            kind=message.type or "unknown",
            provider_message_id=message.id,
            timestamp=message.timestamp,
            profile_name=profile_name,
        )
        event.check_processable()
        return event


class WebhookResponse(BaseModel):
    success: bool
    message: str
    accepted: int = 0

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, Response
from pydantic import ValidationError as PayloadValidationError
from starlette.requests import ClientDisconnect

from wabot.config import settings
from wabot.errors import MalformedEventError
from wabot.logging_config import get_logger
from wabot.schemas.webhook import InboundEvent, WebhookResponse, WhatsAppWebhookPayload
from wabot.services.worker import PipelineWorker

logger = get_logger("webhook")

router = APIRouter()

WHATSAPP_OBJECT = "whatsapp_business_account"


def get_pipeline_worker(request: Request) -> Optional[PipelineWorker]:
    return getattr(request.app.state, "pipeline_worker", None)


def extract_inbound_events(payload: dict) -> list[InboundEvent]:
    """Normalize a Cloud API webhook body into processable text events.

    Status callbacks, non-text messages and entries without a sender or body are
    dropped here; they never reach the pipeline.
    """
    try:
        parsed = WhatsAppWebhookPayload(**payload)
    except PayloadValidationError as exc:
        logger.info("Webhook payload does not match Cloud API shape", extra={"context": {"error": str(exc)[:300]}})
        return []

    if parsed.object != WHATSAPP_OBJECT:
        logger.debug(f"Ignoring webhook object: {parsed.object}")
        return []

    events = []
    for entry in parsed.entry:
        for change in entry.changes:
            value = change.value
            if value is None:
                continue
            for message in value.messages:
                try:
                    events.append(InboundEvent.from_provider_message(message, value.contacts))
                except MalformedEventError as exc:
                    logger.debug(
                        "Inbound message skipped",
                        extra={"context": {"message_id": message.id, "kind": exc.kind, "reason": exc.reason}},
                    )
    return events


@router.get("/webhook")
async def verify_webhook(request: Request):
    """Subscription handshake: echo hub.challenge when the verify token matches."""
    mode = request.query_params.get("hub.mode")
    token = request.query_params.get("hub.verify_token")
    challenge = request.query_params.get("hub.challenge", "")

    if mode == "subscribe" and settings.verify_token and token == settings.verify_token:
        logger.info("Webhook verified")
        return PlainTextResponse(challenge)
    logger.warning("Webhook verification failed", extra={"context": {"mode": mode}})
    return Response(status_code=403)


@router.post("/webhook", response_model=WebhookResponse)
async def handle_webhook(request: Request, worker: Optional[PipelineWorker] = Depends(get_pipeline_worker)):
    """Acknowledge immediately; processing happens on the pipeline worker."""
    try:
        payload = await request.json()
    except ClientDisconnect:
        logger.info("Webhook client disconnected during read")
        return WebhookResponse(success=True, message="Client disconnected")
    except ValueError as exc:
        logger.warning("Webhook payload is not valid JSON", extra={"context": {"error": str(exc)}})
        return WebhookResponse(success=False, message="Invalid JSON payload")

    if not isinstance(payload, dict):
        return WebhookResponse(success=False, message="Invalid payload format")

    events = extract_inbound_events(payload)
    if not events:
        return WebhookResponse(success=True, message="No text messages")

    if worker is None:
        logger.error("Pipeline worker unavailable", extra={"context": {"dropped": len(events)}})
        return WebhookResponse(success=False, message="Pipeline unavailable")

    accepted = 0
    for event in events:
        logger.info(
            "Inbound message received",
            extra={"context": {"from": event.sender, "message_id": event.provider_message_id}},
        )
        if worker.submit(event):
            accepted += 1

    return WebhookResponse(success=True, message="Accepted", accepted=accepted)

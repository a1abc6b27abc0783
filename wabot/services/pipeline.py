"""Per-event control flow: inbound text -> identity -> history -> reply -> dispatch.

Each step either advances the event to the next ``PipelineStage`` or ends it in a
terminal one. Nothing is retried and nothing is raised to the caller; failures are
logged (and alerted when configured) and reported on the returned outcome.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from wabot.errors import IdentityError, MalformedEventError, PersistenceError
from wabot.logging_config import LoggerAdapter, bind_logger
from wabot.models import MessageRole
from wabot.schemas.webhook import InboundEvent
from wabot.services.alert_service import AlertService
from wabot.services.completion_service import FALLBACK_REPLY, CompletionClient
from wabot.services.conversation_service import (
    DEFAULT_HISTORY_LIMIT,
    append_message,
    claim_event,
    get_history,
    history_to_prompt,
)
from wabot.services.identity_service import resolve_identity
from wabot.services.result import Result
from wabot.services.state_machine import PipelineStage, transition
from wabot.services.whatsapp_service import WhatsAppClient


@dataclass
class PipelineOutcome:
    stage: PipelineStage = PipelineStage.RECEIVED
    event_id: Optional[str] = None
    user_id: Optional[int] = None
    chat_id: Optional[int] = None
    inbound_message_id: Optional[int] = None
    reply_message_id: Optional[int] = None
    reply: Optional[str] = None
    degraded: bool = False
    provider_message_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.stage == PipelineStage.DISPATCHED

    def advance(self, stage: PipelineStage) -> "PipelineOutcome":
        self.stage = transition(self.stage, stage)
        return self


class PipelineOrchestrator:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        completion: CompletionClient,
        dispatcher: WhatsAppClient,
        alerts: Optional[AlertService] = None,
        *,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        use_history: bool = True,
        dedup_enabled: bool = True,
    ):
        self.session_factory = session_factory
        self.completion = completion
        self.dispatcher = dispatcher
        self.alerts = alerts
        self.history_limit = history_limit
        self.use_history = use_history
        self.dedup_enabled = dedup_enabled

    async def process(self, event: InboundEvent) -> PipelineOutcome:
        log = bind_logger("pipeline", message_id=event.provider_message_id, sender=event.sender)
        outcome = PipelineOutcome(event_id=event.provider_message_id)

        try:
            event.check_processable()
        except MalformedEventError as exc:
            log.debug("Inbound event discarded", context={"reason": exc.reason, "kind": exc.kind})
            return outcome.advance(PipelineStage.DISCARDED)

        db = self.session_factory()
        try:
            return await self._run(db, event, outcome, log)
        finally:
            db.close()

    async def _run(
        self,
        db: Session,
        event: InboundEvent,
        outcome: PipelineOutcome,
        log: LoggerAdapter,
    ) -> PipelineOutcome:
        if self.dedup_enabled and event.provider_message_id:
            if not await self._claim(db, event.provider_message_id, log):
                log.info("Inbound event already processed, skipping")
                return outcome.advance(PipelineStage.DUPLICATE)

        # 1. identity
        try:
            identity = await run_in_threadpool(resolve_identity, db, event.sender.strip(), event.profile_name)
        except IdentityError as exc:
            return await self._fail(outcome, exc, "identity_error", log)
        outcome.user_id = identity.user.id
        outcome.chat_id = identity.chat.id
        outcome.advance(PipelineStage.IDENTITY_RESOLVED)

        # 2. inbound turn must be stored before the completion call
        try:
            inbound = await run_in_threadpool(
                append_message, db, identity.chat.id, identity.user.id, event.body, MessageRole.HUMAN
            )
        except Exception as exc:
            db.rollback()
            return await self._fail(outcome, PersistenceError(MessageRole.HUMAN.value, exc), "persistence_error", log)
        outcome.inbound_message_id = inbound.id
        outcome.advance(PipelineStage.INBOUND_PERSISTED)

        # 3. reply (never fails, degrades to the fallback text)
        history = await self._load_history(db, identity.chat.id, log)
        reply = await self.completion.generate_reply(event.body, history)
        outcome.reply = reply
        outcome.degraded = reply == FALLBACK_REPLY
        outcome.advance(PipelineStage.REPLY_GENERATED)

        # 4. ai turn is stored before dispatch; no row, no send
        try:
            stored_reply = await run_in_threadpool(append_message, db, identity.chat.id, None, reply, MessageRole.AI)
        except Exception as exc:
            db.rollback()
            return await self._fail(outcome, PersistenceError(MessageRole.AI.value, exc), "persistence_error", log)
        outcome.reply_message_id = stored_reply.id
        outcome.advance(PipelineStage.REPLY_PERSISTED)

        # 5. dispatch; failure keeps the stored turns for manual resend
        result = await self._dispatch(event.sender.strip(), reply, log)
        if not result.ok:
            outcome.error = result.error
            outcome.error_code = result.error_code
            outcome.advance(PipelineStage.UNDELIVERED)
            log.warning(
                "Reply generated but not delivered",
                context={"chat_id": outcome.chat_id, "reply_message_id": outcome.reply_message_id, **result.as_dict()},
            )
            if self.alerts:
                await self.alerts.warning(
                    "WhatsApp reply not delivered",
                    {"chat_id": outcome.chat_id, "to": event.sender, "error": result.error},
                )
            return outcome

        outcome.provider_message_id = result.value
        outcome.advance(PipelineStage.DISPATCHED)
        log.info(
            "Reply dispatched",
            context={
                "chat_id": outcome.chat_id,
                "reply_message_id": outcome.reply_message_id,
                "provider_id": result.value,
                "degraded": outcome.degraded,
            },
        )
        return outcome

    async def _claim(self, db: Session, provider_message_id: str, log: LoggerAdapter) -> bool:
        try:
            return await run_in_threadpool(claim_event, db, provider_message_id)
        except Exception as exc:
            db.rollback()
            log.warning("Dedup ledger unavailable, processing event", context={"error": str(exc)})
            return True

    async def _load_history(self, db: Session, chat_id: int, log: LoggerAdapter) -> Optional[list[dict]]:
        if not self.use_history:
            return None
        try:
            turns = await run_in_threadpool(get_history, db, chat_id, self.history_limit)
        except Exception as exc:
            db.rollback()
            log.warning("History read failed, replying to the single message", context={"error": str(exc)})
            return None
        return history_to_prompt(turns)

    async def _dispatch(self, address: str, reply: str, log: LoggerAdapter) -> Result[str]:
        try:
            return await self.dispatcher.send(address, reply)
        except Exception as exc:
            log.error("Dispatch raised unexpectedly", context={"error": str(exc)}, exc_info=True)
            return Result.failure(str(exc), "dispatch_exception")

    async def _fail(
        self,
        outcome: PipelineOutcome,
        exc: Exception,
        error_code: str,
        log: LoggerAdapter,
    ) -> PipelineOutcome:
        outcome.error = str(exc)
        outcome.error_code = error_code
        failed_at = outcome.stage
        outcome.advance(PipelineStage.FAILED)
        log.error(
            "Pipeline aborted",
            context={"failed_at": failed_at.value, "error_code": error_code, "error": str(exc), "chat_id": outcome.chat_id},
        )
        if self.alerts:
            await self.alerts.error(
                "Inbound message dropped",
                {"stage": failed_at.value, "error_code": error_code, "error": str(exc)},
            )
        return outcome

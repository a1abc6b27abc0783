import os

from fastapi import Depends, FastAPI
from sqlalchemy.orm import Session

from wabot.config import settings
from wabot.database import SessionLocal, get_db, init_db
from wabot.logging_config import get_logger, setup_logging
from wabot.models import Chat, Message, User
from wabot.routers import webhook
from wabot.services.alert_service import AlertService
from wabot.services.completion_service import CompletionClient
from wabot.services.pipeline import PipelineOrchestrator
from wabot.services.whatsapp_service import WhatsAppClient
from wabot.services.worker import PipelineWorker

setup_logging(settings.log_level)

app = FastAPI(
    title="wabot",
    description="WhatsApp auto-reply service",
    version="0.1.0",
)

app.include_router(webhook.router)

logger = get_logger("main")


def _is_pipeline_worker_enabled() -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return settings.pipeline_worker_enabled


def build_pipeline_worker() -> PipelineWorker:
    """Wire the pipeline from settings; each client gets its own explicit config."""
    orchestrator = PipelineOrchestrator(
        SessionLocal,
        CompletionClient.from_config(settings.completion_config()),
        WhatsAppClient(settings.dispatch_config()),
        AlertService(settings.alert_config()),
        history_limit=settings.history_limit,
        use_history=settings.completion_use_history,
        dedup_enabled=settings.dedup_enabled,
    )
    return PipelineWorker(
        orchestrator,
        concurrency=settings.pipeline_workers,
        queue_size=settings.pipeline_queue_size,
    )


@app.on_event("startup")
async def start_pipeline() -> None:
    init_db()
    if not _is_pipeline_worker_enabled():
        return
    worker = build_pipeline_worker()
    worker.start()
    app.state.pipeline_worker = worker


@app.on_event("shutdown")
async def stop_pipeline() -> None:
    worker = getattr(app.state, "pipeline_worker", None)
    if worker is None:
        return
    await worker.stop(drain_timeout=settings.pipeline_drain_seconds)
    app.state.pipeline_worker = None


@app.get("/health")
async def health():
    worker = getattr(app.state, "pipeline_worker", None)
    return {"status": "ok", "pipeline": worker.snapshot() if worker else None}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    return {
        "status": "ok",
        "users": db.query(User).count(),
        "chats": db.query(Chat).count(),
        "messages": db.query(Message).count(),
    }

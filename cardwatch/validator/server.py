"""
Cardwatch Server

FastAPI server for receiving Trello webhooks and triggering sweeps.

Endpoints:
- HEAD /trello/webhook: Trello callback verification
- POST /trello/webhook: Trello webhook endpoint
- POST /sweep: Run one re-check pass over tracked cards
- POST /trello/subscribe: Register a Trello webhook for a board
- GET /violations: List tracked violation records
- GET /stats: Store statistics
- GET /health: Health check

Pipeline:
1. Receive webhook event
2. Parse with the Trello handler
3. Fetch card, classify, select rules
4. Execute rules into a verdict
5. Create/update/delete the violation record
6. Notify Slack
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Optional
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, HTTPException, Header, BackgroundTasks, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..common.config import (
    CardwatchConfig,
    ensure_directories,
    load_config,
    save_config,
    setup_logging,
)
from ..common.schemas.templates import SUBSCRIBE_VALIDATION_MESSAGES
from ..common.slack_client import create_slack_notifier
from ..common.trello_client import WebhookError, create_trello_client
from .executor import RuleExecutor
from .handlers import TrelloHandler
from .processor import EventProcessor, ProcessorSettings
from .rules import RuleSettings
from .selector import ListNames
from .store import JsonViolationStore, StoreError, ViolationStore
from .sweep import SweepProcessor, SweepReport
from .tracker import ViolationTracker


# Global state
config: Optional[CardwatchConfig] = None
trello_handler: Optional[TrelloHandler] = None
store: Optional[ViolationStore] = None
processor: Optional[EventProcessor] = None
sweeper: Optional[SweepProcessor] = None
fetcher = None
notifier = None


def build_components(
    cfg: CardwatchConfig,
    card_fetcher=None,
    slack_notifier=None,
    violation_store: Optional[ViolationStore] = None,
) -> None:
    """
    Wire handler, store, tracker, processor and sweeper from config.

    Collaborators can be passed in; otherwise they are created from config.
    Without a card fetcher (Trello not configured) webhooks are answered
    with 503.
    """
    global config, trello_handler, store, processor, sweeper, fetcher, notifier

    config = cfg
    trello_handler = TrelloHandler(
        api_secret=cfg.trello.api_secret,
        callback_url=cfg.trello.callback_url,
    )
    store = violation_store or JsonViolationStore(cfg.validator.store_path)
    fetcher = card_fetcher or create_trello_client(cfg.trello)
    notifier = slack_notifier or create_slack_notifier(cfg.slack)

    executor = RuleExecutor(RuleSettings(
        min_title_words=cfg.validator.min_title_words,
        min_labels=cfg.validator.min_labels,
        intake_list=cfg.validator.intake_list,
    ))
    tracker = ViolationTracker(
        store,
        notifier,
        renotify_on_update=cfg.validator.renotify_on_update,
    )

    if fetcher is None:
        processor = None
        sweeper = None
        return

    processor = EventProcessor(
        fetcher,
        tracker,
        executor,
        ProcessorSettings(
            non_dev_marker=cfg.validator.non_dev_marker,
            lists=ListNames(
                in_progress=cfg.validator.in_progress_list,
                in_review=cfg.validator.in_review_list,
            ),
        ),
    )
    sweeper = SweepProcessor(
        store,
        fetcher,
        tracker,
        executor,
        concurrency=cfg.validator.sweep_concurrency,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    print("[Cardwatch] Starting up...")

    load_dotenv()
    ensure_directories()

    cfg = load_config()
    setup_logging(cfg.validator.log_level)
    build_components(cfg)
    stats = store.get_stats()
    print(f"[Cardwatch] Store: {cfg.validator.store_path} ({stats['tracked']} tracked)")

    if processor is None:
        print("[Cardwatch] Warning: Trello not configured, webhooks will be rejected")
    if notifier is not None and not notifier.is_configured:
        print("[Cardwatch] Slack not configured, notifications will only be logged")

    print("[Cardwatch] Ready to receive events")

    yield

    # Cleanup
    print("[Cardwatch] Shutting down...")
    if fetcher is not None:
        await fetcher.close()
    if notifier is not None:
        await notifier.close()


app = FastAPI(
    title="Cardwatch",
    description="Trello card standards checker",
    version="0.1.0",
    lifespan=lifespan
)


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "cardwatch",
        "initialized": processor is not None,
        "sweep_running": sweeper.is_running if sweeper else False,
        "slack_configured": bool(notifier and notifier.is_configured),
        "tracked_violations": _store_stats().get("tracked"),
    }


def _store_stats() -> dict:
    if not store:
        return {}
    try:
        return store.get_stats()
    except StoreError as e:
        print(f"[Cardwatch] Could not read store stats: {e}")
        return {}


@app.head("/trello/webhook")
async def trello_webhook_verification():
    """Trello sends HEAD to the callback URL when a webhook is registered"""
    return Response(status_code=200)


@app.post("/trello/webhook")
async def trello_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    x_trello_webhook: Optional[str] = Header(None),
):
    """
    Handle Trello webhook events.

    Processing happens in the background; the acknowledgement does not
    depend on the outcome.
    """
    if not trello_handler or not processor:
        raise HTTPException(status_code=503, detail="Processor not initialized")

    body = await request.body()

    if not trello_handler.verify_signature(body, x_trello_webhook or ""):
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON")

    event = trello_handler.parse_action(data)

    if trello_handler.should_process(event):
        background_tasks.add_task(processor.process, event)

    return JSONResponse({"ok": True})


@app.post("/sweep")
async def sweep():
    """Run one sweep pass (called by an external scheduler)"""
    if not sweeper:
        raise HTTPException(status_code=503, detail="Sweeper not initialized")

    report = await sweeper.run()
    return _report_dict(report)


@app.get("/violations")
async def get_violations():
    """List tracked violation records"""
    if not store:
        raise HTTPException(status_code=503, detail="Store not initialized")

    try:
        records = await store.list_all_invalid()
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "count": len(records),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "items": [record.model_dump(mode="json") for record in records],
    }


@app.get("/stats")
async def get_stats():
    """Get Cardwatch statistics"""
    stats = {
        "service": "cardwatch",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if store:
        stats["store"] = _store_stats()

    if sweeper:
        stats["sweep"] = {"running": sweeper.is_running}

    return stats


class WebhookSubscription(BaseModel):
    """Webhook subscription request"""
    id_model: Optional[str] = None  # board (or list/card) id to watch
    description: Optional[str] = None
    callback_url: Optional[str] = None  # defaults to trello.callback_url


@app.post("/trello/subscribe")
async def trello_subscribe(subscription: WebhookSubscription):
    """Register a Trello webhook that posts to this server"""
    callback_url = subscription.callback_url or (config.trello.callback_url if config else "")

    errors = []
    if not (subscription.description or "").strip():
        errors.append(SUBSCRIBE_VALIDATION_MESSAGES["description"])
    if not (subscription.id_model or "").strip():
        errors.append(SUBSCRIBE_VALIDATION_MESSAGES["id_model"])
    if not callback_url:
        errors.append(SUBSCRIBE_VALIDATION_MESSAGES["callback_url"])
    if errors:
        raise HTTPException(status_code=400, detail=errors)

    if not fetcher:
        raise HTTPException(status_code=503, detail="Trello not configured")

    try:
        webhook = await fetcher.create_webhook(
            id_model=subscription.id_model,
            description=subscription.description,
            callback_url=callback_url,
        )
    except WebhookError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return {"ok": True, "webhook": webhook}


def _report_dict(report: SweepReport) -> dict:
    return {
        "skipped": report.skipped,
        "checked": report.checked,
        "escalated": report.escalated,
        "resolved": report.resolved,
        "failed": report.failed,
        "failed_cards": report.failed_cards,
    }


# =============================================================================
# CLI Entry Points
# =============================================================================

def run_server():
    """Run the Cardwatch server"""
    import uvicorn

    load_dotenv()
    cfg = load_config()
    port = cfg.validator.port

    print(f"[Cardwatch] Starting server on port {port}")
    uvicorn.run(
        "cardwatch.validator.server:app",
        host="0.0.0.0",
        port=port,
        reload=False,
    )


def run_sweep():
    """Run a single sweep pass from the command line"""
    load_dotenv()
    cfg = load_config()
    setup_logging(cfg.validator.log_level)
    build_components(cfg)

    if sweeper is None:
        print("[Cardwatch] Trello not configured, cannot sweep")
        raise SystemExit(1)

    async def _run() -> SweepReport:
        try:
            return await sweeper.run()
        finally:
            await fetcher.close()
            await notifier.close()

    report = asyncio.run(_run())
    print(json.dumps(_report_dict(report), indent=2))


def run_init():
    """Write ~/.cardwatch/config.json from current settings (env secrets are not persisted)"""
    load_dotenv()
    ensure_directories()
    path = save_config(load_config())
    print(f"[Cardwatch] Config written to {path}")


if __name__ == "__main__":
    run_server()

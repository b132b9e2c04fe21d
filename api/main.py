"""
FastAPI Application — REST API + WebSocket for the Niles assistant.

Provides:
- Inbound message endpoint that runs one bot turn and returns its replies
- Notification trigger that broadcasts to every registered conversation
- Job completion event that resumes the job's conversation
- Job and channel listings
- WebSocket endpoint for real-time chat
"""
from __future__ import annotations

import json
import asyncio
import structlog
from datetime import datetime, timezone
from typing import Any, Optional
from contextlib import asynccontextmanager

# Load .env before any config is read
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from config.settings import get_settings
from models.schemas import Activity, ActivityType, ChannelAccount, ConversationAccount
from channels.chat_adapter import ChatAdapter
from context.state import ConversationState, UserState
from database.store_factory import create_storage
from notifications.job_log import ChannelLog, JobLog
from notifications.jobs import JobService
from notifications.notifier import ProactiveNotifier
from recognizer.factory import create_recognizer
from backend.issue_service import create_issue_service
from core.bot import IssueBot

logger = structlog.get_logger()

# ──────────────────────────────────────────────────────────────
#  Bootstrap
# ──────────────────────────────────────────────────────────────

settings = get_settings()
storage = create_storage(settings.database)

chat_adapter = ChatAdapter(bot_id=settings.bot.app_id, bot_name=settings.bot.name)

job_service = JobService(JobLog(storage), resume=chat_adapter.continue_conversation)
notifier = ProactiveNotifier(ChannelLog(storage), chat_adapter.continue_conversation)
issue_service = create_issue_service(settings.issue_service)

bot = IssueBot(
    conversation_state=ConversationState(storage),
    user_state=UserState(storage),
    recognizer=create_recognizer(settings.recognizer),
    job_service=job_service,
    notifier=notifier,
    issue_service=issue_service,
    trusted_senders=settings.bot.trusted_senders,
    min_score=settings.recognizer.min_score,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("niles_started",
                recognizer=settings.recognizer.type,
                store_backend=settings.database.store_backend,
                issue_service=type(issue_service).__name__)
    yield

    await issue_service.close()
    logger.info("niles_stopped")


# ──────────────────────────────────────────────────────────────
#  App
# ──────────────────────────────────────────────────────────────

app = FastAPI(
    title="Niles API",
    description="DevOps chat assistant: issue creation and job notifications",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ──────────────────────────────────────────────────────────────
#  Request/Response Models
# ──────────────────────────────────────────────────────────────

class InboundMessageRequest(BaseModel):
    conversation_id: str
    sender_id: str
    sender_name: str = ""
    text: str = ""
    type: ActivityType = ActivityType.MESSAGE
    message_id: Optional[str] = None
    members_added: list[ChannelAccount] = []
    entities: list[dict[str, Any]] = []


class NotificationRequest(BaseModel):
    payload: str


class JobCompleteRequest(BaseModel):
    message: str = ""


def _reply_view(activity: Activity) -> dict[str, Any]:
    return {
        "text": activity.text,
        "suggested_actions": [a.model_dump() for a in activity.suggested_actions],
    }


# ══════════════════════════════════════════════════════════════
#  HEALTH
# ══════════════════════════════════════════════════════════════

@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "bot": settings.bot.name,
        "chat": await chat_adapter.health_check(),
    }


# ══════════════════════════════════════════════════════════════
#  INBOUND MESSAGES
# ══════════════════════════════════════════════════════════════

@app.post("/api/messages")
async def receive_message(req: InboundMessageRequest):
    activity = Activity(
        type=req.type,
        channel_id=chat_adapter.channel_id,
        sender=ChannelAccount(id=req.sender_id, name=req.sender_name),
        recipient=chat_adapter.bot_account,
        conversation=ConversationAccount(id=req.conversation_id),
        text=req.text,
        members_added=req.members_added,
        entities=req.entities,
    )
    if req.message_id:
        activity.id = req.message_id

    try:
        replies = await chat_adapter.process_activity(activity, bot.on_turn)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Turn failed: {e}")
    return {"conversation_id": req.conversation_id, "replies": [_reply_view(r) for r in replies]}


# ══════════════════════════════════════════════════════════════
#  NOTIFICATIONS & JOBS
# ══════════════════════════════════════════════════════════════

@app.post("/api/notifications")
async def broadcast_notification(req: NotificationRequest):
    report = await notifier.notify_all(req.payload)
    return {"delivered": report.delivered, "failed": report.failed}


@app.post("/api/jobs/{job_id}/complete")
async def complete_job(job_id: str, req: JobCompleteRequest = None):
    job = await job_service.complete_job(job_id, req.message if req else "")
    if job is None:
        raise HTTPException(404, "Job not found")
    return job.model_dump(mode="json")


@app.get("/api/jobs")
async def list_jobs():
    return [j.model_dump(mode="json") for j in await job_service.job_log.list()]


@app.get("/api/channels")
async def list_channels():
    return [c.model_dump(mode="json") for c in await notifier.channel_log.list()]


# ══════════════════════════════════════════════════════════════
#  WEBSOCKET (real-time chat)
# ══════════════════════════════════════════════════════════════

@app.websocket("/ws/chat/{conversation_id}")
async def websocket_chat(websocket: WebSocket, conversation_id: str):
    """
    Real-time chat via WebSocket.

    Client sends JSON events:
      {"type": "message", "text": "hello", "sender_id": "..."}
      {"type": "conversationUpdate", "members_added": [{"id": "1", "name": "Niles"}]}
      {"type": "heartbeat"}

    Plain text frames are treated as messages. Bot replies, including
    proactive notifications queued while offline, arrive as JSON.
    """
    await websocket.accept()

    user_id = websocket.query_params.get("user_id", conversation_id)
    await chat_adapter.register_connection(conversation_id, websocket)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                event = json.loads(raw)
            except json.JSONDecodeError:
                event = {"type": "message", "text": raw}
            if not isinstance(event, dict):
                event = {"type": "message", "text": str(event)}

            activity = chat_adapter.handle_client_event(conversation_id, user_id, event)
            if activity is None:
                continue

            try:
                await chat_adapter.process_activity(activity, bot.on_turn)
            except Exception as e:
                # Already logged as turn_failed; keep the socket open
                await websocket.send_text(json.dumps({"type": "error", "error": str(e)}))

    except WebSocketDisconnect:
        await chat_adapter.remove_connection(conversation_id, websocket)
    except asyncio.CancelledError:
        await chat_adapter.remove_connection(conversation_id, websocket)
        raise
    except Exception as e:
        logger.error("websocket_error", conversation_id=conversation_id, error=str(e))
        await chat_adapter.remove_connection(conversation_id, websocket)


# ══════════════════════════════════════════════════════════════
#  Entry Point
# ══════════════════════════════════════════════════════════════

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

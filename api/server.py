from __future__ import annotations

import asyncio
import logging
import time
from functools import lru_cache
from typing import Optional
from xml.sax.saxutils import escape

from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
from dotenv import load_dotenv, find_dotenv

import intake.config as cfg
from intake import prompts as P
from intake.catalog import JsonCatalog
from intake.errors import CollaboratorUnavailable
from intake.input_helpers import normalize_key
from intake.logging import json_logger_middleware
from intake.pdf import generate_summary_pdf
from intake.service import IntakeService, TurnReply
from intake.store import InMemorySessionStore, SqliteSessionStore

from api.models import ChatRequest, ChatResponse, ErrorEnvelope

# Load environment (.env optional)
load_dotenv(find_dotenv())

logger = logging.getLogger(__name__)
settings = cfg.Settings()

app = FastAPI(title=cfg.APP_TITLE, version=cfg.APP_VERSION)

# CORS (wide-open by default; tighten in prod)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(json_logger_middleware())


@lru_cache(maxsize=1)
def _build_service() -> IntakeService:
    if settings.ENABLE_PERSISTENT_STORE:
        store = SqliteSessionStore(settings.STORE_DB_PATH)
    else:
        logger.warning("persistent store disabled; sessions live in process memory only")
        store = InMemorySessionStore()
    catalog = JsonCatalog.from_files(cfg.BODY_PARTS_PATH, cfg.SYMPTOMS_PATH)
    return IntakeService(store, tree=catalog, items=catalog)


def get_service() -> Optional[IntakeService]:
    """Process-wide service (store handle + reference catalogs), or None if unavailable."""
    try:
        return _build_service()
    except CollaboratorUnavailable as e:
        logger.error("intake service unavailable: %s", e)
        return None


async def _run_turn(
    request: Request,
    service: Optional[IntakeService],
    sender: str,
    text: str,
    message_id: Optional[str],
) -> TurnReply:
    """Run one turn under the per-turn deadline; always yields a reply.

    The deadline travels into the core, which writes nothing once it has passed,
    so a "busy" reply never hides a stored answer.
    """
    if service is None:
        request.state.unavailable = True
        return TurnReply(reply=P.UNAVAILABLE, key=normalize_key(sender), unavailable=True)
    deadline = time.monotonic() + cfg.TURN_TIMEOUT_SECONDS
    try:
        result = await asyncio.wait_for(
            run_in_threadpool(service.handle_turn, sender, text, message_id, deadline),
            timeout=cfg.TURN_TIMEOUT_SECONDS + cfg.TURN_GRACE_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.error("turn exceeded %.1fs deadline", cfg.TURN_TIMEOUT_SECONDS)
        request.state.timed_out = True
        return TurnReply(reply=P.BUSY, key=normalize_key(sender), timed_out=True)
    if result.timed_out:
        request.state.timed_out = True
        return result
    request.state.flow_state = result.flow_state
    request.state.replayed = result.replayed
    if result.command:
        request.state.command = result.command
    if result.unavailable:
        request.state.unavailable = True
    return result


def _twiml(text: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f"<Response><Message>{escape(text)}</Message></Response>"
    )


# ------------ Routes ------------


@app.get("/health")
def health() -> dict:
    return {
        "ok": True,
        "service": settings.APP_NAME,
        "env": settings.ENV,
        "version": cfg.APP_VERSION,
        "persistent_store": settings.ENABLE_PERSISTENT_STORE,
    }


@app.post("/chat", response_model=ChatResponse)
async def chat(payload: ChatRequest, request: Request, service: Optional[IntakeService] = Depends(get_service)):
    if not (payload.session_id or "").strip():
        raise HTTPException(status_code=400, detail="Missing 'session_id'")
    result = await _run_turn(request, service, payload.session_id, payload.message, payload.message_id)
    return ChatResponse(
        reply=result.reply,
        session_id=result.key,
        flow_state=result.flow_state,
        command=result.command,
        replayed=result.replayed,
    )


@app.post("/whatsapp")
async def whatsapp(
    request: Request,
    From: str = Form(""),
    Body: str = Form(""),
    MessageSid: Optional[str] = Form(None),
    service: Optional[IntakeService] = Depends(get_service),
):
    """Twilio-style webhook: form fields in, one TwiML message out."""
    result = await _run_turn(request, service, From, Body, MessageSid)
    return Response(content=_twiml(result.reply), media_type="text/xml")


@app.get("/sessions/{key}/record")
def session_record(key: str, service: Optional[IntakeService] = Depends(get_service)):
    if service is None:
        raise HTTPException(status_code=503, detail="Service temporarily unavailable")
    try:
        record = service.load_record(key)
    except CollaboratorUnavailable:
        raise HTTPException(status_code=503, detail="Session store temporarily unavailable")
    if record is None:
        raise HTTPException(status_code=404, detail="No intake for this conversation")
    return record.model_dump()


@app.get("/sessions/{key}/summary.pdf")
def session_summary_pdf(key: str, service: Optional[IntakeService] = Depends(get_service)):
    if service is None:
        raise HTTPException(status_code=503, detail="Service temporarily unavailable")
    try:
        record = service.load_record(key)
    except CollaboratorUnavailable:
        raise HTTPException(status_code=503, detail="Session store temporarily unavailable")
    if record is None:
        raise HTTPException(status_code=404, detail="No intake for this conversation")
    pdf_bytes = generate_summary_pdf(record)
    fname = f"intake_{record.conversation_key[-4:] or 'x'}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={fname}"},
    )


@app.get("/")
def root():
    return {"message": "PreDoctor Intake API. See /health, POST /chat, POST /whatsapp"}


# ------------ Exception Handlers ------------


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    env = ErrorEnvelope(
        code=str(exc.status_code),
        message=str(exc.detail or "HTTP error"),
        details={"path": str(request.url.path)},
    )
    return JSONResponse(status_code=exc.status_code, content=env.model_dump())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s", request.url.path)
    env = ErrorEnvelope(
        code="internal_error",
        message="Unexpected server error",
        details={"path": str(request.url.path)},
    )
    return JSONResponse(status_code=500, content=env.model_dump())

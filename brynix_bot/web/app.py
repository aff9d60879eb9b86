"""
FastAPI Web Application - Bot Health, QR and Outbound Send
===========================================================

Small HTTP surface next to the bot:

    GET  /           liveness text
    GET  /wa-qr      current pairing QR as PNG (503 until one exists)
    GET  /wa-status  {"status": <client state or cached supervisor state>}
    GET  /healthz    200 "ok" while CONNECTED/OPENING, else 503
    POST /wa-send    {"to": ..., "text": ...}

The bot is created by the lifespan and kept on app.state, so tests can
pass their own.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel

from .. import __version__
from ..application.bot import BrynixBot, build_bot
from ..infrastructure.whatsapp.messaging_provider import STATE_CONNECTED, STATE_OPENING

logger = logging.getLogger(__name__)

HEALTHY_STATES = {STATE_CONNECTED, STATE_OPENING}


# ── Models ─────────────────────────────────────────────────────────

class SendRequest(BaseModel):
    to: str
    text: str


class SendResponse(BaseModel):
    ok: bool
    to: str


class StatusResponse(BaseModel):
    status: str


# ── App ────────────────────────────────────────────────────────────

def _bot(request: Request) -> BrynixBot:
    return request.app.state.bot


def create_app(bot: Optional[BrynixBot] = None) -> FastAPI:
    """
    Build the FastAPI app. Without ``bot`` the production bot is built
    from environment settings when the app starts.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.bot is None:
            app.state.bot = build_bot()
        app.state.bot.start()
        logger.info("Bot started")
        yield
        app.state.bot.stop()
        logger.info("Bot stopped")

    app = FastAPI(
        title="BRYNIX Bot",
        description="WhatsApp project assistant",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.bot = bot

    @app.get("/", response_class=PlainTextResponse)
    def index():
        return "BRYNIX WhatsApp Bot up ✅"

    @app.get("/wa-qr")
    def wa_qr(request: Request):
        qr = _bot(request).supervisor.last_qr
        if qr is None or not qr.png:
            raise HTTPException(status_code=503, detail="QR ainda não gerado. Recarregue em alguns segundos.")
        return Response(content=qr.png, media_type="image/png")

    @app.get("/wa-status", response_model=StatusResponse)
    def wa_status(request: Request):
        return StatusResponse(status=_bot(request).supervisor.remote_state())

    @app.get("/healthz", response_class=PlainTextResponse)
    def healthz(request: Request):
        state = _bot(request).supervisor.remote_state()
        if state in HEALTHY_STATES:
            return PlainTextResponse("ok")
        return PlainTextResponse(f"state={state}", status_code=503)

    @app.post("/wa-send", response_model=SendResponse)
    def wa_send(payload: SendRequest, request: Request):
        if not payload.to.strip() or not payload.text.strip():
            raise HTTPException(status_code=400, detail="'to' and 'text' are required")
        if not _bot(request).supervisor.send(payload.to.strip(), payload.text):
            raise HTTPException(status_code=502, detail="WhatsApp client could not send the message")
        return SendResponse(ok=True, to=payload.to.strip())

    return app

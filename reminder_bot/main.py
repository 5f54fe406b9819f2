"""FastAPI application: entry point for the reminder service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable
from xml.sax.saxutils import escape

import httpx
import telegram
from fastapi import FastAPI, Form, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from telegram.error import TelegramError

from reminder_bot.config import Settings, get_settings
from reminder_bot.domain.errors import StoreUnavailable
from reminder_bot.domain.models import CycleReport, IncomingMessage, IntakeResponse, Reminder
from reminder_bot.repos.base import ReminderRepository
from reminder_bot.repos.memory import MemoryReminderRepository
from reminder_bot.repos.sqlite import SqliteReminderRepository
from reminder_bot.services.delivery import (
    AdapterRegistry,
    LogAdapter,
    TelegramAdapter,
    WhatsAppAdapter,
    build_telegram_bot,
)
from reminder_bot.services.dispatcher import Dispatcher, utcnow
from reminder_bot.services.intake import HELP, WELCOME, handle_message

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> ReminderRepository:
    if settings.store_backend == "memory":
        return MemoryReminderRepository()
    return SqliteReminderRepository(settings.database_path)


def build_registry(
    settings: Settings,
    client: httpx.AsyncClient,
    bot: telegram.Bot | None = None,
) -> AdapterRegistry:
    """Register one adapter per configured channel; ``log`` is always present."""
    registry = AdapterRegistry([LogAdapter()])
    if bot is not None:
        registry.register(TelegramAdapter(bot))
    if settings.whatsapp_configured:
        registry.register(
            WhatsAppAdapter(
                settings.twilio_account_sid,
                settings.twilio_auth_token,
                settings.twilio_whatsapp_from,
                client,
            )
        )
    logger.info("Delivery channels: %s", ", ".join(registry.channels()))
    return registry


def _telegram_command(message: telegram.Message) -> str | None:
    """Return the leading bot command, lowercased and without an @botname suffix."""
    for entity, value in message.parse_entities([telegram.MessageEntity.BOT_COMMAND]).items():
        if entity.offset == 0:
            return value.split("@")[0].lower()
    return None


def _twiml(message: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f"<Response><Message>{escape(message)}</Message></Response>"
    )


def create_app(
    settings: Settings | None = None,
    *,
    store: ReminderRepository | None = None,
    registry: AdapterRegistry | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> FastAPI:
    """Build the application with its collaborators.

    Anything not passed in is built from *settings*.  Run with
    ``uvicorn reminder_bot.main:create_app --factory``.
    """
    settings = settings or get_settings()
    store = store if store is not None else build_store(settings)

    client: httpx.AsyncClient | None = None
    bot: telegram.Bot | None = None
    if registry is None:
        client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        if settings.telegram_bot_token:
            bot = build_telegram_bot(settings.telegram_bot_token, settings.http_timeout_seconds)
        registry = build_registry(settings, client, bot)

    dispatcher = Dispatcher(
        store,
        registry,
        interval_seconds=settings.poll_interval_seconds,
        clock=clock,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if bot is not None:
            try:
                await bot.initialize()
            except TelegramError as exc:
                # send_message still works; each delivery reports its own failure.
                logger.warning("Telegram bot initialisation failed: %s", exc)
        if settings.dispatcher_enabled:
            dispatcher.start()
        try:
            yield
        finally:
            if dispatcher.running:
                await dispatcher.stop()
            if bot is not None:
                await bot.shutdown()
            if client is not None:
                await client.aclose()

    app = FastAPI(title="Reminder Service", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.registry = registry
    app.state.dispatcher = dispatcher

    def _intake(sender: str, text: str) -> IntakeResponse:
        return handle_message(
            sender,
            text,
            clock(),
            store,
            tz=settings.tz,
            fallback=settings.dateparser_fallback,
        )

    @app.exception_handler(StoreUnavailable)
    async def _store_unavailable(request: Request, exc: StoreUnavailable) -> JSONResponse:
        logger.error("Store unavailable during %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": "Reminder store unavailable"})

    # ── Routes ────────────────────────────────────────────────────────────

    @app.get("/", response_class=PlainTextResponse)
    def index() -> str:
        return "Reminder service is running"

    @app.post("/messages", response_model=IntakeResponse)
    def receive_message(payload: IncomingMessage) -> IntakeResponse:
        """Accept a chat message and schedule the reminder it describes."""
        return _intake(payload.sender, payload.text)

    @app.post("/webhook/whatsapp")
    def whatsapp_webhook(
        sender: str = Form(..., alias="From"),
        body: str = Form("", alias="Body"),
    ) -> Response:
        """Twilio WhatsApp webhook; answers with TwiML."""
        result = _intake(sender, body)
        return Response(content=_twiml(result.reply), media_type="text/xml")

    @app.post("/webhook/telegram")
    def telegram_webhook(payload: dict) -> dict:
        """Telegram bot webhook; answers with a ``sendMessage`` method payload.

        Updates that carry no text message, or that do not decode as a
        Telegram ``Update``, are acknowledged with an empty body so Telegram
        does not redeliver them.
        """
        try:
            update = telegram.Update.de_json(payload, bot)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed Telegram update: %s", exc)
            return {}

        message = update.effective_message if update else None
        if message is None or not message.text or message.chat is None:
            return {}

        chat_id = message.chat.id
        text = message.text.strip()
        command = _telegram_command(message)
        if command == "/start":
            reply = WELCOME
        elif command == "/help":
            reply = HELP
        else:
            reply = _intake(f"telegram:{chat_id}", text).reply
        return {"method": "sendMessage", "chat_id": chat_id, "text": reply}

    @app.get("/reminders", response_model=list[Reminder])
    def list_reminders(recipient: str | None = None) -> list[Reminder]:
        """Return stored reminders, optionally for one recipient."""
        if recipient:
            return store.list_for_recipient(recipient)
        return store.list_all()

    @app.get("/reminders/{reminder_id}", response_model=Reminder)
    def get_reminder(reminder_id: str) -> Reminder:
        reminder = store.get(reminder_id)
        if reminder is None:
            raise HTTPException(status_code=404, detail="Reminder not found")
        return reminder

    @app.post("/tick", response_model=CycleReport)
    async def tick(now: datetime | None = None) -> CycleReport:
        """Run one dispatcher cycle immediately.

        Pass *now* to control the clock; naive values are taken as UTC.
        """
        if now is not None and now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return await dispatcher.run_cycle(now)

    return app

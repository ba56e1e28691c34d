from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Tuple

from aika import commands
from aika import jid as jids
from aika.clients.transport import InboundMessage
from aika.config.persona import DISABLE_RESPONSE
from aika.memory.cache.manager import MEDIA_IMAGE, MEDIA_KINDS, MEDIA_VIDEO
from aika.memory.store.errors import NotFoundError, StorageError
from aika.memory.store.settings import SettingsRecord

if TYPE_CHECKING:
    from aika.bot import Bot

logger = logging.getLogger(__name__)

TOO_LONG_NOTICE = "> Your message is too long for me to read, try something shorter."
HISTORY_UNAVAILABLE_NOTICE = "> History is unavailable right now, try again later."
GENERATION_FAILED_NOTICE = "> Sorry, something went wrong while I was thinking."
MEDIA_FAILED_NOTICE = "> I couldn't open that file, try sending it again."

Media = Tuple[bytes | str | None, str | None]


async def _resolve_settings(bot: "Bot", message: InboundMessage) -> SettingsRecord | None:
    try:
        return await bot.settings.get(message.chat_jid)
    except NotFoundError:
        if not message.is_group:
            # Private chats opt in explicitly with the use-ai command
            return None
        record = SettingsRecord.default(
            message.chat_jid,
            name=message.group_name,
            owner_jid=jids.normalize_or_empty(message.group_owner),
        )
        await bot.settings.upsert(message.chat_jid, record)
        logger.info("Registered default settings for group %s", message.chat_jid)
        return record


async def _prepare_media(bot: "Bot", message: InboundMessage) -> Media:
    """
    Return the ``(media, kind)`` pair to record for ``message``.

    Unsupported kinds are dropped so the text still goes through. Video
    bytes are uploaded and replaced by the hosted URI.

    :raises Exception: whatever the uploader raises.
    """
    kind = (message.media_kind or "").lower() or None
    if kind is None or message.media is None:
        return None, None
    if kind not in MEDIA_KINDS:
        logger.info("Ignoring unsupported %s attachment in %s", kind, message.chat_jid)
        return None, None

    media = message.media
    if kind == MEDIA_VIDEO and isinstance(media, (bytes, bytearray)):
        if bot.upload is None:
            raise RuntimeError("no uploader configured for video")
        media = await bot.upload(bytes(media), bot.cache.mime_type_for(MEDIA_VIDEO))
    elif kind == MEDIA_IMAGE and isinstance(media, bytearray):
        media = bytes(media)
    return media, kind


async def handle(bot: "Bot", message: InboundMessage) -> str | None:
    """
    Handle one inbound chat message.

    Returns the reply text that was delivered, or ``None`` when the message
    was a command, ignored, or answered with a notice.
    """
    # 1) Normalize addresses so cache and settings keys are device-independent
    message = replace(
        message,
        chat_jid=jids.normalize(message.chat_jid),
        sender_jid=jids.normalize(message.sender_jid),
    )
    chat = message.chat_jid

    if jids.same_user(message.sender_jid, bot.bot_number):
        return None

    # 2) Commands short-circuit everything else
    if await commands.dispatch(bot, message):
        return None

    # 3) Settings gate
    try:
        settings = await _resolve_settings(bot, message)
    except StorageError as exc:
        logger.error("Settings unavailable for %s: %s", chat, exc)
        return None
    if settings is None or not settings.use_ai:
        return None

    text = message.text or ""
    if len(text) > bot.max_turn_chars:
        logger.info("Rejecting %d-char message in %s", len(text), chat)
        await bot.reply(message, TOO_LONG_NOTICE)
        return None

    # 4) Attachments
    try:
        media, media_kind = await _prepare_media(bot, message)
    except Exception as exc:
        logger.error("Failed to prepare %s attachment in %s: %s", message.media_kind, chat, exc)
        await bot.reply(message, MEDIA_FAILED_NOTICE)
        return None
    if not text and media is None:
        return None

    # 5) Record the user turn
    sender = message.sender_name or message.sender_jid.split("@", 1)[0]
    try:
        await bot.cache.add_turn(chat, "user", f"{sender}: {text}", media=media, media_kind=media_kind)
    except StorageError as exc:
        logger.error("Failed to load history for %s: %s", chat, exc)
        await bot.reply(message, HISTORY_UNAVAILABLE_NOTICE)
        return None
    except (TypeError, ValueError) as exc:
        logger.error("Unusable %s attachment in %s: %s", media_kind, chat, exc)
        await bot.reply(message, MEDIA_FAILED_NOTICE)
        return None

    # 6) Ask the backend
    request = await bot.cache.get_request(chat)
    try:
        reply_text = await bot.generate(request)
    except Exception as exc:
        logger.error("Generation failed for %s: %s", chat, exc)
        await bot.reply(message, GENERATION_FAILED_NOTICE)
        return None

    if reply_text.strip().upper() == DISABLE_RESPONSE:
        logger.info("Model chose not to answer in %s", chat)
        return None

    # 7) Record, deliver, persist; the model turn is cached even if delivery
    # fails, and persistence never blocks delivery
    await bot.cache.add_turn(chat, "model", reply_text)
    await bot.reply(message, reply_text)
    try:
        await bot.cache.save(chat)
    except StorageError as exc:
        logger.error("Failed to save conversation %s: %s", chat, exc)

    return reply_text

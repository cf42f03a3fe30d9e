from __future__ import annotations

import logging
from typing import Any

import discord

from ...services.responder import ERROR_REPLY
from ..common import (
    chunk_text,
    conversation_members,
    is_directed_to_others,
    mention_list,
    should_process_public_message,
    truncate,
)

logger = logging.getLogger("orenchi_bot")

FIRST_MESSAGE_FALLBACK = "Hello! I've moved our conversation to this private channel. How can I help you today?"


class MessageMixin:
    async def _send_chunks(self, channel: discord.abc.Messageable, text: str) -> None:
        for chunk in chunk_text(text, 1900):
            await channel.send(chunk)

    def _is_private_chat(self, message: discord.Message) -> bool:
        if message.guild is None:
            return False
        name = getattr(message.channel, "name", None)
        return bool(name) and self.lifecycle.is_managed_channel(name)

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return
        if self.user is None:
            return

        if self._is_private_chat(message):
            await self._handle_private_message(message)
            return

        if message.guild is None or is_directed_to_others(message, self.user.id):
            return
        if not should_process_public_message(
            message,
            self.user.id,
            self.settings.respond_to_public_no_mention,
        ):
            return
        await self._move_to_private_channel(message)

    async def _handle_private_message(self, message: discord.Message) -> None:
        logger.info("Processing message in private channel: %s", message.channel.name)
        try:
            reply = await self.orchestrator.handle_message(
                str(message.author.id),
                message.content,
                message.channel,
                list(message.attachments),
            )
            await self._send_chunks(message.channel, reply)
        except Exception as exc:
            logger.exception("Text turn failed: %s", exc)
            await message.channel.send(ERROR_REPLY)

    async def _move_to_private_channel(self, message: discord.Message) -> None:
        author = message.author
        logger.info(
            "Moving conversation from %s to a private channel: \"%s\"",
            getattr(message.channel, "name", "unknown channel"),
            truncate(message.content, 120),
        )
        members = conversation_members(author, message.mentions, self.user.id)
        try:
            channel = await self.lifecycle.create(
                message.guild,
                members,
                bot_id=self.user.id,
                seed_message=message.content,
            )
            public_reply = await self.orchestrator.generate_public_response(message.content)
            await message.reply(f"{mention_list(members)} {public_reply} {channel.mention}")
        except Exception as exc:
            logger.exception("Failed to move conversation to a private channel: %s", exc)
            await message.reply(
                f"<@{author.id}> Sorry, I couldn't create a private channel for our conversation. "
                "Please try again later."
            )
            return

        self._spawn_background(
            self._send_first_message(channel, str(author.id), message.content),
            name=f"first-message-{channel.id}",
        )
        logger.info("Created private channel for %s: %s", author, channel.name)

    async def _send_first_message(self, channel: Any, user_id: str, content: str) -> None:
        try:
            reply = await self.orchestrator.generate_first_message_response(user_id, content)
            await self._send_chunks(channel, reply)
        except Exception:
            logger.exception("Error sending first message response to private channel %s", channel.name)
            await channel.send(FIRST_MESSAGE_FALLBACK)

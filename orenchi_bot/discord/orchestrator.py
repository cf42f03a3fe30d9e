from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import timedelta
from typing import Any, Optional, Sequence

from ..memory.history import ConversationHistory, ConversationTurn
from ..memory.personality_store import PersonalityStore
from ..services.openrouter_client import CompletionClient
from ..services.responder import ResponseGenerator
from ..services.summarizer import ChannelSummarizer
from .channels import ChannelLifecycleManager
from .common import truncate

logger = logging.getLogger("orenchi_bot")

PUBLIC_RESPONSE_PROMPT = (
    "You are a helpful AI assistant. Generate exactly one short, friendly one-line response "
    "indicating we're moving to a private channel. Keep it concise and varied. Only provide one response."
)
PUBLIC_PROMPT_CHARS = 100
PERSONALITY_USAGE = "/personality <personality text>"


class ChatOrchestrator:
    """Turns Discord events into replies.

    Holds no per-channel state: every turn rebuilds its history from the
    channel itself, so concurrent turns in the same channel are independent.
    """

    def __init__(
        self,
        store: PersonalityStore,
        responder: ResponseGenerator,
        summarizer: ChannelSummarizer,
        lifecycle: ChannelLifecycleManager,
        client: Optional[CompletionClient] = None,
        *,
        history_limit: int = 10,
        rename_cadence: int = 6,
        typing_interval_seconds: float = 8.0,
        inactivity_threshold: timedelta = timedelta(hours=24),
    ) -> None:
        self.store = store
        self.responder = responder
        self.summarizer = summarizer
        self.lifecycle = lifecycle
        self.client = client
        self.history_limit = history_limit
        self.rename_cadence = rename_cadence
        self.typing_interval_seconds = typing_interval_seconds
        self.inactivity_threshold = inactivity_threshold
        self.bot_user_id: Optional[int] = None

    async def _typing_loop(self, channel: Any) -> None:
        while True:
            try:
                await channel.typing()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Failed to send typing indicator: %s", exc)
            await asyncio.sleep(self.typing_interval_seconds)

    async def _stop_typing(self, task: asyncio.Task[None] | None) -> None:
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def get_personality(self, user_id: str) -> Optional[str]:
        try:
            return await self.store.get_personality(str(user_id))
        except Exception:
            logger.exception("Failed to load personality for user %s", user_id)
            return None

    async def _fetch_turns(self, channel: Any) -> tuple[list[ConversationTurn], int]:
        """Last messages of ``channel`` as chronological turns, plus the raw fetched count."""
        turns: list[ConversationTurn] = []
        fetched = 0
        async for message in channel.history(limit=self.history_limit):
            fetched += 1
            author = message.author
            if self.bot_user_id is not None:
                is_self = author.id == self.bot_user_id
            else:
                is_self = bool(getattr(author, "bot", False))
            if getattr(author, "bot", False) and not is_self:
                continue
            turns.append(ConversationTurn(role="assistant" if is_self else "user", content=message.content))
        turns.reverse()
        return turns, fetched

    def _fallback_turns(self, content: str) -> list[ConversationTurn]:
        history = ConversationHistory(self.history_limit)
        history.append(ConversationTurn(role="user", content=content))
        return history.snapshot()

    @staticmethod
    def _first_image_url(attachments: Optional[Sequence[Any]]) -> Optional[str]:
        for attachment in attachments or []:
            content_type = str(getattr(attachment, "content_type", None) or "")
            url = getattr(attachment, "url", None)
            if content_type.startswith("image/") and url:
                return str(url)
        return None

    def should_rename(self, channel: Any, fetched_count: int) -> bool:
        """Once the channel holds at least ``rename_cadence`` messages, until the marker is in its name."""
        if channel is None:
            return False
        name = str(getattr(channel, "name", "") or "")
        if not self.lifecycle.is_managed_channel(name) or self.lifecycle.is_renamed(name):
            return False
        return fetched_count >= self.rename_cadence

    async def handle_message(
        self,
        user_id: str,
        content: str,
        channel: Any = None,
        attachments: Optional[Sequence[Any]] = None,
    ) -> str:
        logger.info(
            "[msg.user] channel=%s user=%s text=\"%s\"",
            getattr(channel, "name", "none"),
            user_id,
            truncate(content, 50),
        )
        typing_task: asyncio.Task[None] | None = None
        if channel is not None:
            typing_task = asyncio.create_task(self._typing_loop(channel), name="typing-indicator")

        fetched_count = 0
        try:
            personality = await self.get_personality(user_id)
            if personality:
                logger.info("Using personality for user %s: %s", user_id, truncate(personality, 50))

            turns: list[ConversationTurn] = []
            if channel is not None:
                try:
                    turns, fetched_count = await self._fetch_turns(channel)
                    logger.info("Fetched %s history items", len(turns))
                except Exception:
                    logger.exception("Failed to fetch message history")
                    turns, fetched_count = [], 0
            if not turns:
                turns = self._fallback_turns(content)

            image_url = self._first_image_url(attachments)
            if image_url:
                reply = await self.responder.process_image(image_url, turns, personality)
            else:
                reply = await self.responder.generate(turns, personality)
        finally:
            await self._stop_typing(typing_task)

        logger.info("[msg.bot] text=\"%s\"", truncate(reply, 50))

        if self.should_rename(channel, fetched_count):
            try:
                await self.lifecycle.rename_with_summary(channel, self.summarizer, self.bot_user_id)
            except Exception:
                logger.exception("Failed to rename channel %s", getattr(channel, "name", "?"))
        return reply

    async def handle_personality_command(self, user_id: str, text: Optional[str]) -> str:
        if text is None:
            current = await self.get_personality(user_id)
            if current:
                return f"Current personality: {current}\n\nTo set a new personality, use: {PERSONALITY_USAGE}"
            return f"No personality set. To set a personality, use: {PERSONALITY_USAGE}"

        try:
            await self.store.set_personality(str(user_id), text)
        except Exception:
            logger.exception("Failed to store personality for user %s", user_id)
            return "Failed to update personality. Please try again."
        logger.info("Personality updated for user %s", user_id)
        return "Personality updated!"

    async def handle_start_chat_command(self, user: Any, guild: Any) -> str:
        try:
            channel = await self.lifecycle.create(guild, [user], bot_id=self.bot_user_id)
        except Exception:
            logger.exception("Failed to create private channel for %s", getattr(user, "name", user.id))
            return "Sorry, I couldn't create a private AI chat channel for you. Please try again later."
        return f"I've created a private AI chat channel for you: {channel.mention}"

    async def handle_end_chat_command(self, user: Any, guild: Any, channel: Any = None) -> str:
        if channel is not None and self.lifecycle.is_managed_channel(str(getattr(channel, "name", "") or "")):
            if await self.lifecycle.delete(channel):
                return "This private AI chat channel has been deleted."
            return "Sorry, I couldn't delete this private AI chat channel. Please try again later."

        owned = self.lifecycle.find_by_owner(guild.text_channels, user.name)
        if owned is None:
            return "You don't have an active private AI chat channel."
        if await self.lifecycle.delete(owned):
            return "Your private AI chat channel has been deleted."
        return "Sorry, I couldn't delete your private AI chat channel. Please try again later."

    async def cleanup_inactive_channels(self, guild: Any) -> int:
        deleted = await self.lifecycle.cleanup_inactive(guild, self.inactivity_threshold)
        if deleted:
            logger.info("Deleted %s inactive channels in guild %s", deleted, getattr(guild, "id", "?"))
        return deleted

    async def generate_public_response(self, user_message: str) -> str:
        prompt = truncate(user_message, PUBLIC_PROMPT_CHARS)
        turns = [ConversationTurn(role="user", content=prompt)]
        return await self.responder.generate(turns, PUBLIC_RESPONSE_PROMPT, search_if_needed=False)

    async def generate_first_message_response(self, user_id: str, message: str) -> str:
        personality = await self.get_personality(user_id)
        turns = [ConversationTurn(role="user", content=message)]
        return await self.responder.generate(turns, personality)

    async def close(self) -> None:
        await self.store.close()
        if self.client is not None:
            await self.client.close()

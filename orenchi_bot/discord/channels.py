from __future__ import annotations

import logging
import random
import re
import time
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Iterable, Optional, Sequence

import discord

from ..memory.history import ConversationTurn

if TYPE_CHECKING:
    from ..services.summarizer import ChannelSummarizer

logger = logging.getLogger("orenchi_bot")

DEFAULT_CHANNEL_PREFIX = "ai-chat-"
WELCOME_MESSAGE_SUFFIX = "You can customize my personality with the /personality command."
# Sanitized seeds are ASCII-only, so this marker only ever appears in renamed channels.
RENAMED_MARKER = "💬"
SUFFIX_ALPHABET = "abcdfghijklmnopqrstuvwxyzABCDFGHIJKLMNPQRSTUVWXYZ0123456789"
RENAME_HISTORY_LIMIT = 10

_UNSAFE_SEED_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def sanitize_seed(username: str) -> str:
    return _UNSAFE_SEED_CHARS.sub("-", username)[:10]


def random_suffix(length: int = 4) -> str:
    return "".join(random.choice(SUFFIX_ALPHABET) for _ in range(length))


class ChannelLifecycleManager:
    """Naming, creation, renaming and expiry of private AI chat channels.

    Names look like ``ai-chat-<unix seconds>-<seed>-<rand4>``. Two calls in the
    same second only differ by the random suffix, so a collision is possible
    and accepted.
    """

    def __init__(self, prefix: str = DEFAULT_CHANNEL_PREFIX) -> None:
        self.prefix = prefix

    def generate_name(self, seed_username: str) -> str:
        timestamp = int(time.time())
        return f"{self.prefix}{timestamp}-{sanitize_seed(seed_username)}-{random_suffix()}"

    def is_managed_channel(self, name: str) -> bool:
        return name.startswith(self.prefix)

    @staticmethod
    def is_renamed(name: str) -> bool:
        return RENAMED_MARKER in name

    def find_by_owner(self, channels: Iterable[Any], username: str) -> Optional[Any]:
        """First channel owned by ``username``, in the caller's iteration order.

        Discord lowercases channel names, so the comparison is case-insensitive.
        Names from the older ``<prefix><seed>-...`` layout still match.
        """
        seed = re.escape(sanitize_seed(username).lower())
        prefix = re.escape(self.prefix.lower())
        pattern = re.compile(rf"^{prefix}(?:\d+-)?{seed}-")
        for channel in channels:
            name = str(getattr(channel, "name", "") or "").lower()
            if pattern.match(name):
                return channel
        return None

    @staticmethod
    def welcome_message(members: Sequence[Any], seed_message: Optional[str] = None) -> str:
        if seed_message:
            return f"Q: {seed_message}"
        mentions = ", ".join(f"<@{member.id}>" for member in members)
        return f"Hello {mentions}! This is your private chat channel with the AI assistant. {WELCOME_MESSAGE_SUFFIX}"

    async def create(
        self,
        guild: Any,
        members: Sequence[Any],
        bot_id: Optional[int] = None,
        seed_message: Optional[str] = None,
    ) -> Any:
        owner = members[0] if members else None
        name = self.generate_name(getattr(owner, "name", None) or "unknown")
        logger.info(
            "Creating private channel %s for users: %s",
            name,
            ", ".join(str(getattr(member, "name", member.id)) for member in members),
        )

        member_access = discord.PermissionOverwrite(
            view_channel=True,
            send_messages=True,
            read_message_history=True,
        )
        overwrites: dict[Any, discord.PermissionOverwrite] = {
            guild.default_role: discord.PermissionOverwrite(view_channel=False),
        }
        for member in members:
            overwrites[member] = member_access
        if bot_id is not None:
            overwrites[discord.Object(id=bot_id)] = discord.PermissionOverwrite(
                view_channel=True,
                send_messages=True,
                read_message_history=True,
                manage_channels=True,
            )

        channel = await guild.create_text_channel(name, overwrites=overwrites)
        await channel.send(self.welcome_message(members, seed_message))
        logger.info("Private channel created: %s (%s)", channel.name, channel.id)
        return channel

    async def delete(self, channel: Any) -> bool:
        try:
            await channel.delete(reason="Private AI chat ended")
        except Exception:
            logger.exception("Failed to delete channel %s", getattr(channel, "name", "?"))
            return False
        logger.info("Deleted channel %s", getattr(channel, "name", "?"))
        return True

    async def is_inactive(self, channel: Any, threshold: timedelta) -> bool:
        try:
            last_message = None
            async for message in channel.history(limit=1):
                last_message = message
            reference: datetime = last_message.created_at if last_message is not None else channel.created_at
            return datetime.now(timezone.utc) - reference > threshold
        except Exception:
            logger.exception("Failed to check inactivity for channel %s", getattr(channel, "name", "?"))
            return False

    async def cleanup_inactive(self, guild: Any, threshold: timedelta) -> int:
        deleted = 0
        for channel in list(guild.text_channels):
            if not self.is_managed_channel(channel.name):
                continue
            try:
                if await self.is_inactive(channel, threshold) and await self.delete(channel):
                    deleted += 1
            except Exception:
                logger.exception("Cleanup failed for channel %s", channel.name)
        return deleted

    async def rename_with_summary(
        self,
        channel: Any,
        summarizer: "ChannelSummarizer",
        bot_user_id: Optional[int] = None,
    ) -> str:
        turns: list[ConversationTurn] = []
        async for message in channel.history(limit=RENAME_HISTORY_LIMIT):
            if bot_user_id is not None:
                from_bot = message.author.id == bot_user_id
            else:
                from_bot = bool(getattr(message.author, "bot", False))
            turns.append(ConversationTurn(role="assistant" if from_bot else "user", content=message.content))
        turns.reverse()

        summary = await summarizer.summarize(turns)
        new_name = f"{self.prefix}{int(time.time())}-{RENAMED_MARKER}{summary}-{random_suffix()}"
        await channel.edit(name=new_name)
        logger.info("Renamed channel %s to %s", channel.id, new_name)
        return new_name

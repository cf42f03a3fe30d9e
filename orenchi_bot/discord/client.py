from __future__ import annotations

import asyncio
import logging

import discord
from discord import app_commands

from ..config import Settings
from ..memory.personality_store import PersonalityStore
from ..services.openrouter_client import OpenRouterClient
from .channels import ChannelLifecycleManager
from .mixins.commands_mixin import CommandsMixin
from .mixins.message_mixin import MessageMixin
from .mixins.workers_mixin import WorkersMixin
from .orchestrator import ChatOrchestrator

logger = logging.getLogger("orenchi_bot")


class OrenchiDiscordBot(
    CommandsMixin,
    MessageMixin,
    WorkersMixin,
    discord.Client,
):
    def __init__(
        self,
        settings: Settings,
        orchestrator: ChatOrchestrator,
        store: PersonalityStore,
        llm: OpenRouterClient,
    ) -> None:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.guild_messages = True
        intents.message_content = True

        super().__init__(intents=intents)

        self.settings = settings
        self.orchestrator = orchestrator
        self.lifecycle: ChannelLifecycleManager = orchestrator.lifecycle
        self.store = store
        self.llm = llm

        self.tree = app_commands.CommandTree(self)
        self._register_commands()

        self.cleanup_task: asyncio.Task[None] | None = None
        self.background_tasks: set[asyncio.Task[None]] = set()

    async def setup_hook(self) -> None:
        if self.user:
            self.orchestrator.bot_user_id = self.user.id
        await self.store.init()
        await self.llm.start()
        self.cleanup_task = asyncio.create_task(self._cleanup_loop(), name="channel-cleanup")
        try:
            synced = await self.tree.sync()
            logger.info("Synced %s application commands", len(synced))
        except discord.HTTPException as exc:
            logger.error("Command sync failed: %s", exc)

    async def close(self) -> None:
        await self._cancel_task(self.cleanup_task)
        for task in list(self.background_tasks):
            await self._cancel_task(task)

        await self._run_shutdown_step("orchestrator.close", self.orchestrator.close(), timeout=6.0)
        await self._run_shutdown_step("discord.Client.close", super().close(), timeout=6.0)

    async def on_ready(self) -> None:
        if self.user:
            self.orchestrator.bot_user_id = self.user.id
            logger.info("Connected as %s (%s)", self.user, self.user.id)

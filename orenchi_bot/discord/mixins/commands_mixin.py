from __future__ import annotations

import logging
from typing import Any, Optional

import discord
from discord import app_commands

logger = logging.getLogger("orenchi_bot")

GUILD_ONLY_REPLY = "This command can only be used in a server."
COMMAND_ERROR_REPLY = "Sorry, I encountered an error while processing your request."
# Unknown Channel / Unknown Interaction: expected once the invoking channel is gone.
EXPECTED_AFTER_DELETE_CODES = frozenset({10003, 10062})


class CommandsMixin:
    def _register_commands(self) -> None:
        @self.tree.command(name="personality", description="Set or show the AI personality used for your chats")
        @app_commands.describe(text="New personality text. Leave empty to show the current one.")
        async def personality(interaction: discord.Interaction, text: Optional[str] = None) -> None:
            await self._on_personality_command(interaction, text)

        @self.tree.command(name="start-ai-chat", description="Create a private AI chat channel for you")
        async def start_ai_chat(interaction: discord.Interaction) -> None:
            await self._on_start_chat_command(interaction)

        @self.tree.command(name="end-ai-chat", description="Delete your private AI chat channel")
        async def end_ai_chat(interaction: discord.Interaction) -> None:
            await self._on_end_chat_command(interaction)

    async def _reply(self, interaction: Any, text: str) -> None:
        if interaction.response.is_done():
            await interaction.followup.send(text, ephemeral=True)
        else:
            await interaction.response.send_message(text, ephemeral=True)

    async def _on_personality_command(self, interaction: Any, text: Optional[str]) -> None:
        logger.info("Handling personality command for user: %s", interaction.user)
        reply = await self.orchestrator.handle_personality_command(str(interaction.user.id), text)
        await self._reply(interaction, reply)

    async def _on_start_chat_command(self, interaction: Any) -> None:
        if interaction.guild is None:
            await self._reply(interaction, GUILD_ONLY_REPLY)
            return
        logger.info("Starting AI chat for user: %s", interaction.user)
        await interaction.response.defer(ephemeral=True, thinking=True)
        reply = await self.orchestrator.handle_start_chat_command(interaction.user, interaction.guild)
        await self._reply(interaction, reply)

    async def _on_end_chat_command(self, interaction: Any) -> None:
        if interaction.guild is None:
            await self._reply(interaction, GUILD_ONLY_REPLY)
            return
        logger.info("Ending AI chat for user: %s", interaction.user)
        try:
            await interaction.response.defer(ephemeral=True, thinking=True)
            reply = await self.orchestrator.handle_end_chat_command(
                interaction.user,
                interaction.guild,
                interaction.channel,
            )
            await self._reply(interaction, reply)
        except discord.HTTPException as exc:
            if exc.code in EXPECTED_AFTER_DELETE_CODES:
                logger.info("Could not answer %s after channel deletion (code=%s)", interaction.user, exc.code)
                return
            logger.exception("end-ai-chat failed for user %s", interaction.user)
            await self._send_command_error(interaction)
        except Exception:
            logger.exception("end-ai-chat failed for user %s", interaction.user)
            await self._send_command_error(interaction)

    async def _send_command_error(self, interaction: Any) -> None:
        try:
            await self._reply(interaction, COMMAND_ERROR_REPLY)
        except discord.HTTPException as exc:
            if exc.code in EXPECTED_AFTER_DELETE_CODES:
                logger.info("Could not send error response to %s (code=%s)", interaction.user, exc.code)
            else:
                logger.warning("Could not send error response to %s: %s", interaction.user, exc)

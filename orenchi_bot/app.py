from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import timedelta

from .config import Settings
from .discord.channels import ChannelLifecycleManager
from .discord.client import OrenchiDiscordBot
from .discord.orchestrator import ChatOrchestrator
from .memory.personality_store import SQLitePersonalityStore
from .services.openrouter_client import OpenRouterClient
from .services.responder import ResponseGenerator
from .services.summarizer import ChannelSummarizer
from .services.web_search import WebSearchRouter

logger = logging.getLogger("orenchi_bot")


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    logging.getLogger("discord.gateway").setLevel(logging.WARNING)
    logging.getLogger("discord.http").setLevel(logging.WARNING)


def build_orchestrator(settings: Settings) -> tuple[ChatOrchestrator, SQLitePersonalityStore, OpenRouterClient]:
    store = SQLitePersonalityStore(settings.sqlite_path)
    llm = OpenRouterClient(
        api_key=settings.openrouter_api_key,
        timeout_seconds=settings.openrouter_timeout_seconds,
        base_url=settings.openrouter_base_url,
        app_title=settings.openrouter_app_title,
        retries=settings.openrouter_retries,
    )
    router = WebSearchRouter(llm, settings.router_model, max_tokens=settings.aux_max_tokens)
    responder = ResponseGenerator(
        llm,
        router,
        default_model=settings.default_model,
        search_model=settings.search_model,
        sonar_model=settings.sonar_model,
        sonar_pro_model=settings.sonar_pro_model,
        image_model=settings.image_model,
        temperature=settings.completion_temperature,
        max_tokens=settings.completion_max_tokens,
    )
    summarizer = ChannelSummarizer(llm, settings.summarizer_model, max_tokens=settings.aux_max_tokens)
    orchestrator = ChatOrchestrator(
        store,
        responder,
        summarizer,
        ChannelLifecycleManager(prefix=settings.channel_prefix),
        llm,
        history_limit=settings.history_limit,
        rename_cadence=settings.rename_cadence,
        typing_interval_seconds=settings.typing_interval_seconds,
        inactivity_threshold=timedelta(hours=settings.inactivity_threshold_hours),
    )
    return orchestrator, store, llm


def build_bot(settings: Settings) -> OrenchiDiscordBot:
    orchestrator, store, llm = build_orchestrator(settings)
    return OrenchiDiscordBot(settings=settings, orchestrator=orchestrator, store=store, llm=llm)


async def _run_bot(settings: Settings) -> None:
    bot = build_bot(settings)
    try:
        async with bot:
            await bot.start(settings.discord_token)
    finally:
        if not bot.is_closed():
            with contextlib.suppress(Exception):
                await asyncio.wait_for(bot.close(), timeout=10.0)


def main() -> None:
    configure_logging()
    settings = Settings.from_env()
    settings.validate()
    try:
        asyncio.run(_run_bot(settings))
    except KeyboardInterrupt:
        logger.info("Shutdown requested, exiting.")

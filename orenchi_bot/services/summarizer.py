from __future__ import annotations

import logging
import re
from typing import Sequence

from ..discord.channels import WELCOME_MESSAGE_SUFFIX
from ..memory.history import ConversationTurn
from .openrouter_client import CompletionClient, extract_content

logger = logging.getLogger("orenchi_bot")

SUMMARY_SYSTEM_PROMPT = (
    "You are a helpful assistant that creates concise, descriptive titles for conversations. "
    "Create a short title (3-5 words) that captures the main topic of the conversation. "
    "Only respond with the title, nothing else. "
    "Use the language primarily used in the conversation. "
    "If it's Japanese, never separate words with spaces."
)
SUMMARY_FALLBACK = "Chat Summary"
SANITIZED_FALLBACK = "chat-summary"
MAX_TITLE_CHARS = 30

_DISALLOWED_TITLE_CHARS = re.compile(r"[^\w\s-]|_")


def sanitize_title(title: str) -> str:
    """Make a model-written title safe for a channel name (unicode letters kept)."""
    cleaned = _DISALLOWED_TITLE_CHARS.sub("", title.lower())
    cleaned = re.sub(r"\s+", "-", cleaned)
    cleaned = re.sub(r"-+", "-", cleaned).strip("-")
    cleaned = cleaned[:MAX_TITLE_CHARS].strip("-")
    return cleaned or SANITIZED_FALLBACK


class ChannelSummarizer:
    def __init__(self, client: CompletionClient, model: str, max_tokens: int = 2000) -> None:
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    @staticmethod
    def format_turns(turns: Sequence[ConversationTurn]) -> str:
        kept = [turn for turn in turns if WELCOME_MESSAGE_SUFFIX not in turn.content]
        return "\n".join(
            f"{'User' if turn.role == 'user' else 'Assistant'}: {turn.content}" for turn in kept
        )

    sanitize_title = staticmethod(sanitize_title)

    async def summarize(self, turns: Sequence[ConversationTurn]) -> str:
        logger.info("Generating summary for conversation with %s messages", len(turns))
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                {"role": "user", "content": self.format_turns(turns)},
            ],
            "max_tokens": self.max_tokens,
        }
        try:
            data = await self.client.complete(payload)
        except Exception:
            logger.exception("Summarization call failed")
            return SUMMARY_FALLBACK

        content = extract_content(data)
        logger.info("Received summary: %s", content)
        if not content:
            return SUMMARY_FALLBACK
        return sanitize_title(content)

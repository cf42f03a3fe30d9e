from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Literal, Optional, Sequence

from ..memory.history import ConversationHistory, ConversationTurn
from .openrouter_client import CompletionClient, extract_content

logger = logging.getLogger("orenchi_bot")

SearchKind = Literal["none", "search", "sonar", "sonar-pro"]

_DECISION_KINDS: dict[str, SearchKind] = {
    "SONAR_PRO": "sonar-pro",
    "SONAR": "sonar",
    "SEARCH": "search",
}

ROUTER_PROMPT = """You are a decision-making AI. Based on the user's conversation history, decide whether to use a web search.
The conversation history is:
{history}

You have four options:
1. SONAR_PRO: If the message requests deep insights, detailed analysis, or contains phrases like "詳しく教えて", "詳細に教えて", "search deeply", "deep insights", or "in-depth analysis".
2. SONAR: If the message is a question about recent facts, news, or unpopular specialized facts.
3. SEARCH: If the message is a question about less-known things that would benefit from a web search.
4. NONE: If the user is greeting, conversing, or asking about well-known facts (geographical, historical, scientific).

Respond with a JSON object in the format {{"decision": "SONAR_PRO" | "SONAR" | "SEARCH" | "NONE", "query": "search query" | null}}.
The "query" should be a concise search query if the decision is SONAR_PRO, SONAR, or SEARCH, otherwise null."""


@dataclass(frozen=True, slots=True)
class WebSearchDecision:
    kind: SearchKind = "none"
    query: Optional[str] = None

    @classmethod
    def none(cls) -> "WebSearchDecision":
        return cls()


def _strip_json_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```(?:json)?", "", cleaned, flags=re.IGNORECASE).strip()
        cleaned = re.sub(r"```$", "", cleaned).strip()
    return cleaned


def parse_decision(raw: str) -> WebSearchDecision:
    """Map the classifier's JSON answer to a decision; anything unexpected is ``none``."""
    try:
        parsed: Any = json.loads(_strip_json_fences(raw))
    except json.JSONDecodeError:
        logger.warning("Web search router returned invalid JSON: %s", raw[:120])
        return WebSearchDecision.none()
    if not isinstance(parsed, dict):
        return WebSearchDecision.none()

    decision = str(parsed.get("decision") or "").strip().upper()
    query = parsed.get("query")
    if not isinstance(query, str) or not query.strip():
        return WebSearchDecision.none()
    kind = _DECISION_KINDS.get(decision)
    if kind is None:
        return WebSearchDecision.none()
    return WebSearchDecision(kind=kind, query=query.strip())


class WebSearchRouter:
    def __init__(self, client: CompletionClient, model: str, max_tokens: int = 2000) -> None:
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    def build_prompt(self, turns: Sequence[ConversationTurn]) -> str:
        history = ConversationHistory(max(len(turns), 1), turns)
        return ROUTER_PROMPT.format(history=history.formatted())

    async def should_search(self, turns: Sequence[ConversationTurn]) -> WebSearchDecision:
        payload = {
            "model": self.model,
            "messages": [{"role": "system", "content": self.build_prompt(turns)}],
            "max_tokens": self.max_tokens,
            "response_format": {"type": "json_object"},
        }
        try:
            data = await self.client.complete(payload)
        except Exception:
            logger.exception("Web search routing call failed")
            return WebSearchDecision.none()

        content = extract_content(data)
        if not content:
            logger.warning("Empty response from web search router")
            return WebSearchDecision.none()

        decision = parse_decision(content)
        logger.info("[router] decision=%s query=%s", decision.kind, decision.query)
        return decision

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..discord.common import truncate
from ..memory.history import ConversationTurn
from .openrouter_client import CompletionClient, extract_content
from .web_search import WebSearchDecision, WebSearchRouter

logger = logging.getLogger("orenchi_bot")

EMPTY_REPLY = "I'm not sure how to respond to that."
ERROR_REPLY = "Sorry, I encountered an error while processing your request."
EMPTY_IMAGE_REPLY = "I'm unable to analyze this image."
ERROR_IMAGE_REPLY = "Sorry, I encountered an error while processing your image."
IMAGE_PROMPT = "What do you see in this image?"

# Models that only answer when the request carries an (empty) web_search_options object.
SEARCH_PREVIEW_MODELS = frozenset({"gpt-4o-search-preview", "gpt-4o-mini-search-preview"})


def needs_web_search_options(model: str) -> bool:
    return model.rsplit("/", 1)[-1] in SEARCH_PREVIEW_MODELS


def extract_citations(data: Dict[str, Any]) -> List[Dict[str, str]]:
    """Collect ``{title, url}`` citations from a completion response.

    Prefers the flat ``search_results`` list; otherwise falls back to the
    ``url_citation`` annotations attached to each choice's message.
    """
    citations: List[Dict[str, str]] = []
    search_results = data.get("search_results")
    if isinstance(search_results, list) and search_results:
        for item in search_results:
            if isinstance(item, dict) and item.get("url"):
                citations.append({"title": str(item.get("title") or ""), "url": str(item["url"])})
        return citations

    for choice in data.get("choices") or []:
        if not isinstance(choice, dict):
            continue
        message = choice.get("message") or {}
        for annotation in message.get("annotations") or []:
            if not isinstance(annotation, dict) or annotation.get("type") != "url_citation":
                continue
            cited = annotation.get("url_citation") or {}
            url = cited.get("url") or annotation.get("url")
            if not url:
                continue
            title = cited.get("title") or annotation.get("title") or ""
            citations.append({"title": str(title), "url": str(url)})
    return citations


def format_citations(content: str, citations: Sequence[Dict[str, str]]) -> str:
    if not citations:
        return content
    lines = [
        f"[{index}] [{item.get('title') or f'Source {index}'}]({item['url']})"
        for index, item in enumerate(citations, start=1)
    ]
    return content + "\n\n" + "\n".join(lines)


class ResponseGenerator:
    def __init__(
        self,
        client: CompletionClient,
        router: WebSearchRouter,
        *,
        default_model: str,
        search_model: str,
        sonar_model: str,
        sonar_pro_model: str,
        image_model: str,
        temperature: float = 0.7,
        max_tokens: int = 8192,
    ) -> None:
        self.client = client
        self.router = router
        self.default_model = default_model
        self.search_model = search_model
        self.sonar_model = sonar_model
        self.sonar_pro_model = sonar_pro_model
        self.image_model = image_model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @staticmethod
    def build_messages(
        turns: Sequence[ConversationTurn],
        personality: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        if personality:
            messages.append({"role": "system", "content": personality})
        messages.extend(turn.as_message() for turn in turns)
        return messages

    def select_model(self, decision: WebSearchDecision) -> str:
        if decision.kind == "sonar-pro":
            return self.sonar_pro_model
        if decision.kind == "sonar":
            return self.sonar_model
        if decision.kind == "search":
            return self.search_model
        return self.default_model

    def _cites_sources(self, model: str) -> bool:
        return model in {self.sonar_model, self.sonar_pro_model}

    async def create_chat_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = dict(payload)
        if needs_web_search_options(str(request.get("model", ""))):
            request["web_search_options"] = {}
        return await self.client.complete(request)

    async def generate(
        self,
        turns: Sequence[ConversationTurn],
        personality: Optional[str] = None,
        search_if_needed: bool = True,
    ) -> str:
        try:
            logger.info("Generating reply with %s history items", len(turns))
            if personality:
                logger.info("Using personality: %s", truncate(personality, 50))

            messages = self.build_messages(turns, personality)
            decision = WebSearchDecision.none()
            if search_if_needed:
                decision = await self.router.should_search(turns)
            model = self.select_model(decision)
            logger.info("Selected model: %s", model)

            data = await self.create_chat_completion(
                {
                    "model": model,
                    "messages": messages,
                    "temperature": self.temperature,
                    "max_tokens": self.max_tokens,
                }
            )
            content = extract_content(data)
            if not content:
                return EMPTY_REPLY
            if self._cites_sources(model):
                content = format_citations(content, extract_citations(data))
            logger.info("Received reply: %s", truncate(content, 50))
            return content
        except Exception:
            logger.exception("Error calling completion endpoint")
            return ERROR_REPLY

    async def process_image(
        self,
        image_url: str,
        turns: Sequence[ConversationTurn],
        personality: Optional[str] = None,
    ) -> str:
        try:
            logger.info("Processing image from URL: %s", image_url)
            messages = self.build_messages(turns, personality)
            messages.append(
                {
                    "role": "user",
                    "content": [
                        {"type": "image_url", "image_url": {"url": image_url}},
                        {"type": "text", "text": IMAGE_PROMPT},
                    ],
                }
            )
            data = await self.client.complete(
                {
                    "model": self.image_model,
                    "messages": messages,
                    "temperature": self.temperature,
                    "max_tokens": self.max_tokens,
                }
            )
            logger.info("Image processed using model: %s", data.get("model") or self.image_model)
            content = extract_content(data)
            return content or EMPTY_IMAGE_REPLY
        except Exception:
            logger.exception("Error processing image")
            return ERROR_IMAGE_REPLY

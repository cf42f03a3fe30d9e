from __future__ import annotations

import asyncio
import json
import random
from typing import Any, Dict, List, Protocol

import aiohttp


RETRIABLE_STATUSES = frozenset({408, 409, 429, 500, 502, 503, 504})


class OpenRouterError(RuntimeError):
    pass


class CompletionClient(Protocol):
    async def complete(self, payload: Dict[str, Any]) -> Dict[str, Any]: ...

    async def close(self) -> None: ...


def extract_content(data: Dict[str, Any]) -> str:
    """Text of ``choices[0].message.content``, or an empty string."""
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message") or {}
    content = message.get("content")
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        chunks: List[str] = []
        for part in content:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                chunks.append(part["text"].strip())
        return "\n".join(chunk for chunk in chunks if chunk).strip()
    return ""


class OpenRouterClient:
    """Minimal OpenAI-compatible ``chat/completions`` client for OpenRouter."""

    def __init__(
        self,
        api_key: str,
        timeout_seconds: int,
        base_url: str = "https://openrouter.ai/api/v1",
        app_title: str = "orenchi-ai-bot",
        retries: int = 2,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.app_title = app_title
        self.retries = max(1, int(retries))
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: aiohttp.ClientSession | None = None

    async def start(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout, headers=self._headers())

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": self.app_title,
        }

    def _endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    @staticmethod
    def _parse(text: str) -> Dict[str, Any]:
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as exc:
            raise OpenRouterError(f"OpenRouter returned invalid JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise OpenRouterError("OpenRouter returned non-object JSON response")
        error = parsed.get("error")
        if error:
            raise OpenRouterError(f"OpenRouter error payload: {error}")
        return parsed

    async def complete(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self._session is None or self._session.closed:
            await self.start()
        assert self._session is not None

        url = self._endpoint()
        last_error: Exception | None = None

        for attempt in range(1, self.retries + 1):
            try:
                async with self._session.post(url, json=payload) as response:
                    status = response.status
                    text = await response.text()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                last_error = exc
            else:
                if status == 200:
                    return self._parse(text)
                if status not in RETRIABLE_STATUSES:
                    raise OpenRouterError(f"OpenRouter error {status}: {text}")
                last_error = OpenRouterError(f"OpenRouter retriable error {status}: {text}")

            if attempt < self.retries:
                await asyncio.sleep(min(4.0, 0.35 * attempt + random.random() * 0.2))

        if last_error is not None:
            raise OpenRouterError(f"OpenRouter request failed after retries: {last_error}")
        raise OpenRouterError("OpenRouter request failed without explicit error")

from .openrouter_client import CompletionClient, OpenRouterClient, OpenRouterError
from .responder import ResponseGenerator
from .summarizer import ChannelSummarizer
from .web_search import WebSearchDecision, WebSearchRouter

__all__ = [
    "ChannelSummarizer",
    "CompletionClient",
    "OpenRouterClient",
    "OpenRouterError",
    "ResponseGenerator",
    "WebSearchDecision",
    "WebSearchRouter",
]

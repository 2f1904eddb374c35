"""
Web search backed by an LLM endpoint with internet context.

The relay exposes this as the ``web_search`` tool. Results are normalised to
plain text and truncated; failures never raise to the caller but come back as a
``WebSearchResult`` with ``success=False`` and a fallback sentence the assistant
can read out.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from voice_relay.config.constants import LOGGER_NAME
from voice_relay.config.prompts import SEARCH_FALLBACK, WEB_SEARCH_PROMPT

logger = logging.getLogger(LOGGER_NAME)

MAX_RESULT_LENGTH = 2000
MAX_TOKENS = 500


@dataclass
class WebSearchResult:
    success: bool
    query: str
    result: Optional[str] = None
    error: Optional[str] = None
    fallback: Optional[str] = None
    timestamp: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in self.__dict__.items() if value is not None}

    def as_tool_output(self) -> str:
        """Text handed back to the model as the tool result."""
        if self.success:
            return f"Search results for \"{self.query}\":\n{self.result}"
        return self.fallback or SEARCH_FALLBACK.format(query=self.query)


def _extract_text(payload: Any) -> str:
    """Normalise the different response shapes the search endpoint returns."""
    if isinstance(payload, str):
        return payload
    if isinstance(payload, dict):
        for key in ("response", "answer", "content"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return json.dumps(payload)


class WebSearchClient:
    """
    Client for the search endpoint.

    Args:
        endpoint: URL accepting ``{prompt, add_context_from_internet, max_tokens}``
        timeout: Request timeout in seconds
        client: Optional shared ``httpx.AsyncClient``
    """

    def __init__(self, endpoint: str, timeout: float = 30.0,
                 client: Optional[httpx.AsyncClient] = None):
        self.endpoint = endpoint
        self.timeout = timeout
        self._client = client

    async def search(self, query: str) -> WebSearchResult:
        """Run a search; never raises for transport or HTTP failures."""
        logger.info(f"Performing web search for: \"{query}\"")
        payload = {
            "prompt": WEB_SEARCH_PROMPT.format(query=query),
            "add_context_from_internet": True,
            "max_tokens": MAX_TOKENS,
        }
        headers = {"Content-Type": "application/json", "Accept": "application/json"}

        try:
            if self._client is not None:
                response = await self._client.post(
                    self.endpoint, json=payload, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.endpoint, json=payload, headers=headers)
            response.raise_for_status()
            text = _extract_text(response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Search error: {e}")
            return WebSearchResult(
                success=False,
                query=query,
                error=str(e),
                fallback=SEARCH_FALLBACK.format(query=query),
            )

        logger.info(f"Search completed ({len(text)} chars)")
        return WebSearchResult(
            success=True,
            query=query,
            result=text[:MAX_RESULT_LENGTH],
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

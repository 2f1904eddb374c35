"""
Bridge between upstream tool calls and the capabilities the relay offers.

The upstream model asks for a tool by name with JSON-encoded arguments. The
bridge looks the tool up, runs its handler and always returns text: argument
errors, unknown tools and handler failures are turned into a sentence the model
can say to the user instead of an exception.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from voice_relay.config.constants import LOGGER_NAME
from voice_relay.config.prompts import SEARCH_FALLBACK, WEB_SEARCH_TOOL
from voice_relay.config.settings import RelaySettings
from voice_relay.services.web_search import WebSearchClient

logger = logging.getLogger(LOGGER_NAME)

ToolHandler = Callable[[Dict[str, Any]], Awaitable[str]]


@dataclass(frozen=True)
class Tool:
    declaration: Dict[str, Any]
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.declaration["name"]


class ToolBridge:
    """Registry of tools that can be declared to and invoked by the upstream session."""

    def __init__(self):
        self._tools: Dict[str, Tool] = {}

    def register(self, declaration: Dict[str, Any], handler: ToolHandler) -> None:
        tool = Tool(declaration=declaration, handler=handler)
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def declarations(self) -> List[Dict[str, Any]]:
        """Tool declarations for the session configuration frame."""
        return [tool.declaration for tool in self._tools.values()]

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __bool__(self) -> bool:
        return bool(self._tools)

    async def invoke(self, name: str, arguments: str) -> str:
        """
        Run a tool and return its textual output.

        Args:
            name: Tool name requested by the model
            arguments: JSON-encoded arguments object

        Returns:
            str: Tool output, or a fallback message describing the failure
        """
        tool = self._tools.get(name)
        if tool is None:
            logger.warning(f"Upstream requested unknown tool: {name}")
            return f"The tool \"{name}\" is not available right now."

        try:
            parsed = json.loads(arguments or "{}")
        except json.JSONDecodeError as e:
            logger.error(f"Function call parse error for {name}: {e}")
            return f"I couldn't understand the request for {name}. Please try asking again."
        if not isinstance(parsed, dict):
            return f"I couldn't understand the request for {name}. Please try asking again."

        try:
            return await tool.handler(parsed)
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}", exc_info=True)
            return f"I couldn't complete {name} right now. Please try again later."


def web_search_handler(client: WebSearchClient) -> ToolHandler:
    """Adapt a ``WebSearchClient`` to the tool handler signature."""

    async def handle(arguments: Dict[str, Any]) -> str:
        query = str(arguments.get("query") or "").strip()
        if not query:
            return SEARCH_FALLBACK.format(query="that")
        result = await client.search(query)
        return result.as_tool_output()

    return handle


def build_tool_bridge(settings: RelaySettings,
                      search_client: Optional[WebSearchClient] = None) -> ToolBridge:
    """Create the tool bridge for the configured capabilities."""
    bridge = ToolBridge()
    if settings.web_search_enabled or search_client is not None:
        client = search_client or WebSearchClient(
            settings.search_endpoint, timeout=settings.search_timeout
        )
        bridge.register(WEB_SEARCH_TOOL, web_search_handler(client))
    return bridge

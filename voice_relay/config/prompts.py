"""
Prompt text and tool declarations sent to the upstream session.

These are data rather than code so that deployments can swap the assistant's
persona or tool set through configuration instead of forking the relay.
"""

from typing import Any, Dict

DEFAULT_INSTRUCTIONS = """You are Life, a friendly AI voice assistant.
Keep responses concise, friendly, and conversational.
Users often pause to think while speaking; wait for them to finish before answering."""

WEB_SEARCH_INSTRUCTIONS = """You can search the web for real-time information using the web_search tool.

When users ask about weather, news, sports, stocks or any other time-sensitive
information, you MUST use the web_search tool to get current information.
For weather, ask for the location if it was not provided, then search for
"current weather in [location]"."""

WEB_SEARCH_TOOL_NAME = "web_search"

WEB_SEARCH_TOOL: Dict[str, Any] = {
    "type": "function",
    "name": WEB_SEARCH_TOOL_NAME,
    "description": (
        "Search the web for current, real-time information. Use this for weather, "
        "news, sports, stocks, and any time-sensitive queries."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": (
                    "The search query to find current information (e.g., "
                    "\"current weather in London\", \"NBA scores today\")"
                ),
            }
        },
        "required": ["query"],
    },
}

WEB_SEARCH_PROMPT = """Find current, accurate, real-time information about: {query}.
Provide a concise, factual answer. If this is about weather, include temperature, conditions, and forecast.
If about news, include recent developments. If about sports, include scores or standings.
Be specific with numbers, dates, and sources when possible."""

SEARCH_FALLBACK = (
    "I searched for \"{query}\" but couldn't retrieve real-time information at the moment. "
    "For current weather, you might check a weather app. For news, check news websites or apps."
)

"""
Services module for external API integrations in the voice relay.

Key components:
- credentials: Obtains ephemeral OpenAI Realtime credentials, one per relay session.
- web_search: Calls an LLM endpoint with internet context to answer time-sensitive
  questions on behalf of the ``web_search`` tool.

Usage examples:
```python
from voice_relay.services.credentials import CredentialProvider

provider = CredentialProvider(settings)
credential = await provider.acquire()
```
"""

from voice_relay.services.credentials import Credential, CredentialProvider
from voice_relay.services.web_search import WebSearchClient, WebSearchResult

__all__ = ["Credential", "CredentialProvider", "WebSearchClient", "WebSearchResult"]

"""
Configuration module for the realtime voice relay.

Key components:
- constants: protocol message tags, logger name and defaults shared across modules.
- settings: the immutable RelaySettings built once at process start.
- prompts: default assistant instructions and tool declaration data.
- logging_config: console and rotating file logging setup.

Usage examples:
```python
from voice_relay.config.settings import load_settings
from voice_relay.config.logging_config import configure_logging

logger = configure_logging()
settings = load_settings()
logger.info(f"Relay listening on port {settings.port}")
```
"""

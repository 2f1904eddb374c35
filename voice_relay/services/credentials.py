"""
Ephemeral credential acquisition for the OpenAI Realtime API.

Each relay session opens its upstream socket with a short-lived client secret
minted by the ``/v1/realtime/sessions`` endpoint rather than the long-lived
API key. The provider performs that single outbound request and either returns
a ``Credential`` or raises ``CredentialError``.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from pydantic import ValidationError

from voice_relay.config.constants import LOGGER_NAME, OPENAI_BETA_HEADER
from voice_relay.config.settings import RelaySettings
from voice_relay.exceptions import CredentialError
from voice_relay.models.openai_schemas import RealtimeSessionResponse

logger = logging.getLogger(LOGGER_NAME)

SESSIONS_PATH = "/v1/realtime/sessions"


@dataclass(frozen=True)
class Credential:
    """Short-lived token authorising one upstream connection."""

    value: str
    expires_at: Optional[int] = None

    def __repr__(self) -> str:
        return f"Credential(value='***', expires_at={self.expires_at})"


class CredentialProvider:
    """
    Requests ephemeral Realtime API credentials.

    Args:
        settings: Relay settings holding the API key, API base URL and model
        client: Optional shared ``httpx.AsyncClient``; one is created per call otherwise
    """

    def __init__(self, settings: RelaySettings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client

    async def acquire(self) -> Credential:
        """
        Obtain a fresh credential.

        Returns:
            Credential: The ephemeral client secret

        Raises:
            CredentialError: On network errors, non-200 statuses or malformed responses
        """
        url = f"{self.settings.api_base.rstrip('/')}{SESSIONS_PATH}"
        payload = {"model": self.settings.model, "voice": self.settings.voice}
        headers = {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
            "OpenAI-Beta": OPENAI_BETA_HEADER,
        }

        logger.info("Requesting ephemeral token...")
        try:
            if self._client is not None:
                response = await self._client.post(
                    url, json=payload, headers=headers, timeout=self.settings.credential_timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.settings.credential_timeout) as client:
                    response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise CredentialError("Timeout") from e
        except httpx.HTTPError as e:
            raise CredentialError(f"Request failed: {e}") from e

        if response.status_code != 200:
            raise CredentialError(f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise CredentialError("Malformed session response") from e

        try:
            session = RealtimeSessionResponse.model_validate(data)
        except ValidationError as e:
            raise CredentialError("No client_secret in response") from e

        logger.info("Ephemeral token received")
        return Credential(
            value=session.client_secret.value,
            expires_at=session.client_secret.expires_at,
        )

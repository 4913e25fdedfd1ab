import logging

import httpx

from mockinterview.core.exceptions import ConfigurationError, UpstreamServiceError

logger = logging.getLogger(__name__)


class SpeechService:
    """Text to speech through the ElevenLabs REST API."""

    def __init__(
        self,
        api_key: str | None,
        voice_id: str,
        model_id: str,
        base_url: str = "https://api.elevenlabs.io/v1",
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not api_key:
            raise ConfigurationError("ElevenLabs API key not configured")
        self.api_key = api_key
        self.voice_id = voice_id
        self.model_id = model_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def synthesize(self, text: str) -> bytes:
        """Return audio/mpeg bytes for ``text``."""
        if not text or not text.strip():
            raise ValueError("Text is required")

        client_kwargs = {"transport": self.transport}
        if self.timeout is not None:
            client_kwargs["timeout"] = self.timeout

        async with httpx.AsyncClient(**client_kwargs) as client:
            try:
                resp = await client.post(
                    f"{self.base_url}/text-to-speech/{self.voice_id}",
                    headers={
                        "Accept": "audio/mpeg",
                        "xi-api-key": self.api_key,
                    },
                    json={
                        "text": text,
                        "model_id": self.model_id,
                        "voice_settings": {
                            "stability": 0.5,
                            "similarity_boost": 0.75,
                        },
                    },
                )
                resp.raise_for_status()
            except httpx.HTTPError as e:
                logger.error(f"ElevenLabs request failed: {e}")
                raise UpstreamServiceError("Failed to generate speech") from e

        return resp.content

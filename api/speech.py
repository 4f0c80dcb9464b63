import asyncio
import logging
import os

import httpx

from models import VoiceSettings

logger = logging.getLogger(__name__)

ELEVENLABS_API_KEY = os.environ.get("ELEVENLABS_API_KEY", "")
ELEVENLABS_BASE_URL = os.environ.get("ELEVENLABS_BASE_URL", "https://api.elevenlabs.io/v1")
ELEVENLABS_MODEL_ID = os.environ.get("ELEVENLABS_MODEL_ID", "")

DEFAULT_STABILITY = 0.5
DEFAULT_SIMILARITY_BOOST = 0.75


class SynthesisError(RuntimeError):
    """The text-to-speech provider could not produce audio."""


def _write_atomic(path: str, data: bytes):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    partial = f"{path}.partial"
    try:
        with open(partial, "wb") as f:
            f.write(data)
        os.replace(partial, path)
    except OSError:
        if os.path.exists(partial):
            os.unlink(partial)
        raise


class SpeechSynthesizer:
    """ElevenLabs text-to-speech client."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model_id: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ):
        self.api_key = api_key if api_key is not None else ELEVENLABS_API_KEY
        self.base_url = (base_url or ELEVENLABS_BASE_URL).rstrip("/")
        self.model_id = model_id if model_id is not None else ELEVENLABS_MODEL_ID
        self.timeout = timeout
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()

    async def synthesize(self, text: str, voice_id: str, settings: VoiceSettings | None = None) -> bytes:
        if not text or not text.strip():
            raise ValueError("text must not be empty")
        if not voice_id:
            raise ValueError("voice_id is required")

        settings = settings or VoiceSettings()
        payload: dict = {
            "text": text,
            "voice_settings": {
                "stability": DEFAULT_STABILITY if settings.stability is None else settings.stability,
                "similarity_boost": (
                    DEFAULT_SIMILARITY_BOOST if settings.similarity_boost is None else settings.similarity_boost
                ),
            },
        }
        if self.model_id:
            payload["model_id"] = self.model_id

        try:
            response = await self.client.post(
                f"{self.base_url}/text-to-speech/{voice_id}",
                headers={
                    "xi-api-key": self.api_key,
                    "Content-Type": "application/json",
                    "Accept": "audio/mpeg",
                },
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            # Never log the request headers: they carry the API key.
            logger.error(f"ElevenLabs synthesis failed for voice {voice_id}: {e}")
            raise SynthesisError("Failed to synthesize speech") from e

        return response.content

    async def synthesize_to_file(
        self,
        text: str,
        voice_id: str,
        output_path: str,
        settings: VoiceSettings | None = None,
    ) -> str:
        audio = await self.synthesize(text, voice_id, settings)
        try:
            await asyncio.to_thread(_write_atomic, output_path, audio)
        except OSError as e:
            logger.error(f"Could not save synthesized speech to {output_path}: {e}")
            raise SynthesisError("Failed to save speech to file") from e
        return output_path

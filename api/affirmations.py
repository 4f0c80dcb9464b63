import logging
import os
import re

import httpx

logger = logging.getLogger(__name__)

OPENROUTER_API_KEY = os.environ.get("OPENROUTER_API_KEY", "")
OPENROUTER_BASE_URL = os.environ.get("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
OPENROUTER_MODEL = os.environ.get("OPENROUTER_MODEL", "mistralai/mistral-7b-instruct")
OPENROUTER_REFERER = os.environ.get("OPENROUTER_REFERER", "https://whspr.app")

SYSTEM_PROMPT = "You are a helpful assistant that generates positive affirmations."
TONES = ("calm", "grateful", "confident")

# "1. ", "2) ", "- ", "* ", "• " at the start of a line
_LIST_MARKER = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s*")


class GenerationError(RuntimeError):
    """The language-model provider could not produce affirmations."""


def build_prompt(themes: list[str], tone: str | None = None) -> str:
    prompt = "Create positive affirmations"
    if tone:
        prompt += f" with a {tone} tone"
    prompt += f" related to: {', '.join(themes)}"
    return prompt


def parse_affirmations(content: str, count: int) -> list[str]:
    lines = []
    for raw in content.splitlines():
        line = _LIST_MARKER.sub("", raw).strip().strip('"').strip()
        if line:
            lines.append(line)
    return lines[:count]


class AffirmationGenerator:
    """OpenRouter chat-completions client that writes affirmations."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ):
        self.api_key = api_key if api_key is not None else OPENROUTER_API_KEY
        self.model = model or OPENROUTER_MODEL
        self.base_url = (base_url or OPENROUTER_BASE_URL).rstrip("/")
        self.timeout = timeout
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()

    async def generate(self, prompt: str, count: int = 20) -> list[str]:
        try:
            response = await self.client.post(
                f"{self.base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "HTTP-Referer": OPENROUTER_REFERER,
                    "X-Title": "WHSPR App",
                },
                json={
                    "model": self.model,
                    "messages": [
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {
                            "role": "user",
                            "content": (
                                f"{prompt}. Generate exactly {count} unique affirmations, "
                                "one per line, without numbering or bullets."
                            ),
                        },
                    ],
                    "temperature": 0.7,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            content = response.json()["choices"][0]["message"]["content"]
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"OpenRouter generation failed ({self.model}): {e}")
            raise GenerationError("Failed to generate affirmations") from e

        affirmations = parse_affirmations(content or "", count)
        if not affirmations:
            logger.error(f"OpenRouter returned no usable lines ({self.model})")
            raise GenerationError("Failed to generate affirmations")

        logger.info(f"Generated {len(affirmations)} affirmations with {self.model}")
        return affirmations

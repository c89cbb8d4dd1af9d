"""
Narration providers turn story text into a playable audio URL.

``PlaceholderNarrationProvider`` stands in for a real text-to-speech service
(fixed latency, placeholder file). ``HttpNarrationProvider`` calls an external
service that answers ``{"audioUrl": ..., "duration": ...}``.
"""
import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Optional

import httpx

from .config import Settings

logger = logging.getLogger(__name__)

PLACEHOLDER_AUDIO_URL = '/api/placeholder/audio.mp3'
SPOKEN_WORDS_PER_MINUTE = 150


class NarrationError(Exception):
    pass


@dataclass
class NarrationResult:
    audio_url: str
    duration: int


def estimate_duration(text: str) -> int:
    """Seconds of speech for ``text`` at a conversational pace"""
    words = len(text.split())
    return int(math.ceil(words / SPOKEN_WORDS_PER_MINUTE * 60))


class NarrationProvider:
    async def narrate(self, story_id: int, text: str, voice: str) -> NarrationResult:
        raise NotImplementedError

    async def close(self):
        pass


class PlaceholderNarrationProvider(NarrationProvider):

    def __init__(self, latency_seconds: float = 10.0):
        self.latency_seconds = latency_seconds

    async def narrate(self, story_id: int, text: str, voice: str) -> NarrationResult:
        if not text or not text.strip():
            raise NarrationError('Empty text provided for narration')
        await asyncio.sleep(self.latency_seconds)
        return NarrationResult(audio_url=PLACEHOLDER_AUDIO_URL, duration=estimate_duration(text))


class HttpNarrationProvider(NarrationProvider):

    def __init__(self, url: str, timeout: float = 120.0, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def narrate(self, story_id: int, text: str, voice: str) -> NarrationResult:
        try:
            response = await self.client.post(self.url, json={'storyId': story_id, 'text': text, 'voice': voice})
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise NarrationError(f'Narration service request failed: {e}') from e

        audio_url = data.get('audioUrl')
        if not audio_url:
            raise NarrationError('Narration service returned no audioUrl')
        duration = data.get('duration')
        return NarrationResult(
            audio_url=audio_url,
            duration=int(duration) if duration is not None else estimate_duration(text),
        )

    async def close(self):
        await self.client.aclose()


def build_provider(settings: Settings) -> NarrationProvider:
    if settings.narration_provider == 'http':
        if not settings.narration_url:
            raise ValueError('NARRATION_URL is required when NARRATION_PROVIDER=http')
        logger.info(f"Using HTTP narration provider at {settings.narration_url}")
        return HttpNarrationProvider(settings.narration_url)
    return PlaceholderNarrationProvider(settings.narration_latency_seconds)

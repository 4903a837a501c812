import asyncio
import logging
import os
import shlex
import tempfile
from contextlib import suppress
from typing import Optional, Sequence

import httpx

from readaloud.config import Settings
from readaloud.services.speech.errors import PlaybackFailure, RenderFailure
from readaloud.services.speech.protocols import AudioClip, SpeechEngine, VoiceConfig

logger = logging.getLogger(__name__)

_MEDIA_TYPES = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "opus": "audio/ogg",
    "aac": "audio/aac",
    "flac": "audio/flac",
    "pcm": "audio/L16",
}


class HttpSpeechEngine:
    """
    Speech engine backed by an OpenAI-compatible ``/audio/speech`` endpoint.

    Renders are plain HTTP requests whose whole body is kept in memory.
    Playback hands the audio to an external player process, which is
    terminated when the awaiting task is cancelled.

    Uses a singleton httpx.AsyncClient for connection pooling across requests
    unless a client is injected.
    """

    # Singleton HTTP client for connection pooling
    _http_client: Optional[httpx.AsyncClient] = None

    def __init__(
        self,
        base_url: str = "https://api.openai.com/v1",
        api_key: Optional[str] = None,
        model: str = "tts-1",
        response_format: str = "mp3",
        player_command: Sequence[str] = ("ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet"),
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.speech_url = f"{str(base_url).rstrip('/')}/audio/speech"
        self.api_key = api_key
        self.model = model
        self.response_format = response_format
        self.player_command = list(player_command)
        self.timeout = timeout
        self._client = client

        if not self.api_key:
            logger.warning("No TTS API key configured. Requests are sent unauthenticated.")

    @classmethod
    def get_http_client(cls, timeout: float = 30.0) -> httpx.AsyncClient:
        """Get singleton HTTP client for connection pooling."""
        if cls._http_client is None:
            cls._http_client = httpx.AsyncClient(timeout=timeout)
            logger.info("Created singleton httpx.AsyncClient for speech rendering")
        return cls._http_client

    @classmethod
    async def close_http_client(cls) -> None:
        """Close the singleton HTTP client. Call on app shutdown."""
        if cls._http_client is not None:
            await cls._http_client.aclose()
            cls._http_client = None
            logger.info("Closed speech HTTP client")

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client or self.get_http_client(self.timeout)

    async def render(self, text: str, language: str, voice: VoiceConfig) -> AudioClip:
        """Request audio for ``text``; raises RenderFailure on any HTTP problem."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {
            "model": self.model,
            "input": text,
            "voice": voice.voice,
            "response_format": self.response_format,
        }
        if language:
            payload["language"] = language

        try:
            response = await self.client.post(
                self.speech_url, headers=headers, json=payload
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RenderFailure(
                f"Speech endpoint returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise RenderFailure(f"Speech request failed: {exc}") from exc

        logger.debug(f"Rendered {len(text)} chars into {len(response.content)} bytes")
        return AudioClip(
            text=text,
            data=response.content,
            media_type=response.headers.get(
                "content-type", _MEDIA_TYPES.get(self.response_format, "audio/mpeg")
            ),
        )

    async def play(self, clip: AudioClip) -> None:
        """Play ``clip`` through the player command and wait for it to exit."""
        if not clip.data:
            return

        fd, path = tempfile.mkstemp(prefix="readaloud-", suffix=f".{self.response_format}")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(clip.data)

            try:
                process = await asyncio.create_subprocess_exec(
                    *self.player_command,
                    path,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as exc:
                raise PlaybackFailure(f"Cannot start player: {exc}") from exc

            try:
                _, stderr = await process.communicate()
            except asyncio.CancelledError:
                if process.returncode is None:
                    process.terminate()
                    await process.wait()
                raise

            if process.returncode != 0:
                detail = stderr.decode("utf-8", errors="replace").strip()
                raise PlaybackFailure(
                    f"Player exited with {process.returncode}"
                    + (f": {detail}" if detail else "")
                )
        finally:
            with suppress(OSError):
                os.unlink(path)


class SilentSpeechEngine:
    """Dry-run engine: renders nothing and plays by waiting a word-based duration."""

    def __init__(self, seconds_per_word: float = 0.0):
        self.seconds_per_word = seconds_per_word

    async def render(self, text: str, language: str, voice: VoiceConfig) -> AudioClip:
        duration = len(text.split()) * self.seconds_per_word
        return AudioClip(text=text, media_type="audio/silence", duration=duration)

    async def play(self, clip: AudioClip) -> None:
        if clip.duration:
            await asyncio.sleep(clip.duration)


def build_engine(settings: Settings) -> SpeechEngine:
    """Create the engine selected by ``settings.engine``."""
    if settings.engine == "silent":
        logger.info("Using silent speech engine")
        return SilentSpeechEngine(seconds_per_word=0.3)

    api_key = (
        settings.tts_api_key.get_secret_value() if settings.tts_api_key else None
    )
    logger.info(f"Using HTTP speech engine at {settings.tts_base_url}")
    return HttpSpeechEngine(
        base_url=str(settings.tts_base_url),
        api_key=api_key,
        model=settings.tts_model,
        response_format=settings.tts_response_format,
        player_command=shlex.split(settings.player_command),
        timeout=settings.tts_timeout,
    )


__all__ = ["HttpSpeechEngine", "SilentSpeechEngine", "build_engine"]

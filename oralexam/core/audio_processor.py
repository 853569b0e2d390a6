"""
Audio Processing Layer for OralExam Sim

Handles:
- Text-to-Speech (TTS) playback of prompts and passages
- Streaming capture of the student's recordings

The browser owns speaker and microphone. Synthesized audio is published
to listeners (the WebSocket layer forwards it), and recorded audio
arrives as chunks pushed into the capture device.
"""

import asyncio
import base64
import io
import logging
import wave
from typing import Any, Awaitable, Callable

from oralexam.config.settings import get_settings
from oralexam.core.countdown import SleepFunc
from oralexam.errors import CaptureError, PlaybackError
from oralexam.models.response import AudioArtifact

logger = logging.getLogger(__name__)

AudioListener = Callable[[dict[str, Any]], Awaitable[None]]

# Rough speaking rate used when the real duration is unknown
WORDS_PER_MINUTE = 150


def estimate_duration(text: str) -> float:
    return len(text.split()) / WORDS_PER_MINUTE * 60


def wav_duration(audio_data: bytes) -> float:
    with io.BytesIO(audio_data) as audio_io:
        with wave.open(audio_io, "rb") as wav:
            return wav.getnframes() / float(wav.getframerate())


class AudioProcessor:
    """
    Speech playback component.

    TTS backends (settings.tts_model):
    - gemini: Gemini TTS via GeminiClient (WAV)
    - edge-tts: Microsoft Edge TTS (MP3)
    """

    # Gemini voice names mapped to Edge TTS voices
    EDGE_VOICES = {
        "Kore": "en-US-JennyNeural",
        "Puck": "en-US-GuyNeural",
        "default": "en-US-AriaNeural",
    }

    def __init__(
        self,
        gemini: Any = None,  # GeminiClient
        sleep: SleepFunc = asyncio.sleep,
    ):
        """
        Initialize audio processor.

        Args:
            gemini: Client used by the gemini TTS backend
            sleep: Awaitable sleep used to wait out playback
        """
        self.settings = get_settings()
        self.gemini = gemini
        self._sleep = sleep
        self._listeners: list[AudioListener] = []

    def add_listener(self, listener: AudioListener) -> None:
        """Register a coroutine called with every synthesized clip."""
        self._listeners.append(listener)

    def remove_listener(self, listener: AudioListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # =========================================================================
    # PLAYBACK
    # =========================================================================

    async def play_audio(self, text: str, voice: str | None = None) -> None:
        """
        Synthesize text, publish it and wait until it has played.

        Raises:
            PlaybackError: If synthesis fails
        """
        clip = await self.text_to_speech(text, voice)

        for listener in self._listeners:
            try:
                await listener(clip)
            except Exception as e:
                logger.error(f"Audio listener error: {e}")

        await self._sleep(clip["duration_seconds"])

    # =========================================================================
    # TEXT-TO-SPEECH
    # =========================================================================

    async def text_to_speech(
        self,
        text: str,
        voice: str | None = None,
    ) -> dict[str, Any]:
        """
        Convert text to speech.

        Args:
            text: Text to synthesize
            voice: Voice to use (optional, uses default)

        Returns:
            Dict with audio_data (base64), format, sample_rate, duration_seconds

        Raises:
            PlaybackError: If the backend fails or is unknown
        """
        tts_model = self.settings.tts_model.lower()
        voice = voice or self.settings.tts_voice

        if tts_model == "gemini":
            return await self._tts_gemini(text, voice)
        elif tts_model == "edge-tts":
            return await self._tts_edge(text, voice)
        raise PlaybackError(f"Unknown TTS backend: {self.settings.tts_model}")

    async def _tts_gemini(self, text: str, voice: str) -> dict[str, Any]:
        """Generate speech using Gemini TTS."""
        if self.gemini is None:
            raise PlaybackError("Gemini TTS backend selected but no client configured")

        try:
            audio_data = await self.gemini.synthesize_speech(text, voice)
            duration = wav_duration(audio_data)
        except Exception as e:
            logger.error(f"Gemini TTS failed: {e}")
            raise PlaybackError(f"Gemini TTS failed: {e}") from e

        return {
            "audio_data": base64.b64encode(audio_data).decode("utf-8"),
            "format": "wav",
            "sample_rate": self.settings.tts_rate,
            "duration_seconds": duration,
            "text": text,
        }

    async def _tts_edge(self, text: str, voice: str) -> dict[str, Any]:
        """Generate speech using Edge TTS (Microsoft)."""
        import edge_tts

        edge_voice = self.EDGE_VOICES.get(voice, self.EDGE_VOICES["default"])

        try:
            communicate = edge_tts.Communicate(text, edge_voice)

            audio_chunks = []
            async for chunk in communicate.stream():
                if chunk["type"] == "audio":
                    audio_chunks.append(chunk["data"])
        except Exception as e:
            logger.error(f"Edge TTS failed: {e}")
            raise PlaybackError(f"Edge TTS failed: {e}") from e

        audio_data = b"".join(audio_chunks)
        if not audio_data:
            raise PlaybackError("Edge TTS returned no audio")

        return {
            "audio_data": base64.b64encode(audio_data).decode("utf-8"),
            "format": "mp3",
            "sample_rate": 24000,
            "duration_seconds": estimate_duration(text),
            "text": text,
        }


# =============================================================================
# STREAMING CAPTURE
# =============================================================================


class StreamingCapture:
    """
    One recording in progress.

    Chunks are appended until the subject stops, the ceiling is reached or
    the client reports a device error. A device error discards the audio.
    """

    def __init__(
        self,
        device: "StreamingCaptureDevice",
        max_duration_seconds: int,
        mime_type: str,
    ):
        self._device = device
        self.max_duration_seconds = max_duration_seconds
        self.mime_type = mime_type
        self._chunks: list[bytes] = []
        self._stopped = False
        self._released = False
        self._error: str | None = None
        self._artifact: AudioArtifact | None = None
        self._timer: asyncio.TimerHandle | None = None

        loop = asyncio.get_running_loop()
        self._started_at = loop.time()
        self._stopped_at: float | None = None

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def released(self) -> bool:
        return self._released

    def _start_timer(self) -> None:
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.max_duration_seconds, self.request_stop)

    def feed(self, chunk: bytes) -> None:
        if self._stopped:
            logger.debug("Dropping audio chunk after capture stopped")
            return
        self._chunks.append(chunk)

    def request_stop(self) -> None:
        """Stop early (subject) or at the ceiling (timer)."""
        if not self._stopped:
            self._stopped = True
            self._stopped_at = asyncio.get_running_loop().time()

    def fail(self, message: str) -> None:
        """Record a device error reported by the client."""
        self._error = message
        self.request_stop()

    async def stop(self) -> AudioArtifact:
        """
        Finalize the capture.

        Raises:
            CaptureError: If the client reported a device error
        """
        self.request_stop()
        if self._error is not None:
            raise CaptureError(f"Recording device error: {self._error}")

        if self._artifact is None:
            elapsed = (self._stopped_at or self._started_at) - self._started_at
            self._artifact = AudioArtifact(
                data=b"".join(self._chunks),
                mime_type=self.mime_type,
                duration_seconds=min(max(elapsed, 0.0), float(self.max_duration_seconds)),
            )
        return self._artifact

    async def release(self) -> None:
        if self._released:
            return
        self._released = True
        if self._timer is not None:
            self._timer.cancel()
        self.request_stop()
        self._device._release(self)


class StreamingCaptureDevice:
    """
    Capture device fed by the client over a WebSocket.

    Holds at most one capture at a time. Chunks that arrive while no
    capture is active are dropped.
    """

    def __init__(self, mime_type: str = "audio/webm"):
        self.mime_type = mime_type
        self._lock = asyncio.Lock()
        self._active: StreamingCapture | None = None

    @property
    def active(self) -> StreamingCapture | None:
        return self._active

    @property
    def in_use(self) -> bool:
        return self._lock.locked()

    async def begin_capture(self, max_duration_seconds: int) -> StreamingCapture:
        """
        Acquire the device and start a capture.

        Raises:
            CaptureError: If the device is already in use or setup fails
        """
        if self._lock.locked():
            raise CaptureError("Capture device is already in use")
        await self._lock.acquire()

        try:
            capture = StreamingCapture(self, max_duration_seconds, self.mime_type)
            capture._start_timer()
        except Exception as e:
            self._lock.release()
            raise CaptureError(f"Could not start capture: {e}") from e

        self._active = capture
        logger.debug(f"Capture started (max {max_duration_seconds}s)")
        return capture

    def feed(self, chunk: bytes) -> None:
        if self._active is None:
            logger.debug("Dropping audio chunk, no capture active")
            return
        self._active.feed(chunk)

    def request_stop(self) -> None:
        if self._active is not None:
            self._active.request_stop()

    def fail(self, message: str) -> None:
        if self._active is not None:
            self._active.fail(message)

    def _release(self, capture: StreamingCapture) -> None:
        if self._active is capture:
            self._active = None
            self._lock.release()
            logger.debug("Capture device released")

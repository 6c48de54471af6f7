"""Audio output for synthesized speech.

`AudioPlayer` decodes provider audio with soundfile into a float32 buffer and streams it
through a PyAudio callback stream. It doubles as the playback clock for the scheduler:
`elapsed_ms` is the wall-clock time spent playing, excluding pauses.

Supported input: anything libsndfile decodes (WAV, OGG, MP3 with libsndfile 1.1+).
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from dataclasses import dataclass
from io import BytesIO
from typing import TYPE_CHECKING, Any, Final

import numpy as np
import pyaudio
import soundfile

from models.speech_models import MAX_RATE, MAX_VOLUME, MIN_RATE, MIN_VOLUME
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from numpy import dtype

__all__: list[str] = ["AudioPlayer", "AudioPlayerError", "DecodedAudio", "decode_audio"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

# 0.2 seconds of audio per callback, but never fewer than 2048 frames
BUFFER_SECONDS: Final[float] = 0.2
MIN_BUFFER_FRAMES: Final[int] = 2048


class AudioPlayerError(Exception):
    """Audio could not be decoded or played."""


def _read_frames(
    pcm: np.ndarray[Any, dtype[np.float32]], cursor: float, frame_count: int, rate: float
) -> tuple[np.ndarray[Any, dtype[np.float32]], float]:
    """Take `frame_count` output frames starting at `cursor`, stepping by `rate` source frames.

    Stepping through the source faster or slower than one frame per output frame changes
    the playback speed without reopening the stream at another sample rate.

    Returns:
        tuple[ndarray, float]: Output frames (possibly fewer than requested at the end) and
            the new cursor position.
    """
    total: int = pcm.shape[0]
    positions: np.ndarray[Any, Any] = cursor + np.arange(frame_count, dtype=np.float64) * rate
    indices: np.ndarray[Any, Any] = positions[positions < total].astype(np.int64)
    return pcm[indices], cursor + frame_count * rate


@dataclass(frozen=True, eq=False)
class DecodedAudio:
    """Float32 samples ready for output."""

    pcm: np.ndarray[Any, dtype[np.float32]]
    samplerate: int

    @property
    def channels(self) -> int:
        return 1 if self.pcm.ndim == 1 else int(self.pcm.shape[1])

    @property
    def duration_seconds(self) -> float:
        return self.pcm.shape[0] / self.samplerate if self.samplerate else 0.0


def decode_audio(audio: bytes, volume: float = 1.0) -> DecodedAudio:
    """Decode encoded audio to float32 samples with the volume applied.

    Raises:
        AudioPlayerError: If the data cannot be decoded.
    """
    try:
        # soundfile needs a seekable file object positioned at the start
        raw_pcm, samplerate = soundfile.read(BytesIO(audio), dtype="float32")
    except (soundfile.LibsndfileError, soundfile.SoundFileRuntimeError, RuntimeError, TypeError) as err:
        msg: str = f"Could not decode audio: {err}"
        raise AudioPlayerError(msg) from err

    if not isinstance(raw_pcm, np.ndarray) or raw_pcm.dtype != np.float32:
        msg = f"Expected float32 ndarray, got {type(raw_pcm)}"
        raise AudioPlayerError(msg)

    gain: float = max(MIN_VOLUME, min(MAX_VOLUME, volume))
    if gain != 1.0:
        # Broadcasting on the ndarray keeps float32 and is far faster than per-sample work
        raw_pcm *= gain
    return DecodedAudio(pcm=raw_pcm, samplerate=int(samplerate))


class AudioPlayer:
    """Plays one decoded audio buffer at a time.

    The PyAudio callback runs on the PortAudio thread; it only reads the buffer and the
    cursor, and hands completion back to the event loop with `call_soon_threadsafe`.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        """Create the player.

        Args:
            clock (Callable[[], float]): Monotonic time source in seconds.
        """
        self._clock: Callable[[], float] = clock
        self._pyaudio: pyaudio.PyAudio | None = None
        self.stream: pyaudio.Stream | None = None
        self._pcm: np.ndarray[Any, dtype[np.float32]] | None = None
        self._samplerate: int = 0
        self._channels: int = 1
        self._cursor: float = 0.0
        self._rate: float = 1.0
        self._loop: asyncio.AbstractEventLoop | None = None
        self._finished: asyncio.Event = asyncio.Event()
        # Wall-clock accounting for elapsed_ms
        self._elapsed_before: float = 0.0
        self._resumed_at: float | None = None

    async def decode(self, audio: bytes, *, volume: float = 1.0) -> DecodedAudio:
        """Decode in a worker thread so long clips do not block the event loop.

        The player itself is not touched; pass the result to `set_buffer()`.
        """
        return await asyncio.to_thread(decode_audio, audio, volume)

    def load(self, audio: bytes, *, volume: float = 1.0) -> None:
        """Decode audio into the playback buffer, replacing any previous buffer.

        Args:
            audio (bytes): Encoded audio data.
            volume (float): Linear gain applied to the samples, 0.0-1.0.

        Raises:
            AudioPlayerError: If the data cannot be decoded.
        """
        self.set_buffer(decode_audio(audio, volume))

    def set_buffer(self, decoded: DecodedAudio) -> None:
        """Stop any playback and replace the buffer."""
        self.stop()
        self._pcm = decoded.pcm
        self._samplerate = decoded.samplerate
        self._channels = decoded.channels
        logger.debug(
            "Audio loaded - frames: %d, channels: %d, sampling rate: %d",
            decoded.pcm.shape[0],
            self._channels,
            self._samplerate,
        )

    @property
    def is_loaded(self) -> bool:
        return self._pcm is not None

    @property
    def duration_seconds(self) -> float:
        if self._pcm is None or self._samplerate == 0:
            return 0.0
        return self._pcm.shape[0] / self._samplerate

    @property
    def playback_rate(self) -> float:
        return self._rate

    @playback_rate.setter
    def playback_rate(self, rate: float) -> None:
        self._rate = max(MIN_RATE, min(MAX_RATE, float(rate)))

    @property
    def elapsed_ms(self) -> float:
        """Wall-clock milliseconds spent playing since the last `play()`, excluding pauses."""
        elapsed: float = self._elapsed_before
        if self._resumed_at is not None:
            elapsed += self._clock() - self._resumed_at
        return elapsed * 1000.0

    @property
    def position_ms(self) -> float:
        """Position in the loaded audio in milliseconds, independent of the playback rate.

        Follows the stream callback, so it runs ahead of the audible sound by up to one
        output buffer.
        """
        if not self._samplerate:
            return 0.0
        return self._cursor / self._samplerate * 1000.0

    @property
    def is_playing(self) -> bool:
        if self.stream is None:
            return False
        return self.stream.is_active()

    @property
    def is_paused(self) -> bool:
        return self.stream is not None and self._resumed_at is None and not self._finished.is_set()

    def play(self, rate: float | None = None) -> None:
        """Start playback of the loaded buffer from the beginning.

        Raises:
            AudioPlayerError: If nothing is loaded or the output stream cannot be opened.
        """
        if self._pcm is None:
            msg = "No audio loaded"
            raise AudioPlayerError(msg)

        self._close_stream()
        if rate is not None:
            self.playback_rate = rate
        self._loop = asyncio.get_running_loop()
        self._finished = asyncio.Event()
        self._cursor = 0.0
        self._elapsed_before = 0.0

        frame_buffer_size: int = max(MIN_BUFFER_FRAMES, int(self._samplerate * BUFFER_SECONDS))
        try:
            self.stream = self.pyaudio.open(
                format=pyaudio.paFloat32,
                channels=self._channels,
                rate=self._samplerate,
                output=True,
                frames_per_buffer=frame_buffer_size,
                stream_callback=self._stream_callback,
            )
            self.stream.start_stream()
        except (OSError, ValueError) as err:
            self._close_stream()
            msg = f"Could not open audio output: {err}"
            raise AudioPlayerError(msg) from err
        self._resumed_at = self._clock()
        logger.debug("Playback started at rate %.2f", self._rate)

    def _stream_callback(self, in_data, frame_count, time_info, status) -> tuple[bytes | None, int]:
        _ = in_data, time_info, status
        pcm = self._pcm
        if pcm is None:
            self._signal_finished()
            return (None, pyaudio.paAbort)

        data, self._cursor = _read_frames(pcm, self._cursor, frame_count, self._rate)
        if data.shape[0] < frame_count:
            self._signal_finished()
            return (data.tobytes(), pyaudio.paComplete)
        return (data.tobytes(), pyaudio.paContinue)

    def _signal_finished(self) -> None:
        if self._loop is None:
            return
        try:
            self._loop.call_soon_threadsafe(self._mark_finished)
        except RuntimeError as err:
            # Event loop already closed
            logger.critical("Runtime error in audio callback: %s", err)

    def _mark_finished(self) -> None:
        self._freeze_clock()
        self._finished.set()

    def _freeze_clock(self) -> None:
        if self._resumed_at is not None:
            self._elapsed_before += self._clock() - self._resumed_at
            self._resumed_at = None

    def pause(self) -> None:
        """Stop audio output, keeping the position."""
        if self.stream is None or self._resumed_at is None:
            return
        self._freeze_clock()
        with contextlib.suppress(OSError):
            self.stream.stop_stream()
        logger.debug("Playback paused at %.0f ms", self.elapsed_ms)

    def resume(self) -> None:
        """Continue audio output from the paused position."""
        if self.stream is None or self._resumed_at is not None or self._finished.is_set():
            return
        self.stream.start_stream()
        self._resumed_at = self._clock()
        logger.debug("Playback resumed at %.0f ms", self.elapsed_ms)

    def stop(self) -> None:
        """Stop playback and rewind. Waiters on `wait_finished()` are released."""
        self._close_stream()
        self._cursor = 0.0
        self._elapsed_before = 0.0
        self._resumed_at = None
        self._finished.set()

    def unload(self) -> None:
        """Stop playback and drop the decoded buffer."""
        self.stop()
        self._pcm = None
        self._samplerate = 0

    async def wait_finished(self) -> None:
        """Wait until playback completes or is stopped."""
        await self._finished.wait()

    def _close_stream(self) -> None:
        if self.stream is None:
            return
        with contextlib.suppress(Exception):
            self.stream.stop_stream()
        with contextlib.suppress(Exception):
            self.stream.close()
        self.stream = None

    @property
    def pyaudio(self) -> pyaudio.PyAudio:
        """PyAudio instance, created on first use and after `release()`."""
        if self._pyaudio is None:
            self._pyaudio = pyaudio.PyAudio()
            logger.debug("PyAudio instance created")
        return self._pyaudio

    def release(self) -> None:
        """Stop playback and release the PyAudio resources."""
        self.unload()
        if self._pyaudio is not None:
            self._pyaudio.terminate()
            self._pyaudio = None
            logger.info("PyAudio resources released")

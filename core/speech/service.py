"""Public synthesis service: provider binding, playback sessions and highlight events.

`SpeechSynthesisService` is the only object callers talk to. It resolves catalog overrides,
annotates text for providers that need SSML marks, synthesizes (through the cache when one
is configured), plays the audio and drives a `PlaybackScheduler` that reports the word
being spoken to the registered boundary listeners.

At most one playback session exists at a time. Starting a new one, stopping, reaching the
end of the audio and failing all go through the same teardown, which cancels the poll task,
stops the audio output, drops the decoded buffer and clears the highlight.
"""

from __future__ import annotations

import asyncio
import itertools
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from core.cache.synthesis_cache import generate_cache_key
from core.speech.audio_player import AudioPlayer, AudioPlayerError
from core.speech.interface import (
    SpeechProvider,
    TTSExceptionError,
    TTSInitializationError,
    TTSProviderError,
)
from core.speech.playback_scheduler import DEFAULT_POLL_INTERVAL, PlaybackScheduler
from handlers.speech_marks import adjust_marks_for_rate, mark_at_time, speech_mark_stats
from handlers.ssml_marks import extract_speech_marks, prepare_text
from models.speech_models import (
    MAX_RATE,
    MIN_RATE,
    PlaybackState,
    PlaybackStatus,
    ProviderCapabilities,
    SpeechMark,
    SynthesisRequest,
    SynthesisResult,
)
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from core.cache.synthesis_cache import SynthesisCache
    from core.catalog.resolver import CatalogResolver
    from core.speech.playback_scheduler import BoundaryCallback
    from models.config_models import ProviderSettings

__all__: list[str] = ["SpeechSynthesisService"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

type StateCallback = Callable[[PlaybackState], None]
type ClearCallback = Callable[[], None]

# Playback rate is applied by the player, so cached audio is keyed at the reference rate
CACHE_REFERENCE_RATE: Final[float] = 1.0

_session_ids = itertools.count(1)


@dataclass
class _PlaybackSession:
    """Everything owned by one `speak()` call. Never handed out to callers."""

    request: SynthesisRequest
    text: str
    session_id: int = field(default_factory=lambda: next(_session_ids))
    marks: list[SpeechMark] = field(default_factory=list)
    scheduler: PlaybackScheduler | None = None
    started_at: float | None = None
    playback_rate: float = 1.0
    paused: bool = False
    cancelled: bool = False
    restart_requested: bool = False
    # Set when a paused session may continue, or when it is torn down
    resume_event: asyncio.Event = field(default_factory=asyncio.Event)


class SpeechSynthesisService:
    """Speaks text through a bound provider and reports word boundaries while doing so."""

    def __init__(
        self,
        *,
        player: AudioPlayer | None = None,
        catalog_resolver: CatalogResolver | None = None,
        cache: SynthesisCache | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        rate: float = 1.0,
        volume: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Create the service.

        Args:
            player (AudioPlayer | None): Audio output; a default player is created when omitted.
            catalog_resolver (CatalogResolver | None): Source of alternate spoken forms.
            cache (SynthesisCache | None): Cache for synthesized audio, None to disable caching.
            poll_interval (float): Seconds between boundary polls.
            rate (float): Default playback rate.
            volume (float): Default output volume.
            clock (Callable[[], float]): Time source used for session timestamps.
        """
        self.player: AudioPlayer = player if player is not None else AudioPlayer()
        self.catalog_resolver: CatalogResolver | None = catalog_resolver
        self.cache: SynthesisCache | None = cache
        self.poll_interval: float = poll_interval
        self.rate: float = max(MIN_RATE, min(MAX_RATE, rate))
        self.volume: float = volume
        self._clock: Callable[[], float] = clock
        self._provider: SpeechProvider | None = None
        self._state: PlaybackState = PlaybackState.IDLE
        self._session: _PlaybackSession | None = None
        self._boundary_listeners: list[BoundaryCallback] = []
        self._state_listeners: list[StateCallback] = []
        self._clear_listeners: list[ClearCallback] = []

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def on_word_boundary(self, callback: BoundaryCallback) -> None:
        """Register a callback receiving `(offset_start, offset_length)` for each spoken word."""
        if callback not in self._boundary_listeners:
            self._boundary_listeners.append(callback)

    def off_word_boundary(self, callback: BoundaryCallback) -> None:
        if callback in self._boundary_listeners:
            self._boundary_listeners.remove(callback)

    def on_state_change(self, callback: StateCallback) -> None:
        if callback not in self._state_listeners:
            self._state_listeners.append(callback)

    def off_state_change(self, callback: StateCallback) -> None:
        if callback in self._state_listeners:
            self._state_listeners.remove(callback)

    def on_highlight_clear(self, callback: ClearCallback) -> None:
        """Register a callback invoked whenever the current highlight should be removed."""
        if callback not in self._clear_listeners:
            self._clear_listeners.append(callback)

    def off_highlight_clear(self, callback: ClearCallback) -> None:
        if callback in self._clear_listeners:
            self._clear_listeners.remove(callback)

    # ------------------------------------------------------------------
    # Provider binding
    # ------------------------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def provider(self) -> SpeechProvider | None:
        return self._provider

    async def initialize(self, provider: SpeechProvider | str, settings: ProviderSettings | None = None) -> None:
        """Bind a provider, replacing any previously bound one.

        Args:
            provider (SpeechProvider | str): Provider instance or registered provider name.
            settings (ProviderSettings | None): Settings passed to the provider.

        Raises:
            TTSInitializationError: If the provider cannot be created or configured.
        """
        await self._teardown_session()
        if self._provider is not None:
            await self._provider.destroy()
            self._provider = None

        self._set_state(PlaybackState.INITIALIZING)
        try:
            if isinstance(provider, str):
                try:
                    provider = SpeechProvider.get_provider(provider)()
                except ValueError as err:
                    raise TTSInitializationError(str(err), provider_id=provider) from err
            provider.initialize(settings)
            await provider.async_init()
        except TTSExceptionError:
            self._set_state(PlaybackState.ERROR)
            raise

        self._provider = provider
        self._set_state(PlaybackState.READY)
        logger.info("Provider '%s' bound: %s", provider.provider_id, provider.get_capabilities())

    def get_capabilities(self) -> ProviderCapabilities:
        """Capabilities of the bound provider.

        Raises:
            TTSInitializationError: If no provider is bound.
        """
        return self._require_provider().get_capabilities()

    def _require_provider(self) -> SpeechProvider:
        if self._provider is None:
            msg = "No provider is bound; call initialize() first"
            raise TTSInitializationError(msg)
        return self._provider

    # ------------------------------------------------------------------
    # Speaking
    # ------------------------------------------------------------------

    async def speak(
        self,
        text: str,
        *,
        catalog_id: str | None = None,
        language: str | None = None,
        voice: str | None = None,
        rate: float | None = None,
        volume: float | None = None,
    ) -> None:
        """Speak `text` and return when playback ends or the session is stopped.

        An active session is torn down first. When `catalog_id` resolves to a spoken
        alternative, that text is spoken instead and boundary offsets refer to it.

        Raises:
            TTSInitializationError: If no provider is bound.
            TTSExceptionError: Any provider failure, carrying the provider id.
        """
        provider: SpeechProvider = self._require_provider()
        await self._teardown_session()

        spoken_text: str = text
        if self.catalog_resolver is not None:
            spoken_text = self.catalog_resolver.resolve_text(text, catalog_id, language)

        request = SynthesisRequest(
            text=spoken_text,
            voice=voice,
            language=language,
            rate=self.rate if rate is None else rate,
            volume=self.volume if volume is None else volume,
            catalog_id=catalog_id,
        )
        session = _PlaybackSession(request=request, text=spoken_text, playback_rate=request.rate)
        self._session = session
        self._set_state(PlaybackState.SPEAKING)
        logger.debug("Session %d started: %d characters", session.session_id, len(spoken_text))

        try:
            await self._run_session(session, provider)
        except asyncio.CancelledError:
            if self._session is session:
                await self._end_session(session, PlaybackState.STOPPED)
            raise
        except TTSExceptionError as err:
            if err.provider_id is None:
                err.provider_id = provider.provider_id
            if await self._fail_session(session, err):
                raise
        except (AudioPlayerError, OSError, ValueError) as err:
            wrapped = TTSProviderError(f"Playback failed: {err}", provider_id=provider.provider_id)
            if await self._fail_session(session, wrapped):
                raise wrapped from err
        else:
            if self._session is session:
                logger.debug("Session %d finished", session.session_id)
                await self._end_session(session, PlaybackState.STOPPED)

    async def _run_session(self, session: _PlaybackSession, provider: SpeechProvider) -> None:
        capabilities: ProviderCapabilities = provider.get_capabilities()
        if capabilities.owns_playback:
            await self._drive_provider_playback(session, provider)
            return

        result, marks = await self._synthesize(session, provider, capabilities)
        if session.cancelled:
            return
        decoded = await self.player.decode(result.audio, volume=session.request.volume)
        if session.cancelled:
            return
        self.player.set_buffer(decoded)
        session.marks = marks
        await self._drive_player(session)

    async def _synthesize(
        self, session: _PlaybackSession, provider: SpeechProvider, capabilities: ProviderCapabilities
    ) -> tuple[SynthesisResult, list[SpeechMark]]:
        """Synthesize the session text and return the audio with marks in session text offsets."""
        request: SynthesisRequest = session.request
        # Checked on the plain text; injected markup would hide empty input
        provider.validate_request(request)
        word_map = None
        if capabilities.supports_word_boundary and capabilities.requires_mark_injection:
            prepared = prepare_text(request.text)
            if prepared.degraded:
                logger.info("Input is SSML; marks are placed on its plain text")
            session.text = prepared.text
            word_map = prepared.word_map
            request.text = prepared.ssml

        cache_key: str | None = None
        result: SynthesisResult | None = None
        if self.cache is not None:
            cache_key = generate_cache_key(
                provider=provider.provider_id,
                text=request.text,
                voice=request.voice,
                language=request.language,
                rate=CACHE_REFERENCE_RATE,
            )
            result = self.cache.get(cache_key)
        if result is None:
            result = await provider.synthesize(request)
            if self.cache is not None and cache_key is not None:
                self.cache.set(cache_key, result)

        marks: list[SpeechMark]
        if not capabilities.supports_word_boundary:
            marks = []
        elif word_map is not None:
            marks = extract_speech_marks(result.timepoints, word_map)
        else:
            marks = list(result.marks)

        if marks:
            stats = speech_mark_stats(marks)
            logger.debug(
                "Session %d: %d marks over %d ms (cached=%s)",
                session.session_id,
                stats.count,
                stats.total_duration_ms,
                result.metadata.cached,
            )
        return result, marks

    async def _drive_player(self, session: _PlaybackSession) -> None:
        """Play the loaded buffer, restarting it when a resume asks for a restart."""
        while True:
            if session.paused:
                # Paused before audio was ready: hold playback until resume() or teardown
                session.resume_event.clear()
                await session.resume_event.wait()
                if session.cancelled:
                    return
            session.restart_requested = False
            self.player.play(rate=session.playback_rate)
            session.started_at = self._clock()
            session.scheduler = PlaybackScheduler(
                session.marks,
                self.player,
                self._boundary_emitter(session),
                poll_interval=self.poll_interval,
            )
            session.scheduler.start()
            await self.player.wait_finished()

            if session.cancelled:
                return
            if session.restart_requested:
                await session.scheduler.stop()
                continue
            await session.scheduler.stop()
            return

    async def _drive_provider_playback(self, session: _PlaybackSession, provider: SpeechProvider) -> None:
        """Let the provider speak; a pause cuts the utterance and a resume speaks it again."""
        while True:
            session.restart_requested = False
            session.started_at = self._clock()
            await provider.speak(session.request)
            if session.cancelled:
                return
            if not (session.paused or session.restart_requested):
                return
            await session.resume_event.wait()
            session.resume_event.clear()
            if session.cancelled:
                return

    def _boundary_emitter(self, session: _PlaybackSession) -> BoundaryCallback:
        def emit(offset_start: int, offset_length: int) -> None:
            # A superseded session must never reach the listeners
            if self._session is not session or session.cancelled:
                return
            for callback in list(self._boundary_listeners):
                try:
                    callback(offset_start, offset_length)
                except Exception as err:  # noqa: BLE001
                    logger.error("Word boundary listener failed: %s", err)

        return emit

    # ------------------------------------------------------------------
    # Playback control
    # ------------------------------------------------------------------

    async def pause(self) -> None:
        """Pause the active session. Ignored when nothing is speaking."""
        session: _PlaybackSession | None = self._session
        if session is None or self._state is not PlaybackState.SPEAKING:
            logger.debug("pause() ignored in state %s", self._state)
            return
        provider: SpeechProvider = self._require_provider()
        capabilities: ProviderCapabilities = provider.get_capabilities()
        if not capabilities.supports_pause:
            logger.warning("Provider '%s' cannot pause", provider.provider_id)
            return

        session.paused = True
        if session.scheduler is not None:
            await session.scheduler.pause()
        if capabilities.owns_playback:
            await provider.pause()
        else:
            self.player.pause()
        self._set_state(PlaybackState.PAUSED)

    async def resume(self) -> None:
        """Resume a paused session.

        Providers that cannot resume start the session over from the beginning.
        """
        session: _PlaybackSession | None = self._session
        if session is None or self._state is not PlaybackState.PAUSED:
            logger.debug("resume() ignored in state %s", self._state)
            return
        provider: SpeechProvider = self._require_provider()
        capabilities: ProviderCapabilities = provider.get_capabilities()
        session.paused = False
        if not capabilities.owns_playback:
            session.resume_event.set()

        if capabilities.supports_resume:
            if capabilities.owns_playback:
                await provider.resume()
            else:
                self.player.resume()
            if session.scheduler is not None:
                session.scheduler.resume()
            self._set_state(PlaybackState.SPEAKING)
            return

        logger.info("Provider '%s' cannot resume; restarting from the beginning", provider.provider_id)
        self._emit_highlight_clear()
        session.restart_requested = True
        self._set_state(PlaybackState.SPEAKING)
        if capabilities.owns_playback:
            session.resume_event.set()
        else:
            # Releases the playback wait so the session loop plays again
            self.player.stop()

    async def stop(self) -> None:
        """Stop the active session. `speak()` then returns normally."""
        if self._session is None:
            logger.debug("stop() ignored: no active session")
            return
        await self._teardown_session()
        self._set_state(PlaybackState.STOPPED)

    def set_rate(self, rate: float) -> float:
        """Change the playback rate, clamped to 0.25-4.0.

        Applies immediately to player-driven sessions; providers that play audio themselves
        pick it up on their next utterance.

        Returns:
            float: The rate actually applied.
        """
        clamped: float = max(MIN_RATE, min(MAX_RATE, float(rate)))
        self.rate = clamped
        session: _PlaybackSession | None = self._session
        if session is not None:
            session.playback_rate = clamped
            session.request.rate = clamped
            if self._provider is not None and not self._provider.get_capabilities().owns_playback:
                self.player.playback_rate = clamped
        logger.debug("Playback rate set to %.2f", clamped)
        return clamped

    def is_playing(self) -> bool:
        return self._state is PlaybackState.SPEAKING

    def is_paused(self) -> bool:
        return self._state is PlaybackState.PAUSED

    @property
    def status(self) -> PlaybackStatus:
        """Read-only snapshot of the active session."""
        session: _PlaybackSession | None = self._session
        if session is None:
            return PlaybackStatus(state=self._state, playback_rate=self.rate)
        return PlaybackStatus(
            state=self._state,
            text=session.text,
            playback_rate=session.playback_rate,
            last_fired_mark_index=session.scheduler.last_fired_index if session.scheduler else -1,
            mark_count=len(session.marks),
            started_at=session.started_at,
        )

    def current_mark(self) -> SpeechMark | None:
        """Mark closest to the current audio position, None when nothing is playing.

        The position is read from the player's cursor in the synthesized audio, so it stays
        correct when the rate changes mid-session.
        """
        session: _PlaybackSession | None = self._session
        if session is None or not session.marks:
            return None
        return mark_at_time(session.marks, round(self.player.position_ms))

    def timeline(self) -> list[SpeechMark]:
        """Marks of the active session with times scaled to the current playback rate."""
        session: _PlaybackSession | None = self._session
        if session is None:
            return []
        return adjust_marks_for_rate(session.marks, session.playback_rate)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def _teardown_session(self) -> None:
        """Release everything held by the active session."""
        session: _PlaybackSession | None = self._session
        if session is None:
            return
        self._session = None
        session.cancelled = True
        session.resume_event.set()
        if session.scheduler is not None:
            await session.scheduler.stop()

        provider: SpeechProvider | None = self._provider
        if provider is not None and provider.get_capabilities().owns_playback:
            await provider.stop()
        else:
            self.player.unload()
        self._emit_highlight_clear()
        logger.debug("Session %d torn down", session.session_id)

    async def _end_session(self, session: _PlaybackSession, state: PlaybackState) -> None:
        if self._session is session:
            await self._teardown_session()
        self._set_state(state)

    async def _fail_session(self, session: _PlaybackSession, err: TTSExceptionError) -> bool:
        """Tear down after a failure.

        Returns:
            bool: True when the error should reach the caller, False when the session had
                already been superseded.
        """
        if session.cancelled and self._session is not session:
            logger.debug("Session %d failed after teardown: %s", session.session_id, err)
            return False
        logger.error("Synthesis failed: %s", err)
        await self._end_session(session, PlaybackState.ERROR)
        return True

    async def destroy(self) -> None:
        """Stop playback and release the provider and the audio output."""
        await self._teardown_session()
        if self._provider is not None:
            await self._provider.destroy()
            self._provider = None
        self.player.release()
        self._set_state(PlaybackState.IDLE)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _set_state(self, state: PlaybackState) -> None:
        if state is self._state:
            return
        logger.debug("State: %s -> %s", self._state, state)
        self._state = state
        for callback in list(self._state_listeners):
            try:
                callback(state)
            except Exception as err:  # noqa: BLE001
                logger.error("State listener failed: %s", err)

    def _emit_highlight_clear(self) -> None:
        for callback in list(self._clear_listeners):
            try:
                callback()
            except Exception as err:  # noqa: BLE001
                logger.error("Highlight clear listener failed: %s", err)

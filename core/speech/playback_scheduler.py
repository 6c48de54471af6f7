"""Real-time word boundary scheduling.

Providers return marks timed at the 1.0x reference rate, while the audio clock reports the
wall-clock time actually spent playing. Each poll compares the two: a mark is due once
`mark.time_ms / playback_rate <= elapsed_ms`. Rate changes therefore apply to every mark
that has not fired yet and never rewind marks that already fired.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING, Final, Protocol

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable, Sequence

    from models.speech_models import SpeechMark

__all__: list[str] = ["BoundaryCallback", "PlaybackClock", "PlaybackScheduler"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

DEFAULT_POLL_INTERVAL: Final[float] = 0.05

type BoundaryCallback = Callable[[int, int], None]


class PlaybackClock(Protocol):
    """Anything that reports playback progress, typically the `AudioPlayer`."""

    @property
    def elapsed_ms(self) -> float: ...

    @property
    def playback_rate(self) -> float: ...


class PlaybackScheduler:
    """Fires boundary callbacks for speech marks as playback reaches them.

    Attributes:
        marks (Sequence[SpeechMark]): Marks sorted by time.
        poll_interval (float): Seconds between polls.
    """

    def __init__(
        self,
        marks: Sequence[SpeechMark],
        clock: PlaybackClock,
        on_boundary: BoundaryCallback | None,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        if poll_interval <= 0:
            msg: str = f"poll_interval must be positive, got {poll_interval}"
            raise ValueError(msg)
        self.marks: Sequence[SpeechMark] = marks
        self.poll_interval: float = poll_interval
        self._clock: PlaybackClock = clock
        self._on_boundary: BoundaryCallback | None = on_boundary
        self._last_fired_index: int = -1
        self._task: asyncio.Task[None] | None = None

    @property
    def last_fired_index(self) -> int:
        return self._last_fired_index

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_finished(self) -> bool:
        return self._last_fired_index >= len(self.marks) - 1

    def start(self) -> None:
        """Start polling. Does nothing when there are no marks or no callback."""
        if not self.marks or self._on_boundary is None:
            logger.debug("Scheduler not started: marks=%d, callback=%s", len(self.marks), self._on_boundary)
            return
        if self.is_running:
            return
        self._task = asyncio.create_task(self._poll(), name="boundary_poll_task")

    def tick(self) -> int:
        """Fire every mark that is due.

        Scans forward from the last fired mark, so marks sharing a timestamp fire in word
        order within one tick.

        Returns:
            int: Number of marks fired.
        """
        if self._on_boundary is None:
            return 0
        elapsed: float = self._clock.elapsed_ms
        rate: float = self._clock.playback_rate or 1.0
        fired: int = 0
        index: int = self._last_fired_index + 1
        while index < len(self.marks):
            mark: SpeechMark = self.marks[index]
            if mark.time_ms / rate > elapsed:
                break
            self._last_fired_index = index
            fired += 1
            try:
                self._on_boundary(mark.start_offset, mark.end_offset - mark.start_offset)
            except Exception as err:  # noqa: BLE001
                logger.error("Boundary callback failed for mark %d: %s", index, err)
            index += 1
        return fired

    async def _poll(self) -> None:
        try:
            while not self.is_finished:
                self.tick()
                if self.is_finished:
                    break
                await asyncio.sleep(self.poll_interval)
        except asyncio.CancelledError:
            logger.debug("Boundary polling cancelled at index %d", self._last_fired_index)
            raise
        logger.debug("All %d marks fired", len(self.marks))

    async def _cancel(self) -> None:
        task: asyncio.Task[None] | None = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def pause(self) -> None:
        """Stop polling; the fired index is kept."""
        await self._cancel()

    def resume(self) -> None:
        """Continue polling from the kept index."""
        self.start()

    async def stop(self) -> None:
        """Stop polling and reset the fired index."""
        await self._cancel()
        self._last_fired_index = -1

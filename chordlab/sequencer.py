"""Sequencer: timed playback of a chord progression on a cancellable scheduler."""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, Hashable, Protocol, Sequence

from chordlab.audio_graph import AudioGraph
from chordlab.synth import CHORD_DURATION, play_chord, play_metronome_click
from chordlab.theory import parse_chord

_LOGGER = logging.getLogger("chordlab.sequencer")

#: One chord per 4/4 bar.
BEATS_PER_CHORD = 4

ChordCallback = Callable[[int, str, Sequence[int]], None]


# ── Schedulers ──────────────────────────────────────────────────────────────


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything that can run a callback after a delay and cancel it."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Timers on an asyncio event loop (the running loop by default)."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


@dataclass(order=True)
class _ManualTimer:
    due: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Timers against a virtual clock.

    Nothing runs until advance() or run() moves the clock, which makes it
    suitable for offline rendering (render audio for each gap between timers)
    and for deterministic tests.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[_ManualTimer] = []
        self._counter = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = _ManualTimer(self.now + max(0.0, delay), next(self._counter), callback)
        heapq.heappush(self._queue, timer)
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for timer in self._queue if not timer.cancelled)

    def next_due(self) -> float | None:
        while self._queue and self._queue[0].cancelled:
            heapq.heappop(self._queue)
        return self._queue[0].due if self._queue else None

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing every timer that falls due on the way."""
        target = self.now + seconds
        while (due := self.next_due()) is not None and due <= target:
            timer = heapq.heappop(self._queue)
            self.now = timer.due
            timer.callback()
        self.now = target

    def run(self, on_advance: Callable[[float], None] | None = None) -> None:
        """
        Fire timers until none are left.

        *on_advance* receives the length of each gap before the clock jumps,
        e.g. to render that much audio.
        """
        while (due := self.next_due()) is not None:
            gap = due - self.now
            if on_advance is not None and gap > 0:
                on_advance(gap)
            self.advance(gap)


# ── Sequencer ───────────────────────────────────────────────────────────────


@dataclass
class PlaybackSession:
    """
    State of the one active sequence.

    Attributes:
        chords:   Chord names in playing order.
        bpm:      Tempo in beats per minute.
        target:   Caller's identifier for what is playing (e.g. a song section).
        index:    Index of the chord currently sounding, -1 before the first.
        sounding: Pitch classes of the current chord.
        timer:    Handle of the pending step, None when nothing is pending.
    """

    chords: tuple[str, ...]
    bpm: float
    target: Hashable | None = None
    index: int = -1
    sounding: tuple[int, ...] = ()
    timer: TimerHandle | None = None


class Sequencer:
    """
    Plays a chord progression one chord per bar: Idle -> Playing -> Idle.

    start_sequence() sounds the first chord immediately and schedules one
    step per interval of ``(60 / bpm) * beats_per_chord`` seconds. Each step
    sounds the next chord and schedules the following step; the step after
    the last chord returns to Idle. Only one session exists at a time, and a
    step from a replaced or stopped session does nothing.

    Stopping cancels future steps only; chords already sounding decay
    naturally.
    """

    def __init__(
        self,
        graph: AudioGraph | None,
        scheduler: Scheduler | None = None,
        *,
        beats_per_chord: int = BEATS_PER_CHORD,
        chord_duration: float = CHORD_DURATION,
        metronome: bool = False,
        on_chord: ChordCallback | None = None,
        on_stop: Callable[[], None] | None = None,
    ) -> None:
        self.graph = graph
        self.scheduler: Scheduler = scheduler or AsyncioScheduler()
        self.beats_per_chord = beats_per_chord
        self.chord_duration = chord_duration
        self.metronome = metronome
        self.on_chord = on_chord
        self.on_stop = on_stop
        self._session: PlaybackSession | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def session(self) -> PlaybackSession | None:
        return self._session

    @property
    def is_playing(self) -> bool:
        return self._session is not None

    @property
    def active_index(self) -> int | None:
        return self._session.index if self._session is not None else None

    def interval_seconds(self, bpm: float) -> float:
        return (60.0 / bpm) * self.beats_per_chord

    def interval_ms(self, bpm: float) -> float:
        return self.interval_seconds(bpm) * 1000.0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start_sequence(
        self,
        chords: Sequence[str],
        bpm: float | None,
        target: Hashable | None = None,
    ) -> bool:
        """
        Start playing *chords*, replacing any active sequence.

        Calling it again with the *target* that is already playing stops that
        sequence instead (a play/stop toggle).

        Returns:
            True if a sequence is now playing. False when it was toggled off
            or refused: a missing or non-positive bpm or an empty chord list
            has no side effect at all.

        Raises:
            RuntimeError: If the scheduler cannot set a timer, e.g. the
                          default AsyncioScheduler outside a running event
                          loop. The sequencer is back to Idle when this
                          propagates.
        """
        if bpm is None or bpm <= 0:
            _LOGGER.warning("Refusing to start a sequence with bpm=%r", bpm)
            return False
        if not chords:
            _LOGGER.warning("Refusing to start an empty sequence")
            return False

        if self._session is not None:
            same_target = target is not None and self._session.target == target
            self.stop_sequence()
            if same_target:
                return False

        session = PlaybackSession(chords=tuple(chords), bpm=float(bpm), target=target)
        self._session = session
        _LOGGER.info("Playing %d chords at %s BPM", len(session.chords), bpm)
        self._step(session)
        return True

    def stop_sequence(self) -> None:
        """Cancel the pending step and return to Idle; a no-op when Idle."""
        session, self._session = self._session, None
        if session is None:
            return
        if session.timer is not None:
            session.timer.cancel()
            session.timer = None
        _LOGGER.debug("Sequence stopped at index %d", session.index)
        if self.on_stop is not None:
            self.on_stop()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _step(self, session: PlaybackSession) -> None:
        if session is not self._session:
            return
        session.timer = None

        next_index = session.index + 1
        if next_index >= len(session.chords):
            self.stop_sequence()
            return

        chord_name = session.chords[next_index]
        session.index = next_index
        session.sounding = tuple(parse_chord(chord_name))
        play_chord(self.graph, session.sounding, self.chord_duration)
        if self.metronome:
            self._schedule_clicks(session.bpm)
        if self.on_chord is not None:
            self.on_chord(next_index, chord_name, session.sounding)

        # on_chord may have stopped or replaced the session
        if session is not self._session:
            return
        try:
            session.timer = self.scheduler.call_later(
                self.interval_seconds(session.bpm), lambda: self._step(session)
            )
        except RuntimeError:
            _LOGGER.error("Could not schedule chord %d; stopping the sequence", next_index + 1)
            self.stop_sequence()
            raise

    def _schedule_clicks(self, bpm: float) -> None:
        if self.graph is None:
            return
        beat = 60.0 / bpm
        now = self.graph.current_time
        for i in range(self.beats_per_chord):
            play_metronome_click(self.graph, now + beat * i)

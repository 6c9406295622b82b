"""Unit tests for the chord sequencer and its schedulers."""

import asyncio
from dataclasses import dataclass, field

import pytest

import chordlab.sequencer as sequencer_module
from chordlab.audio_graph import AudioGraph
from chordlab.sequencer import AsyncioScheduler, ManualScheduler, Sequencer


@dataclass
class Recorder:
    scheduler: ManualScheduler = field(default_factory=ManualScheduler)
    played: list[tuple[float, tuple[int, ...]]] = field(default_factory=list)


@pytest.fixture
def recorder(monkeypatch: pytest.MonkeyPatch) -> Recorder:
    """Record every chord the sequencer sounds, stamped with scheduler time."""
    rec = Recorder()

    def fake_play_chord(graph, notes, duration):  # type: ignore[no-untyped-def]
        rec.played.append((rec.scheduler.now, tuple(notes)))
        return []

    monkeypatch.setattr(sequencer_module, "play_chord", fake_play_chord)
    return rec


# ── ManualScheduler ─────────────────────────────────────────────────────────


def test_manual_scheduler_fires_in_due_order() -> None:
    scheduler = ManualScheduler()
    fired: list[tuple[str, float]] = []
    scheduler.call_later(2.0, lambda: fired.append(("b", scheduler.now)))
    scheduler.call_later(1.0, lambda: fired.append(("a", scheduler.now)))
    scheduler.call_later(5.0, lambda: fired.append(("c", scheduler.now)))

    scheduler.advance(3.0)
    assert fired == [("a", 1.0), ("b", 2.0)]
    assert scheduler.now == 3.0
    assert scheduler.pending == 1


def test_manual_scheduler_cancelled_timer_never_fires() -> None:
    scheduler = ManualScheduler()
    fired: list[int] = []
    handle = scheduler.call_later(1.0, lambda: fired.append(1))
    handle.cancel()
    scheduler.run()
    assert fired == []
    assert scheduler.next_due() is None


def test_manual_scheduler_run_reports_gaps() -> None:
    scheduler = ManualScheduler()
    scheduler.call_later(0.5, lambda: scheduler.call_later(1.5, lambda: None))
    gaps: list[float] = []
    scheduler.run(on_advance=gaps.append)
    assert gaps == [0.5, 1.5]
    assert scheduler.now == 2.0


# ── Sequencer ───────────────────────────────────────────────────────────────


def test_interval_is_one_bar() -> None:
    sequencer = Sequencer(None, ManualScheduler())
    assert sequencer.interval_seconds(120) == pytest.approx(2.0)
    assert sequencer.interval_ms(60) == pytest.approx(4000.0)


def test_three_chords_at_120_bpm(recorder: Recorder) -> None:
    scheduler = recorder.scheduler
    reported: list[tuple[int, str, tuple[int, ...]]] = []
    stopped: list[bool] = []
    sequencer = Sequencer(
        None,
        scheduler,
        on_chord=lambda i, name, notes: reported.append((i, name, tuple(notes))),
        on_stop=lambda: stopped.append(True),
    )

    assert sequencer.start_sequence(["C", "G", "Am"], 120) is True
    assert sequencer.active_index == 0
    scheduler.run()

    assert recorder.played == [(0.0, (0, 4, 7)), (2.0, (7, 11, 2)), (4.0, (9, 0, 4))]
    assert [index for index, _, _ in reported] == [0, 1, 2]
    assert reported[2] == (2, "Am", (9, 0, 4))
    assert stopped == [True]
    assert scheduler.now == pytest.approx(6.0)
    assert not sequencer.is_playing
    assert sequencer.active_index is None


def test_stop_before_second_chord_cancels_the_rest(recorder: Recorder) -> None:
    scheduler = recorder.scheduler
    sequencer = Sequencer(None, scheduler)
    sequencer.start_sequence(["C", "G", "Am"], 120)

    scheduler.advance(1.0)
    sequencer.stop_sequence()
    scheduler.run()

    assert recorder.played == [(0.0, (0, 4, 7))]
    assert scheduler.pending == 0
    assert not sequencer.is_playing


def test_stop_when_idle_is_a_no_op() -> None:
    stopped: list[bool] = []
    sequencer = Sequencer(None, ManualScheduler(), on_stop=lambda: stopped.append(True))
    sequencer.stop_sequence()
    assert stopped == []


def test_same_target_toggles_off(recorder: Recorder) -> None:
    sequencer = Sequencer(None, recorder.scheduler)

    assert sequencer.start_sequence(["C", "F"], 90, target="verse") is True
    assert sequencer.start_sequence(["C", "F"], 90, target="verse") is False
    assert not sequencer.is_playing
    recorder.scheduler.run()
    assert len(recorder.played) == 1


def test_new_target_replaces_running_sequence(recorder: Recorder) -> None:
    scheduler = recorder.scheduler
    sequencer = Sequencer(None, scheduler)

    sequencer.start_sequence(["C", "F", "G"], 120, target="verse")
    scheduler.advance(1.0)
    assert sequencer.start_sequence(["Em", "D"], 120, target="chorus") is True
    session = sequencer.session
    assert session is not None and session.target == "chorus"

    scheduler.run()
    assert recorder.played == [(0.0, (0, 4, 7)), (1.0, (4, 7, 11)), (3.0, (2, 6, 9))]


@pytest.mark.parametrize("bpm", [None, 0, -60])
def test_invalid_bpm_is_refused_without_side_effects(recorder: Recorder, bpm: float | None) -> None:
    sequencer = Sequencer(None, recorder.scheduler)
    sequencer.start_sequence(["C", "G"], 100, target="verse")
    recorder.played.clear()

    assert sequencer.start_sequence(["Am"], bpm, target="chorus") is False
    session = sequencer.session
    assert session is not None and session.target == "verse"
    assert recorder.played == []


def test_empty_progression_is_refused(recorder: Recorder) -> None:
    sequencer = Sequencer(None, recorder.scheduler)
    assert sequencer.start_sequence([], 120) is False
    assert not sequencer.is_playing
    assert recorder.played == []


def test_unparseable_chord_is_silent_but_keeps_time(recorder: Recorder) -> None:
    sequencer = Sequencer(None, recorder.scheduler)
    sequencer.start_sequence(["C", "N.C.", "G"], 60)
    recorder.scheduler.run()
    assert recorder.played == [(0.0, (0, 4, 7)), (4.0, ()), (8.0, (7, 11, 2))]


def test_on_chord_may_stop_the_sequence(recorder: Recorder) -> None:
    sequencer = Sequencer(None, recorder.scheduler)
    sequencer.on_chord = lambda index, name, notes: sequencer.stop_sequence()

    sequencer.start_sequence(["C", "G"], 120)
    assert not sequencer.is_playing
    assert recorder.scheduler.pending == 0


def test_metronome_clicks_every_beat(monkeypatch: pytest.MonkeyPatch) -> None:
    clicks: list[float | None] = []
    monkeypatch.setattr(
        sequencer_module, "play_metronome_click", lambda graph, when=None: clicks.append(when)
    )
    graph = AudioGraph(8000)
    scheduler = ManualScheduler()
    sequencer = Sequencer(graph, scheduler, metronome=True)

    sequencer.start_sequence(["C", "G"], 120)
    assert clicks == pytest.approx([0.0, 0.5, 1.0, 1.5])

    graph.render(2.0)
    scheduler.advance(2.0)
    assert clicks[4:] == pytest.approx([2.0, 2.5, 3.0, 3.5])


def test_metronome_off_schedules_no_clicks(monkeypatch: pytest.MonkeyPatch) -> None:
    clicks: list[float | None] = []
    monkeypatch.setattr(
        sequencer_module, "play_metronome_click", lambda graph, when=None: clicks.append(when)
    )
    Sequencer(AudioGraph(8000), ManualScheduler()).start_sequence(["C"], 120)
    assert clicks == []


def test_asyncio_scheduler_plays_progression() -> None:
    played_at: list[int] = []

    async def scenario() -> None:
        done = asyncio.Event()
        sequencer = Sequencer(
            None,
            AsyncioScheduler(),
            beats_per_chord=1,
            on_chord=lambda index, name, notes: played_at.append(index),
            on_stop=done.set,
        )
        sequencer.start_sequence(["C", "G", "D"], 6000)
        await asyncio.wait_for(done.wait(), timeout=5)

    asyncio.run(scenario())
    assert played_at == [0, 1, 2]


def test_asyncio_scheduler_outside_a_loop_leaves_sequencer_idle() -> None:
    reported: list[int] = []
    stopped: list[bool] = []
    sequencer = Sequencer(
        None,
        on_chord=lambda index, name, notes: reported.append(index),
        on_stop=lambda: stopped.append(True),
    )

    with pytest.raises(RuntimeError):
        sequencer.start_sequence(["C", "G"], 120)

    assert reported == [0]
    assert stopped == [True]
    assert not sequencer.is_playing
    assert sequencer.session is None


def test_failed_scheduler_does_not_block_a_later_start(recorder: Recorder) -> None:
    class BrokenScheduler:
        def call_later(self, delay, callback):  # type: ignore[no-untyped-def]
            raise RuntimeError("no timers available")

    sequencer = Sequencer(None, BrokenScheduler())
    with pytest.raises(RuntimeError):
        sequencer.start_sequence(["C"], 120, target="verse")

    sequencer.scheduler = recorder.scheduler
    assert sequencer.start_sequence(["C"], 120, target="verse") is True
    assert sequencer.is_playing

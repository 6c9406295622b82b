"""AudioGraph: a Web Audio style node graph rendered block by block with numpy."""

from __future__ import annotations

import logging
from typing import Final

import numpy as np
from numpy.typing import NDArray

from chordlab.config import RENDER_SAMPLE_RATE

_LOGGER = logging.getLogger("chordlab.audio_graph")

FloatArray = NDArray[np.float32]

RUNNING = "running"
SUSPENDED = "suspended"
CLOSED = "closed"

WAVEFORMS: Final[frozenset[str]] = frozenset({"sine", "triangle", "square", "sawtooth"})

ANALYSER_FFT_SIZE = 2048


class AudioParam:
    """
    A node parameter with scheduled automation.

    Events are kept in time order. A set event holds its value from its time
    onward; a ramp event interpolates from the previous event's value/time to
    its own value/time and holds afterwards.
    """

    def __init__(self, value: float) -> None:
        self.default_value = float(value)
        self._events: list[tuple[float, str, float]] = []

    def _insert(self, when: float, kind: str, value: float) -> None:
        self._events.append((float(when), kind, float(value)))
        self._events.sort(key=lambda event: event[0])

    def set_value_at_time(self, value: float, when: float) -> None:
        self._insert(when, "set", value)

    def linear_ramp_to_value_at_time(self, value: float, end_time: float) -> None:
        self._insert(end_time, "linear", value)

    def exponential_ramp_to_value_at_time(self, value: float, end_time: float) -> None:
        """
        Raises:
            ValueError: If value is not strictly positive.
        """
        if value <= 0:
            raise ValueError("Exponential ramps need a strictly positive target value.")
        self._insert(end_time, "exponential", value)

    def value_at(self, when: float) -> float:
        return float(self.values(np.array([when], dtype=np.float64))[0])

    def values(self, times: NDArray[np.float64]) -> NDArray[np.float64]:
        """Parameter value at each time in *times* (seconds)."""
        out = np.full(times.shape, self.default_value, dtype=np.float64)
        prev_time, prev_value = 0.0, self.default_value

        for when, kind, value in self._events:
            if kind == "set":
                out[times >= when] = value
            else:
                span = when - prev_time
                ramp = (times >= prev_time) & (times < when)
                if span > 0 and ramp.any():
                    progress = (times[ramp] - prev_time) / span
                    if kind == "linear" or prev_value <= 0:
                        out[ramp] = prev_value + (value - prev_value) * progress
                    else:
                        out[ramp] = prev_value * (value / prev_value) ** progress
                out[times >= when] = value
            prev_time, prev_value = when, value
        return out


class AudioNode:
    """
    Base node: mixes its inputs into a single output.

    A node is processed once per block by the node it feeds, so each node is
    connected to exactly one target.
    """

    def __init__(self, graph: AudioGraph, keep_alive: bool = False) -> None:
        self.graph = graph
        self.keep_alive = keep_alive
        self._inputs: list[AudioNode] = []
        self._had_inputs = False

    def connect(self, target: AudioNode) -> AudioNode:
        if self not in target._inputs:
            target._inputs.append(self)
            target._had_inputs = True
        return target

    def disconnect(self, target: AudioNode) -> None:
        if self in target._inputs:
            target._inputs.remove(self)

    @property
    def finished(self) -> bool:
        """True once the node can never produce sound again."""
        return not self.keep_alive and self._had_inputs and not self._inputs

    def _mix_inputs(self, times: NDArray[np.float64]) -> NDArray[np.float64]:
        out = np.zeros(times.shape, dtype=np.float64)
        for node in self._inputs:
            out += node.process(times)
        return out

    def _prune(self) -> None:
        for node in self._inputs:
            node._prune()
        self._inputs = [node for node in self._inputs if not node.finished]

    def process(self, times: NDArray[np.float64]) -> NDArray[np.float64]:
        return self._mix_inputs(times)


class GainNode(AudioNode):
    def __init__(self, graph: AudioGraph, value: float = 1.0, keep_alive: bool = False) -> None:
        super().__init__(graph, keep_alive=keep_alive)
        self.gain = AudioParam(value)

    def process(self, times: NDArray[np.float64]) -> NDArray[np.float64]:
        return self._mix_inputs(times) * self.gain.values(times)


class AnalyserNode(AudioNode):
    """Pass-through node that remembers the most recent fft_size samples."""

    def __init__(self, graph: AudioGraph, fft_size: int = ANALYSER_FFT_SIZE) -> None:
        super().__init__(graph, keep_alive=True)
        self.fft_size = fft_size
        self._history = np.zeros(fft_size, dtype=np.float32)

    def process(self, times: NDArray[np.float64]) -> NDArray[np.float64]:
        out = self._mix_inputs(times)
        self._history = np.concatenate([self._history, out.astype(np.float32)])[-self.fft_size :]
        return out

    def get_float_time_domain_data(self) -> FloatArray:
        return self._history.copy()


class OscillatorNode(AudioNode):
    """
    A periodic source with a one-shot lifetime, like Web Audio oscillators.

    The oscillator only sounds between start() and stop(); phase is carried
    across render blocks so consecutive blocks join without clicks.
    """

    def __init__(self, graph: AudioGraph, waveform: str = "sine", frequency: float = 440.0) -> None:
        if waveform not in WAVEFORMS:
            raise ValueError(f"Unknown waveform '{waveform}'. Use one of: {sorted(WAVEFORMS)}.")
        super().__init__(graph)
        self.waveform = waveform
        self.frequency = AudioParam(frequency)
        self.start_time: float | None = None
        self.stop_time: float | None = None
        self._phase = 0.0

    def start(self, when: float | None = None) -> None:
        if self.start_time is not None:
            raise RuntimeError("Oscillator already started.")
        self.start_time = self.graph.current_time if when is None else float(when)

    def stop(self, when: float | None = None) -> None:
        stop_at = self.graph.current_time if when is None else float(when)
        if self.start_time is not None:
            stop_at = max(stop_at, self.start_time)
        self.stop_time = stop_at

    @property
    def finished(self) -> bool:
        return self.stop_time is not None and self.stop_time <= self.graph.current_time

    def _shape(self, cycles: NDArray[np.float64]) -> NDArray[np.float64]:
        frac = cycles % 1.0
        if self.waveform == "sine":
            return np.sin(2.0 * np.pi * frac)
        if self.waveform == "square":
            return np.where(frac < 0.5, 1.0, -1.0)
        if self.waveform == "sawtooth":
            return 2.0 * frac - 1.0
        # triangle, starting at 0 and rising like sine
        return 1.0 - 4.0 * np.abs(((frac + 0.25) % 1.0) - 0.5)

    def process(self, times: NDArray[np.float64]) -> NDArray[np.float64]:
        if self.start_time is None:
            return np.zeros(times.shape, dtype=np.float64)
        active = times >= self.start_time
        if self.stop_time is not None:
            active &= times < self.stop_time
        if not active.any():
            return np.zeros(times.shape, dtype=np.float64)

        step = self.frequency.values(times) * active / self.graph.sample_rate
        cycles = self._phase + np.cumsum(step) - step
        self._phase = float((cycles[-1] + step[-1]) % 1.0)
        return self._shape(cycles) * active


class AudioGraph:
    """
    The real-time output graph that synthesis routines add nodes to.

    Callers own the graph: they create it, resume it, pull audio out with
    render() (or play it through ``playback``) and close it. ``output`` is the
    shared gain -> analyser -> destination chain, built on first use.
    """

    def __init__(self, sample_rate: int = RENDER_SAMPLE_RATE, *, start_suspended: bool = False) -> None:
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}.")
        self.sample_rate = sample_rate
        self.state = SUSPENDED if start_suspended else RUNNING
        self.destination = GainNode(self, 1.0, keep_alive=True)
        self._frame = 0
        self._output: GainNode | None = None
        self._analyser: AnalyserNode | None = None

    @property
    def current_time(self) -> float:
        return self._frame / self.sample_rate

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def resume(self) -> None:
        if self.state == CLOSED:
            raise RuntimeError("Cannot resume a closed AudioGraph.")
        self.state = RUNNING

    def suspend(self) -> None:
        if self.state == RUNNING:
            self.state = SUSPENDED

    def close(self) -> None:
        self.state = CLOSED

    # ------------------------------------------------------------------
    # Node factories
    # ------------------------------------------------------------------

    def create_oscillator(self, waveform: str = "sine", frequency: float = 440.0) -> OscillatorNode:
        return OscillatorNode(self, waveform, frequency)

    def create_gain(self, value: float = 1.0, keep_alive: bool = False) -> GainNode:
        return GainNode(self, value, keep_alive=keep_alive)

    def create_analyser(self, fft_size: int = ANALYSER_FFT_SIZE) -> AnalyserNode:
        return AnalyserNode(self, fft_size)

    def _output_chain(self) -> tuple[GainNode, AnalyserNode]:
        if self._output is None or self._analyser is None:
            self._output = self.create_gain(1.0, keep_alive=True)
            self._analyser = self.create_analyser()
            self._output.connect(self._analyser).connect(self.destination)
            _LOGGER.debug("Created shared output chain at %d Hz", self.sample_rate)
        return self._output, self._analyser

    @property
    def output(self) -> GainNode:
        """Shared master gain feeding the analyser and the destination."""
        return self._output_chain()[0]

    @property
    def analyser(self) -> AnalyserNode:
        return self._output_chain()[1]

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self, seconds: float) -> FloatArray:
        """
        Render the next *seconds* of audio and advance the clock.

        A suspended or closed graph yields silence and its clock stands still.
        """
        frames = max(0, int(round(seconds * self.sample_rate)))
        if frames == 0 or self.state != RUNNING:
            return np.zeros(frames, dtype=np.float32)

        times = (self._frame + np.arange(frames, dtype=np.float64)) / self.sample_rate
        block = self.destination.process(times)
        self._frame += frames
        self.destination._prune()
        return block.astype(np.float32)

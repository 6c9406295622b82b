"""Unit tests for the numpy audio graph."""

import numpy as np
import pytest

from chordlab.audio_graph import CLOSED, RUNNING, SUSPENDED, AudioGraph, AudioParam

RATE = 8000


def test_param_default_and_set_value() -> None:
    param = AudioParam(0.5)
    param.set_value_at_time(1.0, 2.0)
    assert param.value_at(0.0) == 0.5
    assert param.value_at(1.999) == 0.5
    assert param.value_at(2.0) == 1.0
    assert param.value_at(10.0) == 1.0


def test_param_linear_ramp() -> None:
    param = AudioParam(0.0)
    param.set_value_at_time(0.0, 1.0)
    param.linear_ramp_to_value_at_time(1.0, 2.0)
    assert param.value_at(1.5) == pytest.approx(0.5)
    assert param.value_at(3.0) == 1.0


def test_param_exponential_ramp_is_geometric() -> None:
    param = AudioParam(0.0)
    param.set_value_at_time(1.0, 0.0)
    param.exponential_ramp_to_value_at_time(0.01, 1.0)
    assert param.value_at(0.5) == pytest.approx(0.1)
    assert param.value_at(1.0) == pytest.approx(0.01)


def test_param_exponential_ramp_rejects_zero_target() -> None:
    with pytest.raises(ValueError):
        AudioParam(1.0).exponential_ramp_to_value_at_time(0.0, 1.0)


def test_sine_oscillator_renders_full_scale() -> None:
    graph = AudioGraph(RATE)
    osc = graph.create_oscillator("sine", 440.0)
    osc.connect(graph.output)
    osc.start(0.0)

    block = graph.render(0.1)
    assert block.dtype == np.float32
    assert block.shape == (800,)
    assert block[0] == 0.0
    assert 0.99 < np.max(np.abs(block)) <= 1.0
    assert graph.current_time == pytest.approx(0.1)


def test_oscillator_is_silent_outside_start_and_stop() -> None:
    graph = AudioGraph(RATE)
    osc = graph.create_oscillator("square", 100.0)
    osc.connect(graph.output)
    osc.start(0.05)
    osc.stop(0.1)

    block = graph.render(0.2)
    assert not block[:400].any()
    assert np.all(np.abs(block[400:800]) == 1.0)
    assert not block[800:].any()


def test_consecutive_blocks_join_like_one_render() -> None:
    def render(blocks: list[float]) -> np.ndarray:
        graph = AudioGraph(RATE)
        osc = graph.create_oscillator("triangle", 220.0)
        osc.connect(graph.output)
        osc.start(0.0)
        return np.concatenate([graph.render(seconds) for seconds in blocks])

    np.testing.assert_allclose(render([0.05, 0.05]), render([0.1]), atol=1e-6)


def test_unknown_waveform_raises() -> None:
    with pytest.raises(ValueError):
        AudioGraph(RATE).create_oscillator("noise")


def test_suspended_graph_renders_silence_and_keeps_time() -> None:
    graph = AudioGraph(RATE, start_suspended=True)
    assert graph.state == SUSPENDED
    osc = graph.create_oscillator("sine", 440.0)
    osc.connect(graph.output)
    osc.start(0.0)

    assert not graph.render(0.1).any()
    assert graph.current_time == 0.0

    graph.resume()
    assert graph.state == RUNNING
    assert graph.render(0.1).any()


def test_closed_graph_cannot_resume() -> None:
    graph = AudioGraph(RATE)
    graph.close()
    assert graph.state == CLOSED
    assert not graph.render(0.01).any()
    with pytest.raises(RuntimeError):
        graph.resume()


def test_finished_voices_are_pruned() -> None:
    graph = AudioGraph(RATE)
    osc = graph.create_oscillator("sine", 440.0)
    gain = graph.create_gain(0.5)
    osc.connect(gain).connect(graph.output)
    osc.start(0.0)
    osc.stop(0.05)

    graph.render(0.1)
    assert osc.finished
    assert gain.finished
    assert not graph.output.finished


def test_analyser_keeps_latest_samples() -> None:
    graph = AudioGraph(RATE)
    osc = graph.create_oscillator("sawtooth", 50.0)
    osc.connect(graph.output)
    osc.start(0.0)

    block = graph.render(0.1)
    history = graph.analyser.get_float_time_domain_data()
    assert history.shape == (graph.analyser.fft_size,)
    np.testing.assert_array_equal(history[-len(block) :], block)

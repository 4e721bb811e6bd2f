"""
Tests for note rendering and the device-free tone generator.

SynthToneGenerator needs a PortAudio device and is not exercised here.
"""

import numpy as np
import pytest

from market_melody.audio.tone import (
    SAMPLE_RATE,
    Envelope,
    OscillatorShape,
    SilentToneGenerator,
    create_tone_generator,
    envelope_curve,
    oscillate,
    render_note,
)
from market_melody.types import ToneGeneratorError


class TestEnvelope:

    def test_length_includes_release(self):
        env = Envelope(attack=0.005, decay=0.1, sustain=0.3, release=0.1)
        curve = envelope_curve(env, 0.15)
        assert len(curve) == int(round(0.15 * SAMPLE_RATE)) + int(0.1 * SAMPLE_RATE)

    def test_shape(self):
        env = Envelope(attack=0.01, decay=0.05, sustain=0.3, release=0.05)
        curve = envelope_curve(env, 0.5)
        attack = int(0.01 * SAMPLE_RATE)
        assert curve[0] == 0.0
        assert curve.max() == pytest.approx(1.0, abs=1e-3)
        assert np.argmax(curve) == pytest.approx(attack, abs=1)
        # Sustain plateau before release
        held_end = int(round(0.5 * SAMPLE_RATE)) - 1
        assert curve[held_end] == pytest.approx(0.3)
        assert curve[-1] == pytest.approx(0.0)
        assert np.all(curve >= 0.0)

    def test_release_from_partial_attack(self):
        env = Envelope(attack=0.5, decay=0.1, sustain=0.3, release=0.05)
        curve = envelope_curve(env, 0.1)
        assert curve.max() < 0.25
        assert curve[-1] == pytest.approx(0.0)


class TestRender:

    @pytest.mark.parametrize("shape", list(OscillatorShape))
    def test_bounded_by_amplitude(self, shape):
        samples = render_note(440.0, 0.15, 0.25, shape=shape)
        assert samples.dtype == np.float32
        assert np.abs(samples).max() <= 0.25 + 1e-6
        assert np.abs(samples).max() > 0.05

    def test_sine_frequency(self):
        t = np.arange(SAMPLE_RATE) / SAMPLE_RATE
        wave = oscillate(OscillatorShape.SINE, 440.0, t)
        spectrum = np.abs(np.fft.rfft(wave))
        assert np.argmax(spectrum) == 440


class TestSilentGenerator:

    def test_play_and_dispose(self):
        gen = SilentToneGenerator()
        gen.play(440.0, 0.15, gen.now(), 0.25)
        assert gen.played == 1
        gen.dispose()
        with pytest.raises(ToneGeneratorError):
            gen.play(440.0, 0.15, gen.now(), 0.25)

    def test_factory_creates_fresh_instances(self):
        a = create_tone_generator(silent=True)
        a.dispose()
        b = create_tone_generator(silent=True)
        assert a is not b
        b.play(220.0, 0.1, 0.0, 0.1)

    def test_clock_monotonic(self):
        gen = SilentToneGenerator()
        t1 = gen.now()
        t2 = gen.now()
        assert 0.0 <= t1 <= t2

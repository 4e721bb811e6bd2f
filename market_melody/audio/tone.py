"""
Tone generator: ADSR-enveloped oscillator notes mixed into an output stream.

Notes are rendered up front with numpy when play() is called and mixed by
the PyAudio callback thread. The audio clock is seconds since the generator
was created; start times in the past play immediately.

Lifecycle: create_tone_generator() -> play()* -> dispose(). A disposed
generator cannot be restarted; create a new one.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import NamedTuple, Protocol

import numpy as np

from ..types import ToneGeneratorError

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44100
CHANNELS = 1
FRAMES_PER_BUFFER = 512
MAX_VOICES = 32


class Envelope(NamedTuple):
    """ADSR envelope. Times in seconds, sustain as a level in [0, 1]."""
    attack: float = 0.005
    decay: float = 0.1
    sustain: float = 0.3
    release: float = 0.1


class OscillatorShape(Enum):
    SINE = "sine"
    SQUARE = "square"
    TRIANGLE = "triangle"
    SAWTOOTH = "sawtooth"


class ToneGenerator(Protocol):
    def now(self) -> float: ...

    def play(self, frequency: float, duration: float, start_time: float, amplitude: float) -> None: ...

    def dispose(self) -> None: ...


def oscillate(shape: OscillatorShape, frequency: float, t: np.ndarray) -> np.ndarray:
    """Unit-amplitude waveform sampled at times t."""
    phase = frequency * t
    if shape is OscillatorShape.SINE:
        return np.sin(2 * np.pi * phase)
    if shape is OscillatorShape.SQUARE:
        return np.where(np.sin(2 * np.pi * phase) >= 0, 1.0, -1.0)
    frac = phase - np.floor(phase)
    if shape is OscillatorShape.SAWTOOTH:
        return 2.0 * frac - 1.0
    return 1.0 - 4.0 * np.abs(frac - 0.5)


def envelope_curve(envelope: Envelope, duration: float, sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """
    Gain curve for a note held for `duration` seconds, release included.

    Attack and decay are cut short if the note is released early; release
    starts from whatever level was reached.
    """
    held = max(1, int(round(duration * sample_rate)))
    attack = max(1, int(envelope.attack * sample_rate))
    decay = max(1, int(envelope.decay * sample_rate))
    release = max(1, int(envelope.release * sample_rate))

    n = np.arange(held, dtype=np.float64)
    gate = np.where(
        n < attack,
        n / attack,
        np.maximum(
            envelope.sustain,
            1.0 - (1.0 - envelope.sustain) * np.minimum(1.0, (n - attack) / decay),
        ),
    )

    release_from = gate[-1]
    tail = release_from * (1.0 - np.arange(1, release + 1, dtype=np.float64) / release)
    return np.concatenate([gate, tail])


def render_note(
    frequency: float,
    duration: float,
    amplitude: float,
    envelope: Envelope = Envelope(),
    shape: OscillatorShape = OscillatorShape.SINE,
    sample_rate: int = SAMPLE_RATE,
) -> np.ndarray:
    """Render one note as float32 samples in [-amplitude, amplitude]."""
    curve = envelope_curve(envelope, duration, sample_rate)
    t = np.arange(len(curve), dtype=np.float64) / sample_rate
    samples = amplitude * curve * oscillate(shape, frequency, t)
    return samples.astype(np.float32)


class SynthToneGenerator:
    """
    Monophonic-timbre, polyphonic tone generator on a PyAudio output stream.

    Thread-safety: play() and dispose() run on the event loop thread; the
    PyAudio callback runs on its own thread. Voices are shared under a lock.
    """

    def __init__(
        self,
        envelope: Envelope = Envelope(),
        shape: OscillatorShape = OscillatorShape.SINE,
        base_volume_db: float = -6.0,
        sample_rate: int = SAMPLE_RATE,
    ) -> None:
        # Import here so the rest of the package works without PortAudio
        import pyaudio

        self.envelope = envelope
        self.shape = shape
        self.base_gain = 10 ** (base_volume_db / 20)
        self.sample_rate = sample_rate

        # Each voice: (start_frame, samples)
        self._voices: list[tuple[int, np.ndarray]] = []
        self._lock = threading.Lock()
        self._frame_pos = 0
        self._disposed = False
        self._t0 = time.monotonic()

        try:
            self._pa = pyaudio.PyAudio()
            self._stream = self._pa.open(
                format=pyaudio.paFloat32,
                channels=CHANNELS,
                rate=sample_rate,
                output=True,
                frames_per_buffer=FRAMES_PER_BUFFER,
                stream_callback=self._callback,
            )
        except Exception as e:
            raise ToneGeneratorError(f"Cannot open audio output: {e}") from e

        self._paContinue = pyaudio.paContinue
        self._paComplete = pyaudio.paComplete
        self._stream.start_stream()
        logger.info("Audio output opened at %d Hz", sample_rate)

    def now(self) -> float:
        """Audio-clock seconds."""
        return time.monotonic() - self._t0

    def play(self, frequency: float, duration: float, start_time: float, amplitude: float) -> None:
        if self._disposed:
            raise ToneGeneratorError("Tone generator has been disposed")

        samples = render_note(
            frequency, duration, amplitude * self.base_gain,
            self.envelope, self.shape, self.sample_rate,
        )
        with self._lock:
            # Start times already behind the stream play at once
            start_frame = max(int(start_time * self.sample_rate), self._frame_pos)
            if len(self._voices) >= MAX_VOICES:
                raise ToneGeneratorError(f"Voice limit reached ({MAX_VOICES})")
            self._voices.append((start_frame, samples))

    def _callback(self, in_data, frame_count, time_info, status):
        """PortAudio thread: mix active voices into the next buffer."""
        out = np.zeros(frame_count, dtype=np.float32)

        with self._lock:
            pos = self._frame_pos
            end = pos + frame_count
            alive: list[tuple[int, np.ndarray]] = []
            for start, samples in self._voices:
                offset = start - pos
                if offset >= frame_count:
                    alive.append((start, samples))
                    continue
                lo = max(0, offset)
                src = samples[lo - offset:lo - offset + (frame_count - lo)]
                out[lo:lo + len(src)] += src
                if start + len(samples) > end:
                    alive.append((start, samples))
            self._voices = alive
            self._frame_pos = end
        np.clip(out, -1.0, 1.0, out=out)
        flag = self._paComplete if self._disposed else self._paContinue
        return out.tobytes(), flag

    def dispose(self) -> None:
        """Stop the stream and release the device. Safe to call twice."""
        if self._disposed:
            return
        self._disposed = True
        with self._lock:
            self._voices.clear()
        try:
            self._stream.stop_stream()
            self._stream.close()
        finally:
            self._pa.terminate()
        logger.info("Audio output closed")


class SilentToneGenerator:
    """Tone generator without an audio device; notes are only logged."""

    def __init__(self) -> None:
        self._t0 = time.monotonic()
        self._disposed = False
        self.played: int = 0

    def now(self) -> float:
        return time.monotonic() - self._t0

    def play(self, frequency: float, duration: float, start_time: float, amplitude: float) -> None:
        if self._disposed:
            raise ToneGeneratorError("Tone generator has been disposed")
        self.played += 1
        logger.debug("note %.2f Hz @ %.3fs (%.2fs, amp %.3f)", frequency, start_time, duration, amplitude)

    def dispose(self) -> None:
        self._disposed = True


def create_tone_generator(
    envelope: Envelope = Envelope(),
    shape: OscillatorShape = OscillatorShape.SINE,
    base_volume_db: float = -6.0,
    silent: bool = False,
) -> ToneGenerator:
    """Create a fresh tone generator. Raises ToneGeneratorError if no device."""
    if silent:
        return SilentToneGenerator()
    return SynthToneGenerator(envelope=envelope, shape=shape, base_volume_db=base_volume_db)

#!/usr/bin/env python
"""
ECG Data Generation for Testing and Examples
Generates single-lead synthetic ECG sample streams for development and testing.
"""

import numpy as np
import matplotlib.pyplot as plt
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from ecg_detection import Sample

# (center phase, amplitude mV, width) of each wave within one beat cycle
BEAT_TEMPLATE = {
    'p': (0.10, 0.12, 0.025),
    'q': (0.19, -0.08, 0.008),
    'r': (0.21, 1.0, 0.010),
    's': (0.23, -0.15, 0.008),
    'st': (0.28, 0.02, 0.03),
    't': (0.38, 0.20, 0.045),
}


class ECGGenerator:
    """Generate synthetic ECG signals for testing and development."""

    def __init__(self, sample_rate: int = 250, seed: Optional[int] = None):
        """
        Initialize ECG generator.

        Args:
            sample_rate: Sampling frequency in Hz
            seed: Seed for the noise generator (None for random)
        """
        self.fs = sample_rate
        self.rng = np.random.default_rng(seed)

    def generate_normal_sinus_rhythm(self,
                                     duration: float = 10.0,
                                     heart_rate: float = 72,
                                     noise_level: float = 0.008,
                                     start_time: float = 0.0) -> Tuple[List[Sample], Dict]:
        """
        Generate a regular rhythm.

        Args:
            duration: Signal duration in seconds
            heart_rate: Heart rate in beats per minute
            noise_level: Peak-to-peak uniform noise in mV
            start_time: Time of the first sample

        Returns:
            Tuple of (samples, metadata)
        """
        n_samples = int(round(duration * self.fs))
        t = start_time + np.arange(n_samples) / self.fs

        values = self.beat_waveform(t, heart_rate)
        values += (self.rng.random(n_samples) - 0.5) * noise_level

        metadata = {
            'sample_rate': self.fs,
            'duration': duration,
            'heart_rate': heart_rate,
            'signal_type': 'Normal Sinus Rhythm',
            'noise_level': noise_level,
            'r_wave_times': self.r_wave_times(duration, heart_rate, start_time)
        }

        return _to_samples(t, values), metadata

    def generate_noise(self,
                       duration: float = 5.0,
                       amplitude: float = 0.05,
                       start_time: float = 0.0) -> List[Sample]:
        """Uniform noise in [-amplitude, amplitude], no heartbeats."""
        n_samples = int(round(duration * self.fs))
        t = start_time + np.arange(n_samples) / self.fs
        values = self.rng.uniform(-amplitude, amplitude, n_samples)
        return _to_samples(t, values)

    def beat_waveform(self, t: np.ndarray, heart_rate: float) -> np.ndarray:
        """Noise-free P-QRS-T waveform at times t."""
        beat_interval = 60.0 / heart_rate
        return self.waveform_at_phase(np.mod(t, beat_interval) / beat_interval)

    def waveform_at_phase(self, phase: np.ndarray) -> np.ndarray:
        """Sum of the template waves at beat phases in [0, 1)."""
        signal = np.zeros(len(phase))
        for center, amplitude, width in BEAT_TEMPLATE.values():
            signal += self._gaussian_wave(phase, center, amplitude, width)

        return signal

    def r_wave_times(self, duration: float, heart_rate: float, start_time: float = 0.0) -> np.ndarray:
        """Times of the R-wave apexes inside [start_time, start_time + duration)."""
        beat_interval = 60.0 / heart_rate
        r_offset = BEAT_TEMPLATE['r'][0] * beat_interval
        first = np.floor(start_time / beat_interval) * beat_interval + r_offset
        times = np.arange(first, start_time + duration, beat_interval)
        return times[times >= start_time]

    def _gaussian_wave(self, phase: np.ndarray, center: float, amplitude: float, width: float) -> np.ndarray:
        """Gaussian bump centred at a beat phase."""
        return amplitude * np.exp(-((phase - center) / width) ** 2)


class LiveECGSimulator:
    """
    Frame-by-frame ECG feed with a slowly drifting heart rate.

    Each call to next_frame() returns the samples of one ~16 ms display
    frame (4 samples at 250 Hz).
    """

    def __init__(self,
                 sample_rate: int = 250,
                 heart_rate: float = 72,
                 frame_duration: float = 0.016,
                 hr_limits: Tuple[float, float] = (55, 110),
                 hr_step: float = 0.5,
                 noise_level: float = 0.008,
                 seed: Optional[int] = None):
        self.sample_rate = sample_rate
        self.initial_heart_rate = heart_rate
        self.frame_samples = max(1, int(np.floor(sample_rate * frame_duration)))
        self.hr_limits = hr_limits
        self.hr_step = hr_step
        self.noise_level = noise_level
        self.seed = seed
        self.generator = ECGGenerator(sample_rate, seed)
        self.reset()

    def reset(self):
        self.time = 0.0
        self.phase = 0.0
        self.heart_rate = self.initial_heart_rate
        self.generator.rng = np.random.default_rng(self.seed)

    def next_frame(self) -> List[Sample]:
        rng = self.generator.rng
        drift = (rng.random() - 0.5) * self.hr_step
        self.heart_rate = min(self.hr_limits[1], max(self.hr_limits[0], self.heart_rate + drift))

        steps = np.arange(1, self.frame_samples + 1)
        t = self.time + steps / self.sample_rate

        # Phase advances continuously so a rate change never jumps mid-beat
        phase = np.mod(self.phase + steps * self.heart_rate / (60.0 * self.sample_rate), 1.0)
        self.time = float(t[-1])
        self.phase = float(phase[-1])

        values = self.generator.waveform_at_phase(phase)
        values += (rng.random(len(t)) - 0.5) * self.noise_level

        return _to_samples(t, values)

    def frames(self, n_frames: int) -> Iterator[List[Sample]]:
        for _ in range(n_frames):
            yield self.next_frame()


def iter_chunks(samples: Sequence[Sample], chunk_size: int) -> Iterator[List[Sample]]:
    """Split a sample stream into consecutive chunks."""
    for start in range(0, len(samples), chunk_size):
        yield list(samples[start:start + chunk_size])


def _to_samples(t: np.ndarray, values: np.ndarray) -> List[Sample]:
    return [Sample(time=float(ti), value=float(vi)) for ti, vi in zip(t, values)]


if __name__ == "__main__":
    generator = ECGGenerator(seed=0)
    samples, metadata = generator.generate_normal_sinus_rhythm()

    values = np.array([s.value for s in samples])
    print(f"Generated ECG: {metadata['signal_type']}, {metadata['heart_rate']} bpm")
    print(f"Samples: {len(samples)}")
    print(f"Amplitude range: {values.min():.3f} to {values.max():.3f} mV")

    plt.figure(figsize=(12, 4))
    plt.plot([s.time for s in samples], values)
    plt.xlabel('Time (s)')
    plt.ylabel('Amplitude (mV)')
    plt.grid(True)
    plt.tight_layout()
    plt.show()

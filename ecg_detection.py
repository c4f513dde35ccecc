#!/usr/bin/env python
"""
ECG R-Peak Detection Module
Adaptive-threshold R-wave picking on the QRS-energy envelope.
"""

import numpy as np
from typing import List, Optional, Sequence
from dataclasses import dataclass, field, asdict

from signal_processing import ConditionedSignal
from ecg_constants import (
    DEFAULT_SAMPLE_RATE_HZ,
    BASELINE_WINDOW_DIVISOR,
    QRS_INTEGRATION_WINDOW_S,
    MIN_ENVELOPE_SAMPLES,
    MIN_BATCH_SAMPLES,
    THRESHOLD_MAX_FRACTION,
    THRESHOLD_PERCENTILE_FRACTION,
    THRESHOLD_PERCENTILE_RANK,
    THRESHOLD_FLOOR_FRACTION,
    THRESHOLD_LEARNING_RATE,
    REFRACTORY_PERIOD_S,
    R_WAVE_SEARCH_SAMPLES,
    MIN_R_WAVE_AMPLITUDE_MV,
    RR_INTERVAL_MIN_S,
    RR_INTERVAL_MAX_S,
)


@dataclass(frozen=True)
class Sample:
    """One ECG sample."""
    time: float  # seconds
    value: float  # mV


@dataclass(frozen=True)
class Peak:
    """One detected R-wave."""
    time: float  # seconds
    value: float  # mV
    index: int  # offset into the originating sample array


@dataclass(frozen=True)
class PeakDetectionResult:
    """Peaks plus RR / heart-rate figures from one pipeline run."""
    peaks: List[Peak] = field(default_factory=list)
    rr_intervals: List[float] = field(default_factory=list)  # seconds
    instant_hr: float = 0.0  # bpm, 0 means "not yet known"
    avg_hr: float = 0.0  # bpm, 0 means "not yet known"

    @classmethod
    def empty(cls) -> 'PeakDetectionResult':
        return cls()

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class DetectionParameters:
    """Tunable detection settings; defaults come from ecg_constants."""
    sample_rate: int = DEFAULT_SAMPLE_RATE_HZ
    baseline_window_divisor: float = BASELINE_WINDOW_DIVISOR
    integration_window_s: float = QRS_INTEGRATION_WINDOW_S
    refractory_period_s: float = REFRACTORY_PERIOD_S
    remap_search_samples: int = R_WAVE_SEARCH_SAMPLES
    threshold_max_fraction: float = THRESHOLD_MAX_FRACTION
    threshold_percentile_fraction: float = THRESHOLD_PERCENTILE_FRACTION
    percentile_rank: float = THRESHOLD_PERCENTILE_RANK
    threshold_floor_fraction: float = THRESHOLD_FLOOR_FRACTION
    threshold_learning_rate: float = THRESHOLD_LEARNING_RATE
    min_peak_amplitude: float = MIN_R_WAVE_AMPLITUDE_MV
    min_envelope_samples: int = MIN_ENVELOPE_SAMPLES
    min_batch_samples: int = MIN_BATCH_SAMPLES
    rr_min_s: float = RR_INTERVAL_MIN_S
    rr_max_s: float = RR_INTERVAL_MAX_S

    def __post_init__(self):
        if self.sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.sample_rate}")

    @property
    def refractory_samples(self) -> int:
        return int(np.floor(self.refractory_period_s * self.sample_rate))

    @property
    def integration_window_samples(self) -> int:
        return max(1, int(np.floor(self.integration_window_s * self.sample_rate)))

    @property
    def baseline_half_window(self) -> int:
        return int(np.floor(self.sample_rate / self.baseline_window_divisor))


class RPeakDetector:
    """Locate one R-wave per heartbeat in a conditioned ECG window."""

    def __init__(self, parameters: Optional[DetectionParameters] = None):
        self.params = parameters or DetectionParameters()

    def initial_threshold(self, envelope: np.ndarray):
        """
        Robust starting threshold and its floor.

        Uses the value exceeded by only 5% of envelope samples alongside the
        maximum, so a single outlier cannot set the threshold on its own.

        Returns:
            Tuple of (threshold, min_threshold)
        """
        p = self.params
        ranked = np.sort(envelope)[::-1]
        max_val = float(ranked[0]) if len(ranked) else 0.0
        p95 = float(ranked[int(np.floor(len(ranked) * p.percentile_rank))]) if len(ranked) else 0.0

        threshold = max(p.threshold_max_fraction * max_val,
                        p.threshold_percentile_fraction * p95)
        min_threshold = p.threshold_floor_fraction * max_val

        return threshold, min_threshold

    def find_peaks(self,
                   conditioned: ConditionedSignal,
                   values: np.ndarray,
                   times: Sequence[float]) -> List[Peak]:
        """
        Adaptive-threshold peak picking.

        ALGORITHM:
        1. Strict local maximum over two neighbours on each side
        2. Above the adaptive threshold
        3. At least one refractory period after the last accepted candidate
        4. Mapped back to the raw signal, the largest sample within
           +/- remap_search_samples is the R-wave
        5. R-wave amplitude must exceed min_peak_amplitude
        6. threshold <- max(lr * env[i] + (1 - lr) * threshold, floor)

        Args:
            conditioned: Output of ECGSignalProcessor.condition_qrs
            values: Raw ECG values the envelope was computed from
            times: Sample times matching values

        Returns:
            Time-ordered list of Peak
        """
        p = self.params
        envelope = conditioned.envelope
        n = len(envelope)
        peaks: List[Peak] = []

        if n < p.min_envelope_samples or len(values) == 0:
            return peaks

        threshold, min_threshold = self.initial_threshold(envelope)
        refractory = p.refractory_samples
        lr = p.threshold_learning_rate

        last_candidate = -refractory
        last_peak_index = None

        for i in range(2, n - 2):
            e = envelope[i]
            is_local_max = (e > envelope[i - 1] and e > envelope[i - 2] and
                            e > envelope[i + 1] and e > envelope[i + 2])

            if not is_local_max or e <= threshold or i - last_candidate < refractory:
                continue

            peak_index = self._locate_r_wave(values, conditioned.to_original_index(i))
            peak_value = float(values[peak_index])

            # Amplitude gate
            if peak_value <= p.min_peak_amplitude:
                continue

            # Two candidates resolving to nearby raw samples are one beat
            if last_peak_index is not None and peak_index - last_peak_index < refractory:
                continue

            peaks.append(Peak(time=float(times[peak_index]),
                              value=peak_value,
                              index=int(peak_index)))
            last_candidate = i
            last_peak_index = peak_index

            threshold = max(lr * e + (1 - lr) * threshold, min_threshold)

        return peaks

    def _locate_r_wave(self, values: np.ndarray, center: int) -> int:
        """Index of the largest raw sample within the search window around center."""
        start = max(0, center - self.params.remap_search_samples)
        end = min(len(values) - 1, center + self.params.remap_search_samples)

        return start + int(np.argmax(values[start:end + 1]))


# Convenience functions
def samples_to_arrays(samples: Sequence[Sample]):
    """Split a Sample sequence into (times, values) numpy arrays."""
    times = np.fromiter((s.time for s in samples), dtype=float, count=len(samples))
    values = np.fromiter((s.value for s in samples), dtype=float, count=len(samples))
    return times, values


def make_samples(values: Sequence[float], sample_rate: int = DEFAULT_SAMPLE_RATE_HZ,
                 start_time: float = 0.0) -> List[Sample]:
    """Build evenly spaced samples from bare values."""
    return [Sample(time=start_time + i / sample_rate, value=float(v)) for i, v in enumerate(values)]

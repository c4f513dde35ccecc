#!/usr/bin/env python
"""
Real-Time R-Peak Detection Module
Batch pipeline (conditioning -> peak picking -> metrics) and a stateful
streaming wrapper for continuous feeds.
"""

import numpy as np
from typing import List, Optional, Sequence

from signal_processing import ECGSignalProcessor
from ecg_detection import (
    Sample,
    Peak,
    PeakDetectionResult,
    DetectionParameters,
    RPeakDetector,
    samples_to_arrays,
)
from advanced_analysis import calculate_metrics
from ecg_constants import DEFAULT_SAMPLE_RATE_HZ, DEFAULT_BUFFER_SECONDS


def detect_peaks(samples: Sequence[Sample],
                 sample_rate: int = DEFAULT_SAMPLE_RATE_HZ,
                 parameters: Optional[DetectionParameters] = None) -> PeakDetectionResult:
    """
    Detect R-peaks and derive heart rate over a window of samples.

    Deterministic: the same samples always give the same result. Windows
    shorter than the minimum batch size return the empty result.

    Args:
        samples: Time-ordered ECG samples
        sample_rate: Sampling rate in Hz (ignored when parameters is given)
        parameters: Full detection settings

    Returns:
        PeakDetectionResult

    Example:
        >>> result = detect_peaks(samples, sample_rate=250)
        >>> print(f"{len(result.peaks)} beats, {result.avg_hr:.0f} bpm")
    """
    if parameters is None:
        parameters = DetectionParameters(sample_rate=sample_rate)

    if len(samples) < parameters.min_batch_samples:
        return PeakDetectionResult.empty()

    times, values = samples_to_arrays(samples)

    processor = ECGSignalProcessor(parameters.sample_rate,
                                   baseline_divisor=parameters.baseline_window_divisor,
                                   integration_window_s=parameters.integration_window_s)
    conditioned = processor.condition_qrs(values)

    peaks = RPeakDetector(parameters).find_peaks(conditioned, values, times)
    rr_intervals, instant_hr, avg_hr = calculate_metrics(peaks, parameters.rr_min_s, parameters.rr_max_s)

    return PeakDetectionResult(peaks=peaks, rr_intervals=rr_intervals,
                               instant_hr=instant_hr, avg_hr=avg_hr)


class RealtimePeakDetector:
    """
    Incremental R-peak detection for live feeds.

    Keeps a rolling buffer of the most recent samples and re-runs the batch
    pipeline over the whole buffer once enough new samples have arrived.
    Only peaks later than the last reported one are added, so overlapping
    windows never report a beat twice. One instance per monitoring session;
    not thread-safe.
    """

    def __init__(self,
                 sample_rate: int = DEFAULT_SAMPLE_RATE_HZ,
                 buffer_seconds: float = DEFAULT_BUFFER_SECONDS,
                 parameters: Optional[DetectionParameters] = None):
        if buffer_seconds <= 0:
            raise ValueError(f"Buffer length must be positive, got {buffer_seconds} s")

        self.params = parameters or DetectionParameters(sample_rate=sample_rate)
        self.sample_rate = self.params.sample_rate
        self.buffer_size = int(self.sample_rate * buffer_seconds)

        self._buffer: List[Sample] = []
        self._peaks: List[Peak] = []
        self._last_processed_index = 0

    @property
    def buffer_length(self) -> int:
        return len(self._buffer)

    @property
    def last_processed_index(self) -> int:
        return self._last_processed_index

    def add_data(self, new_samples: Sequence[Sample]) -> PeakDetectionResult:
        """
        Append samples and return the accumulated peaks with current metrics.

        Samples must arrive in non-decreasing time order.
        """
        self._buffer.extend(new_samples)
        self._trim_buffer()

        if len(self._buffer) - self._last_processed_index < self.params.min_batch_samples:
            rr_intervals, instant_hr, avg_hr = calculate_metrics(
                self._peaks, self.params.rr_min_s, self.params.rr_max_s)
            return PeakDetectionResult(peaks=list(self._peaks), rr_intervals=rr_intervals,
                                       instant_hr=instant_hr, avg_hr=avg_hr)

        result = detect_peaks(self._buffer, parameters=self.params)
        self._merge_peaks(result.peaks)
        self._last_processed_index = len(self._buffer)

        return PeakDetectionResult(peaks=list(self._peaks),
                                   rr_intervals=result.rr_intervals,
                                   instant_hr=result.instant_hr,
                                   avg_hr=result.avg_hr)

    def reset(self):
        """Return to the freshly constructed state."""
        self._buffer = []
        self._peaks = []
        self._last_processed_index = 0

    def get_peaks(self) -> List[Peak]:
        return list(self._peaks)

    def _trim_buffer(self):
        """Evict the oldest samples beyond capacity and the peaks they carried."""
        excess = len(self._buffer) - self.buffer_size
        if excess <= 0:
            return

        del self._buffer[:excess]
        self._last_processed_index = max(0, self._last_processed_index - excess)

        min_time = self._buffer[0].time if self._buffer else 0.0
        self._peaks = [p for p in self._peaks if p.time >= min_time]

    def _merge_peaks(self, detected: Sequence[Peak]):
        """Append peaks later than the last known one, at least one refractory period apart."""
        min_gap = self.params.refractory_samples / self.sample_rate
        last_time = self._peaks[-1].time if self._peaks else -np.inf

        for peak in detected:
            if peak.time > last_time and peak.time - last_time >= min_gap:
                self._peaks.append(peak)
                last_time = peak.time


if __name__ == "__main__":
    from examples.generate_ecg_data import ECGGenerator, iter_chunks

    gen = ECGGenerator()
    samples, metadata = gen.generate_normal_sinus_rhythm(duration=10, heart_rate=72)

    batch = detect_peaks(samples, metadata['sample_rate'])
    print(f"Batch: {len(batch.peaks)} peaks, avg HR {batch.avg_hr:.1f} bpm")

    detector = RealtimePeakDetector(metadata['sample_rate'], buffer_seconds=5)
    for chunk in iter_chunks(samples, 25):
        result = detector.add_data(chunk)
    print(f"Streaming: {len(result.peaks)} peaks in buffer, avg HR {result.avg_hr:.1f} bpm")

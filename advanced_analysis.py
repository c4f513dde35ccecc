#!/usr/bin/env python
"""
Advanced ECG Analysis Module
RR intervals, heart rate, Heart Rate Variability (HRV) and rate-based rhythm.
"""

import numpy as np
from typing import List, Optional, Sequence, Tuple
from dataclasses import dataclass
from enum import Enum

from ecg_detection import Peak
from ecg_constants import (
    RR_INTERVAL_MIN_S,
    RR_INTERVAL_MAX_S,
    HR_BRADYCARDIA_THRESHOLD_BPM,
    HR_TACHYCARDIA_THRESHOLD_BPM,
    RHYTHM_CONFIDENCE_NORMAL,
    RHYTHM_CONFIDENCE_RATE_ABNORMAL,
    HRV_SDNN_EXCELLENT_MS,
    HRV_SDNN_GOOD_MS,
    HRV_SDNN_FAIR_MS,
)


def calculate_metrics(peaks: Sequence[Peak],
                      rr_min: float = RR_INTERVAL_MIN_S,
                      rr_max: float = RR_INTERVAL_MAX_S) -> Tuple[List[float], float, float]:
    """
    RR intervals and heart rate from an ordered peak sequence.

    Intervals outside (rr_min, rr_max) are missed or double-counted beats and
    are left out of the RR list (the peaks themselves are kept). With no
    valid interval both heart rates are 0, meaning "not yet known".

    Args:
        peaks: Time-ordered peaks
        rr_min: Shortest valid RR interval in seconds (exclusive)
        rr_max: Longest valid RR interval in seconds (exclusive)

    Returns:
        Tuple of (rr_intervals, instant_hr, avg_hr)
    """
    rr_intervals = []
    for prev, curr in zip(peaks, peaks[1:]):
        rr = curr.time - prev.time
        if rr_min < rr < rr_max:
            rr_intervals.append(rr)

    if not rr_intervals:
        return [], 0.0, 0.0

    instant_hr = 60.0 / rr_intervals[-1]
    avg_hr = 60.0 / float(np.mean(rr_intervals))

    return rr_intervals, instant_hr, avg_hr


class RhythmType(Enum):
    """Rate-based rhythm labels."""
    ACQUIRING = "Acquiring Signal"
    NORMAL_SINUS = "Normal Sinus Rhythm"
    SINUS_BRADY = "Sinus Bradycardia"
    SINUS_TACHY = "Sinus Tachycardia"


@dataclass
class HRVMetrics:
    """Heart Rate Variability metrics (time domain)."""
    mean_rr: float  # Mean RR interval (ms)
    sdnn: float  # Population standard deviation of RR intervals (ms)
    rmssd: float  # Root mean square of successive differences (ms)
    n_intervals: int

    # Classification
    hrv_category: str  # "Excellent", "Good", "Fair", "Poor"


@dataclass
class RhythmClassification:
    """Rhythm label derived from the average heart rate."""
    rhythm: RhythmType
    confidence: float
    details: str
    risk_level: str  # "low", "moderate" or "unknown"

    @property
    def label(self) -> str:
        return self.rhythm.value


class HRVAnalyzer:
    """Heart Rate Variability analysis."""

    MIN_INTERVALS = 2

    def analyze_hrv(self, rr_intervals: Sequence[float]) -> Optional[HRVMetrics]:
        """
        Time-domain HRV from RR intervals in seconds.

        Returns None with fewer than two intervals.
        """
        if len(rr_intervals) < self.MIN_INTERVALS:
            return None

        rr_ms = np.asarray(rr_intervals, dtype=float) * 1000
        sdnn = self.sdnn(rr_intervals)
        rmssd = self.rmssd(rr_intervals)

        return HRVMetrics(
            mean_rr=float(np.mean(rr_ms)),
            sdnn=sdnn,
            rmssd=rmssd,
            n_intervals=len(rr_ms),
            hrv_category=self._classify_hrv(sdnn)
        )

    def sdnn(self, rr_intervals: Sequence[float]) -> Optional[float]:
        """SDNN in ms (ddof=0)."""
        if len(rr_intervals) < self.MIN_INTERVALS:
            return None
        return float(np.std(np.asarray(rr_intervals, dtype=float))) * 1000

    def rmssd(self, rr_intervals: Sequence[float]) -> Optional[float]:
        """RMSSD in ms."""
        if len(rr_intervals) < self.MIN_INTERVALS:
            return None
        successive_diffs = np.diff(np.asarray(rr_intervals, dtype=float))
        return float(np.sqrt(np.mean(successive_diffs ** 2))) * 1000

    def _classify_hrv(self, sdnn: float) -> str:
        """Classify HRV based on SDNN."""
        if sdnn > HRV_SDNN_EXCELLENT_MS:
            return "Excellent"
        elif sdnn > HRV_SDNN_GOOD_MS:
            return "Good"
        elif sdnn > HRV_SDNN_FAIR_MS:
            return "Fair"
        else:
            return "Poor"


class RhythmClassifier:
    """Classify rhythm from average heart rate."""

    def classify(self, avg_hr: float) -> RhythmClassification:
        # 0 bpm is "no estimate yet", never an alarm
        if avg_hr <= 0:
            return RhythmClassification(
                rhythm=RhythmType.ACQUIRING,
                confidence=0.0,
                details="Waiting for enough beats to estimate heart rate",
                risk_level="unknown"
            )

        if avg_hr < HR_BRADYCARDIA_THRESHOLD_BPM:
            return RhythmClassification(
                rhythm=RhythmType.SINUS_BRADY,
                confidence=RHYTHM_CONFIDENCE_RATE_ABNORMAL,
                details="Slower than normal heart rate, regular rhythm",
                risk_level="moderate"
            )

        if avg_hr > HR_TACHYCARDIA_THRESHOLD_BPM:
            return RhythmClassification(
                rhythm=RhythmType.SINUS_TACHY,
                confidence=RHYTHM_CONFIDENCE_RATE_ABNORMAL,
                details="Faster than normal heart rate, regular rhythm",
                risk_level="moderate"
            )

        return RhythmClassification(
            rhythm=RhythmType.NORMAL_SINUS,
            confidence=RHYTHM_CONFIDENCE_NORMAL,
            details="Regular rhythm with consistent P-QRS-T morphology",
            risk_level="low"
        )


if __name__ == "__main__":
    from examples.generate_ecg_data import ECGGenerator
    from realtime_detection import detect_peaks

    gen = ECGGenerator()
    samples, metadata = gen.generate_normal_sinus_rhythm(duration=60, heart_rate=75)

    result = detect_peaks(samples, metadata['sample_rate'])

    hrv_metrics = HRVAnalyzer().analyze_hrv(result.rr_intervals)
    print("HRV Analysis:")
    if hrv_metrics:
        print(f"  Mean RR: {hrv_metrics.mean_rr:.1f} ms")
        print(f"  SDNN: {hrv_metrics.sdnn:.1f} ms")
        print(f"  RMSSD: {hrv_metrics.rmssd:.1f} ms")
        print(f"  Category: {hrv_metrics.hrv_category}")

    rhythm = RhythmClassifier().classify(result.avg_hr)
    print(f"\nRhythm: {rhythm.label} ({result.avg_hr:.1f} bpm, confidence {rhythm.confidence:.2f})")

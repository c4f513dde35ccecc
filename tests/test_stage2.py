#!/usr/bin/env python
"""
Stage 2 Test Suite
Batch R-peak detection, RR/heart-rate metrics, HRV and rhythm labels.
"""

import numpy as np
import pytest
import sys
import os

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from examples.generate_ecg_data import ECGGenerator
from ecg_detection import (
    Sample, Peak, PeakDetectionResult, DetectionParameters, RPeakDetector, make_samples
)
from signal_processing import ECGSignalProcessor
from realtime_detection import detect_peaks
from advanced_analysis import (
    calculate_metrics, HRVAnalyzer, RhythmClassifier, RhythmType
)


@pytest.fixture(scope="module")
def normal_ecg():
    generator = ECGGenerator(sample_rate=250, seed=7)
    return generator.generate_normal_sinus_rhythm(duration=10, heart_rate=72)


def _peaks_at(times):
    return [Peak(time=t, value=1.0, index=i) for i, t in enumerate(times)]


def test_detection_parameters_defaults():
    params = DetectionParameters()

    assert params.sample_rate == 250
    assert params.refractory_samples == 62, "floor(0.25 * 250)"
    assert params.integration_window_samples == 37, "floor(0.15 * 250)"
    assert params.baseline_half_window == 16, "floor(250 / 15)"
    assert params.min_peak_amplitude == 0.4, "Amplitude gate in mV"

    with pytest.raises(ValueError):
        DetectionParameters(sample_rate=0)


def test_scenario_a_clean_72_bpm(normal_ecg):
    """10 s of clean 72 bpm ECG gives ~12 beats and ~72 bpm."""
    samples, metadata = normal_ecg
    result = detect_peaks(samples, metadata['sample_rate'])

    print(f"   Detected {len(result.peaks)} peaks, avg HR {result.avg_hr:.1f} bpm")
    assert 11 <= len(result.peaks) <= 13, f"Expected 11-13 peaks, got {len(result.peaks)}"
    assert abs(result.avg_hr - 72) <= 2, f"Average HR {result.avg_hr:.1f} not within 2 bpm of 72"
    assert result.instant_hr > 0, "Instantaneous HR known"


def test_peaks_land_on_r_waves(normal_ecg):
    samples, metadata = normal_ecg
    result = detect_peaks(samples, metadata['sample_rate'])
    r_times = metadata['r_wave_times']

    for peak in result.peaks:
        nearest = np.min(np.abs(r_times - peak.time))
        assert nearest < 0.02, f"Peak at {peak.time:.3f} s is {nearest * 1000:.0f} ms from an R-wave"
        assert peak.value > 0.4, "Peak passed the amplitude gate"
        assert samples[peak.index].time == peak.time, "Index points at the originating sample"
        assert samples[peak.index].value == peak.value, "Value taken from the raw signal"


def test_scenario_b_noise_only():
    noise = ECGGenerator(seed=11).generate_noise(duration=5, amplitude=0.05)
    result = detect_peaks(noise, 250)

    assert result.peaks == [], f"Noise produced {len(result.peaks)} peaks"
    assert result.avg_hr == 0.0, "No heart rate from noise"


def test_scenario_c_too_few_samples(normal_ecg):
    samples, _ = normal_ecg
    result = detect_peaks(samples[:30], 250)

    assert result == PeakDetectionResult.empty(), "Fewer than 50 samples gives the empty result"
    assert result.to_dict() == {'peaks': [], 'rr_intervals': [], 'instant_hr': 0.0, 'avg_hr': 0.0}


def test_detection_is_idempotent(normal_ecg):
    samples, _ = normal_ecg
    assert detect_peaks(samples) == detect_peaks(samples), "Same input, same peaks"


def test_refractory_and_rr_invariants(normal_ecg):
    samples, _ = normal_ecg
    params = DetectionParameters()
    result = detect_peaks(samples, parameters=params)

    # The 0.25 s refractory period is floored to whole samples: 62 / 250 = 0.248 s
    min_gap = params.refractory_samples / params.sample_rate
    assert min_gap == pytest.approx(0.248)
    for prev, curr in zip(result.peaks, result.peaks[1:]):
        assert curr.time - prev.time >= min_gap, \
            f"Peaks {curr.time - prev.time:.3f} s apart, under the 0.25 s refractory period (62 samples)"

    assert result.rr_intervals, "RR intervals produced"
    assert all(0.3 < rr < 2.0 for rr in result.rr_intervals), "RR intervals in (0.3, 2.0) s"


def test_amplitude_gate_is_configurable(normal_ecg):
    """A low-gain sensor needs a lower gate; the envelope itself is scale free."""
    samples, _ = normal_ecg
    scaled = [Sample(time=s.time, value=s.value * 0.3) for s in samples]
    reference = detect_peaks(samples)

    assert detect_peaks(scaled).peaks == [], "R-waves near 0.3 mV fail the default 0.4 mV gate"

    low_gate = detect_peaks(scaled, parameters=DetectionParameters(min_peak_amplitude=0.1))
    assert len(low_gate.peaks) == len(reference.peaks), "Lower gate recovers every beat"
    assert low_gate.avg_hr == pytest.approx(reference.avg_hr), "Same timing as the full-scale signal"


def _with_baseline(samples, baseline):
    return [Sample(time=s.time, value=s.value + baseline(s.time)) for s in samples]


def _assert_on_r_waves(peaks, r_times):
    for peak in peaks:
        nearest = np.min(np.abs(r_times - peak.time))
        assert nearest < 0.02, f"Peak at {peak.time:.3f} s is {nearest * 1000:.0f} ms from an R-wave"


def test_linear_drift_keeps_peaks_on_r_waves(normal_ecg):
    """A 0.2 mV/s drift must not pull the remap onto the P-wave."""
    samples, metadata = normal_ecg
    drifting = _with_baseline(samples, lambda t: 0.2 * t)
    result = detect_peaks(drifting, metadata['sample_rate'])

    print(f"   Drift: {len(result.peaks)} peaks, avg HR {result.avg_hr:.1f} bpm")
    assert 11 <= len(result.peaks) <= 13, f"Expected 11-13 peaks, got {len(result.peaks)}"
    _assert_on_r_waves(result.peaks, metadata['r_wave_times'])
    assert abs(result.avg_hr - 72) <= 2, f"Average HR {result.avg_hr:.1f} not within 2 bpm of 72"


@pytest.mark.parametrize("amplitude", [0.3, 0.8])
def test_baseline_wander_keeps_peaks_on_r_waves(normal_ecg, amplitude):
    samples, metadata = normal_ecg
    wandering = _with_baseline(samples, lambda t: amplitude * np.sin(2 * np.pi * 0.3 * t))
    result = detect_peaks(wandering, metadata['sample_rate'])

    assert result.peaks, "Beats found under baseline wander"
    _assert_on_r_waves(result.peaks, metadata['r_wave_times'])
    if amplitude < 0.6:
        assert 11 <= len(result.peaks) <= 13, "Mild wander keeps every R-wave above the gate"


def test_r_wave_search_stays_in_window():
    detector = RPeakDetector()
    ramp = np.linspace(0, 3, 500)

    assert detector._locate_r_wave(ramp, 100) == 108, "Rising stretch followed only to the window edge"
    assert detector._locate_r_wave(ramp, 2) == 10
    assert detector._locate_r_wave(ramp, 498) == 499, "Window clamped to the signal"

    bump = np.zeros(100)
    bump[40] = 1.0
    bump[60] = 2.0
    assert detector._locate_r_wave(bump, 44) == 40, "Larger sample outside the window ignored"


def test_detector_rejects_short_envelope():
    detector = RPeakDetector()
    conditioned_values = np.ones(12)
    conditioned = ECGSignalProcessor(250).condition_qrs(conditioned_values)

    assert len(conditioned) < 10
    assert detector.find_peaks(conditioned, conditioned_values, np.arange(12) / 250) == []


def test_initial_threshold():
    detector = RPeakDetector()
    envelope = np.zeros(100)
    envelope[:10] = 2.0
    envelope[50] = 10.0

    threshold, floor = detector.initial_threshold(envelope)
    assert threshold == pytest.approx(4.0), "0.4 * max dominates 0.5 * p95"
    assert floor == pytest.approx(1.0), "Floor is 0.1 * max"


def test_calculate_metrics():
    rr, instant_hr, avg_hr = calculate_metrics(_peaks_at([0.0, 0.8, 1.6, 2.5]))

    assert rr == pytest.approx([0.8, 0.8, 0.9])
    assert instant_hr == pytest.approx(60 / 0.9), "HR from the last RR interval"
    assert avg_hr == pytest.approx(60 / np.mean([0.8, 0.8, 0.9])), "HR from the mean RR interval"


def test_calculate_metrics_drops_artifacts():
    rr, instant_hr, avg_hr = calculate_metrics(_peaks_at([0.0, 0.1, 0.9, 3.5]))

    assert rr == pytest.approx([0.8]), "0.1 s and 2.6 s intervals excluded"
    assert instant_hr == pytest.approx(75.0)
    assert avg_hr == pytest.approx(75.0)


def test_calculate_metrics_insufficient_data():
    assert calculate_metrics([]) == ([], 0.0, 0.0)
    assert calculate_metrics(_peaks_at([1.0])) == ([], 0.0, 0.0)
    assert calculate_metrics(_peaks_at([0.0, 5.0])) == ([], 0.0, 0.0), "Only out-of-range intervals"


def test_hrv_metrics():
    analyzer = HRVAnalyzer()
    hrv = analyzer.analyze_hrv([0.8, 0.86])

    assert hrv.sdnn == pytest.approx(30.0), "Population std in ms"
    assert hrv.rmssd == pytest.approx(60.0), "RMS of successive differences in ms"
    assert hrv.mean_rr == pytest.approx(830.0)
    assert hrv.n_intervals == 2
    assert hrv.hrv_category == "Fair"

    assert analyzer.analyze_hrv([0.8]) is None, "HRV undefined with fewer than two intervals"
    assert analyzer.sdnn([]) is None
    assert analyzer.rmssd([0.8]) is None


def test_hrv_from_detection(normal_ecg):
    samples, _ = normal_ecg
    result = detect_peaks(samples)
    hrv = HRVAnalyzer().analyze_hrv(result.rr_intervals)

    assert hrv is not None
    assert hrv.mean_rr == pytest.approx(833.3, abs=30), "Mean RR near 833 ms at 72 bpm"
    assert hrv.sdnn < 25, "A perfectly regular rhythm has almost no variability"
    assert hrv.hrv_category == "Poor"


def test_rhythm_classification():
    classifier = RhythmClassifier()

    acquiring = classifier.classify(0.0)
    assert acquiring.rhythm == RhythmType.ACQUIRING, "0 bpm means not yet known"
    assert acquiring.risk_level == "unknown"
    assert acquiring.label == "Acquiring Signal"

    assert classifier.classify(45).rhythm == RhythmType.SINUS_BRADY
    assert classifier.classify(130).rhythm == RhythmType.SINUS_TACHY
    assert classifier.classify(130).risk_level == "moderate"
    assert classifier.classify(60).rhythm == RhythmType.NORMAL_SINUS, "60 bpm is normal"
    assert classifier.classify(100).rhythm == RhythmType.NORMAL_SINUS, "100 bpm is normal"
    assert classifier.classify(72).confidence == pytest.approx(0.9)


def test_make_samples():
    samples = make_samples([0.1, 0.2, 0.3], sample_rate=250, start_time=1.0)

    assert [s.value for s in samples] == [0.1, 0.2, 0.3]
    assert samples[2].time == pytest.approx(1.008)


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))

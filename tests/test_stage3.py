#!/usr/bin/env python
"""
Stage 3 Test Suite
Streaming R-peak detection over a rolling buffer.
"""

import numpy as np
import pytest
import sys, os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from examples.generate_ecg_data import ECGGenerator, LiveECGSimulator, iter_chunks
from ecg_detection import Sample, PeakDetectionResult, DetectionParameters
from realtime_detection import RealtimePeakDetector, detect_peaks


@pytest.fixture(scope="module")
def stream():
    samples, metadata = ECGGenerator(seed=5).generate_normal_sinus_rhythm(duration=10, heart_rate=72)
    return samples, metadata


def _feed(detector, samples, chunk_size=25):
    results = []
    for chunk in iter_chunks(samples, chunk_size):
        results.append(detector.add_data(chunk))
    return results


def test_scenario_d_chunked_stream_matches_batch(stream):
    """100 chunks of 25 samples match a batch run over the last 5 s."""
    samples, metadata = stream
    detector = RealtimePeakDetector(sample_rate=250, buffer_seconds=5)
    results = _feed(detector, samples)

    streamed = results[-1].peaks
    batch = detect_peaks(samples[-1250:], 250)

    print(f"   Streaming: {len(streamed)} peaks, batch over last 5 s: {len(batch.peaks)} peaks")
    assert abs(len(streamed) - len(batch.peaks)) <= 1, "Streaming count within 1 of batch"

    times = [p.time for p in streamed]
    assert len(set(times)) == len(times), "No peak reported twice"

    r_times = metadata['r_wave_times']
    for peak in streamed:
        assert np.min(np.abs(r_times - peak.time)) < 0.02, f"Peak at {peak.time:.3f} s is not on an R-wave"

    assert abs(results[-1].avg_hr - 72) <= 2, f"Streaming HR {results[-1].avg_hr:.1f} bpm"


def test_no_duplicates_across_calls(stream):
    samples, _ = stream
    detector = RealtimePeakDetector()
    min_gap = detector.params.refractory_samples / detector.sample_rate  # 0.25 s floored to 62 samples
    assert min_gap == pytest.approx(0.248)

    seen = {}
    for result in _feed(detector, samples, chunk_size=13):
        for peak in result.peaks:
            seen[peak.time] = peak

    times = sorted(seen)
    for prev, curr in zip(times, times[1:]):
        assert curr - prev >= min_gap, f"Peaks at {prev:.3f} and {curr:.3f} s are one beat (0.25 s refractory)"


def test_streaming_under_baseline_drift(stream):
    """Drift plus slow wander, fed in chunks; every reported beat stays on its R-wave."""
    samples, metadata = stream
    drifting = [Sample(time=s.time, value=s.value + 0.15 * s.time + 0.3 * np.sin(2 * np.pi * 0.25 * s.time))
                for s in samples]
    detector = RealtimePeakDetector(sample_rate=250, buffer_seconds=5)

    r_times = metadata['r_wave_times']
    reported = {}
    for result in _feed(detector, drifting):
        for peak in result.peaks:
            reported[peak.time] = peak

    assert len(reported) >= 10, f"Only {len(reported)} beats reported over 10 s"
    for time in reported:
        assert np.min(np.abs(r_times - time)) < 0.02, f"Peak at {time:.3f} s is not on an R-wave"


def test_buffer_bound_and_monotonic_peaks(stream):
    samples, _ = stream
    detector = RealtimePeakDetector(sample_rate=250, buffer_seconds=5)

    for chunk in iter_chunks(samples, 40):
        detector.add_data(chunk)
        assert detector.buffer_length <= 1250, "Buffer never exceeds sample_rate * buffer_seconds"
        assert 0 <= detector.last_processed_index <= detector.buffer_length, "Watermark inside buffer"

        times = [p.time for p in detector.get_peaks()]
        assert times == sorted(times), "Accumulated peaks stay time ordered"


def test_trimming_evicts_old_peaks(stream):
    samples, _ = stream
    detector = RealtimePeakDetector(sample_rate=250, buffer_seconds=5)
    _feed(detector, samples)

    oldest_buffered = samples[-1250].time
    assert detector.get_peaks(), "Peaks present after 10 s"
    assert all(p.time >= oldest_buffered for p in detector.get_peaks()), "Evicted peaks dropped"


def test_detection_waits_for_enough_new_samples(stream):
    samples, _ = stream
    detector = RealtimePeakDetector()

    first = detector.add_data(samples[:30])
    assert first == PeakDetectionResult.empty(), "30 samples is not enough to run detection"
    assert detector.last_processed_index == 0, "Nothing processed yet"

    detector.add_data(samples[30:60])
    assert detector.last_processed_index == 60, "Detection ran over the whole buffer"

    detector.add_data(samples[60:400])
    peaks_before = detector.get_peaks()
    assert detector.last_processed_index == 400

    held = detector.add_data(samples[400:420])
    assert detector.last_processed_index == 400, "20 new samples do not trigger detection"
    assert held.peaks == peaks_before, "Accumulated peaks returned unchanged"


def test_metrics_between_detection_runs(stream):
    samples, _ = stream
    detector = RealtimePeakDetector()
    detector.add_data(samples[:1000])

    held = detector.add_data(samples[1000:1010])
    assert len(held.peaks) >= 3, "Several beats in 4 s"
    assert held.rr_intervals, "RR intervals recomputed from accumulated peaks"
    assert abs(held.avg_hr - 72) <= 2


def test_watermark_tracks_eviction(stream):
    samples, _ = stream
    detector = RealtimePeakDetector(sample_rate=250, buffer_seconds=5)

    detector.add_data(samples[:1250])
    assert detector.last_processed_index == 1250

    detector.add_data(samples[1250:1270])
    assert detector.buffer_length == 1250, "20 oldest samples evicted"
    assert detector.last_processed_index == 1230, "Watermark moved back with the eviction"


def test_scenario_e_reset(stream):
    samples, _ = stream
    detector = RealtimePeakDetector()
    _feed(detector, samples[:2000])
    assert detector.get_peaks(), "Peaks accumulated before reset"

    detector.reset()
    fresh = RealtimePeakDetector()

    assert detector.buffer_length == 0
    assert detector.last_processed_index == 0
    assert detector.get_peaks() == []
    assert vars(detector) == vars(fresh), "Reset state equals a new instance"

    assert detector.add_data(samples[:30]) == PeakDetectionResult.empty()
    assert fresh.add_data(samples[:30]) == PeakDetectionResult.empty()


def test_invalid_configuration():
    with pytest.raises(ValueError):
        RealtimePeakDetector(buffer_seconds=0)
    with pytest.raises(ValueError):
        RealtimePeakDetector(sample_rate=-250)


def test_custom_parameters_are_used():
    params = DetectionParameters(sample_rate=500)
    detector = RealtimePeakDetector(buffer_seconds=2, parameters=params)

    assert detector.sample_rate == 500, "Sample rate taken from the parameters"
    assert detector.buffer_size == 1000


def test_live_simulator_feed():
    """About 10 s of frame-by-frame data with a drifting heart rate."""
    simulator = LiveECGSimulator(seed=9)
    detector = RealtimePeakDetector()

    result = None
    for frame in simulator.frames(625):
        result = detector.add_data(frame)

    assert detector.buffer_length == 1250
    assert len(result.peaks) >= 3, f"Only {len(result.peaks)} beats in the last 5 s"
    assert 50 <= result.avg_hr <= 115, f"Heart rate {result.avg_hr:.1f} bpm out of simulator range"

    times = [p.time for p in result.peaks]
    assert times == sorted(times) and len(set(times)) == len(times), "Ordered and unique"


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))

#!/usr/bin/env python
"""
ECG Detection Constants

All numerical constants used by the real-time R-peak detection engine and
its collaborators. Every tuning number lives here so that deployments with
different sensors can adjust them without touching the algorithms.

Units:
- Time: seconds (s) unless suffixed _MS
- Frequency / sample rate: Hertz (Hz)
- Amplitude: millivolts (mV), nominal
- Heart rate: beats per minute (bpm)
"""

# ==============================================================================
# ACQUISITION
# ==============================================================================

# Default sample rate of the live feed and of single-column CSV uploads
DEFAULT_SAMPLE_RATE_HZ = 250

# Rolling window kept by the streaming detector (250 Hz * 5 s = 1250 samples)
DEFAULT_BUFFER_SECONDS = 5

# ==============================================================================
# QRS CONDITIONING (simplified Pan-Tompkins)
# ==============================================================================
# Reference: Pan J, Tompkins WJ. "A Real-Time QRS Detection Algorithm."
#            IEEE Trans Biomed Eng. 1985;32(3):230-236.

# Baseline removal: subtract a centred moving average of half-width
# floor(sample_rate / divisor) samples (16 samples at 250 Hz)
BASELINE_WINDOW_DIVISOR = 15

# Five-point derivative trims this many samples from each end
DERIVATIVE_EDGE_SAMPLES = 2

# Integration window approximates one QRS duration
# Pan & Tompkins (1985), Section II-D
QRS_INTEGRATION_WINDOW_S = 0.15

# ==============================================================================
# PEAK PICKING
# ==============================================================================

# Envelopes shorter than this yield no peaks
MIN_ENVELOPE_SAMPLES = 10

# Batch detection is skipped below this many samples
MIN_BATCH_SAMPLES = 50

# Initial threshold = max(0.4 * max, 0.5 * p95)
THRESHOLD_MAX_FRACTION = 0.4
THRESHOLD_PERCENTILE_FRACTION = 0.5

# p95 is read at this rank from the top of the descending-sorted envelope
THRESHOLD_PERCENTILE_RANK = 0.05

# Adaptive threshold never drops below 10% of the envelope maximum
THRESHOLD_FLOOR_FRACTION = 0.1

# threshold = 0.3 * accepted_peak + 0.7 * threshold
THRESHOLD_LEARNING_RATE = 0.3

# Physiological refractory period: 250 ms (ceiling of 240 bpm)
REFRACTORY_PERIOD_S = 0.25

# Half-width (samples) of the window searched in the raw signal for the R-wave
R_WAVE_SEARCH_SAMPLES = 8

# Amplitude gate for accepted R-waves. Assumes roughly normalised mV input;
# raw ADC counts need a different value.
MIN_R_WAVE_AMPLITUDE_MV = 0.4

# ==============================================================================
# RR INTERVALS AND HEART RATE
# ==============================================================================

# Valid RR interval range (exclusive): 30-200 bpm
RR_INTERVAL_MIN_S = 0.3
RR_INTERVAL_MAX_S = 2.0

# Bradycardia: HR < 60 bpm, Tachycardia: HR > 100 bpm
HR_BRADYCARDIA_THRESHOLD_BPM = 60
HR_TACHYCARDIA_THRESHOLD_BPM = 100

# Rhythm classification confidences (fraction)
RHYTHM_CONFIDENCE_NORMAL = 0.9
RHYTHM_CONFIDENCE_RATE_ABNORMAL = 0.85

# SDNN bands (ms) for the HRV category
HRV_SDNN_EXCELLENT_MS = 100
HRV_SDNN_GOOD_MS = 50
HRV_SDNN_FAIR_MS = 25

# ==============================================================================
# CSV INGESTION
# ==============================================================================

# Files with fewer lines / parsed points are rejected
MIN_CSV_LINES = 10
MIN_CSV_POINTS = 10

CSV_HEADER_SPLIT_PATTERN = r'[,\t;]'
CSV_CANDIDATE_DELIMITERS = (',', '\t', ';', ' ')

# Values inside this range are taken to already be millivolts
MV_PLAUSIBLE_RANGE = (-2.0, 3.0)

# Out-of-range recordings are rescaled to 0..1.5 mV
NORMALIZED_RANGE_MV = 1.5

# ==============================================================================
# RECORDING VALIDATION
# ==============================================================================

MIN_RECORDING_SAMPLES = 250
MIN_RECORDING_SAMPLE_RATE_HZ = 100

# Flat-line check: distinct values required among the first N samples
FLATLINE_CHECK_SAMPLES = 100
FLATLINE_MIN_UNIQUE_VALUES = 5

# ==============================================================================
# RISK FUSION
# ==============================================================================

# Base ECG / clinical weights, live monitoring weights, low-confidence weights
FUSION_WEIGHTS_DEFAULT = (0.6, 0.4)
FUSION_WEIGHTS_LIVE = (0.7, 0.3)
FUSION_WEIGHTS_LOW_CONFIDENCE = (0.4, 0.6)

# Classification confidence (percent) below which ECG evidence is discounted
FUSION_LOW_CONFIDENCE_PERCENT = 70

# A single score above this keeps the fused score >= 0.8 * that score
FUSION_DOMINANT_SCORE = 70
FUSION_DOMINANT_FLOOR = 0.8

# Fused score cut-offs
RISK_HIGH_THRESHOLD = 60
RISK_MODERATE_THRESHOLD = 30

# Assumed confidence (percent) in self-reported clinical data
CLINICAL_DATA_CONFIDENCE_PERCENT = 85

MAX_RECOMMENDATIONS = 5

# Bazett-corrected QT (seconds) above which QTc is prolonged
QTC_PROLONGED_S = 0.45
QRS_PROLONGED_S = 0.12

# ==============================================================================
# SNAPSHOT FIGURE
# ==============================================================================

# Clinical grid: 0.2 s / 0.5 mV major, 0.04 s / 0.1 mV minor
MAJOR_GRID_TIME_S = 0.2
MINOR_GRID_TIME_S = 0.04
MAJOR_GRID_VOLTAGE_MV = 0.5
MINOR_GRID_VOLTAGE_MV = 0.1

SNAPSHOT_MAX_ANNOTATED_PEAKS = 3

CLINICAL_MAJOR_GRID_COLOR = '#D32F2F'
CLINICAL_MINOR_GRID_COLOR = '#FFCDD2'
CLINICAL_SIGNAL_COLOR = '#000000'
CLINICAL_BACKGROUND_COLOR = '#FFFFFF'
PEAK_MARKER_COLOR = '#EC4899'

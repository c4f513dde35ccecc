#!/usr/bin/env python
"""
ECG File Format I/O Module
CSV ingestion and export of single-lead ECG sample streams.
"""

import numpy as np
import csv
import re
from typing import List, Optional
from dataclasses import dataclass, field

from ecg_detection import Sample
from ecg_constants import (
    DEFAULT_SAMPLE_RATE_HZ,
    MIN_CSV_LINES,
    MIN_CSV_POINTS,
    CSV_HEADER_SPLIT_PATTERN,
    CSV_CANDIDATE_DELIMITERS,
    MV_PLAUSIBLE_RANGE,
    NORMALIZED_RANGE_MV,
)


class ECGFormatError(ValueError):
    """Raised when a file cannot be turned into an ECG sample stream."""
    pass


@dataclass
class ParsedECGData:
    """Sample stream recovered from a file."""
    samples: List[Sample] = field(default_factory=list)
    sample_rate: int = DEFAULT_SAMPLE_RATE_HZ
    duration: float = 0.0  # seconds between first and last sample

    @property
    def values(self) -> np.ndarray:
        return np.array([s.value for s in self.samples], dtype=float)

    @property
    def timestamps(self) -> np.ndarray:
        return np.array([s.time for s in self.samples], dtype=float)

    def __len__(self):
        return len(self.samples)


def _parse_float(token: str) -> Optional[float]:
    try:
        value = float(token.strip())
    except ValueError:
        return None
    return value if np.isfinite(value) else None


def detect_delimiter(line: str) -> str:
    """Delimiter that splits the line into the most fields (ties go to the earlier candidate)."""
    best_delimiter = CSV_CANDIDATE_DELIMITERS[0]
    max_count = 0

    for delimiter in CSV_CANDIDATE_DELIMITERS:
        count = len(line.split(delimiter))
        if count > max_count:
            max_count = count
            best_delimiter = delimiter

    return best_delimiter


def has_header(line: str) -> bool:
    """A first line whose leading field is not a number is a header."""
    first_field = re.split(CSV_HEADER_SPLIT_PATTERN, line.strip())[0]
    return _parse_float(first_field) is None


def normalize_ecg_values(values: np.ndarray) -> np.ndarray:
    """
    Rescale values that do not look like millivolts.

    Values already inside the plausible mV range, and constant signals,
    are returned unchanged. Anything else (ADC counts, microvolts) is mapped
    linearly from min..max onto 0..NORMALIZED_RANGE_MV.
    """
    values = np.asarray(values, dtype=float)
    if len(values) == 0:
        return values

    min_val, max_val = float(np.min(values)), float(np.max(values))
    value_range = max_val - min_val

    if value_range == 0:
        return values

    if min_val >= MV_PLAUSIBLE_RANGE[0] and max_val <= MV_PLAUSIBLE_RANGE[1]:
        return values

    return (values - min_val) / value_range * NORMALIZED_RANGE_MV


def parse_ecg_csv_text(text: str) -> ParsedECGData:
    """
    Parse ECG data from CSV text.

    Supported layouts:
    - Single column of values (timestamps assumed at 250 Hz)
    - Two columns: time (s), value

    The delimiter (comma, tab, semicolon or space) and an optional header
    line are detected automatically. Rows that do not parse are skipped.
    For two-column data the sample rate is re-derived from the timestamps.

    Args:
        text: File contents

    Returns:
        ParsedECGData

    Raises:
        ECGFormatError: Too few lines or too few parseable points
    """
    lines = text.strip().split('\n')

    if len(lines) < MIN_CSV_LINES:
        raise ECGFormatError(f"File too short. Need at least {MIN_CSV_LINES} data points.")

    first_line = lines[0].strip()
    data_lines = lines[1:] if has_header(first_line) else lines
    delimiter = detect_delimiter(first_line)

    first_fields = data_lines[0].split(delimiter) if data_lines else []
    is_two_column = len(first_fields) >= 2 and _parse_float(first_fields[1]) is not None

    sample_rate = DEFAULT_SAMPLE_RATE_HZ
    timestamps = []
    values = []

    for row_index, line in enumerate(data_lines):
        fields = line.strip().split(delimiter)

        if is_two_column:
            if len(fields) < 2:
                continue
            time, value = _parse_float(fields[0]), _parse_float(fields[1])
            if time is None or value is None:
                continue
            timestamps.append(time)
            values.append(value)
        else:
            value = _parse_float(fields[0])
            if value is None:
                continue
            timestamps.append(row_index / sample_rate)
            values.append(value)

    if len(values) < MIN_CSV_POINTS:
        raise ECGFormatError("Could not parse enough valid data points.")

    if is_two_column:
        avg_interval = (timestamps[-1] - timestamps[0]) / (len(timestamps) - 1)
        if avg_interval > 0:
            sample_rate = int(round(1.0 / avg_interval))

    normalized = normalize_ecg_values(np.array(values))

    samples = [Sample(time=float(t), value=float(v)) for t, v in zip(timestamps, normalized)]

    return ParsedECGData(samples=samples,
                         sample_rate=sample_rate,
                         duration=float(timestamps[-1] - timestamps[0]))


class ECGFileReader:
    """Read ECG sample streams from files."""

    @staticmethod
    def read_csv(filepath: str) -> ParsedECGData:
        """
        Read ECG from CSV file.

        Args:
            filepath: Path to CSV file

        Returns:
            ParsedECGData
        """
        with open(filepath, 'r') as f:
            text = f.read()

        return parse_ecg_csv_text(text)

    @staticmethod
    def auto_detect_format(filepath: str) -> ParsedECGData:
        """Read a file based on its extension."""
        filepath_lower = filepath.lower()

        if filepath_lower.endswith(('.csv', '.txt', '.tsv')):
            return ECGFileReader.read_csv(filepath)

        raise ValueError(f"Unknown or unsupported file format: {filepath}")


class ECGFileWriter:
    """Write ECG sample streams to files."""

    @staticmethod
    def write_csv(filepath: str, samples: List[Sample]):
        """
        Write samples as a two-column time,value CSV with a header row.

        Args:
            filepath: Output file path
            samples: ECG samples
        """
        with open(filepath, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(['time', 'value'])
            for sample in samples:
                writer.writerow([repr(float(sample.time)), repr(float(sample.value))])


# Convenience functions
def load_ecg(filepath: str) -> ParsedECGData:
    """Load ECG from file (auto-detect format)."""
    return ECGFileReader.auto_detect_format(filepath)


def save_ecg(filepath: str, samples: List[Sample]):
    """Save ECG samples to a CSV file."""
    ECGFileWriter.write_csv(filepath, samples)


if __name__ == "__main__":
    from examples.generate_ecg_data import ECGGenerator

    print("Testing ECG File I/O...")

    gen = ECGGenerator()
    samples, metadata = gen.generate_normal_sinus_rhythm(duration=10)

    save_ecg('test_ecg.csv', samples)
    loaded = load_ecg('test_ecg.csv')
    print(f"   ✓ CSV: Saved and loaded {len(loaded)} samples at {loaded.sample_rate} Hz")

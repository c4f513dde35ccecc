#!/usr/bin/env python
"""
ECG Signal Validation Module
Quality checks on ingested single-lead recordings before analysis.
"""

import numpy as np
import warnings
from typing import Dict, List, Sequence

from ecg_detection import Sample
from ecg_constants import (
    MIN_RECORDING_SAMPLES,
    MIN_RECORDING_SAMPLE_RATE_HZ,
    FLATLINE_CHECK_SAMPLES,
    FLATLINE_MIN_UNIQUE_VALUES,
)


class ECGValidationError(Exception):
    """Custom exception for ECG validation errors."""
    pass


class ECGWarning(UserWarning):
    """Custom warning for ECG validation issues."""
    pass


class ECGValidator:
    """Recording quality validation."""

    def __init__(self, strict_mode: bool = False):
        """Initialize validator."""
        self.strict_mode = strict_mode
        self.validation_results = {}
        self.issues: List[str] = []

    def validate_recording(self, samples: Sequence[Sample], sample_rate: int) -> Dict[str, bool]:
        """
        Check a recording for problems that degrade detection.

        Each failed check is reported as an ECGWarning (or raised as
        ECGValidationError in strict mode) and marked False in the result.
        """
        self.issues = []
        values = np.array([s.value for s in samples], dtype=float)

        results = {
            'recording_length': self._validate_length(values),
            'sample_rate': self._validate_sample_rate(sample_rate),
            'finite_values': self._validate_finite(values),
            'signal_variation': self._validate_variation(values),
        }
        results['overall_valid'] = all(results.values())

        self.validation_results = results
        return results

    def _validate_length(self, values: np.ndarray) -> bool:
        if len(values) < MIN_RECORDING_SAMPLES:
            return self._handle_validation_issue(
                f"Very short recording: {len(values)} samples "
                f"(less than {MIN_RECORDING_SAMPLES}, about 1 second at 250 Hz)")
        return True

    def _validate_sample_rate(self, sample_rate: int) -> bool:
        if sample_rate < MIN_RECORDING_SAMPLE_RATE_HZ:
            return self._handle_validation_issue(
                f"Low sample rate detected: {sample_rate} Hz. May affect accuracy.")
        return True

    def _validate_finite(self, values: np.ndarray) -> bool:
        if np.any(~np.isfinite(values)):
            return self._handle_validation_issue("ECG data contains NaN or infinite values")
        return True

    def _validate_variation(self, values: np.ndarray) -> bool:
        """Flat-line check on the start of the recording."""
        n_unique = len(np.unique(values[:FLATLINE_CHECK_SAMPLES]))
        if n_unique < FLATLINE_MIN_UNIQUE_VALUES:
            return self._handle_validation_issue(
                f"Signal appears to have very low variation ({n_unique} distinct values). "
                f"May indicate lead disconnection.")
        return True

    def _handle_validation_issue(self, message: str) -> bool:
        """Handle validation issues based on strict mode setting."""
        self.issues.append(message)
        if self.strict_mode:
            raise ECGValidationError(message)
        else:
            warnings.warn(message, ECGWarning)
        return False

    def get_validation_report(self) -> str:
        """Get a formatted validation report."""
        if not self.validation_results:
            return "No validation performed yet."

        report = "ECG Validation Report\n" + "=" * 30 + "\n"

        for check, result in self.validation_results.items():
            if check == 'overall_valid':
                continue
            status = "✓ PASS" if result else "✗ FAIL"
            report += f"{check.replace('_', ' ').title():.<20} {status}\n"

        overall = "✓ VALID" if self.validation_results.get('overall_valid', False) else "✗ INVALID"
        report += f"\n{'Overall Status':.<20} {overall}\n"

        return report


# Convenience functions for quick validation
def quick_validate(samples: Sequence[Sample], sample_rate: int) -> bool:
    """Quick recording validation with default settings."""
    validator = ECGValidator(strict_mode=False)
    results = validator.validate_recording(samples, sample_rate)
    return results['overall_valid']


def strict_validate(samples: Sequence[Sample], sample_rate: int):
    """Strict recording validation that raises exceptions on failures."""
    validator = ECGValidator(strict_mode=True)
    return validator.validate_recording(samples, sample_rate)

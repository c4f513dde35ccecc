#!/usr/bin/env python
"""
Clinical ECG Plotting Module
Waveform snapshots with detected R-peaks on a standard ECG paper grid.
"""

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.ticker import MultipleLocator
from typing import Optional, Sequence, Tuple

from ecg_detection import Sample, Peak
from ecg_constants import (
    MAJOR_GRID_TIME_S,
    MINOR_GRID_TIME_S,
    MAJOR_GRID_VOLTAGE_MV,
    MINOR_GRID_VOLTAGE_MV,
    SNAPSHOT_MAX_ANNOTATED_PEAKS,
    CLINICAL_MAJOR_GRID_COLOR,
    CLINICAL_MINOR_GRID_COLOR,
    CLINICAL_SIGNAL_COLOR,
    CLINICAL_BACKGROUND_COLOR,
    PEAK_MARKER_COLOR,
)


class ClinicalECGPlotter:
    """Single-lead ECG snapshots in clinical or print style."""

    def __init__(self, style: str = 'clinical'):
        """
        Initialize clinical ECG plotter.

        Args:
            style: Plot style ('clinical', 'print')
        """
        self.style = style

        # Style configurations
        self.styles = {
            'clinical': {
                'major_grid_color': CLINICAL_MAJOR_GRID_COLOR,
                'minor_grid_color': CLINICAL_MINOR_GRID_COLOR,
                'signal_color': CLINICAL_SIGNAL_COLOR,
                'background_color': CLINICAL_BACKGROUND_COLOR,
                'peak_color': PEAK_MARKER_COLOR,
                'text_color': '#000000',
                'grid_alpha': 0.8
            },
            'print': {
                'major_grid_color': '#000000',
                'minor_grid_color': '#666666',
                'signal_color': '#000000',
                'background_color': '#FFFFFF',
                'peak_color': '#000000',
                'text_color': '#000000',
                'grid_alpha': 1.0
            }
        }

        self.current_style = self.styles.get(style, self.styles['clinical'])

    def plot_detection_snapshot(self,
                                samples: Sequence[Sample],
                                peaks: Sequence[Peak],
                                title: Optional[str] = None,
                                max_annotated_peaks: int = SNAPSHOT_MAX_ANNOTATED_PEAKS,
                                show_grid: bool = True,
                                figsize: Tuple[float, float] = (12, 3)) -> plt.Figure:
        """
        Plot a recorded waveform with its first few R-peaks marked.

        Peaks outside the plotted time range are ignored. Each annotated
        peak gets an "R" marker at the nearest sample and a P1..Pn label.

        Args:
            samples: ECG samples to draw
            peaks: Detected peaks (any number, only the first few in range are drawn)
            title: Plot title
            max_annotated_peaks: Maximum number of peaks to mark
            show_grid: Show clinical grid
            figsize: Figure size

        Returns:
            matplotlib Figure object
        """
        fig, ax = plt.subplots(figsize=figsize)
        fig.patch.set_facecolor(self.current_style['background_color'])
        ax.set_facecolor(self.current_style['background_color'])

        if len(samples) == 0:
            ax.text(0.5, 0.5, 'No ECG data recorded', transform=ax.transAxes,
                    ha='center', va='center', fontsize=12, family='monospace',
                    color='#94a3b8')
            ax.set_xticks([])
            ax.set_yticks([])
            if title:
                ax.set_title(title, fontsize=12, fontweight='bold')
            return fig

        times = np.array([s.time for s in samples], dtype=float)
        values = np.array([s.value for s in samples], dtype=float)

        ax.plot(times, values, color=self.current_style['signal_color'], linewidth=0.8)

        for number, (t, v) in enumerate(self._visible_peaks(times, values, peaks, max_annotated_peaks), 1):
            ax.plot(t, v, 'o', color=self.current_style['peak_color'], markersize=5)
            ax.annotate('R', (t, v), xytext=(0, 6), textcoords='offset points',
                        ha='center', fontsize=9, fontweight='bold',
                        color=self.current_style['peak_color'])
            ax.annotate(f'P{number}', (t, v), xytext=(0, -14), textcoords='offset points',
                        ha='center', fontsize=8, color=self.current_style['text_color'])

        if show_grid:
            self._setup_clinical_grid(ax, (times[0], times[-1]), (np.min(values), np.max(values)))

        ax.set_xlabel('Time (s)', fontsize=8, color=self.current_style['text_color'])
        ax.set_ylabel('mV', fontsize=8, color=self.current_style['text_color'])
        ax.spines['top'].set_visible(False)
        ax.spines['right'].set_visible(False)
        ax.tick_params(colors=self.current_style['text_color'], labelsize=8)

        if title:
            ax.set_title(title, fontsize=12, fontweight='bold',
                         color=self.current_style['text_color'])

        plt.tight_layout()
        return fig

    def _visible_peaks(self, times: np.ndarray, values: np.ndarray,
                       peaks: Sequence[Peak], limit: int):
        """(time, value) of the nearest sample for the first in-range peaks."""
        in_range = [p for p in peaks if times[0] <= p.time <= times[-1]][:limit]

        points = []
        for peak in in_range:
            nearest = int(np.argmin(np.abs(times - peak.time)))
            points.append((times[nearest], values[nearest]))
        return points

    def _setup_clinical_grid(self,
                             ax: plt.Axes,
                             time_range: Tuple[float, float],
                             amplitude_range: Tuple[float, float]):
        """Set up clinical ECG grid on axes."""
        v_min = np.floor(amplitude_range[0] / MAJOR_GRID_VOLTAGE_MV) * MAJOR_GRID_VOLTAGE_MV
        v_max = np.ceil(amplitude_range[1] / MAJOR_GRID_VOLTAGE_MV) * MAJOR_GRID_VOLTAGE_MV
        if v_max <= v_min:
            v_max = v_min + MAJOR_GRID_VOLTAGE_MV

        ax.set_xlim(time_range[0], max(time_range[1], time_range[0] + MAJOR_GRID_TIME_S))
        ax.set_ylim(v_min, v_max)

        ax.xaxis.set_major_locator(MultipleLocator(MAJOR_GRID_TIME_S * 5))
        ax.xaxis.set_minor_locator(MultipleLocator(MAJOR_GRID_TIME_S))
        ax.yaxis.set_major_locator(MultipleLocator(MAJOR_GRID_VOLTAGE_MV))
        ax.yaxis.set_minor_locator(MultipleLocator(MINOR_GRID_VOLTAGE_MV))

        ax.grid(True, which='major',
                color=self.current_style['major_grid_color'],
                linewidth=0.8, alpha=self.current_style['grid_alpha'])
        ax.grid(True, which='minor',
                color=self.current_style['minor_grid_color'],
                linewidth=0.3, alpha=self.current_style['grid_alpha'])

        # Small boxes are only legible on short strips
        if time_range[1] - time_range[0] <= 3.0:
            ax.xaxis.set_minor_locator(MultipleLocator(MINOR_GRID_TIME_S))


# Convenience functions
def plot_detection_snapshot(samples: Sequence[Sample],
                            peaks: Sequence[Peak],
                            title: Optional[str] = None,
                            style: str = 'clinical') -> plt.Figure:
    """Quick waveform snapshot with annotated R-peaks."""
    plotter = ClinicalECGPlotter(style=style)
    return plotter.plot_detection_snapshot(samples, peaks, title=title)


if __name__ == "__main__":
    from examples.generate_ecg_data import ECGGenerator
    from realtime_detection import detect_peaks

    gen = ECGGenerator()
    samples, metadata = gen.generate_normal_sinus_rhythm(duration=5, heart_rate=72)
    result = detect_peaks(samples, metadata['sample_rate'])

    fig = plot_detection_snapshot(samples, result.peaks,
                                  title=f"Lead II - {result.avg_hr:.0f} bpm")
    plt.show()

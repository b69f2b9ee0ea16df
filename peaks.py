#!/usr/bin/env python3
"""
Peak detection over smoothed hue histograms.

Two interchangeable strategies:

- GRID: local maxima of a 2D hue x saturation histogram, thinned by
  non-maximum suppression.
- VALLEY: local maxima of a 1D hue histogram, each owning the region between
  the valleys on either side; adjacent peaks are merged until at most
  MAX_HUE_PEAKS remain.
"""

import enum
import logging
from dataclasses import dataclass, replace

import numpy as np
from scipy.ndimage import maximum_filter

from color_space import circular_bin_distance
from histogram import round_half_up

logger = logging.getLogger(__name__)


PEAK_THRESHOLD = 0.05  # Minimum peak height relative to the global maximum
MAX_HUE_PEAKS = 5


class PeakStrategy(enum.Enum):
    GRID = 'grid'
    VALLEY = 'valley'


@dataclass
class Peak:
    """A local maximum of the hue x saturation histogram."""
    hue_index: int
    sat_index: int
    value: float
    hue: float  # Degrees
    saturation: float  # Bin-centre fraction of the filtered saturation range


@dataclass
class LocalPeak:
    """A local maximum of the hue histogram and the region it owns."""
    index: int
    value: float
    left_valley: int
    right_valley: int


# =============================================================================
# GRID strategy
# =============================================================================

def find_grid_peaks(histogram: np.ndarray, hue_bins: int, sat_bins: int,
                    threshold: float, min_hue_distance: float,
                    min_sat_distance: float) -> list[Peak]:
    """
    Find 2D peaks with non-maximum suppression.

    Args:
        histogram: Flat smoothed values, row-major by hue
        threshold: Minimum peak value relative to the global maximum
        min_hue_distance: Suppression distance along hue (fraction of the axis)
        min_sat_distance: Suppression distance along saturation (fraction of the axis)
    """
    grid = np.asarray(histogram, dtype=np.float64).reshape(hue_bins, sat_bins)
    max_val = float(grid.max()) if grid.size else 0.0
    if max_val <= 0:
        return []

    # 8-neighbour maximum: wrap hue, replicate saturation edges (edge copies
    # are already neighbours, so out-of-range cells never count twice)
    padded = np.pad(grid, ((1, 1), (0, 0)), mode='wrap')
    padded = np.pad(padded, ((0, 0), (1, 1)), mode='edge')
    neighbourhood_max = maximum_filter(padded, size=3, mode='nearest')[1:-1, 1:-1]

    is_peak = (grid >= neighbourhood_max) & (grid >= max_val * threshold)
    candidates = [
        Peak(
            hue_index=int(h),
            sat_index=int(s),
            value=float(grid[h, s]),
            hue=h / hue_bins * 360,
            saturation=(s + 0.5) / sat_bins,
        )
        for h, s in zip(*np.nonzero(is_peak))
    ]

    # Sort by value descending (stable: ties keep hue-major scan order)
    candidates.sort(key=lambda p: -p.value)

    min_hue_bins = round_half_up(min_hue_distance * hue_bins)
    min_sat_bins = round_half_up(min_sat_distance * sat_bins)

    accepted = []
    for peak in candidates:
        too_close = any(
            circular_bin_distance(peak.hue_index, existing.hue_index, hue_bins) < min_hue_bins
            and abs(peak.sat_index - existing.sat_index) < min_sat_bins
            for existing in accepted
        )
        if not too_close:
            accepted.append(peak)

    logger.debug("Grid peaks: %d candidates, %d after suppression",
                 len(candidates), len(accepted))
    return accepted


# =============================================================================
# VALLEY strategy
# =============================================================================

def find_local_maxima(histogram: np.ndarray) -> list[int]:
    """
    Indices of circular local maxima.

    A bin is a peak if (curr > prev and curr >= next) or
    (curr >= prev and curr > next); flat runs never register in their interior.
    """
    values = np.asarray(histogram, dtype=np.float64)
    prev_vals = np.roll(values, 1)
    next_vals = np.roll(values, -1)
    is_peak = (((values > prev_vals) & (values >= next_vals))
               | ((values >= prev_vals) & (values > next_vals)))
    return [int(i) for i in np.nonzero(is_peak)[0]]


def find_valley(histogram: np.ndarray, start: int, end: int) -> int:
    """
    Minimum bin strictly between two peaks, walking forward from start to end.

    When the minimum spans a flat run, the middle of the first such run is
    returned (the earlier bin for even-length runs). If the peaks are
    adjacent, returns end.
    """
    bins = len(histogram)
    between = []
    idx = (start + 1) % bins
    while idx != end:
        between.append(idx)
        idx = (idx + 1) % bins
    if not between:
        return end

    values = [histogram[i] for i in between]
    lowest = min(values)
    run_start = values.index(lowest)
    run_end = run_start
    while run_end + 1 < len(values) and values[run_end + 1] == lowest:
        run_end += 1
    return between[(run_start + run_end) // 2]


def assign_valleys(histogram: np.ndarray, indices: list[int]) -> list[LocalPeak]:
    """Bound each peak by the valleys toward its circular neighbours."""
    bins = len(histogram)
    indices = sorted(indices)

    if len(indices) == 1:
        idx = indices[0]
        return [LocalPeak(index=idx, value=float(histogram[idx]),
                          left_valley=0, right_valley=bins - 1)]

    peaks = [LocalPeak(index=i, value=float(histogram[i]), left_valley=i, right_valley=i)
             for i in indices]
    for k, peak in enumerate(peaks):
        nxt = peaks[(k + 1) % len(peaks)]
        valley = find_valley(histogram, peak.index, nxt.index)
        nxt.left_valley = valley
        peak.right_valley = (valley - 1) % bins

    return peaks


def _pair_score(histogram: np.ndarray, p: LocalPeak, q: LocalPeak, bins: int):
    """Merge score for two adjacent peaks, or None if both are empty."""
    min_peak = min(p.value, q.value)
    if min_peak <= 0:
        return None
    valley_value = float(histogram[q.left_valley])
    distance = circular_bin_distance(p.index, q.index, bins)
    closeness = 1 - distance / (bins / 2)
    return (valley_value / min_peak) * (0.5 + 0.5 * closeness)


def merge_adjacent_peaks(histogram: np.ndarray, peaks: list[LocalPeak],
                         max_peaks: int = MAX_HUE_PEAKS) -> list[LocalPeak]:
    """
    Merge adjacent peaks until at most max_peaks remain.

    Shallow valleys and close peaks score higher; the best-scoring pair merges
    by letting the taller peak absorb the other's region.
    """
    bins = len(histogram)
    peaks = [replace(p) for p in sorted(peaks, key=lambda p: p.index)]

    while len(peaks) > max_peaks:
        best_score = None
        best_pair = None
        for k in range(len(peaks)):
            j = (k + 1) % len(peaks)
            score = _pair_score(histogram, peaks[k], peaks[j], bins)
            if score is not None and (best_score is None or score > best_score):
                best_score = score
                best_pair = (k, j)

        if best_pair is None:
            break

        k, j = best_pair
        left, right = peaks[k], peaks[j]
        if left.value >= right.value:
            # Left survives and takes over right's region
            left.right_valley = right.right_valley
            absorbed = j
        else:
            right.left_valley = left.left_valley
            absorbed = k

        logger.debug("Merged hue peaks %d and %d (score %.3f)",
                     left.index, right.index, best_score)
        del peaks[absorbed]

    return peaks


def find_valley_peaks(histogram: np.ndarray, max_peaks: int = MAX_HUE_PEAKS) -> list[LocalPeak]:
    """Detect hue peaks and their valley-bounded regions (at most max_peaks)."""
    values = np.asarray(histogram, dtype=np.float64)
    indices = find_local_maxima(values)
    if not indices:
        return []

    peaks = assign_valleys(values, indices)
    merged = merge_adjacent_peaks(values, peaks, max_peaks)

    logger.debug("Valley peaks: %d local maxima, %d after merging",
                 len(indices), len(merged))
    return merged

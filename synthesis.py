#!/usr/bin/env python3
"""
Turn detected peaks into concrete palette colors.

Areas and appearance statistics are read from the raw (unsmoothed)
histogram so that smoothing only influences where peaks are found.
"""

import logging
from dataclasses import dataclass

from color_space import hsl_to_hex
from histogram import Histogram, round_half_up
from peaks import LocalPeak, Peak

logger = logging.getLogger(__name__)


@dataclass
class ExtractedColor:
    """A palette color from the GRID strategy."""
    hex: str
    area: float  # Share of total histogram weight (0-1)
    hue: float  # 0-360
    saturation: float  # 0-1
    lightness: float  # 0-1


@dataclass
class HuePeak:
    """A palette color from the VALLEY strategy, with the hue range it covers."""
    peak_hue: float
    peak_index: int
    peak_value: float
    start_hue: float
    end_hue: float
    start_index: int
    end_index: int  # start_index > end_index means the range wraps through 0
    area: float
    hex: str
    saturation: float
    lightness: float

    @property
    def hue(self) -> float:
        return self.peak_hue

    @property
    def wraps(self) -> bool:
        return self.start_index > self.end_index


def neighbourhood_radii(peak_distance: float, hue_bins: int, sat_bins: int) -> tuple[int, int]:
    """Half-widths (hue, saturation) of the window summed around a grid peak."""
    h_radius = max(1, round_half_up(peak_distance * hue_bins * 0.5))
    s_radius = max(1, round_half_up(peak_distance * sat_bins))
    return h_radius, s_radius


def synthesize_grid_colors(histogram: Histogram, peaks: list[Peak],
                           peak_distance: float) -> list[ExtractedColor]:
    """
    Build a color per grid peak from the bins around it.

    The peak supplies hue and saturation; lightness is the average over the
    neighbourhood window, which is robust to the peak drifting onto a bin
    with no pixels after smoothing.
    """
    hue_bins, sat_bins = histogram.hue_bins, histogram.sat_bins
    grid = histogram.grid()
    sum_l = histogram.stats.sum_l.reshape(hue_bins, sat_bins)
    count = histogram.stats.count.reshape(hue_bins, sat_bins)

    h_radius, s_radius = neighbourhood_radii(peak_distance, hue_bins, sat_bins)

    colors = []
    for peak in peaks:
        # Hue rows wrap; a window wider than the axis must not count rows twice
        offsets = range(-h_radius, h_radius + 1)
        rows = sorted({(peak.hue_index + dh) % hue_bins for dh in offsets})
        s_lo = max(0, peak.sat_index - s_radius)
        s_hi = min(sat_bins - 1, peak.sat_index + s_radius)

        total_area = float(grid[rows, s_lo:s_hi + 1].sum())
        if total_area == 0:
            continue

        total_l = float(sum_l[rows, s_lo:s_hi + 1].sum())
        total_count = float(count[rows, s_lo:s_hi + 1].sum())
        avg_l = total_l / total_count if total_count > 0 else 0.5

        # Bin saturation back to the real filtered range [sat_floor, 1]
        actual_sat = histogram.sat_floor + peak.saturation * histogram.sat_range

        colors.append(ExtractedColor(
            hex=hsl_to_hex(peak.hue, actual_sat, avg_l),
            area=total_area / histogram.total_weight,
            hue=peak.hue,
            saturation=actual_sat,
            lightness=avg_l,
        ))

    logger.debug("Synthesized %d grid colors from %d peaks", len(colors), len(peaks))
    return colors


def region_indices(start: int, end: int, bins: int) -> list[int]:
    """Bin indices from start to end inclusive, wrapping around the hue circle."""
    if start <= end:
        return list(range(start, end + 1))
    return list(range(start, bins)) + list(range(0, end + 1))


def synthesize_hue_peaks(histogram: Histogram, peaks: list[LocalPeak]) -> list[HuePeak]:
    """Build a color per valley peak from the weighted statistics of its region."""
    bins = histogram.hue_bins
    stats = histogram.stats
    total = histogram.total_weight

    results = []
    for peak in peaks:
        region = region_indices(peak.left_valley, peak.right_valley, bins)
        area = float(histogram.values[region].sum())
        weight = float(stats.count[region].sum())

        if area > 0 and weight > 0:
            saturation = float(stats.sum_s[region].sum()) / weight
            lightness = float(stats.sum_l[region].sum()) / weight
        else:
            saturation = lightness = 0.5

        peak_hue = peak.index / bins * 360
        results.append(HuePeak(
            peak_hue=peak_hue,
            peak_index=peak.index,
            peak_value=peak.value,
            start_hue=peak.left_valley / bins * 360,
            end_hue=peak.right_valley / bins * 360,
            start_index=peak.left_valley,
            end_index=peak.right_valley,
            area=area / total if total > 0 else 0.0,
            hex=hsl_to_hex(peak_hue, saturation, lightness),
            saturation=saturation,
            lightness=lightness,
        ))

    return results

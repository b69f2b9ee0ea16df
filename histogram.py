#!/usr/bin/env python3
"""
Weighted hue histograms built from RGBA pixel buffers.

Two shapes share the same filtering rules:

- hue x saturation (2D, row-major by hue), weighted by saturation
- hue only (1D), weighted by saturation and closeness of lightness to 0.5

The hue axis is circular; the saturation axis is linear with clamped edges.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.ndimage import correlate

from color_space import rgb_to_hsl_array

logger = logging.getLogger(__name__)


ALPHA_THRESHOLD = 128  # Pixels more transparent than this are ignored
MIN_HUE_BINS = 36
MAX_HUE_BINS = 360
SMOOTH_RADIUS_RATIO = 0.08


@dataclass
class BinStats:
    """Per-bin running sums used to recover an average appearance."""
    sum_l: np.ndarray
    count: np.ndarray
    sum_s: Optional[np.ndarray] = None  # Hue-only histograms


@dataclass
class Histogram:
    """A built histogram and the filter window it was built with."""
    values: np.ndarray  # Flat, length hue_bins * sat_bins
    hue_bins: int
    sat_bins: int  # 1 for hue-only histograms
    stats: BinStats
    total_weight: float
    pixel_count: int  # Pixels that passed the filters
    sat_floor: float
    sat_range: float

    def grid(self) -> np.ndarray:
        """Values as a (hue_bins, sat_bins) view."""
        return self.values.reshape(self.hue_bins, self.sat_bins)


def round_half_up(value: float) -> int:
    """Nearest integer with halves rounded up (2.5 -> 3, unlike round())."""
    return math.floor(value + 0.5)


def hue_bin_count(hue_precision: float) -> int:
    """Number of hue bins for a precision dial in [0, 1]."""
    return max(MIN_HUE_BINS, round_half_up(MIN_HUE_BINS + hue_precision * (MAX_HUE_BINS - MIN_HUE_BINS)))


def smoothing_radius(hue_bins: int, sat_bins: int = 1) -> int:
    """Gaussian radius: ~8% of the smaller axis, at least one bin."""
    axis = hue_bins if sat_bins <= 1 else min(hue_bins, sat_bins)
    return max(1, round_half_up(axis * SMOOTH_RADIUS_RATIO))


def filter_window(min_saturation: float, lightness_margin: float) -> tuple[float, float, float]:
    """
    Map the filter dials to concrete thresholds.

    Returns:
        (sat_floor, min_lightness, max_lightness)
    """
    sat_floor = min_saturation * 0.8
    margin = lightness_margin * 0.8
    return sat_floor, margin * 0.5, 1 - margin * 0.5


def as_pixel_array(pixels) -> np.ndarray:
    """Normalize an RGBA buffer to a uint8 array of shape (n, 4)."""
    if isinstance(pixels, (bytes, bytearray, memoryview)):
        arr = np.frombuffer(pixels, dtype=np.uint8)
    else:
        arr = np.asarray(pixels)
        if arr.dtype != np.uint8:
            if arr.size and (arr.min() < 0 or arr.max() > 255):
                raise ValueError("Pixel values must be in 0-255")
            arr = arr.astype(np.uint8)

    if arr.ndim == 3:
        if arr.shape[2] != 4:
            raise ValueError(f"Expected RGBA pixels, got {arr.shape[2]} channels")
        return arr.reshape(-1, 4)
    if arr.ndim == 2:
        if arr.shape[1] != 4:
            raise ValueError(f"Expected RGBA pixels, got {arr.shape[1]} channels")
        return arr
    if arr.ndim == 1:
        if arr.size % 4:
            raise ValueError(f"Flat RGBA buffer length {arr.size} is not a multiple of 4")
        return arr.reshape(-1, 4)
    raise ValueError(f"Unsupported pixel buffer shape {arr.shape}")


def _filtered_hsl(pixels, min_saturation: float, lightness_margin: float) -> tuple[np.ndarray, float]:
    """Convert opaque pixels to HSL and apply saturation/lightness filters."""
    rgba = as_pixel_array(pixels)
    opaque = rgba[rgba[:, 3] >= ALPHA_THRESHOLD]
    hsl = rgb_to_hsl_array(opaque[:, :3])

    sat_floor, min_l, max_l = filter_window(min_saturation, lightness_margin)
    s, l = hsl[:, 1], hsl[:, 2]
    keep = (s >= sat_floor) & (l >= min_l) & (l <= max_l)

    logger.debug("Filtered pixels: %d of %d opaque (%d total) kept",
                 int(keep.sum()), len(opaque), len(rgba))
    return hsl[keep], sat_floor


def _hue_index(hue: np.ndarray, hue_bins: int) -> np.ndarray:
    return np.floor(hue / 360 * hue_bins).astype(np.int64) % hue_bins


def build_hue_sat_histogram(pixels, hue_bins: int, sat_bins: int,
                            min_saturation: float, lightness_margin: float) -> Histogram:
    """
    Build a 2D hue x saturation histogram weighted by pixel saturation.

    Saturation bins span the filtered range [sat_floor, 1], so the full
    grid resolution covers only pixels that can contribute.
    """
    hsl, sat_floor = _filtered_hsl(pixels, min_saturation, lightness_margin)
    sat_range = 1 - sat_floor
    n_bins = hue_bins * sat_bins

    h, s, l = hsl[:, 0], hsl[:, 1], hsl[:, 2]
    h_idx = _hue_index(h, hue_bins)
    if sat_range > 0:
        s_idx = np.floor((s - sat_floor) / sat_range * sat_bins).astype(np.int64)
    else:
        s_idx = np.full(len(s), sat_bins - 1, dtype=np.int64)
    s_idx = np.clip(s_idx, 0, sat_bins - 1)
    keys = h_idx * sat_bins + s_idx

    values = np.bincount(keys, weights=s, minlength=n_bins).astype(np.float64)
    stats = BinStats(
        sum_l=np.bincount(keys, weights=l, minlength=n_bins).astype(np.float64),
        count=np.bincount(keys, minlength=n_bins).astype(np.float64),
    )
    total_weight = float(s.sum())

    logger.debug("Hue x sat histogram: %dx%d bins, total weight %.2f",
                 hue_bins, sat_bins, total_weight)

    return Histogram(
        values=values,
        hue_bins=hue_bins,
        sat_bins=sat_bins,
        stats=stats,
        total_weight=total_weight,
        pixel_count=len(hsl),
        sat_floor=sat_floor,
        sat_range=sat_range,
    )


def hue_pixel_weight(s: np.ndarray, l: np.ndarray) -> np.ndarray:
    """Weight favoring vivid pixels at balanced lightness."""
    return s * (1 - np.abs(2 * l - 1))


def build_hue_histogram(pixels, hue_bins: int,
                        min_saturation: float, lightness_margin: float) -> Histogram:
    """Build a 1D hue histogram with weighted saturation/lightness sums per bin."""
    hsl, sat_floor = _filtered_hsl(pixels, min_saturation, lightness_margin)

    h, s, l = hsl[:, 0], hsl[:, 1], hsl[:, 2]
    weights = hue_pixel_weight(s, l)
    keys = _hue_index(h, hue_bins)

    values = np.bincount(keys, weights=weights, minlength=hue_bins).astype(np.float64)
    stats = BinStats(
        sum_l=np.bincount(keys, weights=l * weights, minlength=hue_bins).astype(np.float64),
        count=values.copy(),
        sum_s=np.bincount(keys, weights=s * weights, minlength=hue_bins).astype(np.float64),
    )
    total_weight = float(weights.sum())

    logger.debug("Hue histogram: %d bins, total weight %.2f", hue_bins, total_weight)

    return Histogram(
        values=values,
        hue_bins=hue_bins,
        sat_bins=1,
        stats=stats,
        total_weight=total_weight,
        pixel_count=len(hsl),
        sat_floor=sat_floor,
        sat_range=1 - sat_floor,
    )


# =============================================================================
# Smoothing
# =============================================================================

def gaussian_kernel(radius: int, ndim: int = 2) -> np.ndarray:
    """Normalized Gaussian kernel of size (2r+1)^ndim with sigma = r/2."""
    offsets = np.arange(-radius, radius + 1, dtype=np.float64)
    sigma2 = 2 * (radius / 2) ** 2
    if ndim == 1:
        kernel = np.exp(-(offsets ** 2) / sigma2)
    else:
        dh, ds = np.meshgrid(offsets, offsets, indexing='ij')
        kernel = np.exp(-(dh ** 2 + ds ** 2) / sigma2)
    return kernel / kernel.sum()


def smooth_values(values: np.ndarray, hue_bins: int, sat_bins: int, radius: int) -> np.ndarray:
    """
    Gaussian-smooth flat histogram values.

    Hue wraps around; saturation is clamped at its edges. With sat_bins == 1
    the smoothing is purely circular along hue.
    """
    if radius < 1:
        return np.asarray(values, dtype=np.float64).copy()

    if sat_bins <= 1:
        padded = np.pad(np.asarray(values, dtype=np.float64), radius, mode='wrap')
        smoothed = correlate(padded, gaussian_kernel(radius, ndim=1), mode='constant')
        return smoothed[radius:-radius]

    grid = np.asarray(values, dtype=np.float64).reshape(hue_bins, sat_bins)
    padded = np.pad(grid, ((radius, radius), (0, 0)), mode='wrap')
    padded = np.pad(padded, ((0, 0), (radius, radius)), mode='edge')
    smoothed = correlate(padded, gaussian_kernel(radius, ndim=2), mode='constant')
    return smoothed[radius:-radius, radius:-radius].ravel()


def smooth_histogram(histogram: Histogram, radius: Optional[int] = None) -> np.ndarray:
    """Smoothed copy of a histogram's values (radius derived from its shape by default)."""
    if radius is None:
        radius = smoothing_radius(histogram.hue_bins, histogram.sat_bins)
    return smooth_values(histogram.values, histogram.hue_bins, histogram.sat_bins, radius)

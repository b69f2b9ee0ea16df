#!/usr/bin/env python3
"""
Extract a small palette of dominant colors from an image.

Pipeline: sample -> histogram -> smooth -> detect peaks -> synthesize
colors -> merge -> rank -> truncate.

Two peak strategies share the pipeline:

- GRID: hue x saturation histogram, non-maximum suppression, linear hue
  merge, ranked by visual power, at most MAX_COLORS colors
- VALLEY: hue histogram segmented at valleys, perceptual (CIEDE2000) merge,
  ranked by area, at most MAX_HUE_PEAKS colors
"""

import logging
import math
from dataclasses import asdict, dataclass, fields
from typing import Union

import numpy as np
from PIL import Image

from histogram import (
    build_hue_histogram, build_hue_sat_histogram, hue_bin_count, smooth_histogram,
)
from merge import filter_low_weight, merge_close_colors, merge_perceptual
from peaks import PEAK_THRESHOLD, PeakStrategy, find_grid_peaks, find_valley_peaks
from synthesis import ExtractedColor, HuePeak, synthesize_grid_colors, synthesize_hue_peaks

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

SAMPLE_SIZE = 256  # Longest side of the sampled image
SAT_BINS = 10
MAX_COLORS = 9

# Image size limits (prevent decompression bombs)
MAX_IMAGE_PIXELS = 50_000_000  # 50 megapixels
MAX_IMAGE_DIMENSION = 10_000  # 10k pixels per side


# =============================================================================
# Configuration
# =============================================================================

class ConfigError(ValueError):
    """Raised when an extraction dial is outside [0, 1]."""


_CAMEL_KEYS = {
    'peakDistance': 'peak_distance',
    'huePrecision': 'hue_precision',
    'minSaturation': 'min_saturation',
    'lightnessMargin': 'lightness_margin',
    'hueMergeDistance': 'hue_merge_distance',
}


@dataclass(frozen=True)
class ExtractConfig:
    """Extraction dials, each in [0, 1]."""
    peak_distance: float = 0.08  # Larger = fewer, more distinct peaks
    hue_precision: float = 1.0  # Larger = more hue bins
    min_saturation: float = 0.2  # Filters grayish pixels
    lightness_margin: float = 0.2  # Filters near-black and near-white pixels
    hue_merge_distance: float = 0.08  # Merge colors closer than this share of the hue circle

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"{f.name} must be a number, got {value!r}")
            if not math.isfinite(value) or not 0 <= value <= 1:
                raise ConfigError(f"{f.name} must be within [0, 1], got {value}")

    @classmethod
    def from_mapping(cls, values: dict) -> 'ExtractConfig':
        """Build a config from snake_case or camelCase keys."""
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in values.items():
            name = _CAMEL_KEYS.get(key, key)
            if name not in known:
                raise ConfigError(f"Unknown config key: {key}")
            kwargs[name] = value
        return cls(**kwargs)


# =============================================================================
# Sampling
# =============================================================================

def load_pixels(source: Union[str, 'Image.Image'], max_size: int = SAMPLE_SIZE) -> np.ndarray:
    """
    Load an image as an RGBA pixel array, down-sampled so its longest side
    is at most max_size.

    Raises:
        FileNotFoundError: If image file doesn't exist
        ValueError: If file is not a valid image or exceeds size limits
    """
    if isinstance(source, Image.Image):
        img = source
    else:
        try:
            img = Image.open(source)
        except FileNotFoundError:
            raise FileNotFoundError(f"Image not found: {source}")
        except (OSError, Image.DecompressionBombError) as e:
            raise ValueError(f"Could not open image: {e}")

    width, height = img.size
    if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
        raise ValueError(
            f"Image dimensions {width}x{height} exceed maximum "
            f"{MAX_IMAGE_DIMENSION}x{MAX_IMAGE_DIMENSION}"
        )
    if width * height > MAX_IMAGE_PIXELS:
        raise ValueError(
            f"Image has {width * height:,} pixels, exceeding maximum {MAX_IMAGE_PIXELS:,}"
        )

    img = img.convert('RGBA')
    if width > max_size or height > max_size:
        scale = max_size / max(width, height)
        new_size = (max(1, round(width * scale)), max(1, round(height * scale)))
        img = img.resize(new_size, Image.Resampling.LANCZOS)
        logger.debug("Downsampled %dx%d -> %dx%d", width, height, *new_size)

    return np.array(img, dtype=np.uint8)


# =============================================================================
# Pipeline
# =============================================================================

def visual_power(color: ExtractedColor) -> float:
    """Ranking score favoring vivid, less dominant colors over large dull regions."""
    intensity = color.saturation * (1 - 2 * abs(color.lightness - 0.5))
    return (intensity + 0.1) * (0.9 - color.area)


def _extract_grid(pixels, config: ExtractConfig, merge: bool) -> list[ExtractedColor]:
    hue_bins = hue_bin_count(config.hue_precision)
    histogram = build_hue_sat_histogram(
        pixels, hue_bins, SAT_BINS, config.min_saturation, config.lightness_margin
    )
    if histogram.pixel_count == 0 or histogram.total_weight == 0:
        return []

    smoothed = smooth_histogram(histogram)
    peaks = find_grid_peaks(
        smoothed, hue_bins, SAT_BINS,
        threshold=PEAK_THRESHOLD,
        min_hue_distance=config.peak_distance,
        min_sat_distance=config.peak_distance * 2,
    )
    colors = synthesize_grid_colors(histogram, peaks, config.peak_distance)

    colors.sort(key=visual_power, reverse=True)

    if merge:
        colors = merge_close_colors(colors, config.hue_merge_distance)
    return colors[:MAX_COLORS]


def _extract_valley(pixels, config: ExtractConfig, merge: bool) -> list[HuePeak]:
    hue_bins = hue_bin_count(config.hue_precision)
    histogram = build_hue_histogram(
        pixels, hue_bins, config.min_saturation, config.lightness_margin
    )
    if histogram.pixel_count == 0 or histogram.total_weight == 0:
        return []

    smoothed = smooth_histogram(histogram)
    peaks = find_valley_peaks(smoothed)
    hue_peaks = synthesize_hue_peaks(histogram, peaks)

    if merge:
        hue_peaks = merge_perceptual(hue_peaks, hue_bins)
    hue_peaks = filter_low_weight(hue_peaks)

    hue_peaks.sort(key=lambda p: p.area, reverse=True)
    return hue_peaks


def extract_colors(pixels, config: ExtractConfig = None,
                   strategy: PeakStrategy = PeakStrategy.GRID,
                   merge: bool = True) -> list:
    """
    Extract dominant colors from an RGBA pixel buffer.

    Args:
        pixels: uint8 RGBA data, shape (h, w, 4), (n, 4) or flat
        config: Extraction dials (defaults if omitted)
        strategy: GRID returns ExtractedColor records, VALLEY returns HuePeak records
        merge: Run the strategy's merge pass

    Returns:
        Ordered list of colors; empty when no pixel survives filtering.
    """
    if config is None:
        config = ExtractConfig()
    strategy = PeakStrategy(strategy)

    if strategy is PeakStrategy.VALLEY:
        colors = _extract_valley(pixels, config, merge)
    else:
        colors = _extract_grid(pixels, config, merge)

    logger.debug("Extracted %d colors (%s)", len(colors), strategy.value)
    return colors


def extract_palette(source, config: ExtractConfig = None,
                    strategy: PeakStrategy = PeakStrategy.GRID,
                    merge: bool = True, max_size: int = SAMPLE_SIZE) -> list:
    """Load an image (path or PIL image) and extract its palette."""
    return extract_colors(load_pixels(source, max_size), config, strategy, merge)


def palette_to_dicts(colors: list) -> list[dict]:
    """JSON-ready dicts for ExtractedColor or HuePeak records."""
    return [asdict(c) for c in colors]

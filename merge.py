#!/usr/bin/env python3
"""
Merge passes that remove near-duplicate palette colors.

- merge_close_colors: linear hue-distance merge for GRID colors
- merge_perceptual: CIEDE2000 merge with hue-range union for VALLEY peaks
- filter_low_weight: drop colors with a negligible share of the total area
"""

import logging
from dataclasses import replace

from color_space import circular_hue_distance, delta_e_2000, hex_to_lab, hsl_to_hex
from synthesis import ExtractedColor, HuePeak

logger = logging.getLogger(__name__)


PERCEPTUAL_MERGE_THRESHOLD = 10.0  # CIEDE2000 units
PERCEPTUAL_HUE_WINDOW = 30.0  # Degrees
MIN_WEIGHT_SHARE = 0.01


def weighted_hue_average(h1: float, h2: float, w1: float, w2: float) -> float:
    """Weighted mean of two hues along the shortest arc, in [0, 360)."""
    total_weight = w1 + w2
    if total_weight == 0:
        return h1

    diff = h2 - h1
    if diff > 180:
        diff -= 360
    if diff < -180:
        diff += 360

    avg = h1 + diff * w2 / total_weight
    if avg < 0:
        avg += 360
    if avg >= 360:
        avg -= 360
    return avg


def _combine_colors(a: ExtractedColor, b: ExtractedColor) -> ExtractedColor:
    total_area = a.area + b.area
    if total_area > 0:
        sat = (a.saturation * a.area + b.saturation * b.area) / total_area
        light = (a.lightness * a.area + b.lightness * b.area) / total_area
    else:
        sat = (a.saturation + b.saturation) / 2
        light = (a.lightness + b.lightness) / 2
    hue = weighted_hue_average(a.hue, b.hue, a.area, b.area)

    return ExtractedColor(
        hex=hsl_to_hex(hue, sat, light),
        area=total_area,
        hue=hue,
        saturation=sat,
        lightness=light,
    )


def merge_close_colors(colors: list[ExtractedColor],
                       hue_merge_distance: float) -> list[ExtractedColor]:
    """
    Iteratively merge colors whose hues are closer than hue_merge_distance * 360.

    After each merge the scan restarts, so chains of close hues collapse
    into a single color. The merged color takes the first color's position.
    """
    if not colors or hue_merge_distance <= 0:
        return list(colors)

    distance = hue_merge_distance * 360
    merged = list(colors)

    changed = True
    while changed:
        changed = False
        for i in range(len(merged)):
            for j in range(i + 1, len(merged)):
                if circular_hue_distance(merged[i].hue, merged[j].hue) < distance:
                    merged[i] = _combine_colors(merged[i], merged[j])
                    del merged[j]
                    changed = True
                    break
            if changed:
                break

    if len(merged) != len(colors):
        logger.debug("Linear merge: %d -> %d colors", len(colors), len(merged))
    return merged


# =============================================================================
# Perceptual merge
# =============================================================================

def _range_length(start: int, end: int, bins: int) -> int:
    """Number of bins in the circular range start..end inclusive."""
    return (end - start) % bins + 1


def _range_contains(outer: tuple[int, int], inner: tuple[int, int], bins: int) -> bool:
    o_start, o_end = outer
    i_start, i_end = inner
    o_len = _range_length(o_start, o_end, bins)
    if o_len >= bins:
        return True
    # Inner must start inside outer and not run past outer's end
    offset = (i_start - o_start) % bins
    return offset < o_len and offset + _range_length(i_start, i_end, bins) <= o_len


def merge_hue_ranges(a: tuple[int, int], b: tuple[int, int], bins: int) -> tuple[int, int]:
    """
    Union of two circular bin ranges.

    If one range contains the other it is returned as-is; otherwise the
    shorter of the two possible circular spans (a.start..b.end or
    b.start..a.end) that covers both is chosen. Ranges that together wrap
    the whole circle become (0, bins - 1).
    """
    if _range_contains(a, b, bins):
        return a
    if _range_contains(b, a, bins):
        return b

    options = [
        option for option in ((a[0], b[1]), (b[0], a[1]))
        if _range_contains(option, a, bins) and _range_contains(option, b, bins)
    ]
    if not options:
        return (0, bins - 1)
    return min(options, key=lambda option: _range_length(*option, bins))


def _absorb(target: HuePeak, other: HuePeak, bins: int) -> HuePeak:
    start, end = merge_hue_ranges((target.start_index, target.end_index),
                                  (other.start_index, other.end_index), bins)

    total_area = target.area + other.area
    if total_area > 0:
        sat = (target.saturation * target.area + other.saturation * other.area) / total_area
        light = (target.lightness * target.area + other.lightness * other.area) / total_area
    else:
        sat = (target.saturation + other.saturation) / 2
        light = (target.lightness + other.lightness) / 2

    rep = target if target.peak_value >= other.peak_value else other

    return replace(
        target,
        peak_hue=rep.peak_hue,
        peak_index=rep.peak_index,
        peak_value=rep.peak_value,
        start_index=start,
        end_index=end,
        start_hue=start / bins * 360,
        end_hue=end / bins * 360,
        area=total_area,
        saturation=sat,
        lightness=light,
        hex=hsl_to_hex(rep.peak_hue, sat, light),
    )


def merge_perceptual(peaks: list[HuePeak], bins: int,
                     threshold: float = PERCEPTUAL_MERGE_THRESHOLD,
                     hue_window: float = PERCEPTUAL_HUE_WINDOW) -> list[HuePeak]:
    """
    Merge hue peaks that look alike.

    Candidates are visited tallest first. A candidate joins the first merged
    entry within hue_window degrees whose CIEDE2000 distance is below
    threshold; otherwise it starts a new entry.
    """
    merged: list[HuePeak] = []

    for candidate in sorted(peaks, key=lambda p: -p.peak_value):
        candidate_lab = hex_to_lab(candidate.hex)
        for k, existing in enumerate(merged):
            if circular_hue_distance(existing.peak_hue, candidate.peak_hue) > hue_window:
                continue
            distance = delta_e_2000(hex_to_lab(existing.hex), candidate_lab)
            if distance < threshold:
                logger.debug("Perceptual merge: %s into %s (dE %.2f)",
                             candidate.hex, existing.hex, distance)
                merged[k] = _absorb(existing, candidate, bins)
                break
        else:
            merged.append(candidate)

    return merged


def filter_low_weight(peaks: list, min_share: float = MIN_WEIGHT_SHARE) -> list:
    """Drop entries whose area is below min_share of the total area."""
    total = sum(p.area for p in peaks)
    if total <= 0:
        return list(peaks)
    return [p for p in peaks if p.area >= total * min_share]

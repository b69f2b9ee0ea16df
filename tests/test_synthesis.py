import numpy as np
import pytest

from histogram import build_hue_histogram, build_hue_sat_histogram
from peaks import LocalPeak, Peak
from synthesis import (
    neighbourhood_radii, region_indices, synthesize_grid_colors, synthesize_hue_peaks,
)
from conftest import solid


def test_region_indices_wrap():
    assert region_indices(3, 6, 10) == [3, 4, 5, 6]
    assert region_indices(8, 1, 10) == [8, 9, 0, 1]
    assert region_indices(0, 9, 10) == list(range(10))


def test_grid_color_from_neighbourhood():
    pixels = np.concatenate([solid((255, 0, 0), 30), solid((0, 0, 255), 10)])
    hist = build_hue_sat_histogram(pixels, 36, 10, 0.2, 0.2)
    peak = Peak(hue_index=0, sat_index=9, value=30.0, hue=0.0, saturation=0.95)

    [color] = synthesize_grid_colors(hist, [peak], peak_distance=0.08)
    assert color.area == pytest.approx(0.75)
    assert color.lightness == pytest.approx(0.5)
    assert color.saturation == pytest.approx(0.16 + 0.95 * 0.84)
    assert color.hue == 0
    assert color.hex.startswith('#') and len(color.hex) == 7


def test_neighbourhood_radii_round_halves_up():
    assert neighbourhood_radii(0.25, 36, 10) == (5, 3)
    assert neighbourhood_radii(0.45, 360, 10) == (81, 5)
    assert neighbourhood_radii(0.0, 360, 10) == (1, 1)


def test_grid_window_reaches_half_step_saturation_bins():
    # Saturation bins 9 and 6: only a radius of 3 (2.5 rounded up) spans both
    pixels = np.concatenate([solid((255, 0, 0), 10), solid((219, 36, 36), 10)])
    hist = build_hue_sat_histogram(pixels, 36, 10, 0.2, 0.2)
    peak = Peak(hue_index=0, sat_index=9, value=10.0, hue=0.0, saturation=0.95)

    [color] = synthesize_grid_colors(hist, [peak], peak_distance=0.25)
    assert color.area == pytest.approx(1.0)


def test_grid_peak_window_wraps_hue():
    hist = build_hue_sat_histogram(solid((255, 0, 0), 10), 36, 10, 0.2, 0.2)
    peak = Peak(hue_index=35, sat_index=9, value=1.0, hue=350.0, saturation=0.95)
    [color] = synthesize_grid_colors(hist, [peak], peak_distance=0.08)
    assert color.area == pytest.approx(1.0)


def test_grid_peak_without_mass_is_skipped():
    hist = build_hue_sat_histogram(solid((255, 0, 0), 10), 36, 10, 0.2, 0.2)
    peak = Peak(hue_index=18, sat_index=2, value=1.0, hue=180.0, saturation=0.25)
    assert synthesize_grid_colors(hist, [peak], peak_distance=0.08) == []


def test_hue_peak_statistics_over_region():
    pixels = np.concatenate([solid((0, 255, 0), 10), solid((255, 0, 255), 10)])
    hist = build_hue_histogram(pixels, 36, 0.2, 0.2)
    peaks = [
        LocalPeak(index=12, value=10.0, left_valley=3, right_valley=20),
        LocalPeak(index=30, value=10.0, left_valley=21, right_valley=2),
    ]
    green, magenta = synthesize_hue_peaks(hist, peaks)

    assert green.peak_hue == pytest.approx(120)
    assert green.area == pytest.approx(0.5)
    assert green.saturation == pytest.approx(1.0)
    assert green.lightness == pytest.approx(0.5)
    assert green.hex == '#00ff00'
    assert (green.start_hue, green.end_hue) == pytest.approx((30.0, 200.0))

    assert magenta.wraps
    assert (magenta.start_index, magenta.end_index) == (21, 2)
    assert magenta.area == pytest.approx(0.5)


def test_empty_hue_region_defaults_to_mid_gray_stats():
    hist = build_hue_histogram(solid((0, 255, 0), 10), 36, 0.2, 0.2)
    [empty] = synthesize_hue_peaks(hist, [LocalPeak(index=30, value=0.0, left_valley=25, right_valley=35)])
    assert empty.area == 0
    assert empty.saturation == 0.5
    assert empty.lightness == 0.5

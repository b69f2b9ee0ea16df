import math

import numpy as np
import pytest
from PIL import Image

from extract_colors import (
    MAX_COLORS, ConfigError, ExtractConfig, extract_colors, extract_palette,
    load_pixels, palette_to_dicts, visual_power,
)
from peaks import MAX_HUE_PEAKS, PeakStrategy
from synthesis import ExtractedColor, HuePeak
from conftest import image_from, solid


STRATEGIES = [PeakStrategy.GRID, PeakStrategy.VALLEY]

# hsl(120, ~0.8, ~0.5)
GREEN = (26, 230, 26)
# Hues ~10.6 and ~15.6 degrees at the same saturation and lightness
ORANGE_RED = (230, 62, 26)
ORANGE = (230, 79, 26)


# =============================================================================
# Configuration
# =============================================================================

def test_default_config():
    config = ExtractConfig()
    assert config.peak_distance == 0.08
    assert config.hue_precision == 1.0
    assert config.min_saturation == 0.2
    assert config.lightness_margin == 0.2
    assert config.hue_merge_distance == 0.08


@pytest.mark.parametrize('kwargs', [
    {'peak_distance': -0.1},
    {'hue_precision': 1.5},
    {'min_saturation': math.nan},
    {'lightness_margin': 'high'},
    {'hue_merge_distance': True},
])
def test_invalid_config_is_rejected(kwargs):
    with pytest.raises(ConfigError):
        ExtractConfig(**kwargs)


def test_config_from_mapping():
    config = ExtractConfig.from_mapping({'peakDistance': 0.1, 'hue_merge_distance': 0.02})
    assert config.peak_distance == 0.1
    assert config.hue_merge_distance == 0.02
    with pytest.raises(ConfigError):
        ExtractConfig.from_mapping({'bogus': 1})


def test_visual_power_prefers_vivid_small_colors():
    vivid = ExtractedColor('#ff0000', 0.1, 0, 1.0, 0.5)
    dull = ExtractedColor('#806060', 0.6, 0, 0.2, 0.45)
    assert visual_power(vivid) > visual_power(dull)


# =============================================================================
# Scenarios
# =============================================================================

@pytest.mark.parametrize('strategy', STRATEGIES)
def test_uniform_gray_yields_nothing(strategy):
    pixels = image_from(solid((128, 128, 128), 400))
    assert extract_colors(pixels, ExtractConfig(), strategy) == []


@pytest.mark.parametrize('strategy', STRATEGIES)
def test_transparent_image_yields_nothing(strategy):
    pixels = image_from(solid((255, 0, 0), 400, alpha=0))
    assert extract_colors(pixels, strategy=strategy) == []


@pytest.mark.parametrize('strategy', STRATEGIES)
def test_single_solid_hue(strategy):
    pixels = image_from(solid(GREEN, 400))
    colors = extract_colors(pixels, ExtractConfig(), strategy)

    assert len(colors) == 1
    [color] = colors
    assert abs(color.hue - 120) <= 1
    assert color.area == pytest.approx(1.0)
    assert color.saturation == pytest.approx(0.8, abs=0.03)
    assert color.lightness == pytest.approx(0.5, abs=0.01)


@pytest.mark.parametrize('strategy', STRATEGIES)
def test_two_separated_hues(strategy):
    pixels = image_from(solid((255, 0, 0), 200), solid((0, 255, 255), 200))
    colors = extract_colors(pixels, ExtractConfig(), strategy)

    assert len(colors) == 2
    assert sorted(round(c.hue) for c in colors) == [0, 180]
    for color in colors:
        assert color.area == pytest.approx(0.5)


def test_valley_ranges_split_empty_stretches_evenly():
    pixels = image_from(solid((255, 0, 0), 200), solid((0, 255, 255), 200))
    red, cyan = sorted(extract_colors(pixels, strategy=PeakStrategy.VALLEY), key=lambda c: c.peak_hue)

    assert (red.start_hue, red.end_hue) == pytest.approx((270, 89))
    assert red.wraps
    assert (cyan.start_hue, cyan.end_hue) == pytest.approx((90, 269))
    assert red.area == pytest.approx(cyan.area)


def test_two_nearby_hues_merge_area_weighted():
    pixels = image_from(solid(ORANGE_RED, 200), solid(ORANGE, 200))
    # Small peak distance keeps both peaks so the merge pass joins them
    config = ExtractConfig(peak_distance=0.01, hue_merge_distance=0.02)

    unmerged = extract_colors(pixels, config, merge=False)
    assert sorted(c.hue for c in unmerged) == pytest.approx([10, 15])

    [color] = extract_colors(pixels, config)
    assert 10 <= color.hue <= 15
    assert color.hue == pytest.approx(12.5)
    assert color.area == pytest.approx(1.0)


def test_nearby_hue_merge_follows_area_share():
    pixels = image_from(solid(ORANGE_RED, 300), solid(ORANGE, 100))
    config = ExtractConfig(peak_distance=0.01, hue_merge_distance=0.02)
    [color] = extract_colors(pixels, config)
    assert color.hue == pytest.approx(11.25)


def test_two_nearby_hues_valley():
    pixels = image_from(solid(ORANGE_RED, 200), solid(ORANGE, 200))
    colors = extract_colors(pixels, ExtractConfig(hue_merge_distance=0.02), PeakStrategy.VALLEY)
    assert len(colors) == 1
    assert 10 <= colors[0].hue <= 15
    assert colors[0].area == pytest.approx(1.0)


def rainbow(count=36, per_hue=20, rng=None):
    """Pixels spread evenly (or randomly) around the hue wheel."""
    from color_space import hsl_to_rgb
    hues = np.linspace(0, 360, count, endpoint=False) if rng is None else rng.uniform(0, 360, count)
    blocks = [solid(hsl_to_rgb(h, 0.9, 0.5), int(per_hue if rng is None else rng.integers(1, 40)))
              for h in hues]
    return np.concatenate(blocks)


def test_grid_palette_is_capped():
    config = ExtractConfig(peak_distance=0.0, hue_merge_distance=0.0)
    colors = extract_colors(rainbow(), config)
    assert 0 < len(colors) <= MAX_COLORS


@pytest.mark.parametrize('seed', range(5))
def test_valley_palette_is_capped(seed):
    pixels = rainbow(count=60, rng=np.random.default_rng(seed))
    colors = extract_colors(pixels, strategy='valley')
    assert 0 < len(colors) <= MAX_HUE_PEAKS
    assert all(isinstance(c, HuePeak) for c in colors)
    assert [c.area for c in colors] == sorted((c.area for c in colors), reverse=True)
    assert all(0 <= c.area <= 1 for c in colors)
    assert all(0 <= c.peak_hue < 360 for c in colors)


def test_extraction_is_deterministic():
    pixels = rainbow(count=12, rng=np.random.default_rng(7))
    for strategy in STRATEGIES:
        assert extract_colors(pixels, strategy=strategy) == extract_colors(pixels, strategy=strategy)


# =============================================================================
# Sampling
# =============================================================================

def test_load_pixels_downsamples():
    img = Image.new('RGB', (512, 256), (255, 0, 0))
    pixels = load_pixels(img)
    assert pixels.shape == (128, 256, 4)
    assert pixels.dtype == np.uint8
    assert (pixels[..., 3] == 255).all()


def test_load_pixels_never_upscales(tmp_path):
    path = tmp_path / 'small.png'
    Image.new('RGBA', (10, 4), (0, 0, 255, 255)).save(path)
    assert load_pixels(str(path)).shape == (4, 10, 4)


def test_load_pixels_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_pixels(str(tmp_path / 'missing.png'))

    bogus = tmp_path / 'bogus.png'
    bogus.write_text('not an image')
    with pytest.raises(ValueError):
        load_pixels(str(bogus))


def test_extract_palette_from_image():
    img = Image.new('RGB', (300, 100), GREEN)
    [color] = extract_palette(img)
    assert abs(color.hue - 120) <= 1
    [record] = palette_to_dicts([color])
    assert set(record) == {'hex', 'area', 'hue', 'saturation', 'lightness'}

#!/usr/bin/env python3
"""
Color conversions: RGB <-> HSL, RGB -> LAB, and CIEDE2000 distance.

HSL uses hue in degrees [0, 360) with saturation and lightness in [0, 1].
"""

from typing import NamedTuple

import numpy as np
from skimage.color import deltaE_ciede2000


class HSL(NamedTuple):
    h: float  # 0-360
    s: float  # 0-1
    l: float  # 0-1


# D65 reference white (XYZ scaled to 0-100)
REF_WHITE = (95.047, 100.0, 108.883)


# =============================================================================
# HSL
# =============================================================================

def rgb_to_hsl(r: float, g: float, b: float) -> HSL:
    """Convert 0-255 RGB channels to HSL."""
    r /= 255
    g /= 255
    b /= 255

    mx = max(r, g, b)
    mn = min(r, g, b)
    l = (mx + mn) / 2

    if mx == mn:
        return HSL(0.0, 0.0, l)

    d = mx - mn
    s = d / (2 - mx - mn) if l > 0.5 else d / (mx + mn)

    if mx == r:
        h = ((g - b) / d + (6 if g < b else 0)) / 6
    elif mx == g:
        h = ((b - r) / d + 2) / 6
    else:
        h = ((r - g) / d + 4) / 6

    return HSL(h * 360, s, l)


def rgb_to_hsl_array(rgb: np.ndarray) -> np.ndarray:
    """Convert an (n, 3) RGB array (0-255) to an (n, 3) array of [h, s, l]."""
    rgb_norm = np.asarray(rgb, dtype=np.float64).reshape(-1, 3) / 255.0
    r, g, b = rgb_norm[:, 0], rgb_norm[:, 1], rgb_norm[:, 2]

    mx = rgb_norm.max(axis=1)
    mn = rgb_norm.min(axis=1)
    l = (mx + mn) / 2
    d = mx - mn
    gray = d == 0

    # Avoid dividing by zero on gray pixels; they are zeroed below
    safe_d = np.where(gray, 1.0, d)
    denom = np.where(l > 0.5, 2 - mx - mn, mx + mn)
    s = np.where(gray, 0.0, d / np.where(gray, 1.0, denom))

    h = np.select(
        [mx == r, mx == g],
        [((g - b) / safe_d + np.where(g < b, 6, 0)) / 6,
         ((b - r) / safe_d + 2) / 6],
        default=((r - g) / safe_d + 4) / 6,
    )
    h = np.where(gray, 0.0, h * 360)

    return np.column_stack([h, s, l])


def hsl_to_rgb(h: float, s: float, l: float) -> tuple[int, int, int]:
    """Convert HSL back to 0-255 integer RGB."""
    h /= 360

    if s == 0:
        val = round(l * 255)
        return (val, val, val)

    def hue2rgb(p, q, t):
        if t < 0:
            t += 1
        if t > 1:
            t -= 1
        if t < 1 / 6:
            return p + (q - p) * 6 * t
        if t < 1 / 2:
            return q
        if t < 2 / 3:
            return p + (q - p) * (2 / 3 - t) * 6
        return p

    q = l * (1 + s) if l < 0.5 else l + s - l * s
    p = 2 * l - q

    return (
        round(hue2rgb(p, q, h + 1 / 3) * 255),
        round(hue2rgb(p, q, h) * 255),
        round(hue2rgb(p, q, h - 1 / 3) * 255),
    )


def rgb_to_hex(r: int, g: int, b: int) -> str:
    return f"#{int(r):02x}{int(g):02x}{int(b):02x}"


def hex_to_rgb(hex_value: str) -> tuple[int, int, int]:
    """Parse '#rrggbb' (or 'rrggbb') into an RGB tuple."""
    value = hex_value.lstrip('#')
    if len(value) != 6:
        raise ValueError(f"Invalid hex color: {hex_value!r}")
    return (int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))


def hsl_to_hex(h: float, s: float, l: float) -> str:
    return rgb_to_hex(*hsl_to_rgb(h, s, l))


# =============================================================================
# LAB
# =============================================================================

def rgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """Convert RGB (0-255) to LAB. Accepts a single (3,) color or an (n, 3) array."""
    rgb = np.asarray(rgb, dtype=np.float64)
    single = rgb.ndim == 1
    rgb_norm = rgb.reshape(-1, 3) / 255.0

    # Apply gamma correction
    mask = rgb_norm > 0.04045
    rgb_linear = np.where(mask, ((rgb_norm + 0.055) / 1.055) ** 2.4, rgb_norm / 12.92) * 100

    # RGB to XYZ matrix
    r, g, b = rgb_linear[:, 0], rgb_linear[:, 1], rgb_linear[:, 2]
    x = r * 0.4124564 + g * 0.3575761 + b * 0.1804375
    y = r * 0.2126729 + g * 0.7151522 + b * 0.0721750
    z = r * 0.0193339 + g * 0.1191920 + b * 0.9503041

    # XYZ to LAB (D65 reference white)
    xn, yn, zn = REF_WHITE
    x, y, z = x / xn, y / yn, z / zn

    epsilon = 0.008856
    kappa = 903.3
    fx = np.where(x > epsilon, np.cbrt(x), (kappa * x + 16) / 116)
    fy = np.where(y > epsilon, np.cbrt(y), (kappa * y + 16) / 116)
    fz = np.where(z > epsilon, np.cbrt(z), (kappa * z + 16) / 116)

    L = 116 * fy - 16
    a = 500 * (fx - fy)
    b_val = 200 * (fy - fz)

    lab = np.column_stack([L, a, b_val])
    return lab[0] if single else lab


def hex_to_lab(hex_value: str) -> np.ndarray:
    return rgb_to_lab(np.array(hex_to_rgb(hex_value)))


# =============================================================================
# Distances
# =============================================================================

def circular_hue_distance(hue1: float, hue2: float) -> float:
    """Compute minimum angular distance between two hues (0-180)."""
    diff = abs(hue1 - hue2) % 360
    return min(diff, 360 - diff)


def circular_bin_distance(i: int, j: int, bins: int) -> int:
    """Distance between two bin indices on a circular axis (0 to bins // 2)."""
    diff = abs(i - j) % bins
    return min(diff, bins - diff)


def delta_e_2000(lab1, lab2) -> float:
    """CIEDE2000 color difference between two LAB colors."""
    lab1 = np.asarray(lab1, dtype=np.float64).reshape(1, 1, 3)
    lab2 = np.asarray(lab2, dtype=np.float64).reshape(1, 1, 3)
    return float(deltaE_ciede2000(lab1, lab2).reshape(-1)[0])

#!/usr/bin/env python3
"""
Command-line palette extraction.

Prints the dominant colors of an image as a table (or JSON) and optionally
writes a swatch image.
"""

import json
import logging

from PIL import Image, ImageDraw

from color_space import hex_to_rgb
from extract_colors import (
    SAMPLE_SIZE, ExtractConfig, extract_palette, palette_to_dicts,
)
from peaks import PeakStrategy


def render_swatches(colors: list, output_path: str) -> None:
    """
    Create a swatch image visualizing the palette with area percentages.

    Args:
        colors: ExtractedColor or HuePeak records
        output_path: Path to save the output image
    """
    swatch_size = 80
    padding = 10
    text_height = 25
    cols = max(1, min(len(colors), 6))
    rows = max(1, (len(colors) + cols - 1) // cols)

    img_width = cols * (swatch_size + padding) + padding
    img_height = rows * (swatch_size + text_height + padding) + padding

    img = Image.new('RGB', (img_width, img_height), (240, 240, 240))
    draw = ImageDraw.Draw(img)

    for i, color in enumerate(colors):
        row = i // cols
        col = i % cols

        x = padding + col * (swatch_size + padding)
        y = padding + row * (swatch_size + text_height + padding)

        draw.rectangle([x, y, x + swatch_size, y + swatch_size], fill=hex_to_rgb(color.hex))

        # Center percentage under swatch
        text = f"{color.area * 100:.1f}%"
        bbox = draw.textbbox((0, 0), text)
        text_width = bbox[2] - bbox[0]
        text_x = x + (swatch_size - text_width) // 2
        draw.text((text_x, y + swatch_size + 4), text, fill=(0, 0, 0))

    img.save(output_path)


def format_palette(colors: list) -> str:
    """Plain-text table of a palette."""
    if not colors:
        return "No colors found (every pixel was filtered out)."

    lines = [f"{'#':>2}  {'Hex':<8} {'Area':>6}  {'Hue':>5} {'Sat':>5} {'Light':>5}  Range"]
    for i, color in enumerate(colors, 1):
        hue_range = ''
        if hasattr(color, 'start_hue'):
            hue_range = f"{color.start_hue:.0f}°–{color.end_hue:.0f}°"
            if color.wraps:
                hue_range += " (through 0°)"
        lines.append(
            f"{i:>2}  {color.hex:<8} {color.area * 100:5.1f}%  {color.hue:5.1f} "
            f"{color.saturation:5.2f} {color.lightness:5.2f}  {hue_range}"
        )
    return '\n'.join(lines)


def add_config_arguments(parser) -> None:
    """Extraction options shared by the single-image and batch CLIs."""
    defaults = ExtractConfig()
    parser.add_argument(
        '--strategy', '-s',
        choices=[s.value for s in PeakStrategy],
        default=PeakStrategy.GRID.value,
        help='Peak detection strategy (default: grid)'
    )
    parser.add_argument(
        '--no-merge',
        action='store_true',
        help='Skip the merge pass'
    )
    parser.add_argument('--peak-distance', type=float, default=defaults.peak_distance)
    parser.add_argument('--hue-precision', type=float, default=defaults.hue_precision)
    parser.add_argument('--min-saturation', type=float, default=defaults.min_saturation)
    parser.add_argument('--lightness-margin', type=float, default=defaults.lightness_margin)
    parser.add_argument('--hue-merge-distance', type=float, default=defaults.hue_merge_distance)
    parser.add_argument(
        '--max-size',
        type=int,
        default=SAMPLE_SIZE,
        help=f'Downsample so the longest side is at most this many pixels (default: {SAMPLE_SIZE})'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Log pipeline details'
    )


def config_from_args(args) -> ExtractConfig:
    return ExtractConfig(
        peak_distance=args.peak_distance,
        hue_precision=args.hue_precision,
        min_saturation=args.min_saturation,
        lightness_margin=args.lightness_margin,
        hue_merge_distance=args.hue_merge_distance,
    )


def main(argv=None):
    import argparse
    import sys
    from pathlib import Path

    parser = argparse.ArgumentParser(
        description='Extract the dominant color palette of an image.'
    )
    parser.add_argument(
        '--input', '-i',
        required=True,
        help='Path to the image file'
    )
    parser.add_argument(
        '--output', '-o',
        nargs='?',
        const=True,
        default=None,
        help='Write a swatch PNG. Optionally specify path, otherwise auto-names from input.'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print the palette as JSON'
    )
    add_config_arguments(parser)

    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(name)s: %(message)s')

    image_path = Path(args.input)

    try:
        config = config_from_args(args)
        colors = extract_palette(
            str(image_path), config,
            strategy=PeakStrategy(args.strategy),
            merge=not args.no_merge,
            max_size=args.max_size,
        )
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error analyzing image: {e}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps(palette_to_dicts(colors), indent=2))
    else:
        print(format_palette(colors))

    if args.output:
        if args.output is True:
            output_path = image_path.with_name(f"{image_path.stem}-palette.png")
        else:
            output_path = Path(args.output)

        try:
            render_swatches(colors, str(output_path))
            print(f"\nWrote: {output_path}", file=sys.stderr if args.json else sys.stdout)
        except OSError as e:
            print(f"Error writing output: {e}", file=sys.stderr)
            sys.exit(1)


if __name__ == '__main__':
    main()

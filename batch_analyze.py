#!/usr/bin/env python3
"""Batch extract palettes and write swatch images."""

import argparse
import json
import logging
import sys
import time
from pathlib import Path

from analyze import add_config_arguments, config_from_args, render_swatches
from extract_colors import ConfigError, extract_palette, palette_to_dicts
from peaks import PeakStrategy


def find_images(directory: Path) -> list[Path]:
    """Find all image files in directory."""
    extensions = {'.jpg', '.jpeg', '.png', '.webp', '.bmp'}
    return sorted(p for p in directory.iterdir()
                  if p.is_file() and p.suffix.lower() in extensions)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Batch extract palettes and write swatch images.'
    )
    parser.add_argument(
        '--input', '-i',
        required=True,
        help='Directory containing images to analyze'
    )
    parser.add_argument(
        '--output', '-o',
        required=True,
        help='Directory for swatch output files'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Also write a <name>-palette.json per image'
    )
    add_config_arguments(parser)

    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(name)s: %(message)s')

    input_dir = Path(args.input)
    output_dir = Path(args.output)

    # Validate input directory
    if not input_dir.is_dir():
        print(f"Error: Input directory not found: {input_dir}", file=sys.stderr)
        sys.exit(2)

    try:
        config = config_from_args(args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    images = find_images(input_dir)
    if not images:
        print(f"No images found in {input_dir}", file=sys.stderr)
        sys.exit(2)

    # Create output directory if needed
    output_dir.mkdir(parents=True, exist_ok=True)

    total = len(images)
    succeeded = 0
    failed = []
    strategy = PeakStrategy(args.strategy)

    batch_start = time.perf_counter()

    for i, image_path in enumerate(images, 1):
        try:
            img_start = time.perf_counter()
            colors = extract_palette(
                str(image_path), config,
                strategy=strategy,
                merge=not args.no_merge,
                max_size=args.max_size,
            )
            img_elapsed = time.perf_counter() - img_start

            output_file = output_dir / f"{image_path.stem}-palette.png"
            if output_file.exists():
                print(f"  Warning: Overwriting {output_file.name}", file=sys.stderr)
            render_swatches(colors, str(output_file))

            if args.json:
                json_file = output_dir / f"{image_path.stem}-palette.json"
                json_file.write_text(json.dumps(palette_to_dicts(colors), indent=2))

            print(f"[{i}/{total}] {image_path.name} → {len(colors)} colors ({img_elapsed:.2f}s)")
            succeeded += 1

        except (OSError, ValueError) as e:
            error_msg = f"{type(e).__name__}: {e}"
            print(f"[{i}/{total}] {image_path.name} → ERROR: {error_msg}", file=sys.stderr)
            failed.append((image_path.name, error_msg))

    batch_elapsed = time.perf_counter() - batch_start

    # Summary
    print()
    print(f"Completed: {succeeded}/{total} succeeded in {batch_elapsed:.2f}s")
    if succeeded > 0:
        print(f"Average: {batch_elapsed / succeeded:.2f}s per image")
    if failed:
        print(f"Failed ({len(failed)}):")
        for name, error in failed:
            print(f"  - {name}: {error}")
        sys.exit(1)


if __name__ == '__main__':
    main()

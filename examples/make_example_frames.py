"""Write a synthetic image sequence to try chrono-photo on."""
from __future__ import annotations

import argparse
from pathlib import Path

from chronophoto.bench import synthetic_frames
from chronophoto.utils import save_image


def main():
    parser = argparse.ArgumentParser(description="Generate example frames with a moving dark square")
    parser.add_argument("output", nargs="?", default="test_data/generated", help="Output directory")
    parser.add_argument("--count", type=int, default=25, help="Number of images")
    parser.add_argument("--width", type=int, default=1024)
    parser.add_argument("--height", type=int, default=768)
    parser.add_argument("--channels", type=int, default=3, choices=[3, 4])
    parser.add_argument("--format", default="jpg", choices=["jpg", "png"])
    args = parser.parse_args()

    out = Path(args.output)
    out.mkdir(parents=True, exist_ok=True)
    frames = synthetic_frames(args.count, args.width, args.height, args.channels)
    for i, frame in enumerate(frames):
        save_image(out / f"image-{i:05d}.{args.format}", frame, quality=95)
    print(f"Wrote {args.count} images to {out}")


if __name__ == "__main__":
    main()

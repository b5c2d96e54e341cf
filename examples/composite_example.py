"""Composite the example frames, e.g. after running make_example_frames.py."""
from __future__ import annotations

import argparse
import logging

from chronophoto import BackgroundMode, OutlierSelectionMode, Threshold, run_chrono


def main():
    parser = argparse.ArgumentParser(description="chrono-photo on the generated example data")
    parser.add_argument("--pattern", default="test_data/generated/*.jpg")
    parser.add_argument("--output", default="test_data/out.jpg")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    summary = run_chrono(
        args.pattern,
        args.output,
        threshold=Threshold.abs(0.05, 0.2),
        background=BackgroundMode.RANDOM,
        outlier=OutlierSelectionMode.EXTREME,
        debug=True,
    )
    print(f"Frames={summary.frames} Outputs={[str(p) for p in summary.outputs]}")


if __name__ == "__main__":
    main()

"""Profile time and memory of a chrono-photo run."""
from __future__ import annotations

import argparse
import json
import sys
import time
import tracemalloc
from pathlib import Path
from typing import Optional

import psutil

from .pipeline import run_chrono
from .version import get_build_meta


def current_rss_mb() -> float:
    return psutil.Process().memory_info().rss / (1024 * 1024)


def run_profile(pattern: str, out_dir: Path, **options) -> dict:
    out_dir.mkdir(parents=True, exist_ok=True)
    result = {}

    tracemalloc.start()
    rss_start = current_rss_mb()
    t0 = time.perf_counter()
    summary = run_chrono(pattern, out_dir / "profile.png", temp_dir=out_dir / "slices", **options)
    elapsed = time.perf_counter() - t0
    rss_end = current_rss_mb()
    _, peak_size = tracemalloc.get_traced_memory()
    tracemalloc.stop()

    result["frames"] = summary.frames
    result["size"] = [summary.layout.width, summary.layout.height, summary.layout.channels]
    result["time_sec"] = elapsed
    result["rss_start_mb"] = rss_start
    result["rss_end_mb"] = rss_end
    result["tracemalloc_peak_bytes"] = peak_size
    # the largest possible in-memory stack, for comparison with the banded store
    result["full_stack_bytes"] = summary.frames * summary.layout.size
    result["warnings"] = summary.warnings

    result["env"] = {**get_build_meta(), "platform": sys.platform}

    with open(out_dir / "profile.json", "w", encoding="utf-8") as f:
        json.dump(result, f, indent=2)
    return result


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Profile a chrono-photo run")
    parser.add_argument("--pattern", required=True, help="Input file pattern")
    parser.add_argument("--out", type=Path, required=True, help="Output directory for profile")
    args = parser.parse_args(argv)

    res = run_profile(args.pattern, args.out)
    print(json.dumps(res, indent=2))


if __name__ == "__main__":
    main()

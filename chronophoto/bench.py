"""Benchmark the band store's compression schemes on synthetic frames."""
from __future__ import annotations

import argparse
import json
import shutil
import sys
import tempfile
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Iterator, List, Optional

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

from .constants import DEFAULT_SLICE  # noqa: E402
from .format import read_band  # noqa: E402
from .options import Compression, SliceLength  # noqa: E402
from .slicer import TimeSlicer  # noqa: E402
from .version import get_build_meta  # noqa: E402


@dataclass
class BenchResult:
    scheme: str
    level: int
    slicing: str
    frames: int
    raw_bytes: int
    size_bytes: int
    write_time: float
    read_time: float

    @property
    def ratio(self) -> float:
        return self.size_bytes / self.raw_bytes if self.raw_bytes else 0.0


def synthetic_frames(
    count: int, width: int, height: int, channels: int = 3, radius: int = 8, seed: int = 0
) -> Iterator[np.ndarray]:
    """Noisy still background with a dark square moving across it."""
    rng = np.random.default_rng(seed)
    for i in range(count):
        frame = rng.integers(240, 250, size=(height, width, channels), dtype=np.uint8)
        frame[..., min(2, channels - 1)] = rng.integers(140, 150, size=(height, width), dtype=np.uint8)
        cx = (width // 10 + i * 10) % width
        cy = (height // 3 + i * 5) % height
        frame[max(cy - radius, 0) : cy + radius + 1, max(cx - radius, 0) : cx + radius + 1, 0] = 0
        yield frame


def bench_store(
    tmp: Path, compression: Compression, slicing: SliceLength, frames: int, width: int, height: int
) -> BenchResult:
    run_dir = tmp / f"{compression.scheme}-{compression.level}"
    run_dir.mkdir(parents=True, exist_ok=True)

    start = time.perf_counter()
    store = TimeSlicer(compression, slicing).write_time_slices(
        synthetic_frames(frames, width, height), run_dir
    )
    write_time = time.perf_counter() - start

    start = time.perf_counter()
    for path in store.paths:
        read_band(path, compression)
    read_time = time.perf_counter() - start

    size = sum(p.stat().st_size for p in store.paths)
    store.remove()
    return BenchResult(
        scheme=compression.scheme,
        level=compression.level,
        slicing=f"{slicing.kind.value}/{slicing.n}",
        frames=frames,
        raw_bytes=frames * store.layout.size,
        size_bytes=size,
        write_time=write_time,
        read_time=read_time,
    )


def write_results(out_dir: Path, results: list[BenchResult], env: dict) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    with open(out_dir / "results.json", "w", encoding="utf-8") as f:
        json.dump({"env": env, "results": [asdict(r) for r in results]}, f, indent=2)

    lines = ["# Band store compression benchmark\n", f"Env: {env}\n"]
    lines.append("| scheme | level | slicing | frames | size (bytes) | ratio | write (s) | read (s) |")
    lines.append("|---|---|---|---|---|---|---|---|")
    for r in results:
        lines.append(
            f"| {r.scheme} | {r.level} | {r.slicing} | {r.frames} | {r.size_bytes} | "
            f"{r.ratio:.3f} | {r.write_time:.2f} | {r.read_time:.2f} |"
        )
    (out_dir / "report.md").write_text("\n".join(lines), encoding="utf-8")

    plots = out_dir / "plots"
    plots.mkdir(exist_ok=True)
    if not results:
        return
    plt.figure()
    for scheme in sorted({r.scheme for r in results}):
        rs = [r for r in results if r.scheme == scheme]
        plt.plot([r.write_time for r in rs], [r.ratio for r in rs], marker="o", label=scheme)
    plt.xlabel("Write time (s)")
    plt.ylabel("Compressed / raw")
    plt.legend()
    plt.tight_layout()
    plt.savefig(plots / "ratio_vs_time.png")
    plt.close()

    plt.figure()
    labels = [f"{r.scheme}/{r.level}" for r in results]
    x = np.arange(len(labels))
    width = 0.35
    plt.bar(x - width / 2, [r.write_time for r in results], width, label="write")
    plt.bar(x + width / 2, [r.read_time for r in results], width, label="read")
    plt.xticks(x, labels, rotation=45, ha="right")
    plt.ylabel("Seconds")
    plt.legend()
    plt.tight_layout()
    plt.savefig(plots / "speed.png")
    plt.close()


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Benchmark chrono-photo time-slice compression")
    parser.add_argument("--out", type=Path, required=True, help="Output directory for results")
    parser.add_argument("--schemes", type=str, default="gzip,zlib,deflate", help="Comma separated schemes")
    parser.add_argument("--levels", type=str, default="1,6,9", help="Comma separated compression levels")
    parser.add_argument("--slice", dest="slicing", type=SliceLength.parse, default=SliceLength.parse(DEFAULT_SLICE))
    parser.add_argument("--frames", type=int, default=25)
    parser.add_argument("--width", type=int, default=1024)
    parser.add_argument("--height", type=int, default=768)
    args = parser.parse_args(argv)

    schemes = [s.strip() for s in args.schemes.split(",") if s.strip()]
    levels = [int(v) for v in args.levels.split(",") if v.strip()]

    tmp = Path(tempfile.mkdtemp(prefix="chrono_bench_"))
    results: list[BenchResult] = []
    try:
        for scheme in schemes:
            for level in levels:
                results.append(
                    bench_store(tmp, Compression(scheme, level), args.slicing, args.frames, args.width, args.height)
                )
    finally:
        shutil.rmtree(tmp, ignore_errors=True)

    env = {**get_build_meta(), "platform": sys.platform}
    write_results(args.out, results, env)
    print(f"Wrote results to {args.out}")


if __name__ == "__main__":
    main()

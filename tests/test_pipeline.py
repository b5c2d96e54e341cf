from __future__ import annotations

import imageio.v2 as imageio
import numpy as np
import pytest

from chronophoto.cli import main
from chronophoto.errors import ChronoError
from chronophoto.options import BackgroundMode, FrameRange, VideoWindow
from chronophoto.pipeline import run_chrono


def _write_frames(folder, count=6, height=6, width=8):
    folder.mkdir()
    for i in range(count):
        frame = np.full((height, width, 3), 90, dtype=np.uint8)
        frame[3, i] = (240, 20, 20)
        imageio.imwrite(folder / f"frame-{i:03d}.png", frame)
    return str(folder / "frame-*.png")


def test_single_output_end_to_end(tmp_path):
    pattern = _write_frames(tmp_path / "in")
    temp = tmp_path / "temp"
    out = tmp_path / "out.png"

    summary = run_chrono(
        pattern, out, temp_dir=temp, background=BackgroundMode.MEDIAN, seed=1, debug=True
    )

    assert summary.frames == 6
    assert summary.outputs == [out, tmp_path / "out-debug.png"]
    image = imageio.imread(out)
    assert image.shape == (6, 8, 3)
    assert image[3, :6].tolist() == [[240, 20, 20]] * 6
    assert np.all(image[0] == 90)
    blend = imageio.imread(tmp_path / "out-debug.png")
    assert np.all(blend[3, :6] == 255)
    # band files are removed after the run
    assert list(temp.iterdir()) == []


def test_frame_window_and_keep_temp(tmp_path):
    pattern = _write_frames(tmp_path / "in")
    temp = tmp_path / "temp"
    out = tmp_path / "out.png"

    summary = run_chrono(
        pattern,
        out,
        temp_dir=temp,
        frames=FrameRange(1, 4),
        background=BackgroundMode.MEDIAN,
        keep_temp=True,
    )

    assert summary.frames == 3
    assert any(temp.iterdir())
    image = imageio.imread(out)
    lit = np.flatnonzero(image[3, :, 0] == 240).tolist()
    assert lit == [1, 2, 3]


def test_video_outputs_are_numbered(tmp_path):
    pattern = _write_frames(tmp_path / "in")
    out = tmp_path / "video.png"

    summary = run_chrono(
        pattern,
        out,
        temp_dir=tmp_path / "temp",
        background=BackgroundMode.FIRST,
        video=VideoWindow(3, 3),
        video_threads=2,
    )

    names = [p.name for p in summary.outputs]
    assert names == ["video-00000.png", "video-00001.png"]
    last = imageio.imread(tmp_path / "video-00001.png")
    assert np.flatnonzero(last[3, :, 0] == 240).tolist() == [3, 4, 5]


def test_no_matching_files(tmp_path):
    with pytest.raises(ChronoError):
        run_chrono(str(tmp_path / "*.png"), tmp_path / "out.png", temp_dir=tmp_path)


def test_cli_main_writes_output(tmp_path, capsys):
    pattern = _write_frames(tmp_path / "in")
    out = tmp_path / "cli.png"

    code = main(
        [
            "-p", pattern,
            "-o", str(out),
            "-t", str(tmp_path / "temp"),
            "--threshold", "abs/0.1/0.3",
            "--background", "median",
            "--slice", "pixels/5",
            "--compression", "deflate/1",
            "--seed", "3",
            "-q",
        ]
    )

    assert code == 0
    assert out.exists()
    printed = capsys.readouterr().out
    assert "Frames=6" in printed
    assert "Size=6x8" in printed


def test_cli_reports_missing_input(tmp_path):
    code = main(["-p", str(tmp_path / "none-*.png"), "-o", str(tmp_path / "x.png"), "-q"])
    assert code == 1


def test_cli_rejects_bad_option(tmp_path):
    with pytest.raises(SystemExit) as info:
        main(["-p", "x", "-o", "y.png", "--threshold", "abs/0.5/0.1"])
    assert info.value.code == 2


def test_invalid_processor_option_leaves_no_band_files(tmp_path):
    pattern = _write_frames(tmp_path / "in")
    temp = tmp_path / "temp"

    with pytest.raises(ChronoError):
        run_chrono(pattern, tmp_path / "out.png", temp_dir=temp, sample=0)

    assert not temp.exists() or list(temp.iterdir()) == []


def test_failed_save_still_removes_band_files(tmp_path):
    pattern = _write_frames(tmp_path / "in")
    temp = tmp_path / "temp"

    with pytest.raises(ChronoError):
        run_chrono(pattern, tmp_path / "missing" / "out.png", temp_dir=temp)

    assert list(temp.iterdir()) == []

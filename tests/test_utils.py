from __future__ import annotations

from pathlib import Path

import imageio.v2 as imageio
import numpy as np
import pytest

from chronophoto.color import blend_into, round_half_up, to_u8
from chronophoto.errors import EncodingError
from chronophoto.options import FrameRange
from chronophoto.utils import debug_path, list_files, load_frame, numbered_path, save_image


def test_round_half_up():
    assert round_half_up([0.5, 1.5, 2.4999, 254.5]).tolist() == [1.0, 2.0, 2.0, 255.0]


def test_blend_into_rounds_integer_targets():
    a = np.array([100, 100], dtype=np.uint8)
    blend_into(a, np.array([101, 200], dtype=np.uint8), 0.5)
    assert a.tolist() == [101, 150]
    blend_into(a, np.array([0, 0], dtype=np.uint8), 0.0)
    assert a.tolist() == [101, 150]


def test_to_u8_clips():
    out = np.zeros(3, dtype=np.uint8)
    to_u8(np.array([-3.0, 127.5, 300.0]), out)
    assert out.tolist() == [0, 128, 255]


def test_output_path_helpers():
    assert numbered_path(Path("out/video.jpg"), 12) == Path("out/video-00012.jpg")
    assert debug_path("out/final.png") == Path("out/final-debug.png")


def test_list_files_sorts_and_windows(tmp_path):
    for name in ("c.png", "a.png", "b.png", "d.txt"):
        (tmp_path / name).write_bytes(b"")
    files = list_files(str(tmp_path / "*.png"))
    assert [f.name for f in files] == ["a.png", "b.png", "c.png"]
    assert [f.name for f in list_files(str(tmp_path / "*.png"), FrameRange(1, 3))] == ["b.png", "c.png"]


def test_load_frame_adds_channel_axis_to_grayscale(tmp_path):
    path = tmp_path / "gray.png"
    imageio.imwrite(path, np.full((4, 5), 7, dtype=np.uint8))
    frame = load_frame(path)
    assert frame.shape == (4, 5, 1)
    assert frame.dtype == np.uint8


def test_save_jpeg_drops_alpha(tmp_path):
    path = tmp_path / "out.jpg"
    save_image(path, np.full((8, 8, 4), 200, dtype=np.uint8), quality=90)
    assert imageio.imread(path).shape == (8, 8, 3)


def test_save_rejects_bad_quality(tmp_path):
    with pytest.raises(ValueError):
        save_image(tmp_path / "out.jpg", np.zeros((2, 2, 3), dtype=np.uint8), quality=0)


def test_save_failure_is_an_encoding_error(tmp_path):
    with pytest.raises(EncodingError):
        save_image(tmp_path / "missing" / "out.png", np.zeros((2, 2, 3), dtype=np.uint8))

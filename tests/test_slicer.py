from __future__ import annotations

import numpy as np
import pytest

from chronophoto.errors import ChronoError, FrameFormatError, LayoutMismatchError
from chronophoto.format import read_band
from chronophoto.options import Compression, Crop, SliceLength
from chronophoto.slicer import RasterLayout, TimeSlicer, write_time_slices


def _frames(count=5, height=7, width=6, channels=3, seed=1):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(count, height, width, channels), dtype=np.uint8)


def _reassemble(store, compression):
    bands = [read_band(p, compression) for p in store.paths]
    return np.concatenate(bands, axis=1)


@pytest.mark.parametrize("scheme", ["gzip", "zlib", "deflate"])
@pytest.mark.parametrize("slicing", ["rows/1", "pixels/6", "rows/3", "count/5"])
def test_time_slices_reassemble_the_input(tmp_path, scheme, slicing):
    frames = _frames()
    comp = Compression(scheme, 6)
    store = TimeSlicer(comp, SliceLength.parse(slicing), threads=2).write_time_slices(frames, tmp_path)

    assert store.count == len(frames)
    assert store.layout == RasterLayout(6, 7, 3)
    assert all(p.exists() for p in store.paths)
    data = _reassemble(store, comp)
    assert np.array_equal(data, frames.reshape(len(frames), -1))


def test_band_sizes_follow_the_slicing_policy():
    layout = RasterLayout(width=10, height=4, channels=3)
    assert SliceLength.parse("rows/1").bytes(layout) == 30
    assert SliceLength.parse("rows/1").count(layout) == 4
    assert SliceLength.parse("rows/3").count(layout) == 2
    assert SliceLength.parse("pixels/7").bytes(layout) == 21
    assert SliceLength.parse("pixels/7").count(layout) == 6
    # count slicing stays pixel aligned
    assert SliceLength.parse("count/3").bytes(layout) == 14 * 3
    assert SliceLength.parse("count/3").count(layout) == 3


def test_last_band_may_be_short(tmp_path):
    frames = _frames(count=2, height=5, width=4, channels=1)
    store = write_time_slices(frames, tmp_path, slicing=SliceLength.parse("rows/2"))
    assert len(store.paths) == 3
    assert store.band_range(2) == (16, 20)
    assert read_band(store.paths[2], Compression()).shape == (2, 4)
    assert np.array_equal(_reassemble(store, Compression()), frames.reshape(2, -1))


def test_grayscale_frames_have_one_channel(tmp_path):
    frames = _frames(count=3, channels=1)[..., 0]
    store = write_time_slices(frames, tmp_path)
    assert store.layout.channels == 1
    assert store.layout.size == 7 * 6


def test_layout_mismatch_aborts_and_cleans_up(tmp_path):
    frames = list(_frames(count=3))
    frames.append(np.zeros((7, 6, 4), dtype=np.uint8))

    with pytest.raises(LayoutMismatchError) as info:
        write_time_slices(frames, tmp_path)
    assert info.value.index == 3
    assert list(tmp_path.iterdir()) == []


def test_non_8bit_frames_are_rejected(tmp_path):
    with pytest.raises(FrameFormatError):
        write_time_slices([np.zeros((4, 4, 3), dtype=np.uint16)], tmp_path)


def test_no_frames_is_an_error(tmp_path):
    with pytest.raises(ChronoError):
        write_time_slices([], tmp_path)


def test_missing_temp_dir_is_an_error(tmp_path):
    with pytest.raises(NotADirectoryError):
        write_time_slices(_frames(count=1), tmp_path / "missing")


def test_crops_are_applied_per_frame(tmp_path):
    frames = _frames(count=2, height=8, width=8)
    crops = [Crop(0, 0, 4, 3), Crop(2, 4, 4, 3)]
    store = write_time_slices(frames, tmp_path, crops=crops)

    assert store.layout == RasterLayout(4, 3, 3)
    data = _reassemble(store, Compression())
    assert np.array_equal(data[0], frames[0, 0:3, 0:4].reshape(-1))
    assert np.array_equal(data[1], frames[1, 4:7, 2:6].reshape(-1))


def test_crop_outside_the_frame_is_rejected():
    with pytest.raises(ValueError):
        Crop(5, 0, 4, 4).apply(np.zeros((4, 8, 3), dtype=np.uint8))


def test_remove_deletes_band_files(tmp_path):
    store = write_time_slices(_frames(count=2), tmp_path)
    assert store.remove() == len(store.paths)
    assert list(tmp_path.iterdir()) == []

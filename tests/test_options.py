from __future__ import annotations

import pytest

from chronophoto.errors import ParseOptionError
from chronophoto.options import (
    BackgroundMode,
    Compression,
    Fade,
    FadeMode,
    FrameRange,
    OutlierSelectionMode,
    SliceKind,
    SliceLength,
    Threshold,
    VideoWindow,
    Weights,
)


def test_threshold_parse_absolute_scales_to_color_range():
    t = Threshold.parse("abs/0.05/0.2")
    assert t.absolute
    assert t.min == pytest.approx(12.75)
    assert t.max == pytest.approx(51.0)
    assert Threshold.parse("absolute/0.1").max == pytest.approx(25.5)


def test_threshold_parse_relative_keeps_units():
    t = Threshold.parse("rel/3/6")
    assert not t.absolute
    assert (t.min, t.max) == (3.0, 6.0)


@pytest.mark.parametrize(
    "text", ["abs", "abs/x", "foo/0.1", "abs/0.2/0.1", "abs/0.1/0.2/0.3"]
)
def test_threshold_parse_rejects_bad_input(text):
    with pytest.raises(ParseOptionError):
        Threshold.parse(text)


def test_threshold_blend_ramp():
    t = Threshold(True, 10.0, 30.0)
    assert t.blend_value(5.0) == 0.0
    assert t.blend_value(10.0) == 0.0
    assert t.blend_value(20.0) == pytest.approx(0.5)
    assert t.blend_value(30.0) == 1.0
    assert t.blend_value(100.0) == 1.0


def test_threshold_with_equal_bounds_is_a_hard_step():
    t = Threshold.abs(0.1)
    assert t.blend_value(t.min - 0.01) == 0.0
    assert t.blend_value(t.min) == 0.0
    assert t.blend_value(t.min + 0.01) == 1.0


def test_mode_parsing():
    assert BackgroundMode.parse("Median") is BackgroundMode.MEDIAN
    assert OutlierSelectionMode.parse("backward") is OutlierSelectionMode.ALL_BACKWARD
    assert OutlierSelectionMode.ALL_FORWARD.is_all
    assert not OutlierSelectionMode.EXTREME.is_all
    with pytest.raises(ParseOptionError, match="background"):
        BackgroundMode.parse("mean")


def test_fade_clamp_holds_end_values():
    fade = Fade.parse("clamp/abs/2,0/6,1")
    assert fade.mode is FadeMode.CLAMP
    assert fade.get(0) == 0.0
    assert fade.get(2) == 0.0
    assert fade.get(4) == pytest.approx(0.5)
    assert fade.get(6) == 1.0
    assert fade.get(100) == 1.0


def test_fade_repeat_wraps_with_inclusive_period():
    fade = Fade.parse("repeat/abs/0,1/10,0")
    assert fade.get(0) == 1.0
    assert fade.get(10) == 0.0
    assert fade.get(11) == 1.0
    assert fade.get(-1) == fade.get(10)
    assert fade.get(16) == pytest.approx(fade.get(5))


def test_fade_keyframes_are_sorted():
    fade = Fade.from_keyframes(FadeMode.CLAMP, True, [(10, 0.0), (0, 1.0), (5, 0.2)])
    assert fade.frames == (0, 5, 10)
    assert fade.values == (1.0, 0.2, 0.0)


def test_fade_absolute_and_relative_frame_positions():
    absolute = Fade.parse("clamp/abs/0,0/10,1")
    relative = Fade.parse("clamp/rel/0,1/4,0")
    assert absolute.at(0, total=5, offset=5) == pytest.approx(0.5)
    # relative fades count back from the newest frame of the window
    assert relative.at(4, total=5) == 1.0
    assert relative.at(0, total=5) == 0.0
    assert relative.at(2, total=5, offset=100) == pytest.approx(0.5)


@pytest.mark.parametrize(
    "text", ["clamp/abs/0,1", "spin/abs/0,1/1,0", "clamp/abs/0,1/0,0", "clamp/abs/0;1/2,0"]
)
def test_fade_rejects_bad_input(text):
    with pytest.raises(ParseOptionError):
        Fade.parse(text)


def test_weights_pad_to_four_channels():
    w = Weights.parse("2,1,0.5")
    assert w.values == (2.0, 1.0, 0.5, 0.0)
    assert w.for_channels(3).tolist() == [2.0, 1.0, 0.5]
    assert Weights().values == (1.0, 1.0, 1.0, 1.0)
    with pytest.raises(ParseOptionError):
        Weights.parse("1,1,1,1,1")


def test_slice_and_compression_parsing():
    assert SliceLength.parse("pixels/100") == SliceLength(SliceKind.PIXELS, 100)
    assert Compression.parse("zlib/9") == Compression("zlib", 9)
    assert Compression.parse("DEFLATE") == Compression("deflate", 6)
    for bad in ("rows/0", "rows", "bands/4"):
        with pytest.raises(ParseOptionError):
            SliceLength.parse(bad)
    for bad in ("lzma", "gzip/12"):
        with pytest.raises(ParseOptionError):
            Compression.parse(bad)


def test_frame_range_is_end_exclusive_and_clipped():
    assert FrameRange.parse("2/6").indices(10) == [2, 3, 4, 5]
    assert FrameRange.parse("0/10/3").indices(10) == [0, 3, 6, 9]
    assert FrameRange.parse("5/100").indices(8) == [5, 6, 7]
    assert FrameRange().indices(3) == [0, 1, 2]
    with pytest.raises(ParseOptionError):
        FrameRange.parse("0/10/0")


def test_video_window_positions():
    window = VideoWindow.parse("4/3")
    assert window.output_count(10) == 3
    assert window.frames(0, 10) == [0, 1, 2, 3]
    assert window.frames(2, 10) == [6, 7, 8, 9]
    assert VideoWindow(4, 2).output_count(11) == 5
    assert VideoWindow(4, 2).frames(4, 11) == [8, 9, 10]
    assert VideoWindow(20).output_count(5) == 1

import pytest

from magick_transform.enums import Position
from magick_transform.geometry import (
    Size,
    clamp_to_source,
    cover_size,
    crop_offset,
    rotated_size,
    scale_down_size,
    size_respecting_aspect_ratio,
)


def test_only_desired_width():
    # 200x100 -> width 100: height = 100 / 200 * 100 = 50
    assert size_respecting_aspect_ratio("contain", 200, 100, 100, None) == Size(100, 50)


def test_only_desired_height():
    assert size_respecting_aspect_ratio("contain", 200, 100, None, 50) == Size(100, 50)


def test_both_dimensions_contain_uses_source_aspect():
    # 源图比例 2 大于目标比例 1：宽度受限，高度 = int(150 / 2) = 75
    assert size_respecting_aspect_ratio("contain", 200, 100, 150, 150) == Size(150, 75)


def test_both_dimensions_cover_uses_target_aspect():
    assert size_respecting_aspect_ratio("cover", 200, 100, 150, 150) == Size(150, 150)


def test_contain_height_bound():
    # 源图比例 0.5 小于目标比例 1：高度受限
    assert size_respecting_aspect_ratio("contain", 100, 200, 150, 150) == Size(75, 150)


@pytest.mark.parametrize("mode", ["contain", "cover"])
def test_no_desired_dimensions_returns_source(mode):
    assert size_respecting_aspect_ratio(mode, 200, 100, None, None) == Size(200, 100)


def test_clamp_to_source():
    assert clamp_to_source(5000, 1920) == 1920
    assert clamp_to_source(800, 1920) == 800
    assert clamp_to_source(None, 1920) is None


def test_scale_down_size_never_upscales():
    assert scale_down_size(1920, 1080, 960, None) == Size(960, 540)
    assert scale_down_size(1920, 1080, None, 540) == Size(960, 540)
    assert scale_down_size(1920, 1080, 960, 100) == Size(178, 100)
    assert scale_down_size(1920, 1080, 4000, 4000) == Size(1920, 1080)


def test_cover_size_fills_box():
    resized = cover_size(1920, 1080, 150, 150)
    assert resized.height == 150
    assert resized.width >= 150


def test_crop_offset_by_position():
    assert crop_offset(100, 100, 1920, 1080, Position.TOP_LEFT) == (0, 0)
    assert crop_offset(100, 100, 1920, 1080, Position.CENTER) == (910, 490)
    assert crop_offset(100, 100, 1920, 1080, Position.BOTTOM_RIGHT) == (1820, 980)
    assert crop_offset(2000, 100, 1920, 1080, Position.RIGHT) == (0, 490)


def test_rotated_size():
    assert rotated_size(1920, 1080, 90) == Size(1080, 1920)
    assert rotated_size(1920, 1080, -90) == Size(1080, 1920)
    assert rotated_size(1920, 1080, 180) == Size(1920, 1080)
    assert rotated_size(100, 100, 45) == Size(141, 141)

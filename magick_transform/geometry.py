"""
几何计算

在真正调用 ImageMagick 之前，根据源图的实际尺寸解析出最终的目标宽高。
所有函数都是纯函数，便于单独测试。
"""

import math
from typing import NamedTuple, Optional, Tuple

from magick_transform.enums import Position


class Size(NamedTuple):
    width: int
    height: int


def size_respecting_aspect_ratio(
    aspect_mode: str,
    image_width: int,
    image_height: int,
    desired_width: Optional[int],
    desired_height: Optional[int],
) -> Size:
    """
    在保持宽高比的前提下，计算目标宽高。

    Args:
        aspect_mode: "contain" 使用源图宽高比，"cover" 使用目标宽高比。
        image_width: 源图宽度。
        image_height: 源图高度。
        desired_width: 期望宽度，可为 None。
        desired_height: 期望高度，可为 None。

    Returns:
        Size(width, height)。两者均未给出时返回源图尺寸。
    """
    if desired_width is not None and desired_height is None:
        return Size(desired_width, int(desired_width / image_width * image_height))

    if desired_height is not None and desired_width is None:
        return Size(int(desired_height / image_height * image_width), desired_height)

    if desired_width is not None and desired_height is not None:
        if aspect_mode == "contain":
            ratio = image_width / image_height
        else:
            ratio = desired_width / desired_height
        if ratio > desired_width / desired_height:
            return Size(desired_width, int(desired_width / ratio))
        return Size(int(desired_height * ratio), desired_height)

    return Size(image_width, image_height)


def clamp_to_source(requested: Optional[int], source: int) -> Optional[int]:
    """防放大：请求尺寸不超过源图尺寸。None 原样返回。"""
    if requested is None:
        return None
    return min(requested, source)


def at_least_one(size: Size) -> Size:
    return Size(max(1, size.width), max(1, size.height))


def scale_down_size(
    image_width: int,
    image_height: int,
    width: Optional[int],
    height: Optional[int],
) -> Size:
    """在给定框内等比缩小，绝不放大。"""
    factors = [1.0]
    if width is not None:
        factors.append(width / image_width)
    if height is not None:
        factors.append(height / image_height)
    factor = min(factors)
    return at_least_one(Size(round(image_width * factor), round(image_height * factor)))


def cover_size(image_width: int, image_height: int, width: int, height: int) -> Size:
    """能够完全覆盖 width x height 的最小等比缩放尺寸。"""
    factor = max(width / image_width, height / image_height)
    return at_least_one(
        Size(
            max(width, math.ceil(image_width * factor - 1e-9)),
            max(height, math.ceil(image_height * factor - 1e-9)),
        )
    )


def crop_offset(
    region_width: int,
    region_height: int,
    image_width: int,
    image_height: int,
    position: Position,
) -> Tuple[int, int]:
    """
    计算在指定方位放置裁剪区域时的左上角偏移量。

    Returns:
        (x, y)，均不小于 0。
    """
    x = int((image_width - region_width) * position.horizontal)
    y = int((image_height - region_height) * position.vertical)
    return max(0, x), max(0, y)


def rotated_size(width: int, height: int, degrees: float) -> Size:
    """旋转后的外接矩形尺寸。直角旋转时精确交换宽高。"""
    normalized = degrees % 360
    if normalized in (0, 180):
        return Size(width, height)
    if normalized in (90, 270):
        return Size(height, width)
    radians = math.radians(normalized)
    cos, sin = abs(math.cos(radians)), abs(math.sin(radians))
    return at_least_one(Size(round(width * cos + height * sin), round(width * sin + height * cos)))

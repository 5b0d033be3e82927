"""
图像变换操作

每个操作接收 ``TransformContext``（图像句柄 + 状态 + 规范化参数），在修改句柄的
同时把对应参数记录到 ``ctx.params``，用于之后重建 URL。
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Optional

from magick_transform import config
from magick_transform.color import brightness_gamma, transform_from_cloudflare_scale
from magick_transform.engine import ImageHandle, MagickEngine
from magick_transform.enums import FitMode, Position
from magick_transform.geometry import (
    Size,
    at_least_one,
    cover_size,
    crop_offset,
    scale_down_size,
    size_respecting_aspect_ratio,
)
from magick_transform.params import CanonicalParams

logger = logging.getLogger(__name__)

# 只接受安全的颜色写法，避免把 @file 之类的特殊参数交给 ImageMagick
_HEX_COLOR_RE = re.compile(r"^#?([0-9a-fA-F]{3,4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
_NAMED_COLOR_RE = re.compile(r"^[a-zA-Z]{3,32}$")
_FUNC_COLOR_RE = re.compile(r"^rgba?\(\s*[\d.%]+(\s*[,;]\s*[\d.%]+){2,3}\s*\)$")


@dataclass
class TransformState:
    """跨阶段共享的派生状态。"""

    dpr: int = 1
    position: Optional[Position] = None
    background: str = "#ffffff"
    quality: int = field(default_factory=lambda: config.DEFAULT_QUALITY)
    animate: bool = field(default_factory=lambda: config.PRESERVE_ANIMATION_FRAMES)

    def position_or(self, default: Position) -> Position:
        return self.position or default


@dataclass
class TransformContext:
    handle: ImageHandle
    state: TransformState = field(default_factory=TransformState)
    params: CanonicalParams = field(default_factory=CanonicalParams)

    @property
    def width(self) -> int:
        return self.handle.width

    @property
    def height(self) -> int:
        return self.handle.height


def normalize_color(color: str) -> Optional[str]:
    """
    校验并规范化背景色。

    Returns:
        可安全传给 ImageMagick 的颜色字符串；不合法时返回 None。
    """
    color = color.strip()
    if _HEX_COLOR_RE.match(color):
        return color if color.startswith("#") else f"#{color}"
    if _NAMED_COLOR_RE.match(color):
        return color.lower()
    if _FUNC_COLOR_RE.match(color):
        # URL 中逗号是选项分隔符，允许用分号代替
        return color.replace(";", ",").replace(" ", "")
    return None


def color_token(color: str) -> str:
    """
    将规范化后的颜色转换为可写回 URL 选项的形式。

    ``#`` 会被浏览器当作片段起始，逗号是选项分隔符，因此写回时去掉 ``#``，
    函数写法中的逗号改为分号。``normalize_color`` 可以原样读回结果。
    """
    return color.lstrip("#").replace(",", ";")


# --- 1. 配置 ---

def dpr(ctx: TransformContext, value: int) -> None:
    ctx.state.dpr = value
    ctx.params.set("dpr", value)


def quality(ctx: TransformContext, value: int) -> None:
    ctx.state.quality = value


def animate(ctx: TransformContext, should_animate: bool) -> None:
    # 显式记录 0，否则 anim=0 会在重建的 URL 中丢失
    ctx.params.set("anim", "1" if should_animate else "0")
    ctx.state.animate = should_animate
    if ctx.handle.is_animated and not should_animate:
        ctx.handle.remove_animation()
    elif ctx.handle.is_animated:
        ctx.handle.coalesce()


def background(ctx: TransformContext, color: str) -> None:
    """color 为 ``normalize_color`` 的结果；参数表中记录其 URL 写法。"""
    ctx.params.set("background", color_token(color))
    ctx.handle.flatten_onto(color)
    ctx.state.background = color


def position(ctx: TransformContext, value: Position) -> None:
    ctx.params.set("gravity", value)
    ctx.state.position = value


# --- 2. 裁边 ---

def _trim_amount(amount: int, dpr_value: int, limit: int) -> int:
    """乘以 dpr 并限定在 [0, limit - 1]，保证至少留下 1 像素。"""
    return min(max(0, amount * dpr_value), max(0, limit - 1))


def trim_top(ctx: TransformContext, top: int) -> None:
    pixels = _trim_amount(top, ctx.state.dpr, ctx.height)
    ctx.handle.crop(ctx.width, ctx.height - pixels, 0, pixels)
    ctx.params.set("trim.top", top)


def trim_right(ctx: TransformContext, right: int) -> None:
    pixels = _trim_amount(right, ctx.state.dpr, ctx.width)
    ctx.handle.crop(ctx.width - pixels, ctx.height, 0, 0)
    ctx.params.set("trim.right", right)


def trim_bottom(ctx: TransformContext, bottom: int) -> None:
    pixels = _trim_amount(bottom, ctx.state.dpr, ctx.height)
    ctx.handle.crop(ctx.width, ctx.height - pixels, 0, 0)
    ctx.params.set("trim.bottom", bottom)


def trim_left(ctx: TransformContext, left: int) -> None:
    pixels = _trim_amount(left, ctx.state.dpr, ctx.width)
    ctx.handle.crop(ctx.width - pixels, ctx.height, pixels, 0)
    ctx.params.set("trim.left", left)


def trim_width(ctx: TransformContext, width: int) -> None:
    """从当前方位（默认左上）开始，保留 width 像素宽。"""
    target = min(max(1, width * ctx.state.dpr), ctx.width)
    x, y = crop_offset(target, ctx.height, ctx.width, ctx.height, ctx.state.position_or(Position.TOP_LEFT))
    ctx.handle.crop(target, ctx.height, x, y)
    ctx.params.set("trim.width", width)


def trim_height(ctx: TransformContext, height: int) -> None:
    target = min(max(1, height * ctx.state.dpr), ctx.height)
    x, y = crop_offset(ctx.width, target, ctx.width, ctx.height, ctx.state.position_or(Position.TOP_LEFT))
    ctx.handle.crop(ctx.width, target, x, y)
    ctx.params.set("trim.height", height)


def trim(ctx: TransformContext, top: int, right: int, bottom: int, left: int) -> None:
    """
    依次裁掉四条边，并把四个单边参数合并为一个 ``trim=t;r;b;l``。
    """
    trim_top(ctx, top)
    trim_right(ctx, right)
    trim_bottom(ctx, bottom)
    trim_left(ctx, left)

    for key in ("trim.top", "trim.right", "trim.bottom", "trim.left"):
        ctx.params.remove(key)

    ctx.params.set("trim", f"{top};{right};{bottom};{left}")


async def trim_auto(ctx: TransformContext, engine: MagickEngine, tolerance: int = 0) -> None:
    """去除与边缘颜色相近的纯色边框，tolerance 为百分比容差。"""
    width, height, x, y = await engine.trim_box(ctx.handle, tolerance)
    ctx.handle.crop(width, height, x, y)
    ctx.params.set("trim", f"auto;{tolerance}")


# --- 3. 缩放 ---

def scale_down(ctx: TransformContext, width: Optional[int] = None, height: Optional[int] = None) -> None:
    """等比缩小到给定框内，从不放大。"""
    if width is not None:
        ctx.params.set("width", width)
    if height is not None:
        ctx.params.set("height", height)

    size = scale_down_size(ctx.width, ctx.height, _dpr(ctx, width), _dpr(ctx, height))
    ctx.handle.resize(*size)
    ctx.params.set("fit", FitMode.SCALE_DOWN)


def contain(ctx: TransformContext, width: Optional[int] = None, height: Optional[int] = None) -> None:
    ctx.params.set("fit", FitMode.CONTAIN)
    ctx.params.set("width", width)
    ctx.params.set("height", height)

    size = at_least_one(
        size_respecting_aspect_ratio(
            "contain", ctx.width, ctx.height,
            _clamped(ctx, width, ctx.width), _clamped(ctx, height, ctx.height),
        )
    )
    _contain(ctx, size)


def _contain(ctx: TransformContext, box: Size) -> None:
    factor = min(box.width / ctx.width, box.height / ctx.height)
    fitted = at_least_one(Size(round(ctx.width * factor), round(ctx.height * factor)))
    ctx.handle.resize(*fitted)
    ctx.handle.extent(box.width, box.height, ctx.state.background, ctx.state.position_or(Position.CENTER))


def cover(ctx: TransformContext, width: Optional[int] = None, height: Optional[int] = None) -> None:
    ctx.params.set("fit", FitMode.COVER)
    ctx.params.set("width", width)
    ctx.params.set("height", height)

    size = at_least_one(
        size_respecting_aspect_ratio(
            "cover", ctx.width, ctx.height,
            _clamped(ctx, width, ctx.width), _clamped(ctx, height, ctx.height),
        )
    )
    _cover(ctx, size)


def _cover(ctx: TransformContext, box: Size) -> None:
    resized = cover_size(ctx.width, ctx.height, box.width, box.height)
    ctx.handle.resize(*resized)
    x, y = crop_offset(box.width, box.height, ctx.width, ctx.height, ctx.state.position_or(Position.CENTER))
    ctx.handle.crop(box.width, box.height, x, y)


def crop(ctx: TransformContext, width: int, height: int) -> None:
    """
    裁剪到 width x height。

    源图在任一方向大于目标框时先等比覆盖再裁剪；否则直接在当前方位裁剪。
    """
    ctx.params.set("width", width)
    ctx.params.set("height", height)
    ctx.params.set("fit", FitMode.CROP)

    box_width = _clamped(ctx, width, ctx.width)
    box_height = _clamped(ctx, height, ctx.height)
    size = at_least_one(size_respecting_aspect_ratio("cover", ctx.width, ctx.height, box_width, box_height))

    if ctx.width > box_width or ctx.height > box_height:
        _cover(ctx, size)
    else:
        x, y = crop_offset(box_width, box_height, ctx.width, ctx.height, ctx.state.position_or(Position.CENTER))
        ctx.handle.crop(box_width, box_height, x, y)


def pad(ctx: TransformContext, width: Optional[int] = None, height: Optional[int] = None) -> None:
    """
    等比缩小到框内（不放大），再以背景色补齐画布到 width x height。

    画布可以大于源图，但每边不超过 ``config.MAX_CANVAS_SIZE``。
    """
    ctx.params.set("fit", FitMode.PAD)
    ctx.params.set("width", width)
    ctx.params.set("height", height)

    limit = max(1, config.MAX_CANVAS_SIZE)
    box = at_least_one(Size(
        min(_dpr(ctx, width) or ctx.width, limit),
        min(_dpr(ctx, height) or ctx.height, limit),
    ))
    fitted = scale_down_size(ctx.width, ctx.height, box.width, box.height)
    ctx.handle.resize(*fitted)
    ctx.handle.extent(box.width, box.height, ctx.state.background, ctx.state.position_or(Position.CENTER))


def _dpr(ctx: TransformContext, value: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    return value * ctx.state.dpr


def _clamped(ctx: TransformContext, value: Optional[int], source: int) -> Optional[int]:
    """乘以 dpr 后再做防放大限制。"""
    scaled = _dpr(ctx, value)
    if scaled is None:
        return None
    return max(1, min(scaled, source))


# --- 4. 旋转与翻转 ---

def rotate(ctx: TransformContext, degrees: int) -> None:
    # 保留符号，超过一整圈的部分无视觉意义
    effective = math.copysign(abs(degrees) % 360, degrees)
    if effective:
        ctx.handle.rotate(effective, ctx.state.background)
    ctx.params.set("rotate", degrees)


def flip_horizontal(ctx: TransformContext) -> None:
    """左右镜像。已记录上下翻转时，合并为 hv。"""
    ctx.handle.flop()
    current = ctx.params.get("flip")
    ctx.params.set("flip", "hv" if current in ("v", "hv") else "h")


def flip_vertical(ctx: TransformContext) -> None:
    """上下镜像。已记录左右翻转时，合并为 hv。"""
    ctx.handle.flip()
    current = ctx.params.get("flip")
    ctx.params.set("flip", "hv" if current in ("h", "hv") else "v")


# --- 5. 颜色 ---

def brightness(ctx: TransformContext, value: float) -> None:
    ctx.params.set("brightness", value)

    converted = max(-100.0, min(100.0, transform_from_cloudflare_scale(value)))
    contrast_value = int(max(-100, min(0, converted)))
    gamma_value = max(0.01, brightness_gamma(converted))

    ctx.handle.apply("-brightness-contrast", f"{_fmt(converted)}x{contrast_value}")
    ctx.handle.apply("-gamma", _fmt(gamma_value))


def contrast(ctx: TransformContext, value: float) -> None:
    ctx.params.set("contrast", value)

    converted = max(-100.0, min(100.0, transform_from_cloudflare_scale(value)))
    ctx.handle.apply("-brightness-contrast", f"0x{_fmt(converted)}")


def gamma(ctx: TransformContext, value: float) -> None:
    ctx.params.set("gamma", value)
    ctx.handle.apply("-gamma", _fmt(value))


# --- 6. 滤镜 ---

def blur(ctx: TransformContext, amount: int) -> None:
    ctx.params.set("blur", amount)
    ctx.handle.apply("-blur", f"{amount}x{_fmt(amount * 0.5)}")


def saturation(ctx: TransformContext, value: float) -> None:
    ctx.params.set("saturation", value)
    ctx.handle.apply("-modulate", f"100,{_fmt(value * 100)},100")


def sharpen(ctx: TransformContext, amount: int) -> None:
    ctx.params.set("sharpen", amount)
    # 引擎的锐化强度是外部刻度的 1/10
    strength = amount * 10
    ctx.handle.apply("-unsharp", f"1x1+{_fmt(strength / 6.25)}+0")


def _fmt(value: float) -> str:
    value = round(float(value), 4)
    if value.is_integer():
        return str(int(value))
    return f"{value:.4f}".rstrip("0").rstrip(".")

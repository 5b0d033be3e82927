"""
变换管线

阶段顺序固定，不可调整：
配置 -> 裁边 -> 缩放 -> 旋转/翻转 -> 颜色 -> 滤镜 -> 质量 -> 编码

每个阶段只在对应选项存在时生效；格式错误的选项记录警告后跳过，不影响其他阶段。
"""

import logging
from dataclasses import dataclass
from typing import Optional

from magick_transform import config
from magick_transform import operations as ops
from magick_transform.engine import MagickEngine
from magick_transform.enums import FitMode, ImageFormat, Position
from magick_transform.negotiation import (
    NetworkHints,
    base_quality,
    explicit_format,
    resolve_format,
    resolve_quality,
)
from magick_transform.operations import TransformContext
from magick_transform.options import OptionMap, get_bool, get_float, get_int, get_string, to_int
from magick_transform.params import CanonicalParams

logger = logging.getLogger(__name__)

MAX_BLUR = 250
MAX_SHARPEN = 10


@dataclass
class TransformResult:
    content: bytes
    image_format: ImageFormat
    quality: int
    params: CanonicalParams

    @property
    def mime_type(self) -> str:
        return self.image_format.mime_type


def _skip(key: str, value: Optional[str]) -> None:
    logger.warning(f"忽略无法解析的选项: {key}={value!r}")


# --- 1. 配置 ---

def apply_config(ctx: TransformContext, options: OptionMap) -> None:
    """动画、背景色、dpr、方位。"""
    if "anim" in options:
        should_animate = get_bool(options, "anim")
        if should_animate is None:
            should_animate = config.PRESERVE_ANIMATION_FRAMES
        ops.animate(ctx, should_animate)

    if "background" in options:
        color = ops.normalize_color(get_string(options, "background") or "")
        if color is None:
            _skip("background", options["background"])
        else:
            ops.background(ctx, color)

    if "dpr" in options:
        dpr = get_int(options, "dpr")
        if dpr is None or dpr < 1:
            _skip("dpr", options["dpr"])
        else:
            ops.dpr(ctx, dpr)

    gravity_key = "gravity" if "gravity" in options else "position"
    if gravity_key in options:
        position = Position.from_token(get_string(options, gravity_key))
        if position is None:
            _skip(gravity_key, options[gravity_key])
        else:
            ops.position(ctx, position)


# --- 2. 裁边 ---

_EDGE_TRIMS = (
    ("trim.top", ops.trim_top),
    ("trim.right", ops.trim_right),
    ("trim.bottom", ops.trim_bottom),
    ("trim.left", ops.trim_left),
    ("trim.width", ops.trim_width),
    ("trim.height", ops.trim_height),
)


async def apply_trim(ctx: TransformContext, options: OptionMap, engine: MagickEngine) -> None:
    """
    组合 trim（``t;r;b;l`` 或 ``auto[;tolerance]``）先执行，
    之后单独的 trim.* 选项在其基础上叠加。
    """
    if "trim" in options:
        value = get_string(options, "trim") or "0;0;0;0"
        segments = [segment.strip() for segment in value.split(";")]

        if segments[0].lower() == "auto":
            tolerance = to_int(segments[1]) if len(segments) > 1 else None
            await ops.trim_auto(ctx, engine, tolerance=max(0, tolerance or 0))
        else:
            edges = [to_int(segment) for segment in segments]
            if len(edges) != 4 or any(edge is None for edge in edges):
                _skip("trim", value)
            else:
                ops.trim(ctx, *edges)

    for key, operation in _EDGE_TRIMS:
        if key not in options:
            continue
        amount = get_int(options, key)
        if amount is None:
            _skip(key, options[key])
            continue
        operation(ctx, amount)


# --- 3. 缩放 ---

def apply_scale(ctx: TransformContext, options: OptionMap) -> None:
    """
    按 fit 模式缩放。默认 scale-down，防止恶意请求把图片放大到离谱的尺寸。
    """
    if "width" not in options and "height" not in options:
        return

    width = get_int(options, "width")
    height = get_int(options, "height")
    if width is not None and width < 1:
        width = None
    if height is not None and height < 1:
        height = None
    if width is None and height is None:
        _skip("width/height", f"{options.get('width')}/{options.get('height')}")
        return

    fit = FitMode.from_token(get_string(options, "fit"), default=FitMode.SCALE_DOWN)
    if fit is FitMode.CROP and (width is None or height is None):
        # crop 必须同时给出宽高，否则按默认的 scale-down 处理
        logger.warning("fit=crop 需要同时指定 width 与 height，回退为 scale-down")
        fit = FitMode.SCALE_DOWN

    if fit is FitMode.SCALE_DOWN:
        ops.scale_down(ctx, width, height)
    elif fit is FitMode.CONTAIN:
        ops.contain(ctx, width, height)
    elif fit is FitMode.COVER:
        ops.cover(ctx, width, height)
    elif fit is FitMode.CROP:
        ops.crop(ctx, width, height)
    elif fit is FitMode.PAD:
        ops.pad(ctx, width, height)


# --- 4. 旋转与翻转 ---

def apply_transform(ctx: TransformContext, options: OptionMap) -> None:
    if "rotate" in options:
        degrees = get_int(options, "rotate")
        if degrees is None:
            _skip("rotate", options["rotate"])
        else:
            ops.rotate(ctx, degrees)

    if "flip" in options:
        flip = (get_string(options, "flip") or "").strip().lower()
        if flip == "h":
            ops.flip_horizontal(ctx)
        elif flip == "v":
            ops.flip_vertical(ctx)
        elif flip in ("hv", "vh"):
            ops.flip_horizontal(ctx)
            ops.flip_vertical(ctx)
        else:
            _skip("flip", options["flip"])


# --- 5. 颜色 ---

def apply_color(ctx: TransformContext, options: OptionMap) -> None:
    if "brightness" in options:
        value = get_float(options, "brightness")
        if value is None:
            _skip("brightness", options["brightness"])
        else:
            ops.brightness(ctx, value)

    if "contrast" in options:
        value = get_float(options, "contrast")
        if value is None:
            _skip("contrast", options["contrast"])
        else:
            ops.contrast(ctx, value)

    if "gamma" in options:
        value = get_float(options, "gamma")
        if value is None or value <= 0:
            _skip("gamma", options["gamma"])
        else:
            ops.gamma(ctx, value)


# --- 6. 滤镜 ---

def apply_filters(ctx: TransformContext, options: OptionMap) -> None:
    if "blur" in options:
        amount = get_int(options, "blur")
        if amount is None or amount < 1:
            _skip("blur", options["blur"])
        else:
            ops.blur(ctx, min(amount, MAX_BLUR))

    if "saturation" in options:
        value = get_float(options, "saturation")
        if value is None or value < 0:
            _skip("saturation", options["saturation"])
        else:
            ops.saturation(ctx, value)

    if "sharpen" in options:
        amount = get_int(options, "sharpen")
        if amount is None or amount < 1:
            _skip("sharpen", options["sharpen"])
        else:
            ops.sharpen(ctx, min(amount, MAX_SHARPEN))


# --- 7. 质量 ---

def apply_quality(ctx: TransformContext, options: OptionMap, hints: Optional[NetworkHints]) -> None:
    """
    记录基础质量（以及显式的 slow-connection-quality），
    句柄上使用的则是结合网络提示后的有效质量。
    """
    ctx.params.set("quality", base_quality(options))
    slow_quality = get_int(options, "slow-connection-quality")
    if slow_quality is not None:
        ctx.params.set("slow-connection-quality", slow_quality)

    ops.quality(ctx, resolve_quality(options, hints, config.SLOW_CONNECTION_QUALITY))


async def apply_pipeline(
    ctx: TransformContext,
    options: OptionMap,
    engine: MagickEngine,
    hints: Optional[NetworkHints] = None,
) -> TransformContext:
    """按固定顺序执行编码之前的所有阶段。"""
    apply_config(ctx, options)
    await apply_trim(ctx, options, engine)
    apply_scale(ctx, options)
    apply_transform(ctx, options)
    apply_color(ctx, options)
    apply_filters(ctx, options)
    apply_quality(ctx, options, hints)
    return ctx


async def transform_image(
    engine: MagickEngine,
    data: bytes,
    options: OptionMap,
    accept: Optional[str] = None,
    hints: Optional[NetworkHints] = None,
) -> TransformResult:
    """
    完整的变换流程：读取尺寸 -> 执行各阶段 -> 协商格式 -> 编码。

    Raises:
        ProcessingError: ImageMagick 执行失败时。
    """
    handle = await engine.open(data)
    ctx = await apply_pipeline(TransformContext(handle), options, engine, hints)

    image_format = resolve_format(options, accept, config.DEFAULT_FORMAT_FALLBACK)
    if explicit_format(options) is not None:
        ctx.params.set("format", image_format)

    content = await engine.render(
        handle,
        image_format,
        ctx.state.quality,
        strip=config.STRIP_METADATA,
    )
    logger.info(f"变换完成: {image_format.value}, {len(content)} 字节, 参数: {ctx.params.to_option_string()}")
    return TransformResult(
        content=content,
        image_format=image_format,
        quality=ctx.state.quality,
        params=ctx.params,
    )

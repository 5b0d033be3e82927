import pytest

from magick_transform import config
from magick_transform import operations as ops
from magick_transform.engine import ImageHandle
from magick_transform.enums import Position
from magick_transform.operations import TransformContext, color_token, normalize_color


def _size(ctx):
    return ctx.width, ctx.height


def test_trim_top(ctx):
    ops.trim_top(ctx, 100)
    assert _size(ctx) == (1920, 980)
    assert ctx.handle.commands == ["-crop", "1920x980+0+100", "+repage"]
    assert ctx.params.to_option_string() == "trim.top=100"


def test_trim_left_keeps_right_side(ctx):
    ops.trim_left(ctx, 100)
    assert _size(ctx) == (1820, 1080)
    assert ctx.handle.commands == ["-crop", "1820x1080+100+0", "+repage"]


def test_trim_merges_edges_into_single_param(ctx):
    ops.trim(ctx, 100, 100, 100, 100)
    assert _size(ctx) == (1720, 880)
    assert ctx.params.to_option_string() == "trim=100;100;100;100"


def test_trim_is_multiplied_by_dpr_but_records_requested_value(ctx):
    ops.dpr(ctx, 2)
    ops.trim_top(ctx, 100)
    assert _size(ctx) == (1920, 880)
    assert ctx.params.to_option_string() == "dpr=2,trim.top=100"


def test_trim_never_removes_whole_image(ctx):
    ops.trim_top(ctx, 5000)
    assert _size(ctx) == (1920, 1)


def test_trim_width_respects_position(ctx):
    ops.position(ctx, Position.BOTTOM_RIGHT)
    ops.trim_width(ctx, 100)
    assert _size(ctx) == (100, 1080)
    assert ctx.handle.commands[-2] == "100x1080+1820+0"
    assert ctx.params.to_option_string() == "gravity=bottom-right,trim.width=100"


def test_trim_height_defaults_to_top_left(ctx):
    ops.trim_height(ctx, 200)
    assert _size(ctx) == (1920, 200)
    assert ctx.handle.commands[-2] == "1920x200+0+0"


def test_full_operation_sequence_canonical_string(ctx):
    ops.trim_top(ctx, 100)
    ops.trim_right(ctx, 100)
    ops.trim_bottom(ctx, 100)
    ops.trim_left(ctx, 100)
    ops.rotate(ctx, 90)
    ops.flip_horizontal(ctx)
    ops.flip_vertical(ctx)
    ops.brightness(ctx, 0.5)
    ops.contrast(ctx, 0.5)
    ops.gamma(ctx, 1.2)
    ops.blur(ctx, 10)
    ops.saturation(ctx, 2)
    ops.sharpen(ctx, 2)

    assert _size(ctx) == (880, 1720)
    assert ctx.params.to_option_string() == (
        "trim.top=100,trim.right=100,trim.bottom=100,trim.left=100,"
        "rotate=90,flip=hv,brightness=0.5,contrast=0.5,gamma=1.2,"
        "blur=10,saturation=2,sharpen=2"
    )


def test_scale_down(ctx):
    ops.scale_down(ctx, 960)
    assert _size(ctx) == (960, 540)
    assert ctx.handle.commands == ["-resize", "960x540!"]
    assert ctx.params.to_option_string() == "width=960,fit=scale-down"


def test_scale_down_never_upscales(ctx):
    ops.scale_down(ctx, 4000, 4000)
    assert _size(ctx) == (1920, 1080)
    assert ctx.handle.commands == []


def test_scale_down_with_dpr(ctx):
    ops.dpr(ctx, 2)
    ops.scale_down(ctx, 480)
    assert _size(ctx) == (960, 540)
    assert ctx.params.to_option_string() == "dpr=2,width=480,fit=scale-down"


def test_contain(ctx):
    ops.contain(ctx, 960, 960)
    assert _size(ctx) == (960, 540)
    assert ctx.params.to_option_string() == "fit=contain,width=960,height=960"


def test_cover(ctx):
    ops.cover(ctx, 150, 150)
    assert _size(ctx) == (150, 150)
    assert ctx.handle.commands == ["-resize", "267x150!", "-crop", "150x150+58+0", "+repage"]
    assert ctx.params.to_option_string() == "fit=cover,width=150,height=150"


def test_cover_clamps_to_source(ctx):
    ops.cover(ctx, 5000, None)
    assert _size(ctx) == (1920, 1080)


def test_crop_larger_source_covers_then_crops(ctx):
    ops.crop(ctx, 500, 500)
    assert _size(ctx) == (500, 500)
    assert ctx.params.to_option_string() == "width=500,height=500,fit=crop"


def test_crop_smaller_source_crops_in_place():
    ctx = TransformContext(ImageHandle(data=b"", width=100, height=100))
    ops.crop(ctx, 200, 200)
    assert _size(ctx) == (100, 100)


def test_pad_extends_canvas(ctx):
    ops.pad(ctx, 2000, 2000)
    assert _size(ctx) == (2000, 2000)
    assert "-extent" in ctx.handle.commands
    assert ctx.handle.commands[ctx.handle.commands.index("-extent") + 1] == "2000x2000"
    assert "-resize" not in ctx.handle.commands


def test_pad_uses_background(ctx):
    ops.background(ctx, "#ff0000")
    ops.pad(ctx, 1920, 1920)
    assert _size(ctx) == (1920, 1920)
    extent = ctx.handle.commands.index("-extent")
    assert ctx.handle.commands[extent - 4:extent - 2] == ["-background", "#ff0000"]


def test_rotate_reduces_full_turns(ctx):
    ops.rotate(ctx, 450)
    assert _size(ctx) == (1080, 1920)
    assert ctx.params.to_option_string() == "rotate=450"


def test_rotate_full_turn_is_noop_on_image(ctx):
    ops.rotate(ctx, 360)
    assert _size(ctx) == (1920, 1080)
    assert ctx.handle.commands == []
    assert ctx.params.to_option_string() == "rotate=360"


def test_negative_rotation_keeps_sign(ctx):
    ops.rotate(ctx, -90)
    assert "-90" in ctx.handle.commands


@pytest.mark.parametrize(
    "flips, expected, commands",
    [
        ((ops.flip_horizontal,), "flip=h", ["-flop"]),
        ((ops.flip_vertical,), "flip=v", ["-flip"]),
        ((ops.flip_vertical, ops.flip_horizontal), "flip=hv", ["-flip", "-flop"]),
    ],
)
def test_flip_tags(ctx, flips, expected, commands):
    for flip in flips:
        flip(ctx)
    assert ctx.params.to_option_string() == expected
    assert ctx.handle.commands == commands


def test_brightness_above_neutral(ctx):
    ops.brightness(ctx, 2.0)
    assert ctx.handle.commands == ["-brightness-contrast", "50x0", "-gamma", "0.5"]


def test_brightness_below_neutral(ctx):
    ops.brightness(ctx, 0.5)
    assert ctx.handle.commands == ["-brightness-contrast", "-50x-50", "-gamma", "1"]


def test_contrast(ctx):
    ops.contrast(ctx, 0.5)
    assert ctx.handle.commands == ["-brightness-contrast", "0x-50"]


def test_filters(ctx):
    ops.blur(ctx, 10)
    ops.saturation(ctx, 2)
    ops.sharpen(ctx, 2)
    assert ctx.handle.commands == [
        "-blur", "10x5",
        "-modulate", "100,200,100",
        "-unsharp", "1x1+3.2+0",
    ]


def test_animate_false_keeps_first_frame():
    ctx = TransformContext(ImageHandle(data=b"", width=100, height=100, frames=5))
    ops.animate(ctx, False)
    assert ctx.handle.input_spec == "-[0]"
    assert not ctx.handle.is_animated
    assert ctx.params.to_option_string() == "anim=0"


def test_animate_true_coalesces_frames():
    ctx = TransformContext(ImageHandle(data=b"", width=100, height=100, frames=5))
    ops.animate(ctx, True)
    assert ctx.handle.commands == ["-coalesce"]
    assert ctx.params.to_option_string() == "anim=1"


def test_quality_is_state_only(ctx):
    ops.quality(ctx, 42)
    assert ctx.state.quality == 42
    assert len(ctx.params) == 0


@pytest.mark.parametrize(
    "color, expected",
    [
        ("ff0000", "#ff0000"),
        ("#FFF", "#FFF"),
        ("Red", "red"),
        ("rgb(255;0;0)", "rgb(255,0,0)"),
        ("rgba(0, 0, 0, 0.5)", "rgba(0,0,0,0.5)"),
        ("@/etc/passwd", None),
        ("red;blue", None),
        ("", None),
    ],
)
def test_normalize_color(color, expected):
    assert normalize_color(color) == expected


@pytest.mark.parametrize(
    "color, token",
    [
        ("#ff0000", "ff0000"),
        ("#FFF", "FFF"),
        ("red", "red"),
        ("rgb(255,0,0)", "rgb(255;0;0)"),
        ("rgba(0,0,0,0.5)", "rgba(0;0;0;0.5)"),
    ],
)
def test_color_token_reads_back_to_same_color(color, token):
    assert color_token(color) == token
    assert "," not in token and "#" not in token
    assert normalize_color(token) == color


def test_background_records_url_safe_token(ctx):
    ops.background(ctx, "rgb(255,0,0)")
    assert ctx.params.to_option_string() == "background=rgb(255;0;0)"
    assert ctx.state.background == "rgb(255,0,0)"
    assert ctx.handle.commands[:2] == ["-background", "rgb(255,0,0)"]


def test_pad_canvas_is_capped(ctx, monkeypatch):
    monkeypatch.setattr(config, "MAX_CANVAS_SIZE", 5000)
    ops.pad(ctx, 100000, 100000)
    assert _size(ctx) == (5000, 5000)
    assert ctx.handle.commands[ctx.handle.commands.index("-extent") + 1] == "5000x5000"
    assert ctx.params.to_option_string() == "fit=pad,width=100000,height=100000"

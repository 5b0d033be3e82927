"""
URL 选项中使用的封闭词表

这些取值是对外稳定的协议的一部分。未知取值一律通过 ``from_token`` 回落到
文档约定的默认值，不会向调用方抛出异常。
"""

from enum import Enum
from typing import Optional


class FitMode(str, Enum):
    SCALE_DOWN = "scale-down"
    CONTAIN = "contain"
    COVER = "cover"
    CROP = "crop"
    PAD = "pad"

    @classmethod
    def from_token(cls, token: Optional[str], default: Optional["FitMode"] = None) -> Optional["FitMode"]:
        """
        将 URL 中的 fit 取值解析为 FitMode。

        Args:
            token: 原始字符串，可能为 None。
            default: 无法识别时返回的值。

        Returns:
            对应的 FitMode，无法识别时返回 ``default``。
        """
        if token is None:
            return default
        try:
            return cls(token.strip().lower())
        except ValueError:
            return default


class ImageFormat(str, Enum):
    AVIF = "avif"
    WEBP = "webp"
    HEIC = "heic"
    JPEG = "jpeg"
    BASELINE_JPEG = "baseline-jpeg"
    TIFF = "tiff"
    PNG = "png"
    GIF = "gif"
    BMP = "bmp"

    @classmethod
    def from_token(cls, token: Optional[str], default: Optional["ImageFormat"] = None) -> Optional["ImageFormat"]:
        if token is None:
            return default
        try:
            return cls(token.strip().lower())
        except ValueError:
            return default

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES[self]

    @property
    def coder(self) -> str:
        """ImageMagick 输出编码器前缀，例如 ``webp:-``。"""
        if self is ImageFormat.BASELINE_JPEG:
            return "jpeg"
        return self.value

    @property
    def is_lossy(self) -> bool:
        # PNG / GIF / BMP 不接受 quality 与 strip 参数
        return self not in (ImageFormat.PNG, ImageFormat.GIF, ImageFormat.BMP)

    @property
    def supports_animation(self) -> bool:
        return self in (ImageFormat.GIF, ImageFormat.WEBP)


_MIME_TYPES = {
    ImageFormat.AVIF: "image/avif",
    ImageFormat.WEBP: "image/webp",
    ImageFormat.HEIC: "image/heic",
    ImageFormat.JPEG: "image/jpeg",
    ImageFormat.BASELINE_JPEG: "image/jpeg",
    ImageFormat.TIFF: "image/tiff",
    ImageFormat.PNG: "image/png",
    ImageFormat.GIF: "image/gif",
    ImageFormat.BMP: "image/bmp",
}


class Position(str, Enum):
    TOP_LEFT = "top-left"
    TOP = "top"
    TOP_RIGHT = "top-right"
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM = "bottom"
    BOTTOM_RIGHT = "bottom-right"

    @classmethod
    def from_token(cls, token: Optional[str], default: Optional["Position"] = None) -> Optional["Position"]:
        if token is None:
            return default
        normalized = token.strip().lower()
        normalized = _POSITION_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return default

    @property
    def horizontal(self) -> float:
        """水平方向的对齐系数：0 为左，0.5 为中，1 为右。"""
        if self in (Position.TOP_LEFT, Position.LEFT, Position.BOTTOM_LEFT):
            return 0.0
        if self in (Position.TOP_RIGHT, Position.RIGHT, Position.BOTTOM_RIGHT):
            return 1.0
        return 0.5

    @property
    def vertical(self) -> float:
        """垂直方向的对齐系数：0 为上，0.5 为中，1 为下。"""
        if self in (Position.TOP_LEFT, Position.TOP, Position.TOP_RIGHT):
            return 0.0
        if self in (Position.BOTTOM_LEFT, Position.BOTTOM, Position.BOTTOM_RIGHT):
            return 1.0
        return 0.5


_POSITION_ALIASES = {
    "top-center": "top",
    "center-top": "top",
    "middle-top": "top",
    "top-middle": "top",
    "left-top": "top-left",
    "right-top": "top-right",
    "left-center": "left",
    "center-left": "left",
    "middle-left": "left",
    "left-middle": "left",
    "middle": "center",
    "center-center": "center",
    "middle-middle": "center",
    "right-center": "right",
    "center-right": "right",
    "middle-right": "right",
    "right-middle": "right",
    "left-bottom": "bottom-left",
    "right-bottom": "bottom-right",
    "bottom-center": "bottom",
    "center-bottom": "bottom",
    "bottom-middle": "bottom",
    "middle-bottom": "bottom",
}

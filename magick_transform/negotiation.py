"""
输出格式与质量协商

格式优先级：URL 中显式的 format > Accept 头（avif > webp > heic）> 配置的默认格式。
质量在检测到慢速网络（Client Hints）时会被降级。
"""

from dataclasses import dataclass
from typing import Mapping, Optional, Set

from magick_transform.enums import ImageFormat
from magick_transform.options import OptionMap, get_int, get_string, to_float, to_int

# Accept 头的协商顺序
_NEGOTIATED_FORMATS = (
    ("image/avif", ImageFormat.AVIF),
    ("image/webp", ImageFormat.WEBP),
    ("image/heic", ImageFormat.HEIC),
)

SLOW_RTT_MS = 150
SLOW_DOWNLINK_MBPS = 5
SLOW_EFFECTIVE_TYPES = ("slow-2g", "2g", "3g")


@dataclass
class NetworkHints:
    """客户端网络提示头（RTT / Save-Data / ECT / Downlink），缺失即为 None。"""

    rtt: Optional[int] = None
    save_data: Optional[str] = None
    ect: Optional[str] = None
    downlink: Optional[float] = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "NetworkHints":
        headers = {key.lower(): value for key, value in headers.items()}
        save_data = headers.get("save-data")
        ect = headers.get("ect")
        return cls(
            rtt=to_int(headers.get("rtt")),
            save_data=save_data.strip().lower() if save_data else None,
            ect=ect.strip().lower() if ect else None,
            downlink=to_float(headers.get("downlink")),
        )

    @property
    def is_slow(self) -> bool:
        """任一条件成立即视为慢速网络；缺失的提示不触发。"""
        return (
            (self.rtt is not None and self.rtt > SLOW_RTT_MS)
            or self.save_data == "on"
            or self.ect in SLOW_EFFECTIVE_TYPES
            or (self.downlink is not None and self.downlink < SLOW_DOWNLINK_MBPS)
        )


def explicit_format(options: OptionMap) -> Optional[ImageFormat]:
    return ImageFormat.from_token(get_string(options, "format"))


def resolve_format(options: OptionMap, accept: Optional[str], default: ImageFormat) -> ImageFormat:
    """
    决定输出格式。

    Args:
        options: 解析后的选项映射。
        accept: 请求的 Accept 头，可为空。
        default: 配置的默认格式。

    Returns:
        最终使用的 ImageFormat。
    """
    provided = explicit_format(options)
    if provided is not None:
        return provided

    if not accept:
        return default

    media_types = _accepted_media_types(accept)
    for media_type, image_format in _NEGOTIATED_FORMATS:
        if media_type in media_types:
            return image_format

    return default


def _accepted_media_types(accept: str) -> Set[str]:
    """
    Accept 头中被接受的媒体类型（小写，去掉参数）。

    q=0 表示明确拒绝，这类条目被排除；其他 q 值不参与排序，
    优先级由固定的协商顺序决定。
    """
    accepted = set()
    for part in accept.split(","):
        media_type, *params = part.split(";")
        refused = False
        for param in params:
            name, _, value = param.partition("=")
            if name.strip().lower() == "q" and to_float(value.strip()) == 0:
                refused = True
        if not refused:
            accepted.add(media_type.strip().lower())
    return accepted


def base_quality(options: OptionMap) -> int:
    """URL 中显式给出的 quality，否则为 100。"""
    quality = get_int(options, "quality")
    return quality if quality is not None else 100


def resolve_quality(
    options: OptionMap,
    hints: Optional[NetworkHints],
    configured_slow_quality: Optional[int],
) -> int:
    """
    决定有效质量。

    当 URL 给出 slow-connection-quality 或配置了慢速回退值时，检查网络提示；
    任一慢速条件成立则使用慢速质量（URL 中的值优先于配置）。
    """
    quality = base_quality(options)

    slow_quality = get_int(options, "slow-connection-quality")
    if slow_quality is None:
        slow_quality = configured_slow_quality

    if slow_quality is not None and hints is not None and hints.is_slow:
        quality = slow_quality

    return quality

"""
规范化参数与 URL 生成

变换管线在修改图像的同时，会把每一步实际生效的参数按执行顺序记录到
``CanonicalParams`` 中，用于重新生成可分享的 URL。
"""

from collections import OrderedDict
from enum import Enum
from typing import Iterator, Optional, Tuple, Union
from urllib.parse import quote

ParamValue = Union[str, int, float, bool, Enum, None]

_FLIP_VALUES = ("h", "v", "hv")


class CanonicalParams:
    """
    按插入顺序保存的参数表。

    首次 ``set`` 追加到末尾，再次 ``set`` 原位覆盖；``remove`` 显式删除，
    之后再 ``set`` 同名键会重新追加到末尾。
    """

    def __init__(self) -> None:
        self._entries: "OrderedDict[str, ParamValue]" = OrderedDict()

    def set(self, key: str, value: ParamValue) -> None:
        self._entries[key] = value

    def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    def get(self, key: str) -> ParamValue:
        return self._entries.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def items(self) -> Iterator[Tuple[str, ParamValue]]:
        return iter(self._entries.items())

    def to_option_string(self) -> str:
        return serialize_params(self.items())

    def __repr__(self) -> str:
        return f"CanonicalParams({self.to_option_string()!r})"


def render_value(value: ParamValue) -> Optional[str]:
    """
    将参数值渲染为 URL 片段；None、False 与空字符串返回 None（即省略）。
    """
    if value is None or value is False or value == "":
        return None
    if value is True:
        return "1"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, float):
        # 与原有 URL 保持一致：2.0 渲染为 "2"
        return str(int(value)) if value.is_integer() else repr(value)
    return str(value)


def serialize_params(items) -> str:
    params = []
    for key, value in items:
        rendered = render_value(value)
        if rendered is not None:
            params.append(f"{key}={rendered}")
    return ",".join(params)


def canonical_url(endpoint: str, path: str, params: CanonicalParams) -> str:
    """
    生成规范化 URL：``/{endpoint}/{path}/{options}``。
    """
    return f"/{endpoint.strip('/')}/{quote(path.lstrip('/'))}/{params.to_option_string()}"


def option_string(**options: ParamValue) -> str:
    """
    将关键字参数转换为选项字符串。

    下划线映射为 URL 中的分隔符：``trim_width`` -> ``trim.width``，
    ``slow_connection_quality`` -> ``slow-connection-quality``。

    Raises:
        ValueError: flip 取值不合法时。
    """
    flip = options.get("flip")
    if flip is not None and flip not in _FLIP_VALUES:
        raise ValueError(f"Invalid flip value: {flip}")
    return serialize_params((_option_key(key), value) for key, value in options.items())


def image_url(path: str, endpoint: str = "images", **options: ParamValue) -> str:
    """生成可直接请求变换端点的 URL：``/{endpoint}/{options}/{path}``。"""
    return f"/{endpoint.strip('/')}/{option_string(**options)}/{quote(path.lstrip('/'))}"


def _option_key(name: str) -> str:
    if name.startswith("trim_"):
        return "trim." + name[len("trim_"):]
    return name.replace("_", "-")

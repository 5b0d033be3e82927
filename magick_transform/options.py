"""
URL 选项字符串解析

选项字符串形如 ``width=300,fit=cover,trim.top=10``。解析对格式错误的片段是宽容的：
缺少 ``=`` 的片段直接丢弃，不会影响其余片段。
"""

import math
import re
from typing import Dict, Mapping, Optional

OptionMap = Dict[str, Optional[str]]

# 数值字符串：允许首尾空白、符号、小数与指数
_NUMERIC_RE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")

_TRUE_TOKENS = ("1", "true", "yes", "on")
_FALSE_TOKENS = ("0", "false", "no", "off")


def parse_options(raw: Optional[str]) -> OptionMap:
    """
    将逗号分隔的选项字符串解析为键值映射。

    每个片段仅按第一个 ``=`` 拆分；重复的键以最后一次出现为准。

    Args:
        raw: URL 中的原始选项字符串。

    Returns:
        选项映射，最坏情况下为空字典。
    """
    options: OptionMap = {}
    if not raw:
        return options
    for segment in raw.split(","):
        key, sep, value = segment.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        options[key] = value
    return options


def get_string(options: Mapping[str, Optional[str]], key: str) -> Optional[str]:
    value = options.get(key)
    return value if isinstance(value, str) else None


def to_float(value: object) -> Optional[float]:
    """将任意值转换为有限浮点数；非数值、nan/inf 返回 None。"""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and _NUMERIC_RE.match(value):
        number = float(value)
    else:
        return None
    return number if math.isfinite(number) else None


def to_int(value: object) -> Optional[int]:
    """小数向零截断（"1.9" -> 1）。"""
    number = to_float(value)
    if number is None:
        return None
    return int(number)


def get_float(options: Mapping[str, Optional[str]], key: str) -> Optional[float]:
    return to_float(options.get(key))


def get_int(options: Mapping[str, Optional[str]], key: str) -> Optional[int]:
    return to_int(options.get(key))


def get_bool(options: Mapping[str, Optional[str]], key: str) -> Optional[bool]:
    value = get_string(options, key)
    if value is None:
        return None
    value = value.strip().lower()
    if value in _TRUE_TOKENS:
        return True
    if value in _FALSE_TOKENS:
        return False
    return None

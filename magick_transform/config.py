"""
服务配置

所有配置均通过环境变量读取，并在模块级别以常量形式暴露。
请求处理过程中只读，路由代码以 ``config.NAME`` 的方式在请求时访问，
因此测试可以直接 monkeypatch 这些属性。
"""

import os
from typing import Optional

from magick_transform.enums import ImageFormat


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_optional_int(name: str, default: Optional[int]) -> Optional[int]:
    """读取可禁用的整数配置：空字符串、null、none 视为关闭。"""
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip().lower()
    if value in ("", "null", "none"):
        return None
    return int(value)


# --- 1. 路由 ---

# 变换端点前缀，最终路由为 /{ENDPOINT_NAME}/{options}/{path}
ENDPOINT_NAME = os.getenv("ENDPOINT_NAME", "images").strip("/")

# 处理失败时重定向到的原图前缀（由 StaticFiles 提供）
ORIGINALS_PREFIX = "/" + os.getenv("ORIGINALS_PREFIX", "/originals").strip("/")

# --- 2. 源图存储 ---

SOURCE_DIR = os.getenv("SOURCE_DIR", "./images")
MAX_FILE_SIZE_MB = int(os.getenv("MAX_FILE_SIZE_MB", "200"))  # 源图最大体积 (MB)

# --- 3. 限流 ---

APP_ENV = os.getenv("APP_ENV", "production")
# 每个客户端对同一张图每分钟允许的变换次数，None 表示关闭限流
MAX_NUMBER_OF_ATTEMPTS = _env_optional_int("MAX_NUMBER_OF_ATTEMPTS", 2)

# --- 4. 输出 ---

# 默认缓存一年，浏览器无需重新校验
CACHE_CONTROL = os.getenv(
    "CACHE_CONTROL", "public, max-age=31536000, s-maxage=31536000, immutable"
)
DEFAULT_FORMAT_FALLBACK = ImageFormat.from_token(
    os.getenv("DEFAULT_FORMAT_FALLBACK", "webp"), default=ImageFormat.WEBP
)
# 图像句柄的初始质量。质量阶段总会按 quality 选项（缺省 100）覆盖它，
# 因此不影响最终编码，仅作为句柄脱离管线单独使用时的默认值
DEFAULT_QUALITY = int(os.getenv("DEFAULT_QUALITY", "80"))
# pad 不受源图尺寸限制，单边画布尺寸上限 (像素)
MAX_CANVAS_SIZE = int(os.getenv("MAX_CANVAS_SIZE", "10000"))
PRESERVE_ANIMATION_FRAMES = _env_bool("PRESERVE_ANIMATION_FRAMES", True)
STRIP_METADATA = _env_bool("STRIP_METADATA", False)
# 检测到慢速网络时使用的质量，None 表示关闭该功能
SLOW_CONNECTION_QUALITY = _env_optional_int("SLOW_CONNECTION_QUALITY", 50)

# --- 5. ImageMagick ---

MAGICK_BINARY = os.getenv("MAGICK_BINARY", "magick")
TIMEOUT_SECONDS = int(os.getenv("TIMEOUT_SECONDS", "60"))  # Magick 进程执行的超时时间 (秒)

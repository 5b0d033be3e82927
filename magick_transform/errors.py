"""异常类型。端点在最外层统一捕获，并重定向到原图。"""


class TransformError(Exception):
    """所有变换相关错误的基类。"""


class SourceNotFoundError(TransformError):
    """源图不存在、是目录或路径越界。"""


class SourceTooLargeError(TransformError):
    """源图超过 MAX_FILE_SIZE_MB。"""


class ProcessingError(TransformError):
    """ImageMagick 执行失败、超时或未产生输出。"""


class RateLimitExceeded(TransformError):
    """客户端在滚动窗口内的变换次数超过上限。"""

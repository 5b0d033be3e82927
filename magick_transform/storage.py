"""
源图读取

从本地目录 ``SOURCE_DIR`` 读取源图字节。核心流程只消费字节，不关心存储后端。

环境变量:
    SOURCE_DIR: 源图根目录（默认 './images'）。
    MAX_FILE_SIZE_MB: 允许处理的最大源图体积。
"""

import logging
import os
from typing import Optional

from magick_transform import config
from magick_transform.errors import SourceNotFoundError, SourceTooLargeError

logger = logging.getLogger(__name__)


def resolve_source_path(path: str, root: Optional[str] = None) -> str:
    """
    将存储相对路径解析为绝对路径，并确保其位于根目录之内。

    Raises:
        SourceNotFoundError: 路径越界、不存在或不是文件时。
    """
    root = os.path.realpath(root or config.SOURCE_DIR)
    full_path = os.path.realpath(os.path.join(root, path.lstrip("/")))
    if os.path.commonpath([root, full_path]) != root:
        logger.warning(f"拒绝越界路径: {path}")
        raise SourceNotFoundError(path)
    if not os.path.isfile(full_path):
        raise SourceNotFoundError(path)
    return full_path


def read_source(path: str, root: Optional[str] = None) -> bytes:
    """
    读取源图字节。

    Args:
        path: 存储相对路径，可以包含子目录。
        root: 根目录，默认 config.SOURCE_DIR。

    Returns:
        源图原始字节。

    Raises:
        SourceNotFoundError: 源图不存在。
        SourceTooLargeError: 源图超过 MAX_FILE_SIZE_MB。
    """
    full_path = resolve_source_path(path, root)

    file_size_mb = os.path.getsize(full_path) / (1024 * 1024)
    if file_size_mb > config.MAX_FILE_SIZE_MB:
        logger.warning(f"源图过大: {file_size_mb:.2f}MB (最大: {config.MAX_FILE_SIZE_MB}MB)")
        raise SourceTooLargeError(path)

    with open(full_path, "rb") as f:
        return f.read()

#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
ImageMagick 按需图像变换 API

本项目基于 FastAPI 和 ImageMagick，通过 URL 中的选项字符串对存储中的源图进行
缩放、裁剪、裁边、旋转、调色、滤镜与格式转换，并附带长期缓存头返回。
任何失败（源图不存在、限流、处理出错）都会重定向到未经处理的原图。

主要端点:
- GET /{endpoint}/{options}/{path}
- GET /health
"""

import logging
import os
from urllib.parse import quote

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles

from magick_transform import __version__, config
from magick_transform.engine import MagickEngine
from magick_transform.errors import RateLimitExceeded, SourceNotFoundError, SourceTooLargeError
from magick_transform.negotiation import NetworkHints
from magick_transform.options import parse_options
from magick_transform.pipeline import transform_image
from magick_transform.ratelimit import RateLimiter
from magick_transform.storage import read_source

# --- 1. 应用配置 ---

# 配置日志记录器
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# --- 2. FastAPI 应用初始化 ---

app = FastAPI(
    title="Magick 按需图像变换",
    description="通过 URL 选项字符串对图像进行缩放、裁剪、调色与格式转换，支持动图与 Accept 协商。",
    version=__version__
)

# 启动时确保源图目录存在
os.makedirs(config.SOURCE_DIR, exist_ok=True)

engine = MagickEngine()
rate_limiter = RateLimiter()

# --- 3. 辅助函数 ---

def original_url(path: str) -> str:
    """未经处理的原图地址，所有失败都重定向到这里。"""
    return f"{config.ORIGINALS_PREFIX}/{quote(path.lstrip('/'))}"


def rate_limit(request: Request, path: str) -> None:
    """
    按客户端 IP 与图片路径限流。

    Raises:
        RateLimitExceeded: 一分钟内的尝试次数超过 MAX_NUMBER_OF_ATTEMPTS。
    """
    client_ip = request.client.host if request.client else "unknown"
    allowed = rate_limiter.attempt(
        key=f"img:{client_ip}:{path}",
        max_attempts=config.MAX_NUMBER_OF_ATTEMPTS,
    )
    if not allowed:
        raise RateLimitExceeded(path)


def rate_limit_enabled() -> bool:
    return config.APP_ENV == "production" and config.MAX_NUMBER_OF_ATTEMPTS is not None

# --- 4. API 端点 ---

@app.get("/", summary="服务信息")
async def root():
    return {
        "service": app.title,
        "version": __version__,
        "endpoint": f"/{config.ENDPOINT_NAME}/{{options}}/{{path}}",
        "originals": f"{config.ORIGINALS_PREFIX}/{{path}}",
    }


@app.get("/health", summary="服务健康检查")
async def health_check():
    """
    提供 API 与 ImageMagick 依赖的健康状态。
    """
    try:
        try:
            magick_version = await engine.version()
        except Exception as e:
            logger.warning(f"无法获取 ImageMagick 版本: {e}")
            magick_version = "Not available"

        return {
            "status": "healthy",
            "imagemagick": magick_version,
            "source_dir": {
                "path": config.SOURCE_DIR,
                "exists": os.path.isdir(config.SOURCE_DIR),
            },
            "resource_limits": {
                "max_file_size_mb": config.MAX_FILE_SIZE_MB,
                "timeout_seconds": config.TIMEOUT_SECONDS,
                "max_canvas_size": config.MAX_CANVAS_SIZE,
                "max_number_of_attempts": config.MAX_NUMBER_OF_ATTEMPTS if rate_limit_enabled() else None,
            },
        }
    except Exception as e:
        logger.error(f"健康检查失败: {str(e)}")
        return JSONResponse(status_code=500, content={"status": "unhealthy", "error": str(e)})


@app.get(
    f"/{config.ENDPOINT_NAME}/{{options}}/{{path:path}}",
    summary="按需变换图像",
    response_class=Response,
    responses={
        200: {"description": "变换成功，返回编码后的图像"},
        302: {"description": "源图不存在、被限流或处理失败，重定向到原图"},
    }
)
async def transform(request: Request, options: str, path: str):
    """
    解析选项字符串并返回变换后的图像。

    - **options**: 逗号分隔的 ``key=value`` 列表，例如 ``width=300,fit=cover``
    - **path**: 源图在存储中的相对路径（可包含子目录）
    """
    logger.info(f"收到变换请求: {options} (文件: {path})")

    try:
        if rate_limit_enabled():
            rate_limit(request, path)

        data = read_source(path)
        result = await transform_image(
            engine,
            data,
            parse_options(options),
            accept=request.headers.get("accept"),
            hints=NetworkHints.from_headers(request.headers),
        )

        return Response(
            content=result.content,
            media_type=result.mime_type,
            headers={
                "Cache-Control": config.CACHE_CONTROL,
                "Vary": "Accept",
            },
        )

    except RateLimitExceeded:
        logger.info(f"请求被限流，重定向到原图: {path}")
    except (SourceNotFoundError, SourceTooLargeError) as e:
        logger.warning(f"源图不可用 ({type(e).__name__})，重定向到原图: {path}")
    except Exception as e:
        # 捕获所有其他意外错误，降级为原图
        logger.error(f"变换失败，重定向到原图: {path}: {e}", exc_info=True)

    return RedirectResponse(original_url(path), status_code=302)


# 未经处理的原图
app.mount(
    config.ORIGINALS_PREFIX,
    StaticFiles(directory=config.SOURCE_DIR, check_dir=False),
    name="originals",
)

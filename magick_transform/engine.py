"""
ImageMagick 引擎适配层

``ImageHandle`` 不直接持有像素，而是记录源图字节、当前宽高以及按顺序累积的
``magick`` 命令行参数。每个几何操作同步更新宽高，后续阶段无需再次调用
ImageMagick 即可完成尺寸计算。最终由 ``MagickEngine.render`` 一次性执行。
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from magick_transform import config
from magick_transform.enums import ImageFormat, Position
from magick_transform.errors import ProcessingError
from magick_transform.geometry import rotated_size

logger = logging.getLogger(__name__)

# ImageMagick 的 -gravity 取值
GRAVITY = {
    Position.TOP_LEFT: "NorthWest",
    Position.TOP: "North",
    Position.TOP_RIGHT: "NorthEast",
    Position.LEFT: "West",
    Position.CENTER: "Center",
    Position.RIGHT: "East",
    Position.BOTTOM_LEFT: "SouthWest",
    Position.BOTTOM: "South",
    Position.BOTTOM_RIGHT: "SouthEast",
}

_TRIM_BOX_RE = re.compile(r"^(\d+)x(\d+)([+-]\d+)([+-]\d+)")


@dataclass
class ImageHandle:
    """单个请求独占的图像句柄。"""

    data: bytes
    width: int
    height: int
    frames: int = 1
    first_frame_only: bool = False
    commands: List[str] = field(default_factory=list)

    @property
    def is_animated(self) -> bool:
        return self.frames > 1 and not self.first_frame_only

    @property
    def input_spec(self) -> str:
        # 从标准输入读取；[0] 只解码第一帧
        return "-[0]" if self.first_frame_only else "-"

    # --- 帧与透明度 ---

    def remove_animation(self) -> None:
        self.first_frame_only = True

    def coalesce(self) -> None:
        """合并动画帧，保证后续几何操作作用于完整画面。"""
        if self.is_animated and "-coalesce" not in self.commands:
            self.commands.append("-coalesce")

    def flatten_onto(self, color: str) -> None:
        self.commands.extend(["-background", color, "-alpha", "remove", "-alpha", "off"])

    # --- 几何 ---

    def crop(self, width: int, height: int, x: int = 0, y: int = 0) -> None:
        """裁剪到 width x height，偏移量以左上角为原点，结果限定在画布内。"""
        x = min(max(0, x), self.width - 1)
        y = min(max(0, y), self.height - 1)
        width = max(1, min(width, self.width - x))
        height = max(1, min(height, self.height - y))
        self.coalesce()
        self.commands.extend(["-crop", f"{width}x{height}+{x}+{y}", "+repage"])
        self.width, self.height = width, height

    def resize(self, width: int, height: int) -> None:
        if (width, height) == (self.width, self.height):
            return
        self.coalesce()
        self.commands.extend(["-resize", f"{width}x{height}!"])
        self.width, self.height = width, height

    def extent(self, width: int, height: int, background: str, position: Position) -> None:
        """将画布扩展（或收缩）到 width x height，空白处以背景色填充。"""
        if (width, height) == (self.width, self.height):
            return
        self.coalesce()
        self.commands.extend([
            "-background", background,
            "-gravity", GRAVITY[position],
            "-extent", f"{width}x{height}",
            "+gravity",
        ])
        self.width, self.height = width, height

    def rotate(self, degrees: float, background: str) -> None:
        self.coalesce()
        self.commands.extend(["-background", background, "-rotate", _format_number(degrees), "+repage"])
        self.width, self.height = rotated_size(self.width, self.height, degrees)

    def flip(self) -> None:
        """上下翻转。"""
        self.commands.append("-flip")

    def flop(self) -> None:
        """左右翻转。"""
        self.commands.append("-flop")

    # --- 颜色与滤镜 ---

    def apply(self, *args: str) -> None:
        """追加不改变尺寸的参数（颜色、滤镜等）。"""
        self.commands.extend(args)


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.4f}".rstrip("0").rstrip(".")


class MagickEngine:
    """
    通过 ``asyncio.subprocess`` 调用 ``magick`` 命令行。

    所有调用都通过标准输入传入源图字节，不落盘。
    """

    def __init__(self, binary: Optional[str] = None, timeout: Optional[int] = None):
        self.binary = binary or config.MAGICK_BINARY
        self.timeout = timeout or config.TIMEOUT_SECONDS

    async def _run(self, cmd: List[str], data: Optional[bytes] = None) -> bytes:
        """
        执行 magick 命令并返回标准输出。

        Raises:
            ProcessingError: 进程超时、退出码非 0 或无法启动时。
        """
        logger.info(f"正在执行命令: {' '.join(cmd)}")
        try:
            process = await asyncio.subprocess.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProcessingError(f"Unable to start {self.binary}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(input=data), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.error(f"Magick 处理超时 (>{self.timeout}s)")
            raise ProcessingError(f"Magick timed out after {self.timeout} seconds.")

        if process.returncode != 0:
            error_message = f"Magick failed: {stderr.decode(errors='replace')[:1000]}"
            logger.error(error_message)
            raise ProcessingError(error_message)
        return stdout

    async def version(self) -> str:
        stdout = await self._run([self.binary, "--version"])
        return stdout.decode().split("\n")[0]

    async def open(self, data: bytes) -> ImageHandle:
        """读取尺寸与帧数，构造 ImageHandle。"""
        stdout = await self._run(
            [self.binary, "identify", "-ping", "-format", "%w %h %W %H\n", "-"], data
        )
        lines = [line.split() for line in stdout.decode().splitlines() if line.strip()]
        if not lines or len(lines[0]) != 4:
            raise ProcessingError("Unable to read image dimensions.")

        width, height, page_width, page_height = (int(v) for v in lines[0])
        frames = len(lines)
        if frames > 1 and page_width > 0 and page_height > 0:
            # 动画以画布尺寸为准（coalesce 之后每帧都是画布大小）
            width, height = page_width, page_height
        logger.info(f"源图尺寸: {width}x{height}, 帧数: {frames}")
        return ImageHandle(data=data, width=width, height=height, frames=frames)

    async def trim_box(self, handle: ImageHandle, fuzz: int) -> Tuple[int, int, int, int]:
        """
        测量去除纯色边框后的内容区域，不修改 handle。

        Returns:
            (width, height, x, y)
        """
        cmd = [
            self.binary, handle.input_spec, *handle.commands,
            "-fuzz", f"{max(0, fuzz)}%", "-format", "%@\n", "info:",
        ]
        stdout = await self._run(cmd, handle.data)
        match = _TRIM_BOX_RE.match(stdout.decode().strip())
        if not match:
            raise ProcessingError(f"Unexpected trim box: {stdout[:100]!r}")
        width, height, x, y = (int(v) for v in match.groups())
        return width, height, x, y

    def build_render_command(
        self,
        handle: ImageHandle,
        target_format: ImageFormat,
        quality: int,
        strip: bool = False,
    ) -> List[str]:
        """根据目标格式构建最终的编码命令。"""
        cmd = [self.binary, handle.input_spec, *handle.commands]

        if handle.is_animated and not target_format.supports_animation:
            # 目标格式不支持动画时只保留第一帧
            cmd.extend(["-delete", "1--1"])

        if target_format.is_lossy:
            cmd.extend(["-quality", str(quality)])
            if strip:
                cmd.append("-strip")

        if target_format is ImageFormat.JPEG:
            cmd.extend(["-interlace", "Plane"])
        elif target_format is ImageFormat.BASELINE_JPEG:
            cmd.extend(["-interlace", "None"])
        elif target_format is ImageFormat.WEBP:
            cmd.extend(["-define", "webp:method=4"])
        elif target_format in (ImageFormat.AVIF, ImageFormat.HEIC):
            cmd.extend(["-define", "heic:speed=4"])
        elif target_format is ImageFormat.GIF and handle.is_animated:
            cmd.extend(["-layers", "optimize"])

        cmd.append(f"{target_format.coder}:-")
        return cmd

    async def render(
        self,
        handle: ImageHandle,
        target_format: ImageFormat,
        quality: int,
        strip: bool = False,
    ) -> bytes:
        cmd = self.build_render_command(handle, target_format, quality, strip)
        output = await self._run(cmd, handle.data)
        if not output:
            raise ProcessingError("Magick 命令成功执行，但未产生任何输出。")
        return output

"""
共享测试夹具

``FakeEngine`` 替代真实的 ``magick`` 二进制：尺寸与裁边区域由夹具给定，
编码阶段只记录最终命令并返回固定字节，因此测试无需安装 ImageMagick。
"""

import os
import tempfile

# 在导入 main 之前设置，避免在仓库目录下创建源图目录
os.environ.setdefault("SOURCE_DIR", tempfile.mkdtemp(prefix="magick-transform-"))

import pytest

from magick_transform import config
from magick_transform.engine import ImageHandle, MagickEngine
from magick_transform.operations import TransformContext


class FakeEngine(MagickEngine):
    def __init__(self, width=1920, height=1080, frames=1, trim_box=(101, 101, 0, 0), output=b"fake-image"):
        super().__init__(binary="magick", timeout=5)
        self.width = width
        self.height = height
        self.frames = frames
        self._trim_box = trim_box
        self.output = output
        self.fuzz_calls = []
        self.rendered = []

    async def version(self):
        return "Version: ImageMagick 7.1.1-fake"

    async def open(self, data):
        return ImageHandle(data=data, width=self.width, height=self.height, frames=self.frames)

    async def trim_box(self, handle, fuzz):
        self.fuzz_calls.append(fuzz)
        return self._trim_box

    async def render(self, handle, target_format, quality, strip=False):
        self.rendered.append(self.build_render_command(handle, target_format, quality, strip))
        return self.output


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def engine_factory():
    return FakeEngine


@pytest.fixture
def ctx():
    """1920x1080 的静态图上下文。"""
    return TransformContext(ImageHandle(data=b"source", width=1920, height=1080))


@pytest.fixture
def source_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "SOURCE_DIR", str(tmp_path))
    (tmp_path / "test.png").write_bytes(b"\x89PNG fake source")
    (tmp_path / "nested").mkdir()
    (tmp_path / "nested" / "photo.jpg").write_bytes(b"\xff\xd8 fake jpeg")
    return tmp_path


@pytest.fixture
def client(source_dir, monkeypatch, fake_engine):
    """
    指向临时源图目录、使用 FakeEngine 且默认关闭限流的 TestClient。
    """
    from fastapi.testclient import TestClient

    import main

    monkeypatch.setattr(config, "MAX_NUMBER_OF_ATTEMPTS", None)
    monkeypatch.setattr(main, "engine", fake_engine)
    main.rate_limiter.clear()
    return TestClient(main.app)

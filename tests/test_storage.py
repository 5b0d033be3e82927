import pytest

from magick_transform import config
from magick_transform.errors import SourceNotFoundError, SourceTooLargeError
from magick_transform.storage import read_source, resolve_source_path


def test_read_source(source_dir):
    assert read_source("test.png") == b"\x89PNG fake source"
    assert read_source("/nested/photo.jpg") == b"\xff\xd8 fake jpeg"


def test_explicit_root(tmp_path):
    (tmp_path / "a.gif").write_bytes(b"GIF89a")
    assert read_source("a.gif", root=str(tmp_path)) == b"GIF89a"


@pytest.mark.parametrize("path", ["missing.png", "nested", "../outside.png", "nested/../../outside.png"])
def test_unavailable_sources(source_dir, path):
    (source_dir.parent / "outside.png").write_bytes(b"secret")
    with pytest.raises(SourceNotFoundError):
        resolve_source_path(path)


def test_size_limit(source_dir, monkeypatch):
    monkeypatch.setattr(config, "MAX_FILE_SIZE_MB", 0)
    with pytest.raises(SourceTooLargeError):
        read_source("test.png")

"""Pytest fixtures creating PNG and SVG badge images to bake."""
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

import png
import pytest
from PIL import Image
from PIL.PngImagePlugin import PngInfo

VERIFY_URL = "https://example.org/assertions/123.json"
OTHER_VERIFY_URL = "https://example.org/assertions/456.json"

PLAIN_SVG = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10">'
    '<rect x="1" y="1" width="8" height="8" fill="#ff0000"/>'
    '</svg>'
)


def read_chunks(path):
    """Returns all chunks of a PNG file as (type, data) tuples."""
    with open(path, "rb") as f:
        return [(bytes(t), bytes(d)) for t, d in png.Reader(file=f).chunks()]


def chunk_types(path):
    return [t for t, _ in read_chunks(path)]


def badge_chunks(path):
    return [d for t, d in read_chunks(path) if t == b"iTXt" and d.startswith(b"openbadges\x00")]


def write_chunks(path, chunks):
    with open(path, "wb") as f:
        png.write_chunks(f, chunks)


@pytest.fixture
def make_png(tmp_path):
    """
    Factory for small RGB PNG images.

    ``text`` entries become tEXt chunks, ``ztext`` entries zTXt chunks and
    ``itext`` entries iTXt chunks, ``zip_itext`` entries compressed iTXt chunks.
    """
    def _make_png(name="badge.png", text=None, ztext=None, itext=None, zip_itext=None, size=(4, 3)):
        info = PngInfo()
        for key, value in (text or {}).items():
            info.add_text(key, value)
        for key, value in (ztext or {}).items():
            info.add_text(key, value, zip=True)
        for key, value in (itext or {}).items():
            info.add_itxt(key, value)
        for key, value in (zip_itext or {}).items():
            info.add_itxt(key, value, zip=True)
        path = tmp_path / name
        image = Image.new("RGB", size, (200, 30, 60))
        image.putpixel((0, 0), (0, 0, 255))
        image.save(path, "PNG", pnginfo=info)
        return path
    return _make_png


@pytest.fixture
def make_apng(tmp_path):
    def _make_apng(name="animated.png"):
        path = tmp_path / name
        frames = [Image.new("RGB", (4, 4), color) for color in ((255, 0, 0), (0, 255, 0), (0, 0, 255))]
        frames[0].save(path, "PNG", save_all=True, append_images=frames[1:], duration=100, loop=0)
        return path
    return _make_apng


@pytest.fixture
def make_svg(tmp_path):
    def _make_svg(content=PLAIN_SVG, name="badge.svg"):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path
    return _make_svg

"""Shared pytest fixtures for Poster Tiler tests."""
import os

os.environ['QT_QPA_PLATFORM'] = 'offscreen'  # must be set before QApplication import

import io
import pytest
from PIL import Image, ImageDraw

from models import SourceImage


@pytest.fixture(scope='session')
def qapp():
    """Create a single QApplication for all tests."""
    from controller import PosterApp
    app = PosterApp([])
    yield app


@pytest.fixture
def make_png():
    """Factory fixture: make_png(width, height, color) -> PNG bytes."""
    def _make(width, height, color='red'):
        img = Image.new('RGB', (width, height), color)
        buf = io.BytesIO()
        img.save(buf, format='PNG')
        return buf.getvalue()
    return _make


@pytest.fixture
def make_source(make_png):
    """Factory fixture: make_source(width, height, color) -> SourceImage."""
    def _make(width, height, color='red'):
        return SourceImage(png_data=make_png(width, height, color),
                           pixel_width=width, pixel_height=height)
    return _make


@pytest.fixture
def landscape_image():
    """A 600x400 quartered image: red, green / blue, yellow."""
    img = Image.new('RGB', (600, 400), 'white')
    draw = ImageDraw.Draw(img)
    draw.rectangle([0, 0, 299, 199], fill='red')
    draw.rectangle([300, 0, 599, 199], fill='green')
    draw.rectangle([0, 200, 299, 399], fill='blue')
    draw.rectangle([300, 200, 599, 399], fill='yellow')
    return img


@pytest.fixture
def image_file(tmp_path, landscape_image):
    """The landscape image written to disk as a PNG; returns its path."""
    path = tmp_path / 'photo.png'
    landscape_image.save(path)
    return str(path)

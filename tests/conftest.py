"""Shared fixtures: small in-memory reference images."""

import io

import pytest
from PIL import Image

from lyriclens.agents.images import to_data_uri


def make_image_bytes(image_format="PNG", color="red", size=(4, 4)):
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=image_format)
    return buffer.getvalue()


@pytest.fixture
def png_data_uri():
    return to_data_uri(make_image_bytes("PNG"), "image/png")


@pytest.fixture
def jpeg_data_uri():
    return to_data_uri(make_image_bytes("JPEG", "blue"), "image/jpeg")


@pytest.fixture
def broken_data_uri():
    return to_data_uri(b"definitely not an image", "image/png")

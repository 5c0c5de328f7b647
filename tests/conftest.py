import struct
import zlib

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from webtoolkit.core.errors import ToolkitError
from webtoolkit.core.middleware import toolkit_error_handler


def _png_chunk(kind: bytes, payload: bytes) -> bytes:
    return struct.pack(">I", len(payload)) + kind + payload + struct.pack(">I", zlib.crc32(kind + payload))


def _tiny_png() -> bytes:
    """A valid 1x1 grey PNG, larger than nothing but smaller than a sniff window."""
    header = struct.pack(">IIBBBBB", 1, 1, 8, 0, 0, 0, 0)
    pixels = zlib.compress(b"\x00\x7f")
    return (
        b"\x89PNG\r\n\x1a\n"
        + _png_chunk(b"IHDR", header)
        + _png_chunk(b"IDAT", pixels)
        + _png_chunk(b"IEND", b"")
    )


@pytest.fixture
def png_bytes() -> bytes:
    # pad past the 512-byte sniff window so seek-back is exercised
    return _tiny_png() + b"\x00" * 1024


@pytest.fixture
def jpeg_bytes() -> bytes:
    return b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x01" * 600 + b"\xff\xd9"


@pytest.fixture
def make_client():
    """Build a TestClient around a throwaway app; `register` adds the routes."""

    def _make(register) -> TestClient:
        app = FastAPI()
        app.add_exception_handler(ToolkitError, toolkit_error_handler)
        register(app)
        return TestClient(app)

    return _make

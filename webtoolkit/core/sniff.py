"""Content sniffing for uploaded files.

Implements the signature table of the WHATWG MIME Sniffing standard
(https://mimesniff.spec.whatwg.org/) so the type of an upload is decided by
its leading bytes rather than by the client-supplied Content-Type header.
"""

from typing import Callable, List, Optional


SNIFF_LEN = 512

OCTET_STREAM = "application/octet-stream"
TEXT_PLAIN = "text/plain; charset=utf-8"

_WHITESPACE = b"\t\n\x0c\r "
_TAG_TERMINATORS = b" >"


def _skip_whitespace(data: bytes) -> bytes:
    return data.lstrip(_WHITESPACE)


def _exact(prefix: bytes, content_type: str) -> Callable[[bytes], Optional[str]]:
    def match(data: bytes) -> Optional[str]:
        return content_type if data.startswith(prefix) else None
    return match


def _masked(mask: bytes, pattern: bytes, content_type: str, skip_ws: bool = False) -> Callable[[bytes], Optional[str]]:
    def match(data: bytes) -> Optional[str]:
        if skip_ws:
            data = _skip_whitespace(data)
        if len(data) < len(pattern):
            return None
        for i, expected in enumerate(pattern):
            if data[i] & mask[i] != expected:
                return None
        return content_type
    return match


def _html(tag: bytes) -> Callable[[bytes], Optional[str]]:
    """Case-insensitive tag match followed by a space or '>'."""

    def match(data: bytes) -> Optional[str]:
        data = _skip_whitespace(data)
        if len(data) < len(tag) + 1:
            return None
        for i, expected in enumerate(tag):
            actual = data[i]
            if ord("A") <= expected <= ord("Z"):
                actual &= 0xDF
            if actual != expected:
                return None
        if data[len(tag)] not in _TAG_TERMINATORS:
            return None
        return "text/html; charset=utf-8"
    return match


def _mp4(data: bytes) -> Optional[str]:
    if len(data) < 12:
        return None
    box_size = int.from_bytes(data[:4], "big")
    if len(data) < box_size or box_size % 4 != 0:
        return None
    if data[4:8] != b"ftyp":
        return None
    for start in range(8, box_size, 4):
        if start == 12:
            # minor version number, not a brand
            continue
        if data[start:start + 3] == b"mp4":
            return "video/mp4"
    return None


def _is_binary_byte(b: int) -> bool:
    return b <= 0x08 or b == 0x0B or 0x0E <= b <= 0x1A or 0x1C <= b <= 0x1F


def _text(data: bytes) -> Optional[str]:
    if any(_is_binary_byte(b) for b in _skip_whitespace(data)):
        return None
    return TEXT_PLAIN


_SIGNATURES: List[Callable[[bytes], Optional[str]]] = [
    *(_html(tag) for tag in (
        b"<!DOCTYPE HTML", b"<HTML", b"<HEAD", b"<SCRIPT", b"<IFRAME", b"<H1",
        b"<DIV", b"<FONT", b"<TABLE", b"<A", b"<STYLE", b"<TITLE", b"<B",
        b"<BODY", b"<BR", b"<P", b"<!--",
    )),
    _masked(b"\xFF\xFF\xFF\xFF\xFF", b"<?xml", "text/xml; charset=utf-8", skip_ws=True),
    _exact(b"%PDF-", "application/pdf"),
    _exact(b"%!PS-Adobe-", "application/postscript"),

    # byte order marks
    _exact(b"\xFE\xFF", "text/plain; charset=utf-16be"),
    _exact(b"\xFF\xFE", "text/plain; charset=utf-16le"),
    _exact(b"\xEF\xBB\xBF", TEXT_PLAIN),

    # images
    _exact(b"\x00\x00\x01\x00", "image/x-icon"),
    _exact(b"\x00\x00\x02\x00", "image/x-icon"),
    _exact(b"BM", "image/bmp"),
    _exact(b"GIF87a", "image/gif"),
    _exact(b"GIF89a", "image/gif"),
    _masked(
        b"\xFF\xFF\xFF\xFF\x00\x00\x00\x00\xFF\xFF\xFF\xFF\xFF\xFF",
        b"RIFF\x00\x00\x00\x00WEBPVP",
        "image/webp",
    ),
    _exact(b"\x89PNG\x0D\x0A\x1A\x0A", "image/png"),
    _exact(b"\xFF\xD8\xFF", "image/jpeg"),

    # audio and video
    _masked(
        b"\xFF\xFF\xFF\xFF\x00\x00\x00\x00\xFF\xFF\xFF\xFF",
        b"FORM\x00\x00\x00\x00AIFF",
        "audio/aiff",
    ),
    _masked(b"\xFF\xFF\xFF", b"ID3", "audio/mpeg"),
    _masked(b"\xFF\xFF\xFF\xFF\xFF", b"OggS\x00", "application/ogg"),
    _masked(
        b"\xFF\xFF\xFF\xFF\xFF\xFF\xFF\xFF",
        b"MThd\x00\x00\x00\x06",
        "audio/midi",
    ),
    _masked(
        b"\xFF\xFF\xFF\xFF\x00\x00\x00\x00\xFF\xFF\xFF\xFF",
        b"RIFF\x00\x00\x00\x00AVI ",
        "video/avi",
    ),
    _masked(
        b"\xFF\xFF\xFF\xFF\x00\x00\x00\x00\xFF\xFF\xFF\xFF",
        b"RIFF\x00\x00\x00\x00WAVE",
        "audio/wave",
    ),
    _mp4,
    _exact(b"\x1A\x45\xDF\xA3", "video/webm"),

    # fonts
    _masked(
        b"\x00" * 34 + b"\xFF\xFF",
        b"\x00" * 34 + b"LP",
        "application/vnd.ms-fontobject",
    ),
    _exact(b"\x00\x01\x00\x00", "font/ttf"),
    _exact(b"OTTO", "font/otf"),
    _exact(b"ttcf", "font/collection"),
    _exact(b"wOFF", "font/woff"),
    _exact(b"wOF2", "font/woff2"),

    # archives
    _exact(b"\x1F\x8B\x08", "application/x-gzip"),
    _exact(b"PK\x03\x04", "application/zip"),
    _exact(b"Rar!\x1A\x07\x00", "application/x-rar-compressed"),
    _exact(b"Rar!\x1A\x07\x01\x00", "application/x-rar-compressed"),
    _exact(b"\x00asm", "application/wasm"),

    _text,
]


def detect_content_type(data: bytes) -> str:
    """Return the MIME type sniffed from at most the first 512 bytes of data.

    Always returns a valid type; unknown binary content is
    "application/octet-stream".
    """
    head = bytes(data[:SNIFF_LEN])
    for signature in _SIGNATURES:
        content_type = signature(head)
        if content_type:
            return content_type
    return OCTET_STREAM

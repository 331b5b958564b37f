"""
codec.py — Bytes ↔ Pillow conversions.

Collaborators exchange raw image bytes (sometimes as base64 data URIs);
pixel transforms work on RGBA Pillow images. Everything crossing that
boundary goes through here.
"""

from __future__ import annotations

import base64
import binascii
import io
import re
from typing import Optional, Tuple, Union

from PIL import Image, UnidentifiedImageError

from .errors import ImageDecodeError

_DATA_URI = re.compile(r"^data:(?P<mime>[^;,]+)?(?:;[^,]*)?;base64,(?P<data>.*)$", re.S)

# Magic bytes → mime type
_SIGNATURES: Tuple[Tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff",      "image/jpeg"),
    (b"GIF87a",            "image/gif"),
    (b"GIF89a",            "image/gif"),
)


def sniff_mime(data: bytes) -> str:
    """Best-effort mime type from magic bytes (defaults to image/png)."""
    for sig, mime in _SIGNATURES:
        if data.startswith(sig):
            return mime
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    head = data[:256].lstrip().lower()
    if head.startswith(b"<svg") or (head.startswith(b"<?xml") and b"<svg" in data[:1024].lower()):
        return "image/svg+xml"
    return "image/png"


def is_vector(data: bytes) -> bool:
    return sniff_mime(data) == "image/svg+xml"


def data_uri_to_bytes(uri: str) -> bytes:
    """Decode a base64 data URI (or a bare base64 string) into bytes."""
    match = _DATA_URI.match(uri.strip())
    payload = match.group("data") if match else uri.strip()
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ImageDecodeError(f"Invalid base64 image payload: {exc}") from exc


def to_data_uri(data: bytes, mime: Optional[str] = None) -> str:
    mime = mime or sniff_mime(data)
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def decode_image(data: Union[bytes, bytearray, str]) -> Image.Image:
    """Decode bytes or a data URI into a fully loaded RGBA image."""
    if isinstance(data, str):
        data = data_uri_to_bytes(data)
    if not data:
        raise ImageDecodeError("Empty image payload")
    if is_vector(bytes(data)):
        raise ImageDecodeError("Vector (SVG) payloads cannot be rasterised here")
    try:
        with Image.open(io.BytesIO(data)) as im:
            im.load()
            return im.convert("RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as exc:
        raise ImageDecodeError(f"Unable to decode image: {exc}") from exc


def encode_png(image: Image.Image, dpi: Optional[int] = None) -> bytes:
    """Encode to PNG, tagging the pHYs chunk when dpi is given."""
    buf = io.BytesIO()
    params = {"format": "PNG", "compress_level": 6}
    if dpi:
        params["dpi"] = (dpi, dpi)
    image.save(buf, **params)
    return buf.getvalue()


def read_dpi(data: bytes) -> Optional[Tuple[int, int]]:
    """DPI tag of an encoded image, rounded, or None when absent."""
    with Image.open(io.BytesIO(data)) as im:
        dpi = im.info.get("dpi")
    if not dpi:
        return None
    return (int(round(dpi[0])), int(round(dpi[1])))

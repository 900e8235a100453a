from __future__ import annotations

import base64
from io import BytesIO

import qrcode

DATA_URI_PREFIX = "data:image/png;base64,"


def qr_png_base64(text: str) -> str:
    image = qrcode.make(text)
    buffer = BytesIO()
    image.save(buffer)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def strip_data_uri(value: str) -> str:
    if value and value.startswith("data:"):
        return value.split(",", 1)[-1]
    return value or ""


def as_data_uri(value: str) -> str:
    if not value:
        return ""
    if value.startswith("data:"):
        return value
    return f"{DATA_URI_PREFIX}{value}"

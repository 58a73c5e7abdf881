"""Request size limit for JSON bodies."""

from __future__ import annotations

import os

from fastapi import Request

from .errors import PayloadTooLargeError


def _max_json_body_bytes() -> int:
    raw = os.getenv("MAX_JSON_BODY_BYTES", "65536")
    try:
        val = int(raw)
    except ValueError:
        val = 65536
    return max(val, 1024)


def _content_length_too_large(request: Request, max_bytes: int) -> bool:
    length = request.headers.get("content-length")
    if not length:
        return False
    try:
        return int(length) > max_bytes
    except ValueError:
        return False


async def enforce_json_body_limit(request: Request) -> None:
    if request.method in {"GET", "HEAD", "OPTIONS", "DELETE"}:
        return
    max_bytes = _max_json_body_bytes()
    if _content_length_too_large(request, max_bytes):
        raise PayloadTooLargeError()
    # Best-effort fallback when Content-Length is missing.
    if "content-length" not in {k.lower() for k in request.headers.keys()}:
        body = await request.body()
        if len(body) > max_bytes:
            raise PayloadTooLargeError()

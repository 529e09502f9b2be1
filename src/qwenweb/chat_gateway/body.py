"""Bounded accumulation of request bodies."""

from __future__ import annotations

import logging
from typing import AsyncIterable, Mapping

from starlette.requests import ClientDisconnect

MAX_BODY_BYTES = 15_000_000

logger = logging.getLogger(__name__)


class PayloadTooLargeError(Exception):
    def __init__(self, limit: int):
        super().__init__(f"Request body exceeds limit {limit} bytes")
        self.limit = limit


class RequestStreamError(Exception):
    pass


def check_declared_length(headers: Mapping[str, str], limit: int) -> None:
    """Refuse a body whose declared ``Content-Length`` is already over the limit."""
    raw = headers.get("content-length")
    if raw is None:
        return
    try:
        declared = int(raw)
    except ValueError:
        return
    if declared > limit:
        raise PayloadTooLargeError(limit)


async def collect_body(
    chunks: AsyncIterable[bytes], limit: int = MAX_BODY_BYTES
) -> bytes:
    """Read the whole stream into memory, stopping as soon as ``limit`` is exceeded.

    A body of exactly ``limit`` bytes is accepted. Transport failures while
    reading are reported as :class:`RequestStreamError`.
    """

    buffer = bytearray()
    try:
        async for chunk in chunks:
            buffer.extend(chunk)
            if len(buffer) > limit:
                raise PayloadTooLargeError(limit)
    except (ClientDisconnect, OSError) as exc:
        logger.error("[body] Request stream error: %r", exc)
        raise RequestStreamError(str(exc)) from exc
    return bytes(buffer)

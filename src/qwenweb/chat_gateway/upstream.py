from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .config import DASHSCOPE_CHAT_URL

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpstreamResult:
    status_code: int
    body: Any

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def error_message(self) -> str | None:
        error = self.body.get("error") if isinstance(self.body, dict) else None
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message
        return None


class UpstreamClient:
    """Single-shot POST to an OpenAI-compatible chat-completions endpoint.

    No retries and no client-side timeout: a slow upstream only delays the
    request that is waiting on it.
    """

    def __init__(
        self, url: str = DASHSCOPE_CHAT_URL, client: httpx.AsyncClient | None = None
    ):
        self.url = url
        self.client = client or httpx.AsyncClient(timeout=None)

    async def call(self, payload: dict, api_key: str) -> UpstreamResult:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }
        logger.debug("[upstream] POST %s model=%s", self.url, payload.get("model"))
        resp = await self.client.post(self.url, json=payload, headers=headers)
        return UpstreamResult(resp.status_code, resp.json())

    async def aclose(self) -> None:
        await self.client.aclose()

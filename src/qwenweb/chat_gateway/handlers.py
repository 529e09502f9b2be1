"""Proxy handlers translating the client contract to upstream chat completions.

Both handlers share one skeleton (:meth:`ProxyHandler.handle`): validate the
client body, require an API key, build the upstream payload, call upstream
once, then unwrap the reply into ``{"response": text}``. Every failure leaves
as a :class:`GatewayError` carrying ``{"error": message}``.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from .config import GatewayConfig
from .errors import (
    GatewayError,
    err_api_key_missing,
    err_image_required,
    err_internal,
    err_prompt_required,
    err_upstream,
)
from .logging_utils import RequestLog
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)

NO_RESPONSE = "No response generated."


def parse_json_object(raw_body: bytes) -> dict[str, Any]:
    """Decode a request body into a dict; anything unparsable counts as empty."""
    if not raw_body:
        return {}
    try:
        parsed = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.info("[proxy] Request body is not valid JSON")
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _trimmed_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def first_message_content(body: Any) -> Any:
    """Return ``choices[0].message.content`` or ``None`` when any level is missing."""
    choices = body.get("choices") if isinstance(body, dict) else None
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    if not isinstance(message, dict):
        return None
    return message.get("content")


class ProxyHandler:
    endpoint: str = ""
    failure_message = "Failed to process request."

    def __init__(
        self,
        cfg: GatewayConfig,
        upstream: UpstreamClient,
        request_log: RequestLog | None = None,
    ):
        self.cfg = cfg
        self.upstream = upstream
        self.request_log = request_log

    def validate(self, body: dict[str, Any]) -> dict[str, str]:
        raise NotImplementedError

    def build_payload(self, fields: dict[str, str]) -> dict[str, Any]:
        raise NotImplementedError

    def extract_text(self, body: Any) -> str:
        raise NotImplementedError

    async def handle(self, raw_body: bytes) -> dict[str, str]:
        try:
            fields = self.validate(parse_json_object(raw_body))
            api_key = self.cfg.api_key
            if not api_key:
                raise err_api_key_missing()

            payload = self.build_payload(fields)
            started_at = time.time()
            result = await self.upstream.call(payload, api_key)
            if self.request_log is not None:
                self.request_log.record_completion(
                    self.endpoint, payload["model"], result.status_code, started_at
                )

            if not result.is_success:
                logger.error(
                    "[proxy] DashScope error on %s (%s): %s",
                    self.endpoint,
                    result.status_code,
                    result.body,
                )
                raise err_upstream(result.status_code, result.error_message())

            return {"response": self.extract_text(result.body)}
        except GatewayError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("[proxy] Error handling %s request", self.endpoint)
            raise err_internal(self.failure_message) from exc


class ChatHandler(ProxyHandler):
    endpoint = "/api/chat"

    def validate(self, body: dict[str, Any]) -> dict[str, str]:
        prompt = _trimmed_str(body.get("prompt"))
        if not prompt:
            raise err_prompt_required()
        return {"prompt": prompt}

    def build_payload(self, fields: dict[str, str]) -> dict[str, Any]:
        return {
            "model": self.cfg.chat_model,
            "messages": [
                {"role": "system", "content": self.cfg.system_prompt},
                {"role": "user", "content": fields["prompt"]},
            ],
        }

    def extract_text(self, body: Any) -> str:
        content = first_message_content(body)
        if isinstance(content, str) and content:
            return content
        return NO_RESPONSE


class ImageToTextHandler(ProxyHandler):
    endpoint = "/api/image-to-text"
    failure_message = "Failed to process image."

    def validate(self, body: dict[str, Any]) -> dict[str, str]:
        image_data = _trimmed_str(body.get("imageData"))
        if not image_data:
            raise err_image_required()
        prompt = _trimmed_str(body.get("prompt")) or self.cfg.default_image_prompt
        return {"image_data": image_data, "prompt": prompt}

    def build_payload(self, fields: dict[str, str]) -> dict[str, Any]:
        # The image value goes upstream untouched; data URLs and plain URLs alike.
        return {
            "model": self.cfg.vision_model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": fields["prompt"]},
                        {"type": "input_image", "image_url": fields["image_data"]},
                    ],
                }
            ],
        }

    def extract_text(self, body: Any) -> str:
        content = first_message_content(body)
        if isinstance(content, list):
            texts = [
                part["text"]
                for part in content
                if isinstance(part, dict)
                and part.get("type") == "output_text"
                and isinstance(part.get("text"), str)
            ]
            return "\n".join(texts) or NO_RESPONSE
        if isinstance(content, str):
            return content
        return NO_RESPONSE

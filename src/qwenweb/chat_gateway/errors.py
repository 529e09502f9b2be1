from __future__ import annotations

from fastapi import HTTPException

UPSTREAM_FALLBACK_MESSAGE = "Failed to retrieve response from Qwen."


class GatewayError(HTTPException):
    """Terminal failure of a proxy request, rendered as ``{"error": message}``."""

    def __init__(self, status_code: int, message: str, headers: dict | None = None):
        super().__init__(
            status_code=status_code, detail={"error": message}, headers=headers
        )


def err_prompt_required() -> GatewayError:
    return GatewayError(400, "Prompt is required.")


def err_image_required() -> GatewayError:
    return GatewayError(400, "Image data is required.")


def err_api_key_missing() -> GatewayError:
    return GatewayError(500, "DASHSCOPE_API_KEY is not set on the server.")


def err_upstream(status_code: int, message: str | None) -> GatewayError:
    return GatewayError(status_code, message or UPSTREAM_FALLBACK_MESSAGE)


def err_invalid_stream() -> GatewayError:
    return GatewayError(400, "Invalid request stream.")


def err_payload_too_large() -> GatewayError:
    return GatewayError(413, "Request body too large.", headers={"Connection": "close"})


def err_internal(message: str) -> GatewayError:
    return GatewayError(500, message)

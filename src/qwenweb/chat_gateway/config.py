from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

DASHSCOPE_CHAT_URL = (
    "https://dashscope.aliyuncs.com/compatible-mode/v1/chat/completions"
)
DEFAULT_IMAGE_PROMPT = "请识别这张图片中的内容，并输出清晰的文字描述。"


@dataclass(frozen=True)
class GatewayConfig:
    host: str = "0.0.0.0"
    port: int = 3000
    public_dir: str = "public"
    default_document: str = "index.html"
    max_body_bytes: int = 15_000_000
    upstream_url: str = DASHSCOPE_CHAT_URL
    chat_model: str = "qwen-plus"
    vision_model: str = "qwen-vl-plus"
    system_prompt: str = "You are a helpful assistant."
    default_image_prompt: str = DEFAULT_IMAGE_PROMPT
    # Read from DASHSCOPE_API_KEY only; never persisted to the config file.
    api_key: Optional[str] = None
    log_dir: str = "logs"
    log_level: str = "INFO"
    log_path: str = "logs/qwen_gateway.jsonl"
    max_log_bytes: int = 25_000_000
    config_file_path: Optional[str] = None

    @classmethod
    def load(cls) -> "GatewayConfig":
        from .config_loader import load_gateway_config

        return load_gateway_config()

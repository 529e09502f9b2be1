from __future__ import annotations

import os
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Callable

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]

from .config import GatewayConfig

CONFIG_FILE_ENV = "QWEN_GATEWAY_CONFIG_FILE"
ENV_PREFIX = "QWEN_GATEWAY_"
API_KEY_ENV = "DASHSCOPE_API_KEY"
PORT_ENV = "PORT"
DEFAULT_CONFIG_PATH = Path("configs/qwen_gateway.toml")

_SECTION_MAP: dict[str, list[str]] = {
    "server": ["host", "port"],
    "static": ["public_dir", "default_document"],
    "limits": ["max_body_bytes"],
    "upstream": [
        "upstream_url",
        "chat_model",
        "vision_model",
        "system_prompt",
        "default_image_prompt",
    ],
    "logging": ["log_dir", "log_level", "log_path", "max_log_bytes"],
}

# Keys that only ever come from the environment.
_RUNTIME_ONLY = ("api_key", "config_file_path")


def _field_types() -> dict[str, Any]:
    return {f.name: f.type for f in fields(GatewayConfig)}


def _coerce_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("boolean is not an integer setting")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return int(str(value).replace("_", ""))


def _coerce_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


_CASTERS: dict[Any, Callable[[Any], Any]] = {
    "int": _coerce_int,
    "str": _coerce_str,
    int: _coerce_int,
    str: _coerce_str,
}


def _coerce_value(field_type: Any, value: Any) -> Any:
    # Field annotations are strings under postponed evaluation.
    caster = _CASTERS.get(field_type)
    if caster:
        return caster(value)
    return value


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("rb") as fh:
        data = tomllib.load(fh)

    out: dict[str, Any] = {}
    for section, keys in _SECTION_MAP.items():
        section_values = data.get(section, {})
        if not isinstance(section_values, dict):
            continue
        for key in keys:
            if key in section_values:
                out[key] = section_values[key]
    return out


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    env = os.environ

    def env_int(name: str, current: int) -> int:
        val = env.get(name)
        if val is None:
            return current
        try:
            return int(val)
        except ValueError:
            return current

    def env_str(name: str, current: str) -> str:
        val = env.get(name)
        if val is None:
            return current
        return val

    port = env_int(PORT_ENV, config["port"])
    overrides = {
        "host": env_str("QWEN_GATEWAY_HOST", config["host"]),
        "port": env_int("QWEN_GATEWAY_PORT", port),
        "public_dir": env_str("QWEN_GATEWAY_PUBLIC_DIR", config["public_dir"]),
        "default_document": env_str(
            "QWEN_GATEWAY_DEFAULT_DOCUMENT", config["default_document"]
        ),
        "max_body_bytes": env_int(
            "QWEN_GATEWAY_MAX_BODY_BYTES", config["max_body_bytes"]
        ),
        "upstream_url": env_str("QWEN_GATEWAY_UPSTREAM_URL", config["upstream_url"]),
        "chat_model": env_str("QWEN_GATEWAY_CHAT_MODEL", config["chat_model"]),
        "vision_model": env_str("QWEN_GATEWAY_VISION_MODEL", config["vision_model"]),
        "system_prompt": env_str(
            "QWEN_GATEWAY_SYSTEM_PROMPT", config["system_prompt"]
        ),
        "default_image_prompt": env_str(
            "QWEN_GATEWAY_DEFAULT_IMAGE_PROMPT", config["default_image_prompt"]
        ),
        "log_dir": env_str("QWEN_GATEWAY_LOG_DIR", config["log_dir"]),
        "log_level": env_str("QWEN_GATEWAY_LOG_LEVEL", config["log_level"]),
        "log_path": env_str("QWEN_GATEWAY_LOG_PATH", config["log_path"]),
        "max_log_bytes": env_int(
            "QWEN_GATEWAY_MAX_LOG_BYTES", config["max_log_bytes"]
        ),
        "api_key": env.get(API_KEY_ENV) or None,
    }
    config.update(overrides)
    return config


def _default_config_dict() -> dict[str, Any]:
    data = asdict(GatewayConfig())
    for key in _RUNTIME_ONLY:
        data.pop(key, None)
    return data


def _normalize(config: dict[str, Any]) -> dict[str, Any]:
    field_types = _field_types()
    normalized = {}
    for key, default_value in _default_config_dict().items():
        value = config.get(key, default_value)
        try:
            normalized[key] = _coerce_value(field_types.get(key), value)
        except (TypeError, ValueError):
            normalized[key] = default_value
    return normalized


def config_file_path() -> Path:
    return Path(os.environ.get(CONFIG_FILE_ENV, DEFAULT_CONFIG_PATH)).expanduser()


def load_gateway_config() -> GatewayConfig:
    candidate = config_file_path()
    normalized = _normalize(_read_config_file(candidate))
    normalized = _apply_env_overrides(normalized)
    return GatewayConfig(**normalized, config_file_path=str(candidate))


def list_env_overrides() -> dict[str, str]:
    out = {
        key: value for key, value in os.environ.items() if key.startswith(ENV_PREFIX)
    }
    if PORT_ENV in os.environ:
        out[PORT_ENV] = os.environ[PORT_ENV]
    return out

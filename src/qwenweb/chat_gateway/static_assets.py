"""Static file serving confined to a single public directory."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from fastapi.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

CONTENT_TYPES: dict[str, str] = {
    ".html": "text/html; charset=utf-8",
    ".css": "text/css; charset=utf-8",
    ".js": "application/javascript; charset=utf-8",
    ".json": "application/json; charset=utf-8",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class AssetError(Exception):
    status_code = 500
    body = "Internal Server Error"


class AssetRejectedError(AssetError):
    status_code = 403
    body = "Forbidden"


class AssetNotFoundError(AssetError):
    status_code = 404
    body = "Not Found"


class AssetReadError(AssetError):
    pass


@dataclass(frozen=True)
class StaticAsset:
    path: str
    body: bytes
    content_type: str


def content_type_for(path: str) -> str:
    ext = os.path.splitext(path)[1].lower()
    return CONTENT_TYPES.get(ext, DEFAULT_CONTENT_TYPE)


class StaticAssetResolver:
    def __init__(self, root: str, default_document: str = "index.html"):
        self.root = os.path.normpath(os.path.abspath(root))
        self.default_document = default_document
        self._root_prefix = self.root.rstrip(os.sep) + os.sep

    def locate(self, url_path: str) -> str:
        """Map a URL path onto the public directory without touching the disk.

        Raises :class:`AssetRejectedError` when the normalized path leaves the root.
        """
        relative = url_path.lstrip("/") or self.default_document
        if "\x00" in relative:
            raise AssetRejectedError(url_path)
        candidate = os.path.normpath(os.path.join(self.root, relative))
        if candidate != self.root and not candidate.startswith(self._root_prefix):
            raise AssetRejectedError(url_path)
        return candidate

    async def resolve(self, url_path: str) -> StaticAsset:
        asset_path = self.locate(url_path)
        try:
            data = await run_in_threadpool(_read_file, asset_path)
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
            raise AssetNotFoundError(url_path) from exc
        except OSError as exc:
            logger.exception("[static] Error serving asset %s", asset_path)
            raise AssetReadError(url_path) from exc
        return StaticAsset(asset_path, data, content_type_for(asset_path))


def _read_file(path: str) -> bytes:
    with open(path, "rb") as fh:
        return fh.read()

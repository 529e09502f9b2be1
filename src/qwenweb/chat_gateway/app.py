from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..logging_utils import configure_logging
from .body import (
    PayloadTooLargeError,
    RequestStreamError,
    check_declared_length,
    collect_body,
)
from .config import GatewayConfig
from .config_loader import list_env_overrides
from .errors import GatewayError, err_invalid_stream, err_payload_too_large
from .handlers import ChatHandler, ImageToTextHandler, ProxyHandler
from .logging_utils import RequestLog
from .routing import CORS_PREFLIGHT_HEADERS, RouteKind, match_route
from .static_assets import AssetError, StaticAssetResolver
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)

# Everything the catch-all route accepts; other verbs surface as 405 and are
# rewritten to the plain-text 404 below.
ROUTED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
JSON_MEDIA_TYPE = "application/json; charset=utf-8"


def _json_reply(status_code: int, content: dict, headers: dict | None = None):
    merged = {"Access-Control-Allow-Origin": "*"}
    if headers:
        merged.update(headers)
    return JSONResponse(
        status_code=status_code,
        content=content,
        headers=merged,
        media_type=JSON_MEDIA_TYPE,
    )


def _error_reply(exc: GatewayError):
    return _json_reply(exc.status_code, exc.detail, exc.headers)


def _not_found():
    return PlainTextResponse("Not Found", status_code=404)


async def _serve_static(resolver: StaticAssetResolver, path: str) -> Response:
    try:
        asset = await resolver.resolve(path)
    except AssetError as exc:
        if exc.status_code == 403:
            logger.warning("[static] Rejected path outside public dir: %r", path)
        return PlainTextResponse(exc.body, status_code=exc.status_code)
    return Response(
        content=asset.body,
        media_type=asset.content_type,
        headers={"Cache-Control": "no-store"},
    )


async def _proxy(handler: ProxyHandler, request: Request, limit: int) -> Response:
    try:
        check_declared_length(request.headers, limit)
        raw_body = await collect_body(request.stream(), limit)
    except PayloadTooLargeError as exc:
        logger.warning("[app] %s on %s", exc, handler.endpoint)
        return _error_reply(err_payload_too_large())
    except RequestStreamError:
        return _error_reply(err_invalid_stream())

    try:
        reply = await handler.handle(raw_body)
    except GatewayError as exc:
        return _error_reply(exc)
    return _json_reply(200, reply)


def create_app(
    cfg: GatewayConfig | None = None, upstream: UpstreamClient | None = None
) -> FastAPI:
    cfg = cfg or GatewayConfig.load()
    upstream = upstream or UpstreamClient(cfg.upstream_url)
    request_log = RequestLog(cfg.log_path, cfg.max_log_bytes)
    resolver = StaticAssetResolver(cfg.public_dir, cfg.default_document)
    handlers: dict[RouteKind, ProxyHandler] = {
        RouteKind.CHAT: ChatHandler(cfg, upstream, request_log),
        RouteKind.IMAGE_TO_TEXT: ImageToTextHandler(cfg, upstream, request_log),
    }

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        if not cfg.api_key:
            logger.warning(
                "[app] DASHSCOPE_API_KEY is not set; proxy endpoints will reply 500."
            )
        yield
        await upstream.aclose()

    # Docs routes are disabled so every GET path belongs to the static tree.
    app = FastAPI(
        title="Qwen Web Gateway",
        version="0.1",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    @app.exception_handler(StarletteHTTPException)
    async def _unrouted(_request: Request, exc: StarletteHTTPException):
        logger.debug("[app] Unrouted request (%s)", exc.status_code)
        return _not_found()

    @app.api_route(
        "/{full_path:path}", methods=ROUTED_METHODS, include_in_schema=False
    )
    async def dispatch(request: Request):
        path = request.scope["path"]
        kind = match_route(request.method, path)
        if kind is RouteKind.STATIC:
            return await _serve_static(resolver, path)
        if kind is RouteKind.PREFLIGHT:
            return Response(status_code=204, headers=CORS_PREFLIGHT_HEADERS)
        if kind is RouteKind.NOT_FOUND:
            return _not_found()
        return await _proxy(handlers[kind], request, cfg.max_body_bytes)

    return app


def main():  # pragma: no cover
    import uvicorn

    cfg = GatewayConfig.load()
    configure_logging(cfg.log_dir, cfg.log_level)
    logger.info(
        "[app] Serving %s on http://%s:%s (config file %s, env overrides: %s)",
        cfg.public_dir,
        cfg.host,
        cfg.port,
        cfg.config_file_path,
        ", ".join(sorted(list_env_overrides())) or "none",
    )
    uvicorn.run(create_app(cfg), host=cfg.host, port=cfg.port, log_config=None)


if __name__ == "__main__":  # pragma: no cover
    main()

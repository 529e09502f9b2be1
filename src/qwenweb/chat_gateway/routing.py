from __future__ import annotations

import enum
from typing import NamedTuple, Optional

CHAT_PATH = "/api/chat"
IMAGE_TO_TEXT_PATH = "/api/image-to-text"


class RouteKind(enum.Enum):
    STATIC = "static"
    CHAT = "chat"
    IMAGE_TO_TEXT = "image_to_text"
    PREFLIGHT = "preflight"
    NOT_FOUND = "not_found"


class Route(NamedTuple):
    method: str
    path: Optional[str]  # None matches every path
    kind: RouteKind


# First match wins; anything unmatched is NOT_FOUND.
ROUTES: tuple[Route, ...] = (
    Route("GET", None, RouteKind.STATIC),
    Route("POST", CHAT_PATH, RouteKind.CHAT),
    Route("POST", IMAGE_TO_TEXT_PATH, RouteKind.IMAGE_TO_TEXT),
    Route("OPTIONS", CHAT_PATH, RouteKind.PREFLIGHT),
    Route("OPTIONS", IMAGE_TO_TEXT_PATH, RouteKind.PREFLIGHT),
)

CORS_PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def match_route(method: str, path: str) -> RouteKind:
    method = method.upper()
    for route in ROUTES:
        if route.method == method and (route.path is None or route.path == path):
            return route.kind
    return RouteKind.NOT_FOUND

from fastapi import FastAPI
from fastapi.routing import APIRoute, APIWebSocketRoute

from loggers import get_logger

logger = get_logger(__name__)

DOCS_PATHS = frozenset({"/openapi.json", "/docs", "/docs/oauth2-redirect", "/redoc"})


def _is_docs_route(route: APIRoute) -> bool:
    return route.path in DOCS_PATHS or (route.name or "").startswith("openapi")


def log_routes_summary(application: FastAPI, include_debug_list: bool = False) -> None:
    """
    Log one line with endpoint counts per method and per tag, plus the number
    of WebSocket endpoints. With ``include_debug_list`` every route is listed
    at DEBUG level.
    """
    http_routes = [
        r
        for r in application.routes
        if isinstance(r, APIRoute) and not _is_docs_route(r)
    ]
    ws_routes = [r for r in application.routes if isinstance(r, APIWebSocketRoute)]

    by_method: dict[str, int] = {}
    by_tag: dict[str, int] = {}
    for route in http_routes:
        for method in route.methods or ():
            by_method[method] = by_method.get(method, 0) + 1
        for tag in route.tags or ["<untagged>"]:
            by_tag[str(tag)] = by_tag.get(str(tag), 0) + 1

    logger.info(
        "API endpoints summary: http=%s websocket=%s methods=%s tags=%s",
        len(http_routes),
        len(ws_routes),
        by_method,
        by_tag,
    )

    if not include_debug_list:
        return
    for route in sorted(http_routes, key=lambda r: (r.path, sorted(r.methods or ()))):
        logger.debug(
            "Route: %s %s -> %s",
            ",".join(sorted(route.methods)),
            route.path,
            route.name,
        )
    for ws_route in sorted(ws_routes, key=lambda r: r.path):
        logger.debug("Route: WS %s -> %s", ws_route.path, ws_route.name)

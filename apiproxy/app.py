from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
import httpx
from .config import Settings
from .forwarder import ProxyForwarder
from .health import health
from .middleware import InFlightMiddleware, InFlightRequests
from .routing import RouteBinding, Router

METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"]


def build_router(settings: Settings, client: httpx.AsyncClient) -> Router:
    return Router([
        RouteBinding(prefix="/v2", forwarder=ProxyForwarder(settings.api_v2, client)),
        RouteBinding(prefix="/", forwarder=ProxyForwarder(settings.api_v1, client)),
    ])


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown logic."""
    #---- Startup ----
    # A client placed on app.state beforehand (tests) is used as-is and left open.
    owns_client = not hasattr(app.state, 'http_client')
    if owns_client:
        # No upstream timeout, a slow upstream holds its request open.
        app.state.http_client = httpx.AsyncClient(timeout=None)

    app.state.router = build_router(app.state.settings, app.state.http_client)

    try:
        yield
    finally:
        #---- Shutdown ----
        if owns_client:
            await app.state.http_client.aclose()


def create_app(settings: Settings) -> FastAPI:
    app = FastAPI(lifespan=lifespan, openapi_url=None, docs_url=None, redoc_url=None)
    app.state.settings = settings
    app.state.in_flight = InFlightRequests()
    app.add_middleware(InFlightMiddleware, tracker=app.state.in_flight)

    app.add_api_route("/health", health, methods=METHODS)
    app.add_api_route("/health/{path:path}", health, methods=METHODS)
    app.add_api_route("/{path:path}", proxy, methods=METHODS)
    return app


async def proxy(path: str, request: Request) -> Response:
    forwarder = request.app.state.router.route(request.url.path)
    return await forwarder.forward(request)

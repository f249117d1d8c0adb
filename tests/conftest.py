# Centralized pytest configuration file (fixtures, hooks, plugins, etc.)
import asyncio

import pytest
from asgi_lifespan import LifespanManager
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from httpx import AsyncClient, ASGITransport

from apiproxy.app import create_app
from apiproxy.config import Settings
from apiproxy.testing.fake_upstream import FakeUpstreams

API_V1_URL = "http://api-v1.test:3003"
API_V2_URL = "http://api-v2.test:3004"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_v1_url=API_V1_URL,
        api_v2_url=API_V2_URL,
        host="127.0.0.1",
        port=0,
    )


@pytest.fixture
def upstream_app() -> FastAPI:
    app = FastAPI()     # mock upstream app for tests, shared by v1 and v2
    app.state.entered = asyncio.Event()
    app.state.gate = asyncio.Event()

    @app.get("/slow")
    @app.get("/v2/slow")
    async def slow(request: Request):   # blocks until the test opens the gate
        app.state.entered.set()
        await app.state.gate.wait()
        return {"upstream": request.headers["host"], "slow": True}

    @app.get("/teapot")
    @app.get("/v2/teapot")
    async def teapot():     # upstream application errors must pass through
        return JSONResponse(
            status_code=418,
            content={"error": "short and stout"},
            headers={"x-upstream-error": "yes"},
        )

    @app.get("/cookies")
    async def cookies():
        response = Response(content=b"ok", media_type="text/plain")
        response.set_cookie("a", "1")
        response.set_cookie("b", "2")
        return response

    @app.api_route(
        "/{path:path}",
        methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"],
    )
    async def echo(path: str, request: Request):  # tests path+method+body forwarding
        return {
            "upstream": request.headers["host"],
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query,
            "body": (await request.body()).decode(),
            "received_headers": dict(request.headers),
        }

    return app


@pytest.fixture
def upstreams(upstream_app: FastAPI) -> FakeUpstreams:
    return FakeUpstreams(upstream_app)


@pytest.fixture
async def proxy_app(settings: Settings, upstreams: FakeUpstreams):
    """Proxy app with its lifespan running and upstreams faked."""
    app = create_app(settings)
    upstream_client = AsyncClient(transport=upstreams)
    app.state.http_client = upstream_client

    # Lifespan management to handle async testing with the proxy app
    async with LifespanManager(app):
        yield app

    await upstream_client.aclose()


@pytest.fixture
async def gateway_client(proxy_app: FastAPI):
    # client with transport to proxy app
    async with AsyncClient(
            transport=ASGITransport(app=proxy_app),
            base_url="http://gateway") as client:
        yield client

import logging
from typing import AsyncIterator

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from .config import UpstreamConfig

logger = logging.getLogger(__name__)

# Never forwarded in either direction
HOP_BY_HOP_HEADERS = {
    b'connection',
    b'keep-alive',
    b'proxy-authenticate',
    b'proxy-authorization',
    b'te',
    b'trailers',
    b'transfer-encoding',
    b'upgrade',
}


class RelayedResponse(StreamingResponse):
    """
    Streams an upstream body. The upstream connection goes back to the pool
    however the response ends, including a client dropping mid-body.
    """
    def __init__(self, upstream: httpx.Response, content: AsyncIterator[bytes]):
        super().__init__(content, status_code=upstream.status_code)
        self.upstream = upstream

    async def __call__(self, scope, receive, send):
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.upstream.aclose()


class ProxyForwarder:
    """
    Relays requests to a single upstream.

    Transport failures (refused connection, DNS, timeout, reset) are turned
    into a 500 JSON body here, so callers always get a response back. Upstream
    4xx/5xx responses are not failures and pass through untouched.
    """
    def __init__(self, config: UpstreamConfig, client: httpx.AsyncClient):
        self.config = config
        self.client = client

    @property
    def name(self) -> str:
        return self.config.name

    def target_url(self, request: Request) -> str:
        raw_path = request.scope.get("raw_path") or request.url.path.encode()
        path = raw_path.split(b"?", 1)[0].decode("latin-1")
        url = self.config.base_url + path
        query = request.scope.get("query_string", b"").decode("latin-1")
        if query:
            url += "?" + query
        return url

    def outbound_headers(self, request: Request) -> list[tuple[bytes, bytes]]:
        headers = [
            (k, v) for k, v in request.headers.raw
            if k.lower() not in HOP_BY_HOP_HEADERS
        ]
        if self.config.rewrite_host:
            headers = [(k, v) for k, v in headers if k.lower() != b'host']
            headers.append((b'host', self.config.host_header.encode("ascii")))
        return headers

    async def forward(self, request: Request) -> Response:
        url = self.target_url(request)
        # Built directly so the client does not mix in its own default headers.
        upstream_request = httpx.Request(
            request.method,
            url,
            headers=self.outbound_headers(request),
            content=await request.body(),
        )

        try:
            upstream = await self.client.send(upstream_request, stream=True)
        except httpx.TransportError as exc:
            return self.unavailable(request.method, url, exc)

        response = RelayedResponse(upstream, self._relay(upstream, url))
        response.raw_headers = [
            (k.lower(), v) for k, v in upstream.headers.raw
            if k.lower() not in HOP_BY_HOP_HEADERS
        ]
        return response

    async def _relay(self, upstream: httpx.Response, url: str) -> AsyncIterator[bytes]:
        # Status and headers are already on the wire, all we can do is stop early.
        try:
            async for chunk in upstream.aiter_raw():
                yield chunk
        except httpx.TransportError as exc:
            logger.error(
                "Proxy error for %s while streaming %s: %s",
                self.name, url, str(exc) or type(exc).__name__,
            )
        finally:
            await upstream.aclose()

    def unavailable(self, method: str, url: str, exc: Exception) -> JSONResponse:
        message = str(exc) or type(exc).__name__
        logger.error("Proxy error for %s (%s %s): %s", self.name, method, url, message)
        return JSONResponse(
            status_code=500,
            content={
                "error": f"{self.name} service unavailable",
                "message": message,
            },
        )

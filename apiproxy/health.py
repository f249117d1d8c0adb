from datetime import datetime, timezone

from fastapi import Request
from fastapi.responses import JSONResponse


def iso_timestamp(now: datetime | None = None) -> str:
    """UTC timestamp with millisecond precision, e.g. 2024-05-01T12:00:00.000Z"""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


async def health(request: Request) -> JSONResponse:
    # Liveness of this process only; upstreams are never contacted.
    return JSONResponse({"status": "OK", "timestamp": iso_timestamp()})

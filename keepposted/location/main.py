"""Location service — FastAPI app receiving OwnTracks device fixes."""

from __future__ import annotations

import base64

import structlog
from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse

from keepposted.database import get_session_factory
from keepposted.location.owntracks import (
    announce_pairing,
    authenticate_owntracks,
    handle_owntracks_publish,
)
from keepposted.redis import close_redis, get_redis
from keepposted.schemas.common import HealthResponse

structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
)

logger = structlog.get_logger()
app = FastAPI(title="Keep Me Posted Location Service", version="1.0.0")

session_factory = None
redis_client = None


@app.on_event("startup")
async def startup():
    global session_factory, redis_client
    session_factory = get_session_factory()
    redis_client = await get_redis()
    logger.info("location_service_ready")


@app.on_event("shutdown")
async def shutdown():
    await close_redis()


def _parse_basic_auth(authorization: str | None) -> tuple[str, str] | None:
    if not authorization or not authorization.startswith("Basic "):
        return None
    try:
        decoded = base64.b64decode(authorization[6:]).decode("utf-8")
        username, password = decoded.split(":", 1)
    except ValueError:
        return None
    if not username or not password:
        return None
    return username, password


@app.post("/pub")
async def owntracks_publish(
    request: Request,
    authorization: str | None = Header(default=None),
):
    """Receive OwnTracks payloads (HTTP mode, Basic auth)."""
    creds = _parse_basic_auth(authorization)
    if creds is None:
        return JSONResponse(status_code=401, content={"error": "Authorization required"})

    async with session_factory() as session:
        check_in = await authenticate_owntracks(session, *creds)

    if check_in is None:
        return JSONResponse(status_code=403, content={"error": "Invalid credentials"})

    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid JSON"})
    if not isinstance(payload, dict):
        return JSONResponse(status_code=400, content={"error": "Invalid payload"})

    async with session_factory() as session:
        response_cmds = await handle_owntracks_publish(session, check_in.user_id, payload)

    # Announce after the fix is stored so a waiting request can read it
    if check_in.first_check_in:
        await announce_pairing(redis_client, check_in.user_id)

    return JSONResponse(content=response_cmds)


@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok")

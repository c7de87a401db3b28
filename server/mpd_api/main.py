import logging
import re
from contextlib import AbstractAsyncContextManager
from functools import partial
from typing import Any, Callable

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import get_settings, resolve_log_level
from .services import mpd as mpd_service
from .services.mpd import MPDCommandError, MPDConnection

_log_level = resolve_log_level(get_settings().log_level)
logging.basicConfig(level=_log_level if _log_level is not None else logging.INFO)
logger = logging.getLogger(__name__)
if _log_level is None:
    logger.warning(f"Unknown LOG_LEVEL {get_settings().log_level!r}, using INFO")

MIN_VOLUME = 0
MAX_VOLUME = 100

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

# Optional sign followed by ASCII digits, nothing else
_INTEGER_RE = re.compile(r"[+-]?[0-9]+")

Connector = Callable[[], AbstractAsyncContextManager[MPDConnection]]


class Envelope(BaseModel):
    """Uniform response body for every endpoint."""

    ok: bool
    message: str
    data: Any = None


def error_response(
    message: str, status_code: int, headers: dict[str, str] | None = None
) -> JSONResponse:
    body = Envelope(ok=False, message=message)
    return JSONResponse(
        body.model_dump(exclude_none=True), status_code=status_code, headers=headers
    )


def get_connector() -> Connector:
    """Return a factory opening a fresh MPD connection per call."""
    settings = get_settings()
    return partial(
        mpd_service.connect,
        settings.mpd.host,
        settings.mpd.port,
        settings.mpd.timeout,
    )


app = FastAPI(
    title="MPD Control API",
    description="HTTP control surface for a Music Player Daemon",
    version=__version__,
)


# CORS for every response; preflight is answered before routing
@app.middleware("http")
async def cors(request: Request, call_next):
    if request.method == "OPTIONS":
        response = Response(status_code=204)
    else:
        response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


@app.exception_handler(MPDCommandError)
async def mpd_error_handler(request: Request, exc: MPDCommandError):
    logger.warning(f"{request.method} {request.url.path} failed: {exc}")
    return error_response(str(exc), 500)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} failed: {exc.detail}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.detail}")
    return error_response(str(exc.detail), exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = "; ".join(err.get("msg", "") for err in exc.errors())
    return error_response(f"Invalid request: {errors}", 400)


# Runs outside the CORS middleware, so the headers are added here
@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"{request.method} {request.url.path} raised: {exc}")
    return error_response(f"Internal server error: {exc}", 500, headers=CORS_HEADERS)


def parse_volume(level: str | None) -> int:
    """Validate the ``level`` query parameter."""
    if not level:
        raise HTTPException(status_code=400, detail="Missing 'level' query parameter")

    if not _INTEGER_RE.fullmatch(level):
        raise HTTPException(
            status_code=400, detail="Invalid volume level: must be an integer"
        )

    volume = int(level)
    if volume < MIN_VOLUME or volume > MAX_VOLUME:
        raise HTTPException(status_code=400, detail="Invalid volume level: out of bounds")
    return volume


@app.get("/play", response_model=Envelope, response_model_exclude_none=True)
async def current_song(connector: Connector = Depends(get_connector)):
    """Return the attributes of the song MPD currently has loaded."""
    async with connector() as conn:
        song = await conn.current_song()

    if not song:
        raise HTTPException(status_code=500, detail="No song is currently loaded")
    return Envelope(ok=True, message="Current song", data=song)


@app.post("/play", response_model=Envelope, response_model_exclude_none=True)
async def play(file: str | None = None, connector: Connector = Depends(get_connector)):
    """Play a single file from the database, or resume the current queue.

    With a file the queue is replaced: clear, add, play. The first failing
    step ends the request; steps already applied stay applied.
    """
    async with connector() as conn:
        if not file:
            await conn.play()
            logger.info("Playback started")
            return Envelope(ok=True, message="Playback started")

        files = await conn.get_files()
        if file not in files:
            raise HTTPException(
                status_code=404,
                detail="That file was not found in the MPD database.",
            )

        await conn.clear()
        await conn.add(file)
        await conn.play()

    logger.info(f"Playing {file}")
    return Envelope(ok=True, message=f"Playing {file}")


@app.post("/pause", response_model=Envelope, response_model_exclude_none=True)
async def pause(connector: Connector = Depends(get_connector)):
    async with connector() as conn:
        await conn.pause()

    logger.info("Paused")
    return Envelope(ok=True, message="Paused")


@app.post("/volume", response_model=Envelope, response_model_exclude_none=True)
async def set_volume(
    level: str | None = None, connector: Connector = Depends(get_connector)
):
    """Set the MPD volume (0-100). Invalid input never reaches MPD."""
    volume = parse_volume(level)

    async with connector() as conn:
        await conn.set_volume(volume)

    logger.info(f"Volume set to {volume}")
    return Envelope(ok=True, message=f"Volume set to {volume}")


@app.get("/database", response_model=Envelope, response_model_exclude_none=True)
async def database(connector: Connector = Depends(get_connector)):
    """List every file path in the MPD database."""
    async with connector() as conn:
        files = await conn.get_files()

    if not files:
        raise HTTPException(
            status_code=500, detail="No files were found in the MPD database."
        )
    return Envelope(ok=True, message=f"Found {len(files)} files", data=files)


@app.get("/health", response_model=Envelope, response_model_exclude_none=True)
async def health():
    """Health check endpoint."""
    settings = get_settings()
    connected = await mpd_service.check_connection(
        settings.mpd.host, settings.mpd.port, settings.mpd.timeout
    )
    return Envelope(ok=True, message="ok", data={"mpd_connected": connected})

"""MPD client wrapper.

Each request gets its own connection through :func:`connect`; nothing here is
shared between requests.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from mpd import MPDError
from mpd.asyncio import MPDClient

logger = logging.getLogger(__name__)

# Errors that can come out of python-mpd2 or the socket underneath it
DAEMON_ERRORS = (MPDError, OSError, asyncio.TimeoutError)


def _reason(e: Exception) -> str:
    # asyncio.TimeoutError has no message of its own
    return str(e) or e.__class__.__name__


class MPDCommandError(Exception):
    """A daemon connection or command failed.

    ``action`` names the step that failed, ``reason`` carries the underlying
    error text unchanged.
    """

    def __init__(self, action: str, reason: str):
        self.action = action
        self.reason = reason
        super().__init__(f"{action}: {reason}")


class MPDConnection:
    """One open connection to MPD."""

    def __init__(self, client: MPDClient):
        self._client = client

    async def _call(self, action: str, command: str, *args) -> Any:
        try:
            return await getattr(self._client, command)(*args)
        except DAEMON_ERRORS as e:
            raise MPDCommandError(action, _reason(e)) from e

    async def get_files(self) -> list[str]:
        """Return every file path in the MPD database, in daemon order."""
        entries = await self._call("Error reading MPD database", "listall")
        return [entry["file"] for entry in entries if "file" in entry]

    async def clear(self):
        await self._call("Error clearing MPD playlist", "clear")

    async def add(self, file: str):
        await self._call("Error adding file to MPD playlist", "add", file)

    async def play(self):
        await self._call("Error playing MPD playlist", "play")

    async def pause(self):
        await self._call("Error pausing MPD playback", "pause", 1)

    async def set_volume(self, volume: int):
        await self._call("Error setting MPD volume", "setvol", volume)

    async def current_song(self) -> dict[str, Any]:
        """Return the attributes of the current song (empty if none)."""
        song = await self._call("Error reading current song", "currentsong")
        return dict(song or {})

    def close(self):
        try:
            self._client.disconnect()
        except DAEMON_ERRORS as e:
            logger.debug(f"Ignoring error while disconnecting from MPD: {e}")


@asynccontextmanager
async def connect(
    host: str = "localhost", port: int = 6600, timeout: float = 10
) -> AsyncIterator[MPDConnection]:
    """Open a fresh MPD connection and close it however the block exits."""
    client = MPDClient()
    conn = MPDConnection(client)
    try:
        await asyncio.wait_for(client.connect(host, port), timeout)
    except DAEMON_ERRORS as e:
        # The socket may be open even though the hello never arrived
        conn.close()
        logger.warning(f"MPD not accessible at {host}:{port}: {e}")
        raise MPDCommandError("Error connecting to MPD", _reason(e)) from e
    except BaseException:
        conn.close()
        raise

    logger.debug(f"Connected to MPD at {host}:{port}")
    try:
        yield conn
    finally:
        conn.close()
        logger.debug(f"Disconnected from MPD at {host}:{port}")


async def check_connection(host: str, port: int, timeout: float = 5) -> bool:
    """Test if MPD is accessible."""
    try:
        async with connect(host, port, timeout):
            return True
    except MPDCommandError:
        return False

"""Run the API under uvicorn."""

import logging

import uvicorn

from .config import get_settings, resolve_log_level


def main():
    settings = get_settings()
    uvicorn.run(
        "mpd_api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=resolve_log_level(settings.log_level) or logging.INFO,
    )


if __name__ == "__main__":
    main()

"""ASGI entrypoint.

Serve with `uvicorn pixperiment.api.asgi:build_app --factory` or the
`pixperiment-api` console script.
"""

from fastapi import FastAPI

from pixperiment.api.app import create_app
from pixperiment.config import Settings
from pixperiment.containers import build_container


def build_app(settings: Settings | None = None) -> FastAPI:
    """Build the production app from environment settings."""
    return create_app(build_container(settings))


def main() -> None:
    import uvicorn

    settings = Settings()
    uvicorn.run(
        build_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )

"""Rate limit dependency and client identity resolution."""

from __future__ import annotations

import ipaddress
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from fastapi import Request

if TYPE_CHECKING:
    from pixperiment.containers import AppContainer

_UNKNOWN_IDENTITY = "unknown"


def client_identity(request: Request) -> str:
    """Return the caller's IP, preferring proxy headers over the socket peer."""
    candidates = [
        request.headers.get("cf-connecting-ip"),
        (request.headers.get("x-forwarded-for") or "").split(",")[0],
        request.headers.get("x-real-ip"),
        request.client.host if request.client else None,
    ]
    for candidate in candidates:
        value = (candidate or "").strip()
        if value and _is_ip(value):
            return value
    return _UNKNOWN_IDENTITY


def rate_limit(endpoint: str) -> Callable[[Request], Awaitable[None]]:
    """Build a dependency that charges one request against `endpoint`."""

    async def _dependency(request: Request) -> None:
        container: AppContainer = request.app.state.container
        container.rate_limiter.check(client_identity(request), endpoint)

    return _dependency


def _is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True

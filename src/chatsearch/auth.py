"""Resolution of the acting user for incoming requests."""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Request

from .errors import UnauthenticatedError

logger = logging.getLogger(__name__)

IdentityResolver = Callable[[Request], "str | None"]


class HeaderIdentityResolver:
    """Read the user id that an upstream auth proxy placed in a header."""

    def __init__(self, header_name: str = "X-User-Id") -> None:
        self._header_name = header_name

    def __call__(self, request: Request) -> str | None:
        value = request.headers.get(self._header_name)
        if value is None:
            return None
        return value.strip() or None


def require_user_id(resolver: IdentityResolver, request: Request) -> str:
    user_id = resolver(request)
    if not user_id:
        logger.info("auth.rejected path=%s", request.url.path)
        raise UnauthenticatedError("Unauthorized")
    return user_id

"""User context middleware.

Authentication happens upstream (gateway or session layer); this service
trusts the ``x-user-id`` header it forwards and only checks that the user
exists.
"""

import logging

from fastapi import Request, status
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from clausebase_api.db import session as db_session
from clausebase_api.models import User

logger = logging.getLogger(__name__)

PUBLIC_PATHS = {"/health", "/ready", "/docs", "/openapi.json", "/"}

# Invitation landing page lookups by token
PUBLIC_GET_PREFIXES = ("/v1/invitations/",)


def _load_user(user_id: str):
    db = db_session.SessionLocal()
    try:
        return db.get(User, user_id)
    finally:
        db.close()


class UserContextMiddleware(BaseHTTPMiddleware):
    """Resolve the calling user into request state."""

    @staticmethod
    def _is_public_get(request: Request) -> bool:
        path = request.url.path
        return (
            request.method == "GET"
            and path.startswith(PUBLIC_GET_PREFIXES)
            and path.count("/") == 3
        )

    async def dispatch(self, request: Request, call_next):
        """Process request with user extraction."""
        path = request.url.path
        if path in PUBLIC_PATHS or path.startswith("/metrics") or self._is_public_get(request):
            return await call_next(request)

        user_id = request.headers.get("x-user-id")
        if not user_id:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Missing user context. Provide x-user-id header."},
            )

        user = await run_in_threadpool(_load_user, user_id)

        if user is None:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Unknown user."},
            )

        request.state.user_id = user_id
        logger.debug(
            "Resolved user context",
            extra={
                "user_id": user_id,
                "correlation_id": getattr(request.state, "correlation_id", None),
                "path": path,
            },
        )
        return await call_next(request)

import hmac
from typing import Iterable, Optional, Set

import jwt
from fastapi import HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from kadre.config import get_settings
from kadre.db import Coach, get_session


def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization") or ""
    if not auth_header.lower().startswith("bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_cron_secret(request: Request) -> None:
    """FastAPI dependency guarding the scheduled-job endpoints."""
    secret = get_settings().cron_secret
    if not secret:
        raise HTTPException(status_code=500, detail="Cron secret not configured")
    token = _bearer_token(request)
    if not token or not hmac.compare_digest(token.encode(), secret.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")


class SupabaseAuthMiddleware(BaseHTTPMiddleware):
    """Resolves the calling coach from a Supabase-issued JWT."""

    def __init__(
        self,
        app,
        exempt_paths: Optional[Iterable[str]] = None,
        exempt_prefixes: Optional[Iterable[str]] = None,
    ):
        super().__init__(app)
        self.exempt_paths: Set[str] = set(exempt_paths or [])
        self.exempt_prefixes: Set[str] = set(exempt_prefixes or [])

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if (
            request.method == "OPTIONS"
            or path in self.exempt_paths
            or any(path.startswith(prefix) for prefix in self.exempt_prefixes)
        ):
            return await call_next(request)

        jwt_secret = get_settings().jwt_secret
        if not jwt_secret:
            return JSONResponse({"detail": "Auth secret not configured"}, status_code=500)

        token = _bearer_token(request)
        if not token:
            return JSONResponse({"detail": "Missing bearer token"}, status_code=401)

        try:
            payload = jwt.decode(
                token,
                jwt_secret,
                algorithms=["HS256"],
                options={"verify_aud": False},
            )
        except jwt.PyJWTError:
            return JSONResponse({"detail": "Invalid token"}, status_code=401)

        coach_id = payload.get("sub") or payload.get("user_id")
        if not coach_id:
            return JSONResponse({"detail": "Token missing user identifier"}, status_code=401)

        email = payload.get("email")
        async with get_session() as session:
            coach = await session.get(Coach, coach_id)
            if not coach:
                session.add(Coach(id=coach_id, email=email or "", full_name=email or coach_id))
                await session.commit()

        request.state.coach_id = coach_id
        request.state.email = email
        request.state.jwt_payload = payload
        return await call_next(request)

"""
CSRF Protection Middleware for FastAPI

Implements the double-submit cookie pattern:
- A CSRF token is issued as a cookie (and by GET /csrf-token)
- State-changing requests must echo it in the X-CSRF-Token header
- The carrier SMS webhook and the auth bootstrap endpoints are exempt

Disabled unless CSRF_ENABLED=true.
"""

import logging
import secrets
from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .config import ENVIRONMENT

logger = logging.getLogger(__name__)

CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "X-CSRF-Token"
CSRF_MAX_AGE = 3600

PROTECTED_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

EXEMPT_PATHS = (
    "/appointments/webhook/",  # Twilio posts here without cookies
    "/login",
    "/register",
    "/verify-code",
    "/resend-code",
    "/csrf-token",
    "/health",
)


def generate_csrf_token() -> str:
    """Generate a cryptographically secure CSRF token"""
    return secrets.token_urlsafe(32)


def is_path_exempt(path: str) -> bool:
    return any(path == exempt or path.startswith(exempt) for exempt in EXEMPT_PATHS)


def set_csrf_cookie(response: Response, token: str) -> None:
    # Readable by the frontend so it can be echoed back in the header
    is_local = ENVIRONMENT == "local"
    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=token,
        httponly=False,
        secure=not is_local,
        samesite="lax" if is_local else "none",
        max_age=CSRF_MAX_AGE,
        path="/",
    )


def _reject(request: Request, reason: str) -> JSONResponse:
    logger.warning(f"🚫 CSRF: {reason} for {request.method} {request.url.path}")
    return JSONResponse(status_code=403, content={"message": ["Invalid CSRF token"]})


class CSRFMiddleware(BaseHTTPMiddleware):
    """
    CSRF Protection Middleware using double-submit cookie pattern.

    1. Requests without a CSRF cookie get one set on the response
    2. POST/PUT/PATCH/DELETE outside EXEMPT_PATHS must carry an
       X-CSRF-Token header equal to the cookie
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        csrf_cookie = request.cookies.get(CSRF_COOKIE_NAME)

        if request.method in PROTECTED_METHODS and not is_path_exempt(request.url.path):
            csrf_header = request.headers.get(CSRF_HEADER_NAME)
            if not csrf_cookie:
                return _reject(request, "Missing cookie")
            if not csrf_header:
                return _reject(request, "Missing header")
            # Constant-time comparison
            if not secrets.compare_digest(csrf_cookie, csrf_header):
                return _reject(request, "Token mismatch")

        response = await call_next(request)

        if not csrf_cookie:
            set_csrf_cookie(response, generate_csrf_token())
            logger.debug("🔑 CSRF: Set new token cookie")

        return response

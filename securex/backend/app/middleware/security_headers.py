# backend/app/middleware/security_headers.py
"""
Security headers middleware
Implements OWASP recommendations
"""

from typing import Iterable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


def build_csp(connect_sources: Iterable[str] = ()) -> str:
    connect = " ".join(["'self'", *[src for src in connect_sources if src]])
    return (
        "default-src 'self'; "
        "script-src 'self'; "
        "style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data: https:; "
        "font-src 'self' https://fonts.gstatic.com; "
        f"connect-src {connect}; "
        "frame-ancestors 'none'; "
        "base-uri 'self'; "
        "form-action 'self' https://checkout.stripe.com;"
    )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""

    def __init__(self, app, connect_sources: Iterable[str] = (), hsts: bool = True):
        super().__init__(app)
        self.csp = build_csp(connect_sources)
        self.hsts = hsts

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Content-Security-Policy"] = self.csp

        if self.hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "geolocation=(), microphone=(), camera=(), usb=(), magnetometer=()"
        )

        if "server" in response.headers:
            del response.headers["server"]

        return response

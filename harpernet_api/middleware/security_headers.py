from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

DEFAULT_CSP = "default-src 'self'; frame-ancestors 'none'; object-src 'none'"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds hardening headers to every response.

    The API serves JSON only, so the default CSP is strict. Cross-Origin-Resource-Policy
    is ``cross-origin`` because the quiz frontends live on other origins.
    """

    def __init__(
        self,
        app,
        *,
        hsts_max_age: int = 15552000,  # 180 days
        hsts_include_subdomains: bool = True,
        content_security_policy: str | None = None,
        referrer_policy: str = "no-referrer",
        cross_origin_resource_policy: str = "cross-origin",
    ):
        super().__init__(app)
        self.hsts_max_age = hsts_max_age
        self.hsts_include_subdomains = hsts_include_subdomains
        self.content_security_policy = content_security_policy or DEFAULT_CSP
        self.referrer_policy = referrer_policy
        self.cross_origin_resource_policy = cross_origin_resource_policy

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)

        hsts = f"max-age={self.hsts_max_age}"
        if self.hsts_include_subdomains:
            hsts += "; includeSubDomains"
        response.headers["Strict-Transport-Security"] = hsts

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["X-DNS-Prefetch-Control"] = "off"
        response.headers["Content-Security-Policy"] = self.content_security_policy
        response.headers["Referrer-Policy"] = self.referrer_policy
        response.headers["Cross-Origin-Resource-Policy"] = self.cross_origin_resource_policy
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"

        return response

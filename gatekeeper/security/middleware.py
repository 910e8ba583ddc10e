"""
Request filtering middleware.

Builds a RequestContext from each request, asks the Shield for a decision,
and turns a deny into a 403. The decision engine is synchronous (store and
DNS round trips block), so it runs in the threadpool.

Besides the verdict the middleware handles two cookies:
- the session cookie, signed with itsdangerous. A client that drops it gets
  a fresh session every request, which is what the session check looks for.
- the script cookie, deleted when the engine asks for it to be re-proven.
"""

import logging
import secrets
import warnings
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from itsdangerous import BadSignature, URLSafeSerializer
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from gatekeeper.config import SECRET_KEY, SESSION_COOKIE_NAME
from gatekeeper.security.axiom import AxiomClient, create_event, get_axiom_client
from gatekeeper.security.context import RequestContext
from gatekeeper.security.records import Decision
from gatekeeper.security.shield import Shield

logger = logging.getLogger(__name__)

EXEMPT_PREFIXES = ("/health", "/static")


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling Cloudflare and proxies."""
    cf_ip = request.headers.get("CF-Connecting-IP")
    if cf_ip:
        return cf_ip
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


class ShieldMiddleware(BaseHTTPMiddleware):
    """Run every request through a Shield."""

    def __init__(
        self,
        app,
        shield: Shield,
        secret_key: str = SECRET_KEY,
        session_cookie: str = SESSION_COOKIE_NAME,
        hostname_resolver: Optional[Callable[[str], str]] = None,
        axiom: Optional[AxiomClient] = None,
        exempt_prefixes: tuple[str, ...] = EXEMPT_PREFIXES,
    ):
        super().__init__(app)
        if not secret_key:
            warnings.warn("GATEKEEPER_SECRET_KEY not set - using random key (sessions reset on restart)")
            secret_key = secrets.token_hex(32)
        self.shield = shield
        self.session_cookie = session_cookie
        self.hostname_resolver = hostname_resolver
        self.axiom = axiom or get_axiom_client()
        self.exempt_prefixes = exempt_prefixes
        self._serializer = URLSafeSerializer(secret_key, salt="gatekeeper-session")

    def _read_session(self, request: Request) -> Optional[str]:
        cookie = request.cookies.get(self.session_cookie)
        if not cookie:
            return None
        try:
            return self._serializer.loads(cookie)
        except BadSignature:
            return None

    def _decide(self, ctx: RequestContext) -> tuple[RequestContext, Decision]:
        if self.hostname_resolver is not None:
            ctx = RequestContext(
                ip=ctx.ip,
                hostname=self.hostname_resolver(ctx.ip),
                referer=ctx.referer,
                session=ctx.session,
                user_agent=ctx.user_agent,
                cookies=ctx.cookies,
            )
        return ctx, self.shield.run(ctx)

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if path.startswith(self.exempt_prefixes):
            return await call_next(request)

        session = self._read_session(request)
        new_session = session is None
        if new_session:
            session = secrets.token_urlsafe(16)

        ctx = RequestContext(
            ip=get_client_ip(request),
            referer=request.headers.get("referer", ""),
            session=session,
            user_agent=request.headers.get("user-agent", ""),
            cookies=dict(request.cookies),
        )
        ctx, decision = await run_in_threadpool(self._decide, ctx)

        if decision.allowed:
            response = await call_next(request)
        else:
            reason = int(decision.reason) if decision.reason is not None else None
            logger.warning(
                f"Request denied: ip={ctx.ip} reason={reason} path={path} "
                f"user_agent={ctx.user_agent[:100]}"
            )
            await self.axiom.log_event(create_event(
                ip=ctx.ip,
                method=request.method,
                path=path,
                user_agent=ctx.user_agent[:500],
                action="deny",
                reason=reason,
                hostname=ctx.hostname,
                referer=ctx.referer[:500],
                store_error=str(decision.error) if decision.error else None,
            ))
            response = JSONResponse(status_code=403, content={"error": "Forbidden", "reason": reason})

        if new_session:
            response.set_cookie(
                self.session_cookie,
                self._serializer.dumps(session),
                httponly=True,
                samesite="lax",
            )
        if decision.clear_cookie:
            settings = self.shield.settings
            response.delete_cookie(settings.cookie_name, path="/", domain=settings.cookie_domain or None)
        if decision.error is not None:
            response.headers["X-Gatekeeper-Degraded"] = "store"
        return response

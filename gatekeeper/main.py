import os
from typing import Optional

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from gatekeeper.config import ADMIN_TOKEN, CHANNEL
from gatekeeper.routes import admin
from gatekeeper.security import (
    AxiomClient,
    IpRuleList,
    RobotVerifier,
    Shield,
    ShieldMiddleware,
    ShieldSettings,
)
from gatekeeper.stores import build_store

RESOLVE_HOSTNAME = os.getenv("GATEKEEPER_RESOLVE_HOSTNAME", "false").lower() == "true"


def build_shield() -> Shield:
    """Shield wired from environment configuration."""
    shield = Shield(
        store=build_store(),
        classifier=RobotVerifier(),
        rule_list=IpRuleList(),
        settings=ShieldSettings.from_env(),
    )
    return shield.set_channel(CHANNEL)


def create_app(
    shield: Optional[Shield] = None,
    admin_token: str = ADMIN_TOKEN,
    axiom: Optional[AxiomClient] = None,
) -> FastAPI:
    shield = shield or build_shield()

    app = FastAPI(
        title="Gatekeeper",
        description="Per-request access control for HTTP traffic",
    )
    app.state.shield = shield
    app.state.admin_token = admin_token
    app.state.limiter = admin.limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    resolver = None
    if RESOLVE_HOSTNAME and isinstance(shield.classifier, RobotVerifier):
        resolver = shield.classifier.resolve_hostname

    app.add_middleware(
        ShieldMiddleware,
        shield=shield,
        hostname_resolver=resolver,
        axiom=axiom,
        exempt_prefixes=("/health", "/static", "/admin"),
    )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        shield.close()

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    app.include_router(admin.router)
    return app

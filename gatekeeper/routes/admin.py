"""
Admin routes for manual bans.
Protected by a bearer token (GATEKEEPER_ADMIN_TOKEN) and rate limited.
"""

import ipaddress
import logging
import secrets

from fastapi import APIRouter, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from gatekeeper.security import Shield, StoreError, Verdict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

# Slows down token guessing
limiter = Limiter(key_func=get_remote_address)


def require_admin(request: Request) -> None:
    """Check the request carries the admin bearer token."""
    expected = getattr(request.app.state, "admin_token", "")
    if not expected:
        raise HTTPException(status_code=503, detail="Admin API disabled")

    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(token, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")


def get_shield(request: Request) -> Shield:
    return request.app.state.shield


def validate_ip(ip: str) -> str:
    try:
        return str(ipaddress.ip_address(ip))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid IP address: {ip}")


@router.post("/ban/{ip}")
@limiter.limit("30/minute")
def ban(request: Request, ip: str):
    """Deny an IP until it is unbanned."""
    require_admin(request)
    ip = validate_ip(ip)
    try:
        get_shield(request).ban(ip)
    except StoreError as e:
        logger.error(f"Ban failed for {ip}: {e}")
        raise HTTPException(status_code=503, detail="Store unavailable")
    return {"ip": ip, "status": "banned"}


@router.post("/unban/{ip}")
@limiter.limit("30/minute")
def unban(request: Request, ip: str):
    """Remove an IP's rule so it is judged from scratch again."""
    require_admin(request)
    ip = validate_ip(ip)
    try:
        get_shield(request).unban(ip)
    except StoreError as e:
        logger.error(f"Unban failed for {ip}: {e}")
        raise HTTPException(status_code=503, detail="Store unavailable")
    return {"ip": ip, "status": "unbanned"}


@router.get("/rules/{ip}")
@limiter.limit("60/minute")
def get_rule(request: Request, ip: str):
    """Show the stored rule for an IP."""
    require_admin(request)
    ip = validate_ip(ip)
    shield = get_shield(request)
    try:
        verdict = Verdict.from_dict(shield.store.get(ip, "rule"))
    except StoreError as e:
        logger.error(f"Rule lookup failed for {ip}: {e}")
        raise HTTPException(status_code=503, detail="Store unavailable")
    if verdict is None:
        raise HTTPException(status_code=404, detail="No rule for this IP")
    return {
        "ip": verdict.ip,
        "hostname": verdict.hostname,
        "type": verdict.type.name.lower(),
        "reason": verdict.reason,
        "time": verdict.time,
    }

import hmac
import logging
import os
from typing import Any, List, Optional

from fastapi import Header, HTTPException, Query, Request, status

logger = logging.getLogger(__name__)


def get_api_keys() -> List[str]:
    keys = os.getenv("API_KEYS", "")
    return [k.strip() for k in keys.split(",") if k.strip()]


async def api_key_protection(
    request: Request = None,  # keep Request type so FastAPI injects it; default None for direct calls/tests
    x_api_key: str = Header(default=None, alias="X-API-KEY"),
):
    """Guard for operator routes: X-API-KEY must match one of API_KEYS."""
    debug = os.getenv("API_KEY_DEBUG", "").lower() in ("1", "true", "yes")
    path = request.url.path if request is not None else "<no-request>"

    valid_keys = get_api_keys()
    candidate = (x_api_key or "").strip()

    ok = bool(candidate) and any(hmac.compare_digest(candidate, k) for k in valid_keys)
    if debug:
        logger.info("API key check: path=%s ok=%s configured_keys=%d", path, ok, len(valid_keys))

    if not ok:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Unauthorized", "details": "Invalid or missing API Key"},
        )


def get_db(request: Request) -> Any:
    return request.app.state.db


def get_settings(request: Request) -> Any:
    return request.app.state.settings


def get_pricing_service(request: Request) -> Any:
    return request.app.state.pricing_service


def get_service_requests(request: Request) -> Any:
    return request.app.state.service_request_service


def get_payment_service(request: Request) -> Any:
    return request.app.state.payment_service


def get_registrations(request: Request) -> Any:
    return request.app.state.registration_service


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def verify_callback_source(
    request: Request,
    token: Optional[str] = Query(default=None),
    x_callback_token: Optional[str] = Header(default=None, alias="X-Callback-Token"),
):
    """
    Opt-in checks on the payment callback. With DARAJA_CALLBACK_TOKEN set the
    caller must present it (query or header); with DARAJA_CALLBACK_ALLOWED_IPS
    set the caller's address must be listed.
    """
    daraja = request.app.state.settings.daraja

    allowed_ips = daraja.callback_allowed_ips
    if allowed_ips:
        ip = client_ip(request)
        if ip not in allowed_ips:
            logger.warning("Rejected payment callback from %s (not in allow list)", ip)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"error": "Forbidden", "details": "Callback source not allowed"},
            )

    expected = daraja.callback_token
    if expected:
        presented = (token or x_callback_token or "").strip()
        if not presented or not hmac.compare_digest(presented, expected):
            logger.warning("Rejected payment callback from %s (bad callback token)", client_ip(request))
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={"error": "Unauthorized", "details": "Invalid callback token"},
            )

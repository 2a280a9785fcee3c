"""Twilio signature validation and rate limiting for webhook routes."""
from typing import Dict, Optional

from fastapi import Depends, HTTPException, Request
from twilio.request_validator import RequestValidator

from callbridge.core.dependencies import get_webhook_service
from callbridge.core.logging import get_logger
from callbridge.services.rate_limit import FixedWindowRateLimiter
from callbridge.services.webhook import WebhookService

logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Twilio-Signature"


def get_signed_url(request: Request, base_url: Optional[str]) -> str:
    """
    Rebuild the URL Twilio signed.

    Behind a tunnel or proxy the public URL differs from the one the server
    sees, so the configured base URL wins when set.
    """
    if not base_url:
        return str(request.url)

    url = f"{base_url.rstrip('/')}{request.url.path}"
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return url


def _verify_signature(
    request: Request,
    service: WebhookService,
    params: Dict[str, str],
    rejection_status: int,
) -> None:
    auth_token = service.settings.twilio_auth_token
    if not auth_token:
        logger.error("[SECURITY] TWILIO_AUTH_TOKEN not set in environment")
        raise HTTPException(status_code=500, detail="Server configuration error")

    signature = request.headers.get(SIGNATURE_HEADER)
    client = request.client.host if request.client else "unknown"
    if not signature:
        logger.warning(f"[SECURITY] Missing Twilio signature - Path: {request.url.path}, Client: {client}")
        raise HTTPException(status_code=rejection_status, detail="Missing signature")

    url = get_signed_url(request, service.settings.webhook_base_url)
    try:
        valid = RequestValidator(auth_token).validate(url, params, signature)
    except Exception as e:
        logger.error(f"[SECURITY] Webhook validation error - Error: {type(e).__name__}: {str(e)}")
        raise HTTPException(status_code=rejection_status, detail="Validation error")

    if not valid:
        logger.warning(f"[SECURITY] Invalid Twilio signature - Path: {request.url.path}, Client: {client}")
        raise HTTPException(status_code=rejection_status, detail="Invalid signature")


async def validate_webhook_signature(
    request: Request,
    service: WebhookService = Depends(get_webhook_service),
) -> None:
    """Reject webhook POSTs that Twilio did not sign (403)."""
    form = await request.form()
    params = {key: value for key, value in form.items() if isinstance(value, str)}
    _verify_signature(request, service, params, rejection_status=403)


async def validate_audio_signature(
    request: Request,
    service: WebhookService = Depends(get_webhook_service),
) -> None:
    """Reject audio fetches that Twilio did not sign (401)."""
    _verify_signature(request, service, {}, rejection_status=401)


def _enforce_rate_limit(limiter: FixedWindowRateLimiter, request: Request) -> None:
    key = request.client.host if request.client else "unknown"
    decision = limiter.hit(key)
    if not decision.allowed:
        logger.warning(f"[SECURITY] Rate limit exceeded - Path: {request.url.path}, Client: {key}")
        raise HTTPException(status_code=429, detail=limiter.message, headers=decision.headers())


async def limit_incoming_calls(
    request: Request,
    service: WebhookService = Depends(get_webhook_service),
) -> None:
    _enforce_rate_limit(service.incoming_call_limiter, request)


async def limit_outgoing_calls(
    request: Request,
    service: WebhookService = Depends(get_webhook_service),
) -> None:
    _enforce_rate_limit(service.outgoing_call_limiter, request)

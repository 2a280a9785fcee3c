"""Cached audio playback endpoint."""
from fastapi import APIRouter, Depends
from fastapi.responses import Response

from callbridge.api.security import validate_audio_signature
from callbridge.core.dependencies import get_webhook_service
from callbridge.core.logging import get_logger
from callbridge.services.webhook import WebhookService

router = APIRouter()
logger = get_logger(__name__)

NO_CACHE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "Cache-Control": "private, no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "Accept-Ranges": "bytes",
}


@router.get("/audio/{audio_id}", dependencies=[Depends(validate_audio_signature)])
async def get_audio(
    audio_id: str,
    service: WebhookService = Depends(get_webhook_service),
):
    """
    Serve synthesized speech to Twilio.

    Audio ids come from <Play> URLs in the TwiML we returned earlier.
    """
    audio = service.audio_cache.get(audio_id)
    if audio is None:
        logger.warning("[AUDIO] Audio not found or expired")
        return Response(content="Audio not found", status_code=404, media_type="text/plain")

    logger.info(f"[AUDIO] Audio served - Size: {len(audio) / 1024:.2f}KB")
    return Response(content=audio, media_type="audio/mpeg", headers=NO_CACHE_HEADERS)

"""Twilio voice webhook endpoints."""
from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import Response

from callbridge.api.security import (
    limit_incoming_calls,
    limit_outgoing_calls,
    validate_webhook_signature,
)
from callbridge.core.dependencies import get_webhook_service
from callbridge.core.logging import get_logger
from callbridge.services.voice.handler import VoiceSessionHandler
from callbridge.services.webhook import WebhookService

router = APIRouter()
logger = get_logger(__name__)


def _twiml_response(twiml: str) -> Response:
    return Response(content=twiml, media_type="application/xml")


@router.post(
    "/webhook/voice",
    dependencies=[Depends(limit_incoming_calls), Depends(validate_webhook_signature)],
)
async def handle_incoming_call(
    request: Request,
    CallSid: str = Form(...),
    SpeechResult: Optional[str] = Form(None),
    CallStatus: Optional[str] = Form(None),
    gatherCallback: bool = Query(False),
    service: WebhookService = Depends(get_webhook_service),
):
    """
    Handle incoming call callbacks from Twilio.

    Called when a call comes in and again after every speech gather.
    """
    logger.info(
        f"[INCOMING CALL] Received voice webhook - CallSid: {CallSid}, "
        f"Speech: {'yes' if SpeechResult else 'no'}, CallStatus: {CallStatus}, "
        f"Gather callback: {gatherCallback}, Client: {request.client.host if request.client else 'unknown'}"
    )

    try:
        twiml = await service.voice_handler.handle_incoming_call(
            CallSid,
            speech_result=SpeechResult,
            call_status=CallStatus,
            gather_callback=gatherCallback,
        )
    except Exception as e:
        logger.error(
            f"[INCOMING CALL] Error in voice webhook - CallSid: {CallSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        twiml = VoiceSessionHandler.error_twiml()

    return _twiml_response(twiml)


@router.post(
    "/webhook/voice/outgoing",
    dependencies=[Depends(limit_outgoing_calls), Depends(validate_webhook_signature)],
)
async def handle_outgoing_call(
    request: Request,
    CallSid: str = Form(...),
    CallStatus: Optional[str] = Form(None),
    topic: Optional[str] = Query(None),
    service: WebhookService = Depends(get_webhook_service),
):
    """Handle the answer callback of a call we placed."""
    logger.info(
        f"[OUTGOING CALL] Received outgoing call webhook - CallSid: {CallSid}, "
        f"CallStatus: {CallStatus}, Topic: {topic[:50] if topic else 'none'}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )

    try:
        twiml = await service.voice_handler.handle_outgoing_call(
            CallSid, topic=topic, call_status=CallStatus
        )
    except Exception as e:
        logger.error(
            f"[OUTGOING CALL] Error in outgoing voice webhook - CallSid: {CallSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        twiml = VoiceSessionHandler.error_twiml()

    return _twiml_response(twiml)


@router.post("/webhook/voice/status", dependencies=[Depends(validate_webhook_signature)])
async def handle_call_status(
    CallSid: str = Form(...),
    CallStatus: str = Form(...),
    service: WebhookService = Depends(get_webhook_service),
):
    """
    Handle call status updates from Twilio.

    This endpoint is called when call status changes (completed, failed, etc.).
    """
    logger.info(f"[CALL STATUS] Received status update - CallSid: {CallSid}, CallStatus: {CallStatus}")

    try:
        await service.voice_handler.handle_call_status(CallSid, CallStatus)
    except Exception as e:
        logger.error(
            f"[CALL STATUS] Error handling call status update - CallSid: {CallSid}, "
            f"CallStatus: {CallStatus}, Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )

    # Always OK so Twilio does not retry
    return Response(content="OK", media_type="text/plain")

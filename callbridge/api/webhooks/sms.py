"""Twilio SMS webhook endpoint."""
from fastapi import APIRouter, Depends, Form
from fastapi.responses import Response
from twilio.twiml.messaging_response import MessagingResponse

from callbridge.core.dependencies import get_webhook_service
from callbridge.core.logging import get_logger
from callbridge.services.webhook import WebhookService

router = APIRouter()
logger = get_logger(__name__)

SMS_ERROR_MESSAGE = "Sorry, I encountered an error. Please try again later."


@router.post("/webhook/sms")
async def handle_incoming_sms(
    Body: str = Form(""),
    From: str = Form(""),
    service: WebhookService = Depends(get_webhook_service),
):
    """
    Handle an inbound SMS.

    The reply goes out through the REST API, so the TwiML is empty on
    success. Errors still answer 200 with an apology to avoid Twilio retries.
    """
    logger.info(f"[SMS] Received SMS webhook - From: {From}, Length: {len(Body)}")
    twiml = MessagingResponse()

    try:
        await service.sms_handler.handle_inbound_message(From, Body)
    except Exception as e:
        logger.error(
            f"[SMS] Error in SMS webhook - From: {From}, Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        twiml = MessagingResponse()
        twiml.message(SMS_ERROR_MESSAGE)

    return Response(content=str(twiml), media_type="application/xml")

"""FastAPI dependencies."""
from typing import TYPE_CHECKING

from fastapi import Request

if TYPE_CHECKING:
    from callbridge.services.webhook import WebhookService


def get_webhook_service(request: Request) -> "WebhookService":
    """Get the webhook service that owns this application."""
    return request.app.state.webhook_service

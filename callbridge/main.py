"""FastAPI application and server entry point."""
import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from callbridge.api import audio, health
from callbridge.api.webhooks import sms, voice

if TYPE_CHECKING:
    from callbridge.services.webhook import WebhookService


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    service = app.state.webhook_service
    # Startup
    service.start_background_tasks()
    yield
    # Shutdown
    await service.stop_background_tasks()


def create_app(service: "WebhookService") -> FastAPI:
    """Build the webhook application bound to a webhook service."""
    app = FastAPI(
        title="Callbridge",
        description="Twilio voice and SMS webhooks for agent runtimes",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.webhook_service = service

    app.include_router(health.router, tags=["health"])
    app.include_router(audio.router, tags=["audio"])
    app.include_router(voice.router, tags=["webhooks"])
    app.include_router(sms.router, tags=["webhooks"])

    return app


def run() -> None:
    """Run the webhook server with the OpenAI runtime and the configured character."""
    from callbridge.core.config import settings
    from callbridge.core.logging import setup_logging
    from callbridge.services.runtime.character import load_character
    from callbridge.services.runtime.openai_runtime import OpenAIRuntime
    from callbridge.services.webhook import get_webhook_service

    setup_logging()
    runtime = OpenAIRuntime(load_character(settings.twilio_character), settings=settings)
    service = get_webhook_service(settings=settings, runtime=runtime)
    asyncio.run(service.serve())


if __name__ == "__main__":
    run()

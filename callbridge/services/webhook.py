"""Webhook service: owns the HTTP listener and every per-process store."""
import asyncio
import socket
import threading
from typing import Optional

import uvicorn

from callbridge.core.config import Settings, settings as default_settings
from callbridge.core.errors import ConfigurationError
from callbridge.core.logging import get_logger
from callbridge.services.audio.cache import AUDIO_SWEEP_INTERVAL_SECONDS, AudioCache
from callbridge.services.conversation.memory import (
    CONVERSATION_SWEEP_INTERVAL_SECONDS,
    ConversationMemory,
)
from callbridge.services.rate_limit import FixedWindowRateLimiter
from callbridge.services.runtime.base import AgentRuntime
from callbridge.services.sms.handler import SmsHandler
from callbridge.services.speech.base import SpeechBackend
from callbridge.services.speech.elevenlabs import ElevenLabsClient
from callbridge.services.speech.tts import TextToSpeechService
from callbridge.services.sweeper import PeriodicSweeper
from callbridge.services.telephony.twilio_client import TwilioService
from callbridge.services.voice.handler import VoiceSessionHandler

logger = get_logger(__name__)

BASE_PORT = 3003
MAX_PORT = 3010
DEFAULT_PORT = 3004


class WebhookService:
    """
    Process-wide webhook server.

    One instance per process, obtained through get_instance(). It owns the
    audio cache, the voice and SMS conversation memories, the TTS and Twilio
    services, both handlers, the rate limiters and the cleanup sweepers.
    """

    _instance: Optional["WebhookService"] = None
    _constructing = False
    _lock = threading.RLock()

    def __init__(
        self,
        settings: Optional[Settings] = None,
        runtime: Optional[AgentRuntime] = None,
        twilio: Optional[TwilioService] = None,
        speech_backend: Optional[SpeechBackend] = None,
    ):
        # Imported here: the app's routers import this module
        from callbridge.main import create_app

        self.settings = settings or default_settings
        self.runtime = runtime

        self.audio_cache = AudioCache()
        self.voice_memory = ConversationMemory(name="voice")
        self.sms_memory = ConversationMemory(name="sms")

        if speech_backend is None and self.settings.elevenlabs_xi_api_key:
            speech_backend = ElevenLabsClient(self.settings.elevenlabs_xi_api_key)
        if speech_backend is None:
            logger.warning("[WEBHOOK] ELEVENLABS_XI_API_KEY not set, using Twilio voices only")
        self.tts = TextToSpeechService(backend=speech_backend)

        if twilio is None:
            try:
                twilio = TwilioService.from_settings(self.settings)
            except ConfigurationError as e:
                logger.error(f"[WEBHOOK] Twilio service unavailable - Error: {str(e)}")
        self.twilio = twilio

        self.voice_handler = VoiceSessionHandler(
            tts=self.tts,
            memory=self.voice_memory,
            audio_cache=self.audio_cache,
            twilio=self.twilio,
            base_url=self.settings.webhook_base_url,
            default_runtime=runtime,
            default_voice_id=self.settings.elevenlabs_voice_id,
            default_model=self.settings.elevenlabs_default_model,
        )
        self.sms_handler = SmsHandler(self.twilio, self.sms_memory, default_runtime=runtime)

        self.incoming_call_limiter = FixedWindowRateLimiter(
            self.settings.incoming_call_rate_limit,
            self.settings.rate_limit_window_seconds,
            message="Too many incoming calls, please try again later",
        )
        self.outgoing_call_limiter = FixedWindowRateLimiter(
            self.settings.outgoing_call_rate_limit,
            self.settings.rate_limit_window_seconds,
            message="Too many outgoing calls, please try again later",
        )

        self.sweepers = [
            PeriodicSweeper("audio", AUDIO_SWEEP_INTERVAL_SECONDS, self.audio_cache.sweep),
            PeriodicSweeper("voice-memory", CONVERSATION_SWEEP_INTERVAL_SECONDS, self.voice_memory.sweep),
            PeriodicSweeper("sms-memory", CONVERSATION_SWEEP_INTERVAL_SECONDS, self.sms_memory.sweep),
        ]

        self.port: Optional[int] = None
        self._server: Optional[uvicorn.Server] = None
        self._server_task: Optional[asyncio.Task] = None
        self._initialized = False

        self.app = create_app(self)

    # ----- singleton -----

    @classmethod
    def get_instance(cls, **kwargs) -> "WebhookService":
        """
        Get the process-wide service, creating it on first use.

        Later callers get the same object and their arguments are ignored.
        Re-entering while the instance is being built raises RuntimeError.
        """
        with cls._lock:
            if cls._instance is not None:
                return cls._instance
            if cls._constructing:
                raise RuntimeError("WebhookService is already being constructed")

            cls._constructing = True
            try:
                cls._instance = cls(**kwargs)
            finally:
                cls._constructing = False
            return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        with cls._lock:
            cls._instance = None

    # ----- lifecycle -----

    def start_background_tasks(self) -> None:
        for sweeper in self.sweepers:
            sweeper.start()
        logger.debug("[WEBHOOK] Cleanup sweepers started")

    async def stop_background_tasks(self) -> None:
        for sweeper in self.sweepers:
            await sweeper.stop()
        logger.debug("[WEBHOOK] Cleanup sweepers stopped")

    def _is_port_free(self, port: int) -> bool:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            try:
                sock.bind((self.settings.webhook_host, port))
            except OSError:
                return False
            return True

    def find_available_port(self) -> int:
        """
        Pick the listening port.

        WEBHOOK_PORT is tried first when set, then 3003 through 3010 in order.

        Raises:
            ConfigurationError: If no candidate port can be bound
        """
        candidates = []
        if self.settings.webhook_port:
            candidates.append(self.settings.webhook_port)
        candidates.extend(port for port in range(BASE_PORT, MAX_PORT + 1) if port not in candidates)

        for port in candidates:
            if self._is_port_free(port):
                return port
            logger.info(f"[WEBHOOK] Port {port} in use, trying next")

        raise ConfigurationError(f"No available ports between {BASE_PORT} and {MAX_PORT}")

    async def initialize(self, runtime: Optional[AgentRuntime]) -> None:
        """
        Bind the runtime and start listening.

        Safe to call more than once; later calls are no-ops.
        """
        if self._initialized:
            logger.debug("[WEBHOOK] Webhook service already initialized")
            return
        if runtime is None:
            raise ConfigurationError("Runtime is required for initialization")

        self.runtime = runtime
        self.voice_handler.init(runtime)
        self.sms_handler.init(runtime)

        await self.tts.check_capacity()

        self.port = self.find_available_port()
        config = uvicorn.Config(
            self.app,
            host=self.settings.webhook_host,
            port=self.port,
            log_level="debug" if self.settings.debug else "info",
        )
        self._server = uvicorn.Server(config)
        self._server_task = asyncio.create_task(self._server.serve(), name="webhook-server")
        self._initialized = True

        logger.info(f"[WEBHOOK] Webhook server listening - Port: {self.port}")
        if self.settings.webhook_base_url:
            base = self.settings.webhook_base_url.rstrip("/")
            logger.info(f"[WEBHOOK] Voice webhook URL: {base}/webhook/voice")
            logger.info(f"[WEBHOOK] SMS webhook URL: {base}/webhook/sms")
        else:
            logger.warning("[WEBHOOK] WEBHOOK_BASE_URL not set, Twilio cannot reach this server")

    async def serve(self, runtime: Optional[AgentRuntime] = None) -> None:
        """Initialize and block until the server exits."""
        await self.initialize(runtime or self.runtime)
        try:
            if self._server_task is not None:
                await self._server_task
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Stop the server and sweepers and drop all in-memory state."""
        if self._server is not None:
            self._server.should_exit = True
        if self._server_task is not None and not self._server_task.done():
            await self._server_task

        await self.stop_background_tasks()
        await self.tts.aclose()
        self.audio_cache.clear()
        self.voice_memory.clear()
        self.sms_memory.clear()

        self._server = None
        self._server_task = None
        self._initialized = False

        if WebhookService._instance is self:
            WebhookService.reset_instance()
        logger.info("[WEBHOOK] Webhook service stopped")

    def is_healthy(self) -> bool:
        return self._initialized and self._server is not None and self._server.started


def get_webhook_service(**kwargs) -> WebhookService:
    """Get the process-wide webhook service."""
    return WebhookService.get_instance(**kwargs)

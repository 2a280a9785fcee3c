"""Voice call session handler."""
from typing import Dict, Optional
from urllib.parse import quote

from twilio.twiml.voice_response import VoiceResponse

from callbridge.core.errors import ConfigurationError, SessionNotFoundError
from callbridge.core.logging import get_logger
from callbridge.services.audio.cache import AudioCache
from callbridge.services.conversation.memory import ConversationMemory
from callbridge.services.runtime.base import AgentRuntime, ModelClass
from callbridge.services.speech.tts import TextToSpeechService
from callbridge.services.speech.voices import parse_voice_settings, resolve_say_voice
from callbridge.services.telephony.twilio_client import TwilioService
from callbridge.services.text import clean_response_text, is_goodbye, truncate_to_complete_sentence
from callbridge.services.voice.constants import (
    ERROR_MESSAGE,
    GATHER_LANGUAGE,
    GATHER_TIMEOUT_SECONDS,
    MAX_SPOKEN_RESPONSE_LENGTH,
    SILENCE_TIMEOUT_MESSAGE,
    STATUS_CALLBACK_TERMINAL_STATUSES,
    TERMINAL_CALL_STATUSES,
    VOICE_STOP_SEQUENCES,
)
from callbridge.services.voice.prompts import (
    get_farewell_prompt,
    get_greeting_prompt,
    get_response_prompt,
)

logger = get_logger(__name__)

FALLBACK_GREETING = "Hello! How can I help you today?"
FALLBACK_FAREWELL = "Thanks for calling. Goodbye!"
FALLBACK_REPLY = "Sorry, could you say that again?"


class VoiceSessionHandler:
    """
    Drives a phone call from first callback to hangup.

    Each webhook callback for a call moves it through
    new call -> awaiting speech -> processing -> awaiting speech ... -> ended.
    The call ends on a goodbye phrase, a silent gather, a terminal call
    status, or any error (after a spoken apology).

    Callbacks for the same CallSid are not serialized; two overlapping
    callbacks for one call may interleave their memory writes.
    """

    def __init__(
        self,
        tts: TextToSpeechService,
        memory: ConversationMemory,
        audio_cache: AudioCache,
        twilio: Optional[TwilioService] = None,
        base_url: Optional[str] = None,
        default_runtime: Optional[AgentRuntime] = None,
        default_voice_id: str = "21m00Tcm4TlvDq8ikWAM",
        default_model: str = "eleven_monolingual_v1",
    ):
        self.tts = tts
        self.memory = memory
        self.audio_cache = audio_cache
        self.twilio = twilio
        self.base_url = base_url.rstrip("/") if base_url else None
        self.default_runtime = default_runtime
        self.default_voice_id = default_voice_id
        self.default_model = default_model
        self._call_runtimes: Dict[str, AgentRuntime] = {}

    def init(self, runtime: AgentRuntime) -> None:
        """Set the runtime used for calls that have no binding yet."""
        self.default_runtime = runtime
        logger.info("[VOICE] Voice handler initialized with runtime")

    # ----- runtime bindings -----

    def bind_runtime(self, call_sid: str, runtime: AgentRuntime) -> None:
        self._call_runtimes[call_sid] = runtime

    def has_runtime(self, call_sid: str) -> bool:
        return call_sid in self._call_runtimes

    def get_call_runtime(self, call_sid: str) -> AgentRuntime:
        """Get the runtime bound to a call, binding the default one on first contact."""
        runtime = self._call_runtimes.get(call_sid) or self.default_runtime
        if runtime is None:
            raise ConfigurationError("No runtime found for call")

        self._call_runtimes.setdefault(call_sid, runtime)
        return runtime

    def cleanup_call(self, call_sid: str) -> None:
        """Drop the call's conversation and runtime binding."""
        self._call_runtimes.pop(call_sid, None)
        self.memory.clear_session(call_sid)
        logger.debug(f"[VOICE] Cleaned up call resources - CallSid: {call_sid}")

    # ----- webhook entry points -----

    async def handle_incoming_call(
        self,
        call_sid: str,
        speech_result: Optional[str] = None,
        call_status: Optional[str] = None,
        gather_callback: bool = False,
    ) -> str:
        """
        Handle a callback on the inbound voice webhook.

        Returns:
            TwiML XML response
        """
        twiml = VoiceResponse()

        try:
            runtime = self.get_call_runtime(call_sid)

            if speech_result and speech_result.strip():
                await self._handle_user_speech(call_sid, speech_result, runtime, twiml)
            elif gather_callback or self.memory.get_session(call_sid) is not None:
                await self._handle_silence(call_sid, runtime, twiml)
            else:
                await self._handle_new_call(call_sid, runtime, twiml)

            if call_status in TERMINAL_CALL_STATUSES:
                self.cleanup_call(call_sid)
                logger.info(f"[VOICE] Call {call_status}, cleaned up resources - CallSid: {call_sid}")

            return str(twiml)

        except Exception as e:
            logger.error(
                f"[VOICE] Error handling incoming call - CallSid: {call_sid}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            self.cleanup_call(call_sid)
            return self.error_twiml()

    async def handle_outgoing_call(
        self,
        call_sid: str,
        topic: Optional[str] = None,
        call_status: Optional[str] = None,
    ) -> str:
        """
        Handle the first callback of a call placed by initiate_call.

        Returns:
            TwiML XML response
        """
        twiml = VoiceResponse()

        try:
            runtime = self.get_call_runtime(call_sid)
            await self._handle_new_call(call_sid, runtime, twiml, topic=topic)

            if call_status in TERMINAL_CALL_STATUSES:
                self.cleanup_call(call_sid)
                logger.info(
                    f"[VOICE] Outgoing call ended, cleaned up resources - CallSid: {call_sid}, "
                    f"Status: {call_status}"
                )

            return str(twiml)

        except Exception as e:
            logger.error(
                f"[VOICE] Error handling outgoing call - CallSid: {call_sid}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            self.cleanup_call(call_sid)
            return self.error_twiml()

    async def handle_call_status(self, call_sid: str, call_status: str) -> bool:
        """Clean up when Twilio reports the call is over. Returns True if cleaned up."""
        if call_status not in STATUS_CALLBACK_TERMINAL_STATUSES:
            logger.debug(
                f"[VOICE] Status update needs no action - CallSid: {call_sid}, Status: {call_status}"
            )
            return False

        self.cleanup_call(call_sid)
        logger.info(f"[VOICE] Call ended - CallSid: {call_sid}, Status: {call_status}")
        return True

    async def initiate_call(
        self,
        to: str,
        message: str,
        runtime: AgentRuntime,
        topic: Optional[str] = None,
    ) -> str:
        """
        Place an outbound call that opens with a topic-scoped greeting.

        Returns:
            Twilio call SID
        """
        if self.twilio is None:
            raise ConfigurationError("Twilio service not properly initialized")
        base_url = self._require_base_url()

        extracted_topic = topic or message
        logger.info(f"[VOICE] Initiating outgoing call - To: {to}, Topic: {extracted_topic[:50]}")

        call_sid = await self.twilio.create_call(
            to=to,
            url=f"{base_url}/webhook/voice/outgoing?topic={quote(extracted_topic)}",
            status_callback=f"{base_url}/webhook/voice/status",
        )

        self.bind_runtime(call_sid, runtime)
        self.memory.create_session(call_sid, runtime.character.name)
        self.memory.append_message(call_sid, "assistant", message)

        logger.info(f"[VOICE] Outgoing call initiated - CallSid: {call_sid}")
        return call_sid

    # ----- state transitions -----

    async def _handle_new_call(
        self,
        call_sid: str,
        runtime: AgentRuntime,
        twiml: VoiceResponse,
        topic: Optional[str] = None,
    ) -> None:
        logger.info(f"[VOICE] Handling new call - CallSid: {call_sid}, Topic: {topic or 'none'}")
        self._require_base_url()

        greeting = await runtime.generate_text(
            get_greeting_prompt(topic, runtime.character),
            model_class=ModelClass.SMALL,
            stop=VOICE_STOP_SEQUENCES,
        )
        greeting = self._shape_response(greeting) or FALLBACK_GREETING

        await self._speak(twiml, greeting, runtime)

        self.memory.create_session(call_sid, runtime.character.name)
        self.memory.append_message(call_sid, "assistant", greeting)

        self._add_gather(twiml)
        logger.info(f"[VOICE] New call handled - CallSid: {call_sid}, Greeting length: {len(greeting)}")

    async def _handle_silence(
        self, call_sid: str, runtime: AgentRuntime, twiml: VoiceResponse
    ) -> None:
        logger.info(f"[VOICE] No speech before gather timeout, ending call - CallSid: {call_sid}")
        await self._speak(twiml, SILENCE_TIMEOUT_MESSAGE, runtime)
        twiml.hangup()
        self.cleanup_call(call_sid)

    async def _handle_user_speech(
        self,
        call_sid: str,
        speech: str,
        runtime: AgentRuntime,
        twiml: VoiceResponse,
    ) -> None:
        if is_goodbye(speech):
            await self._handle_goodbye(call_sid, runtime, twiml)
            return

        words = speech.split()
        logger.info(
            f"[VOICE] Processing user speech - CallSid: {call_sid}, Length: {len(speech)}, "
            f"Preview: '{' '.join(words[:3])}...'"
        )

        response = await runtime.generate_text(
            get_response_prompt(speech, runtime.character),
            model_class=ModelClass.SMALL,
            stop=VOICE_STOP_SEQUENCES,
        )
        response = self._shape_response(response) or FALLBACK_REPLY

        await self._speak(twiml, response, runtime)

        try:
            self._record_exchange(call_sid, speech, response)
        except SessionNotFoundError:
            logger.warning(f"[VOICE] Conversation missing, recreating - CallSid: {call_sid}")
            self.memory.create_session(call_sid, runtime.character.name)
            self._record_exchange(call_sid, speech, response)

        self._add_gather(twiml)
        logger.info(f"[VOICE] User speech handled - CallSid: {call_sid}, Response length: {len(response)}")

    async def _handle_goodbye(
        self, call_sid: str, runtime: AgentRuntime, twiml: VoiceResponse
    ) -> None:
        logger.info(f"[VOICE] Goodbye detected, ending call - CallSid: {call_sid}")

        farewell = await runtime.generate_text(
            get_farewell_prompt(runtime.character),
            model_class=ModelClass.SMALL,
            stop=VOICE_STOP_SEQUENCES,
        )
        farewell = self._shape_response(farewell) or FALLBACK_FAREWELL

        await self._speak(twiml, farewell, runtime)
        twiml.hangup()
        self.cleanup_call(call_sid)

    # ----- helpers -----

    def _record_exchange(self, call_sid: str, speech: str, response: str) -> None:
        self.memory.append_message(call_sid, "user", speech)
        self.memory.append_message(call_sid, "assistant", response)

    @staticmethod
    def _shape_response(text: str) -> str:
        return truncate_to_complete_sentence(clean_response_text(text or ""), MAX_SPOKEN_RESPONSE_LENGTH)

    async def _speak(self, twiml: VoiceResponse, text: str, runtime: AgentRuntime) -> None:
        """Play synthesized audio, or fall back to Twilio's own voice."""
        voice_settings = parse_voice_settings(
            runtime.character, self.default_voice_id, self.default_model
        )
        result = await self.tts.synthesize(text, voice_settings)

        if result.ok:
            audio_id = self.audio_cache.put(result.audio)
            twiml.play(f"{self._require_base_url()}/audio/{audio_id}")
            return

        say_voice = resolve_say_voice(runtime.character.voice)
        logger.debug(f"[VOICE] Using Twilio TTS ({result.status.value}) - Voice: {say_voice.voice}")
        twiml.say(text, voice=say_voice.voice, language=say_voice.language)

    def _add_gather(self, twiml: VoiceResponse) -> None:
        twiml.gather(
            input="speech",
            timeout=GATHER_TIMEOUT_SECONDS,
            action=f"{self._require_base_url()}/webhook/voice?gatherCallback=true",
            method="POST",
            language=GATHER_LANGUAGE,
            action_on_empty_result=True,
        )

    def _require_base_url(self) -> str:
        if not self.base_url:
            raise ConfigurationError("WEBHOOK_BASE_URL not set in environment")
        return self.base_url

    @staticmethod
    def error_twiml(message: str = ERROR_MESSAGE) -> str:
        """Spoken apology followed by hangup."""
        twiml = VoiceResponse()
        twiml.say(message)
        twiml.hangup()
        return str(twiml)

"""Constants for the voice call flow."""

# Substring match, case-insensitive
GOODBYE_PHRASES = [
    "goodbye",
    "bye",
    "bye bye",
    "hang up",
    "see you",
    "talk to you later",
    "have a good day",
    "good bye",
    "end call",
    "that will be all",
]

# Call statuses that end a session
TERMINAL_CALL_STATUSES = ["completed", "failed"]

# Statuses reported by the status callback that also end a session
STATUS_CALLBACK_TERMINAL_STATUSES = ["completed", "failed", "busy", "no-answer", "canceled"]

MAX_SPOKEN_RESPONSE_LENGTH = 250

GATHER_TIMEOUT_SECONDS = 5
GATHER_LANGUAGE = "en-US"

SILENCE_TIMEOUT_MESSAGE = "I haven't heard from you for a while. Goodbye!"
ERROR_MESSAGE = "I'm sorry, I encountered an error. Please try again later."

DEFAULT_CHARACTER_NAME = "AI Assistant"

# Stop sequences for spoken generations
VOICE_STOP_SEQUENCES = ["\n", "User:", "Assistant:"]

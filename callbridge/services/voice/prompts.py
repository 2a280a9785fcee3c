"""Prompt templates for spoken responses."""
from typing import Optional

from callbridge.services.runtime.character import Character


def _persona_block(character: Character) -> str:
    bio = "\n".join(character.bio)
    style = "\n".join(character.style)
    return f"""Bio traits to incorporate:
{bio}

Speaking style:
{style}"""


def get_response_prompt(topic: str, character: Character) -> str:
    """Prompt for a short spoken reply about a topic (or to what the caller said)."""
    return f"""You are {character.name}. Generate a VERY BRIEF voice response about {topic}.
IMPORTANT: Keep response under 100 characters. Use ONE short statement and ONE question.

{_persona_block(character)}"""


def get_greeting_prompt(topic: Optional[str], character: Character) -> str:
    """Prompt for the opening line of a call, optionally scoped to a topic."""
    if not topic:
        return get_response_prompt("greeting", character)

    return f"""You are {character.name}. Generate a VERY BRIEF voice greeting about {topic}.
IMPORTANT: Keep response under 250 characters. Mention that you're calling specifically to discuss {topic}.
Make it engaging and invite discussion.

{_persona_block(character)}"""


def get_farewell_prompt(character: Character) -> str:
    """Prompt for a character-appropriate goodbye."""
    return get_response_prompt("saying goodbye", character)


def get_call_opening_prompt(topic: str, character: Character) -> str:
    """Prompt for the first line of a call we place."""
    return f"""You are {character.name}. Generate a phone call opening that follows this EXACT structure:
1. Brief self-introduction (e.g., "Hello, this is {character.name}")
2. ONE short statement about {topic} (max 100 characters)
3. ONE engaging question about their thoughts on {topic}

IMPORTANT: Total response must be under 200 characters to avoid cut-offs.

{_persona_block(character)}"""

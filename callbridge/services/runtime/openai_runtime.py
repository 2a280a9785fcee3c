"""OpenAI-backed agent runtime."""
from typing import Dict, List, Optional

from openai import AsyncOpenAI

from callbridge.core.config import Settings, settings as default_settings
from callbridge.core.errors import ConfigurationError
from callbridge.core.logging import get_logger
from callbridge.services.runtime.base import AgentRuntime, ModelClass
from callbridge.services.runtime.character import Character

logger = get_logger(__name__)

# Chat completions accept at most four stop sequences
MAX_STOP_SEQUENCES = 4


class OpenAIRuntime(AgentRuntime):
    """Runtime generating text with OpenAI chat completions."""

    def __init__(
        self,
        character: Character,
        settings: Optional[Settings] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        super().__init__(character)
        settings = settings or default_settings

        if client is None:
            if not settings.openai_api_key:
                raise ConfigurationError("OPENAI_API_KEY not set in environment")
            client = AsyncOpenAI(api_key=settings.openai_api_key)

        self.client = client
        self.models: Dict[ModelClass, str] = {
            ModelClass.SMALL: settings.openai_model_small,
            ModelClass.MEDIUM: settings.openai_model_medium,
            ModelClass.LARGE: settings.openai_model_large,
        }

    async def generate_text(
        self,
        context: str,
        model_class: ModelClass = ModelClass.SMALL,
        stop: Optional[List[str]] = None,
    ) -> str:
        model = self.models[model_class]
        logger.debug(f"[RUNTIME] Generating text - Model: {model}, Context length: {len(context)}")

        response = await self.client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": context}],
            temperature=0.7,
            stop=stop[:MAX_STOP_SEQUENCES] if stop else None,
        )

        content = response.choices[0].message.content or ""
        return content.strip()

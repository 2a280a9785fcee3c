"""Host agent runtime interface."""
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional

from callbridge.services.runtime.character import Character


class ModelClass(str, Enum):
    """Model size requested from the runtime."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"

    def __str__(self) -> str:
        """Return the string value of the model class."""
        return self.value


class AgentRuntime(ABC):
    """Handle to the host agent: its persona and its text generation capability."""

    def __init__(self, character: Character):
        self.character = character

    @abstractmethod
    async def generate_text(
        self,
        context: str,
        model_class: ModelClass = ModelClass.SMALL,
        stop: Optional[List[str]] = None,
    ) -> str:
        """Generate a completion for the given prompt context."""
        pass

"""Chat command interface."""
from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel

from callbridge.services.runtime.base import AgentRuntime

INVALID_NUMBER_MESSAGE = "Invalid phone number format. Please use international format (e.g., +1234567890)"


class ActionResult(BaseModel):
    """Outcome of a chat command."""

    success: bool
    message: Optional[str] = None
    call_sid: Optional[str] = None


class Action(ABC):
    """Abstract base class for chat commands the agent can carry out."""

    name: str = ""
    description: str = ""
    similes: List[str] = []

    @abstractmethod
    def validate(self, text: str) -> bool:
        """Check whether a chat message is this command."""
        pass

    @abstractmethod
    async def handle(self, runtime: AgentRuntime, text: str) -> ActionResult:
        """Carry out the command in a chat message."""
        pass


def map_delivery_error(error: Exception, permission_message: str) -> Optional[ActionResult]:
    """
    Turn a known delivery failure into a failed result.

    Returns None for errors the caller should re-raise.
    """
    error_message = str(error).lower()
    if "invalid" in error_message or "not a valid phone number" in error_message:
        return ActionResult(success=False, message=INVALID_NUMBER_MESSAGE)
    if "permission" in error_message:
        return ActionResult(success=False, message=permission_message)
    return None

"""Conversation data models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class Role(str, Enum):
    """Author of a transcript turn."""
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Turn:
    """Represents a single message in the chat transcript."""
    role: Role
    content: str


INITIAL_GREETING = Turn(
    role=Role.ASSISTANT,
    content=(
        "Hello! I'm your MedFit assistant. I can help you with medical-related questions "
        "about conditions, diseases, diagnoses, and treatments. There may be occasional "
        "usage limits on the model I run on. How can I assist you today?"
    ),
)


@dataclass
class GenerationAttempt:
    """Outcome of one call to the generation API."""
    number: int
    succeeded: bool
    latency_ms: int = 0
    error_code: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class GenerationRequest:
    """One outbound generation call: the rendered prompt and its attempts."""
    prompt: str
    attempts: List[GenerationAttempt] = field(default_factory=list)

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

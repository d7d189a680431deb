"""Conversation pipeline: one user turn in, exactly one assistant turn out."""
import asyncio
import logging
import time
from enum import Enum
from typing import Callable, List, Optional, Tuple

from models.conversation import (
    INITIAL_GREETING,
    GenerationAttempt,
    GenerationRequest,
    Role,
    Turn,
)
from services.llm_client import LLMClient, LLMClientError, LLMError, LLMResponse, TextGenerator
from services.retry import RetryExhaustedError, RetryPolicy, Sleep, retry_async

logger = logging.getLogger(__name__)

ERROR_PREFIX = "I apologize, but I encountered an error processing your request. "
RATE_LIMIT_GUIDANCE = (
    "You may have reached the API rate limit for the model. Please try again in a moment."
)
PERMISSION_GUIDANCE = (
    "There might be an issue with API access permissions. Please try a different question."
)
GENERIC_GUIDANCE = (
    "Please try asking your question again, or rephrase it if the issue persists."
)

RATE_LIMIT_CODES = {"RATE_LIMIT_ERROR"}
PERMISSION_CODES = {"AUTHENTICATION_ERROR", "PERMISSION_ERROR"}

TurnListener = Callable[[Turn], None]


class ConversationState(str, Enum):
    """Whether the pipeline can accept a new submission."""
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"


def diagnose_failure(error: BaseException) -> str:
    """
    Turn a generation failure into the assistant message shown to the user.

    The internal cause is never echoed back; only the guidance differs.
    """
    code = error.error.code if isinstance(error, LLMClientError) else None
    message = str(error).lower()

    if code in RATE_LIMIT_CODES or "quota" in message or "rate limit" in message:
        guidance = RATE_LIMIT_GUIDANCE
    elif code in PERMISSION_CODES or "permission" in message or "access" in message:
        guidance = PERMISSION_GUIDANCE
    else:
        guidance = GENERIC_GUIDANCE
    return ERROR_PREFIX + guidance


class ConversationPipeline:
    """
    Owns the chat transcript and the request/response cycle for one user.

    The transcript starts with a fixed greeting and only grows. While a reply is
    pending, further submissions are rejected, so turns always alternate
    user/assistant in submission order.
    """

    def __init__(
        self,
        llm_client: TextGenerator,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
        greeting: Turn = INITIAL_GREETING,
    ):
        """
        Args:
            llm_client: Generation backend (LLMClient, GeminiClient or a fake)
            retry_policy: Attempts and backoff (defaults to 3 attempts, 1s then 2s)
            sleep: Coroutine used for backoff waits
            greeting: First assistant turn of every transcript
        """
        self.llm_client = llm_client
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._transcript: List[Turn] = [greeting]
        self._state = ConversationState.IDLE
        self._listeners: List[TurnListener] = []
        self._closed = False

    @property
    def transcript(self) -> Tuple[Turn, ...]:
        return tuple(self._transcript)

    @property
    def state(self) -> ConversationState:
        return self._state

    @property
    def is_awaiting_response(self) -> bool:
        return self._state is ConversationState.AWAITING_RESPONSE

    def add_listener(self, listener: TurnListener) -> None:
        """Register a callback invoked with every appended turn."""
        self._listeners.append(listener)

    def remove_listener(self, listener: TurnListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def close(self) -> None:
        """Make the pipeline inert; later submissions are rejected."""
        self._closed = True
        self._listeners.clear()

    async def submit(self, text: str) -> bool:
        """
        Submit a user message and wait for the assistant reply.

        Args:
            text: Raw user input

        Returns:
            False if the submission was rejected (blank input, a reply is still
            pending, or the pipeline is closed); True once the user turn and the
            assistant turn have both been appended.
        """
        if self._closed:
            logger.warning("Submission rejected: conversation is closed")
            return False
        if self.is_awaiting_response:
            logger.info("Submission rejected: a response is already pending")
            return False
        question = text.strip() if text else ""
        if not question:
            return False

        self._append(Turn(role=Role.USER, content=question))
        self._state = ConversationState.AWAITING_RESPONSE

        request = GenerationRequest(prompt=LLMClient.build_prompt(question))
        try:
            try:
                response = await retry_async(
                    lambda: self._attempt(request),
                    self.retry_policy,
                    sleep=self._sleep,
                    description="Chat generation",
                )
            except RetryExhaustedError as e:
                logger.error(
                    f"Chatbot error after {e.attempts} attempt(s): {e.last_error}",
                    extra={"attempts": e.attempts},
                )
                reply = Turn(role=Role.ASSISTANT, content=diagnose_failure(e.last_error))
            else:
                reply = Turn(role=Role.ASSISTANT, content=response.text)
            self._append(reply)
        finally:
            self._state = ConversationState.IDLE

        return True

    async def _attempt(self, request: GenerationRequest) -> LLMResponse:
        number = request.attempt_count + 1
        start_time = time.time()
        try:
            response = await self.llm_client.generate(request.prompt)
            if not response.text or not response.text.strip():
                raise LLMClientError(LLMError(
                    code="EMPTY_RESPONSE",
                    message="Empty response received",
                    details={"model": response.model_used},
                ))
        except Exception as e:
            code = e.error.code if isinstance(e, LLMClientError) else type(e).__name__
            request.attempts.append(GenerationAttempt(
                number=number,
                succeeded=False,
                latency_ms=int((time.time() - start_time) * 1000),
                error_code=code,
                error_message=str(e),
            ))
            logger.warning(
                f"Generation attempt {number} failed: {code}",
                extra={"attempt": number, "error_code": code},
            )
            raise

        request.attempts.append(GenerationAttempt(
            number=number, succeeded=True, latency_ms=response.latency_ms,
        ))
        logger.info(
            f"Generation attempt {number} succeeded in {response.latency_ms}ms",
            extra={"attempt": number, "latency_ms": response.latency_ms},
        )
        return response

    def _append(self, turn: Turn) -> None:
        if self._closed:
            logger.debug("Dropping turn for closed conversation")
            return
        self._transcript.append(turn)
        for listener in list(self._listeners):
            listener(turn)

"""LLM Client for Groq API integration."""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NoReturn, Optional, Protocol
from groq import AsyncGroq
from groq import RateLimitError, AuthenticationError, PermissionDeniedError, APIError, APITimeoutError
import logging

from config import (
    GROQ_API_KEY,
    GROQ_MODEL,
    GENERATION_TEMPERATURE,
    GENERATION_TOP_K,
    GENERATION_TOP_P,
    GENERATION_MAX_OUTPUT_TOKENS,
    SAFETY_THRESHOLDS,
)

logger = logging.getLogger(__name__)


class HarmCategory(str, Enum):
    """Content categories the generation API can filter."""
    HARASSMENT = "HARM_CATEGORY_HARASSMENT"
    HATE_SPEECH = "HARM_CATEGORY_HATE_SPEECH"
    SEXUALLY_EXPLICIT = "HARM_CATEGORY_SEXUALLY_EXPLICIT"
    DANGEROUS_CONTENT = "HARM_CATEGORY_DANGEROUS_CONTENT"


class BlockThreshold(str, Enum):
    """Minimum severity at which content is blocked."""
    BLOCK_NONE = "BLOCK_NONE"
    BLOCK_ONLY_HIGH = "BLOCK_ONLY_HIGH"
    BLOCK_MEDIUM_AND_ABOVE = "BLOCK_MEDIUM_AND_ABOVE"
    BLOCK_LOW_AND_ABOVE = "BLOCK_LOW_AND_ABOVE"


@dataclass(frozen=True)
class SafetySetting:
    """Blocking threshold for one harm category."""
    category: HarmCategory
    threshold: BlockThreshold


def default_safety_settings() -> List[SafetySetting]:
    """Safety settings built from the SAFETY_THRESHOLD* environment variables."""
    return [
        SafetySetting(HarmCategory[name], BlockThreshold(threshold))
        for name, threshold in SAFETY_THRESHOLDS.items()
    ]


@dataclass
class GenerationConfig:
    """Sampling and safety configuration shared by all generation backends."""
    temperature: float = GENERATION_TEMPERATURE
    top_k: int = GENERATION_TOP_K
    top_p: float = GENERATION_TOP_P
    max_output_tokens: int = GENERATION_MAX_OUTPUT_TOKENS
    safety_settings: List[SafetySetting] = field(default_factory=default_safety_settings)


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str


@dataclass
class LLMError:
    """Structured error response from LLM operations."""
    code: str
    message: str
    details: Dict[str, Any]


class LLMClientError(Exception):
    """Custom exception for LLM client errors with structured error information."""

    def __init__(self, error: LLMError):
        self.error = error
        super().__init__(error.message)


class TextGenerator(Protocol):
    """Anything that turns a prompt into an LLMResponse."""

    async def generate(self, prompt: str) -> LLMResponse:
        ...


def raise_llm_error(
    code: str,
    message: str,
    model: str,
    start_time: float,
    original: Optional[BaseException] = None,
    **details: Any,
) -> NoReturn:
    """Log and raise an LLMClientError carrying model name and latency."""
    latency_ms = int((time.time() - start_time) * 1000)
    error = LLMError(
        code=code,
        message=message,
        details={"model": model, "latency_ms": latency_ms, **details},
    )
    if original is not None:
        error.details["original_error"] = str(original)
    logger.error(
        f"{code}: model={model}, latency={latency_ms}ms, error={original or message}",
        exc_info=original is not None,
        extra={"error_code": error.code, "error_details": error.details},
    )
    raise LLMClientError(error) from original


class LLMClient:
    """Client for interfacing with Groq API for text generation."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = GROQ_MODEL,
        generation_config: Optional[GenerationConfig] = None,
    ):
        """
        Initialize LLM client with Groq API key.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
            model: Groq model name
            generation_config: Sampling configuration (defaults from environment)
        """
        self.api_key = api_key or GROQ_API_KEY
        if not self.api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        self.model = model
        self.generation_config = generation_config or GenerationConfig()
        self.client = AsyncGroq(api_key=self.api_key)

        # Groq chat completions expose neither top-k nor per-category safety thresholds
        logger.info(
            f"LLMClient initialized successfully (model={model}); "
            f"top_k and {len(self.generation_config.safety_settings)} safety settings "
            f"are not supported by Groq and will be ignored"
        )

    async def generate(self, prompt: str) -> LLMResponse:
        """
        Generate response using Groq API.

        Args:
            prompt: Complete rendered prompt

        Returns:
            LLMResponse with text, token counts, and latency

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        start_time = time.time()
        config = self.generation_config

        try:
            logger.debug(f"Generating response with model: {self.model}")

            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": prompt
                    }
                ],
                max_tokens=config.max_output_tokens,
                temperature=config.temperature,
                top_p=config.top_p,
            )
        except RateLimitError as e:
            raise_llm_error(
                "RATE_LIMIT_ERROR",
                "Rate limit exceeded. Please try again in a few moments.",
                self.model, start_time, e, retry_after=60,
            )
        except AuthenticationError as e:
            raise_llm_error(
                "AUTHENTICATION_ERROR",
                "Authentication failed. Please check your API key.",
                self.model, start_time, e,
            )
        except PermissionDeniedError as e:
            raise_llm_error(
                "PERMISSION_ERROR",
                "Permission denied for this model or request.",
                self.model, start_time, e,
            )
        except APITimeoutError as e:
            raise_llm_error(
                "TIMEOUT_ERROR",
                "Request timed out. Please try again.",
                self.model, start_time, e,
            )
        except APIError as e:
            raise_llm_error(
                "API_ERROR",
                f"Groq API error: {str(e)}",
                self.model, start_time, e,
            )
        except Exception as e:
            raise_llm_error(
                "UNKNOWN_ERROR",
                f"Unexpected error during generation: {str(e)}",
                self.model, start_time, e, error_type=type(e).__name__,
            )

        latency_ms = int((time.time() - start_time) * 1000)
        text = response.choices[0].message.content or ""
        if not text.strip():
            raise_llm_error("EMPTY_RESPONSE", "Empty response received", self.model, start_time)

        tokens_input = response.usage.prompt_tokens
        tokens_output = response.usage.completion_tokens

        logger.info(
            f"Generated response: model={self.model}, "
            f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
            f"latency={latency_ms}ms"
        )

        return LLMResponse(
            text=text,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            latency_ms=latency_ms,
            model_used=self.model
        )

    @staticmethod
    def build_prompt(question: str) -> str:
        """
        Build the medical assistant prompt for a single question.

        Only the current question is embedded; earlier turns are never replayed,
        which keeps the prompt size bounded by the question length.

        Args:
            question: Latest user input, verbatim

        Returns:
            Complete prompt string
        """
        return f"""You are a medical assistant for MedFit. Provide accurate, helpful, and concise responses to medical questions. Only answer questions related to medical conditions, diseases, diagnoses, and treatments. If the question is not medical-related, politely decline to answer and remind the user that you can only help with medical topics.

Current question: {question}

Please provide a clear and accurate response based on medical knowledge. If you're unsure about something, acknowledge the uncertainty and suggest consulting a healthcare professional."""

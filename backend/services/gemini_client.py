"""LLM Client for Google Gemini, with per-category safety thresholds."""
import logging
import time
from typing import Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from config import GEMINI_API_KEY, GEMINI_MODEL
from services.llm_client import GenerationConfig, LLMResponse, raise_llm_error

logger = logging.getLogger(__name__)


class GeminiClient:
    """Client for interfacing with the Gemini API for text generation."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = GEMINI_MODEL,
        generation_config: Optional[GenerationConfig] = None,
    ):
        self.api_key = api_key or GEMINI_API_KEY
        if not self.api_key:
            raise ValueError("GEMINI_API_KEY must be provided or set in environment")

        self.model_name = model
        self.generation_config = generation_config or GenerationConfig()

        genai.configure(api_key=self.api_key)
        config = self.generation_config
        self.model = genai.GenerativeModel(
            model_name=model,
            generation_config={
                "temperature": config.temperature,
                "top_k": config.top_k,
                "top_p": config.top_p,
                "max_output_tokens": config.max_output_tokens,
            },
            safety_settings=[
                {"category": s.category.value, "threshold": s.threshold.value}
                for s in config.safety_settings
            ],
        )
        logger.info(f"GeminiClient initialized successfully (model={model})")

    async def generate(self, prompt: str) -> LLMResponse:
        """
        Generate response using the Gemini API.

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        start_time = time.time()

        try:
            response = await self.model.generate_content_async(prompt)
        except google_exceptions.ResourceExhausted as e:
            raise_llm_error(
                "RATE_LIMIT_ERROR",
                "Quota exceeded. Please try again in a few moments.",
                self.model_name, start_time, e, retry_after=60,
            )
        except google_exceptions.Unauthenticated as e:
            raise_llm_error(
                "AUTHENTICATION_ERROR",
                "Authentication failed. Please check your API key.",
                self.model_name, start_time, e,
            )
        except google_exceptions.PermissionDenied as e:
            raise_llm_error(
                "PERMISSION_ERROR",
                "Permission denied for this model or request.",
                self.model_name, start_time, e,
            )
        except google_exceptions.DeadlineExceeded as e:
            raise_llm_error(
                "TIMEOUT_ERROR",
                "Request timed out. Please try again.",
                self.model_name, start_time, e,
            )
        except google_exceptions.GoogleAPIError as e:
            raise_llm_error(
                "API_ERROR",
                f"Gemini API error: {str(e)}",
                self.model_name, start_time, e,
            )
        except Exception as e:
            raise_llm_error(
                "UNKNOWN_ERROR",
                f"Unexpected error during generation: {str(e)}",
                self.model_name, start_time, e, error_type=type(e).__name__,
            )

        feedback = getattr(response, "prompt_feedback", None)
        if feedback is not None and getattr(feedback, "block_reason", None):
            raise_llm_error(
                "SAFETY_BLOCKED",
                "The request was blocked by content safety filters.",
                self.model_name, start_time, block_reason=str(feedback.block_reason),
            )

        try:
            text = response.text or ""
        except ValueError as e:
            # .text raises when the only candidate was stopped by a safety filter
            raise_llm_error(
                "SAFETY_BLOCKED",
                "The response was blocked by content safety filters.",
                self.model_name, start_time, e,
            )

        if not text.strip():
            raise_llm_error("EMPTY_RESPONSE", "Empty response received", self.model_name, start_time)

        latency_ms = int((time.time() - start_time) * 1000)
        usage = getattr(response, "usage_metadata", None)
        tokens_input = getattr(usage, "prompt_token_count", 0) or 0
        tokens_output = getattr(usage, "candidates_token_count", 0) or 0

        logger.info(
            f"Generated response: model={self.model_name}, "
            f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
            f"latency={latency_ms}ms"
        )

        return LLMResponse(
            text=text,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            latency_ms=latency_ms,
            model_used=self.model_name,
        )

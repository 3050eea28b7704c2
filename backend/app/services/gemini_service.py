"""
School Directory Backend: Google Gemini Description Service
============================================================

What:  Generates a ~100 word, achievement-oriented description of a school
       with Google Gemini.
How:   Builds a prompt from the School's stored fields and calls Gemini with
       tenacity retries (exponential backoff with jitter) behind a circuit
       breaker.
Who:   Called by POST /api/schools/{id}/regenerate-description.

The description is returned to the caller and never written back to the
schools table.
"""

import logging
import time
import uuid
from typing import Any, Mapping, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential_jitter,
    retry_if_exception_type,
    before_sleep_log,
)

from app.config import settings
from app.exceptions import LLMServiceError, CircuitBreakerOpenError
from app.services.llm_base import LLMService

logger = logging.getLogger(__name__)

# Errors worth another attempt; anything else (bad key, blocked prompt) fails fast
TRANSIENT_ERRORS = (
    ConnectionError,
    TimeoutError,
    google_exceptions.ServiceUnavailable,
    google_exceptions.ResourceExhausted,
    google_exceptions.DeadlineExceeded,
    google_exceptions.InternalServerError,
)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Stops calling Gemini after repeated failures.

        CLOSED     calls pass; each failure bumps failure_count
        OPEN       calls rejected with CircuitBreakerOpenError until
                   recovery_timeout seconds have passed since the last failure
        HALF_OPEN  one trial call passes; success closes, failure reopens

    Single-process only: state lives in this object.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns True if a call may proceed.

        Raises:
            CircuitBreakerOpenError while OPEN and inside the recovery window.
        """
        if self.state != self.OPEN:
            return True

        elapsed = time.time() - (self.last_failure_time or 0)
        if elapsed >= self.recovery_timeout:
            logger.info("Circuit breaker HALF_OPEN after %.1fs", elapsed)
            self.state = self.HALF_OPEN
            return True

        raise CircuitBreakerOpenError(recovery_time=int(self.recovery_timeout - elapsed))

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker CLOSED (Gemini recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker back to OPEN (trial call failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPEN after %d consecutive failures", self.failure_count
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Gemini Service
# ══════════════════════════════════════════════════════════════════════════

class GeminiService(LLMService):
    """Gemini-backed school description writer."""

    PROMPT_TEMPLATE = (
        "Generate a professional, achievement-oriented description for a school "
        "based on the following details in about 100 words.\n"
        "Name: {name}\n"
        "Address: {address}\n"
        "City: {city}\n"
        "State: {state}\n"
        "Contact: {contact}\n"
        "Email: {email_id}\n"
        "Return only the description text, without headings or bullet points."
    )

    def __init__(self):
        if settings.gemini_api_key and settings.gemini_api_key != "your_gemini_api_key_here":
            genai.configure(api_key=settings.gemini_api_key)

        self.model = genai.GenerativeModel(settings.gemini_model)
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

        logger.info(
            "GeminiService initialized with model=%s, circuit_breaker(threshold=%d, recovery=%ds)",
            settings.gemini_model,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    @classmethod
    def build_prompt(cls, school: Mapping[str, Any]) -> str:
        """Fill the prompt template; missing fields render as 'N/A'."""
        fields = ("name", "address", "city", "state", "contact", "email_id")
        values = {field: school.get(field) or "N/A" for field in fields}
        return cls.PROMPT_TEMPLATE.format(**values)

    async def generate_description(self, school: Mapping[str, Any]) -> str:
        """
        Ask Gemini for a description of `school`.

        Flow:
            1. Circuit breaker check (may raise CircuitBreakerOpenError)
            2. Gemini call with retries on transient errors
            3. Record the outcome in the circuit breaker

        Raises:
            CircuitBreakerOpenError, LLMServiceError
        """
        call_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.can_execute()

        logger.info("[%s] Generating description for school id=%s", call_id, school.get("id"))

        try:
            description = await self._generate_with_retry(self.build_prompt(school), call_id)
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.warning("[%s] Gemini description failed: %s", call_id, str(e))
            raise LLMServiceError(
                message="AI description generation failed. Please try again later.",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"call_id": call_id, "error_type": type(e).__name__},
            ) from e

        self.circuit_breaker.record_success()
        if not description:
            raise LLMServiceError(
                message="The AI service returned an empty description.",
                context={"call_id": call_id},
            )
        return description

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _generate_with_retry(self, prompt: str, call_id: str) -> str:
        """
        One Gemini call. Decorated separately from generate_description so
        that only the API call is retried, not the circuit breaker check.
        """
        start_time = time.time()
        response = await self.model.generate_content_async(
            prompt,
            request_options={"timeout": settings.gemini_timeout},
        )
        duration_ms = (time.time() - start_time) * 1000

        text = response.text.strip() if response.text else ""
        logger.info(
            "[%s] Gemini description completed in %.0fms, %d chars",
            call_id,
            duration_ms,
            len(text),
        )
        return text

    async def health_check(self) -> bool:
        """
        List models to verify the API key and connectivity.

        Costs no tokens. Returns False instead of raising.
        """
        try:
            models = genai.list_models()
            target = f"models/{settings.gemini_model}"
            if target not in [m.name for m in models]:
                logger.warning("Configured model %s not found in available models", target)
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False


# Shared instance: the circuit breaker state must be shared across requests
gemini_service = GeminiService()

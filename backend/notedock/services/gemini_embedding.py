"""
NoteDock Backend - Google Gemini Embedding Provider
====================================================

What:  EmbeddingProvider backed by the Gemini embedding API.
Why:   Gives notes and search queries a shared vector space for semantic ranking.
How:   google-generativeai `embed_content_async`, wrapped in three layers:

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter for transient errors
    2. asyncio.wait_for around the whole retried call, so one embed() never
       takes longer than EMBEDDING_TIMEOUT_SECONDS
    3. Circuit breaker: after repeated failures, calls are rejected instantly
       until the recovery timeout elapses

    Every failure leaves this module as EmbeddingUnavailableError. Callers
    degrade (null embedding, lexical ranking) instead of failing the request.

Instantiated once per process in the app lifespan, because the circuit
breaker state must be shared by all requests.
"""

import asyncio
import logging
import time
import uuid
from typing import List, Optional

import google.generativeai as genai
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
    before_sleep_log,
)

from notedock.config import settings
from notedock.exceptions import (
    CircuitBreakerOpenError,
    EmbeddingUnavailableError,
    NoteDockError,
)
from notedock.services.embedding_base import EmbeddingProvider, EmbeddingPurpose

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN
        OPEN (rejecting all requests)
            → All calls raise CircuitBreakerOpenError immediately
            → After recovery_timeout seconds: transition to HALF_OPEN
        HALF_OPEN (testing recovery)
            → Allow ONE request through
            → On success: CLOSED; on failure: back to OPEN

    Not thread-safe; uvicorn async workers share a single event loop.
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
        Returns:
            True if the request can proceed (CLOSED, or HALF_OPEN after timeout).

        Raises:
            CircuitBreakerOpenError if OPEN and the recovery timeout hasn't elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (provider recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Gemini Embedding Provider
# ══════════════════════════════════════════════════════════════════════════

class GeminiEmbeddingProvider(EmbeddingProvider):
    """
    Error Handling Chain:
        API call fails → tenacity retries (EMBEDDING_RETRY_ATTEMPTS)
        → retries exhausted or timeout → record breaker failure
        → EmbeddingUnavailableError to the caller
        → threshold reached → later calls rejected without a network call
    """

    TASK_TYPES = {
        EmbeddingPurpose.DOCUMENT: "retrieval_document",
        EmbeddingPurpose.QUERY: "retrieval_query",
    }

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        dimensions: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.api_key = settings.gemini_api_key if api_key is None else api_key
        self.model_name = model or settings.embedding_model
        self._dimensions = dimensions or settings.embedding_dimensions
        self.timeout_seconds = timeout_seconds or settings.embedding_timeout_seconds

        self.configured = bool(self.api_key) and self.api_key != "your_gemini_api_key_here"
        if self.configured:
            genai.configure(api_key=self.api_key)

        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

        logger.info(
            "GeminiEmbeddingProvider initialized with model=%s, dims=%d, timeout=%.1fs, "
            "circuit_breaker(threshold=%d, recovery=%ds), configured=%s",
            self.model_name,
            self._dimensions,
            self.timeout_seconds,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
            self.configured,
        )

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def status(self) -> str:
        if not self.configured:
            return "unconfigured"
        if self.circuit_breaker.state == CircuitBreaker.OPEN:
            return "circuit_open"
        return "available"

    async def embed(
        self, text: str, purpose: EmbeddingPurpose = EmbeddingPurpose.DOCUMENT
    ) -> List[float]:
        """
        Flow:
            1. Reject immediately when unconfigured or given empty text
            2. Check circuit breaker → may raise CircuitBreakerOpenError
            3. Call Gemini with retry, bounded by the overall timeout
            4. Check the output dimensionality
            5. Record success/failure in the circuit breaker
        """
        if not self.configured:
            raise EmbeddingUnavailableError(
                message="Embedding provider is not configured",
                context={"reason": "unconfigured"},
            )

        cleaned = (text or "").strip()
        if not cleaned:
            raise EmbeddingUnavailableError(
                message="Nothing to embed",
                context={"reason": "empty_input"},
            )

        self.circuit_breaker.can_execute()

        request_id = str(uuid.uuid4())[:8]
        try:
            vector = await asyncio.wait_for(
                self._call_gemini_with_retry(cleaned, purpose, request_id),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            self.circuit_breaker.record_failure()
            logger.warning(
                "[%s] Embedding timed out after %.1fs", request_id, self.timeout_seconds
            )
            raise EmbeddingUnavailableError(
                message="Embedding request timed out",
                context={"request_id": request_id, "reason": "timeout"},
            ) from e
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.warning(
                "[%s] Embedding failed: %s", request_id, str(e),
            )
            raise EmbeddingUnavailableError(
                message="Embedding request failed",
                context={"request_id": request_id, "error_type": type(e).__name__},
            ) from e

        if len(vector) != self._dimensions:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] Embedding has %d dimensions, expected %d",
                request_id, len(vector), self._dimensions,
            )
            raise EmbeddingUnavailableError(
                message="Embedding provider returned an unexpected vector size",
                context={
                    "request_id": request_id,
                    "reason": "dimension_mismatch",
                    "dimensions": len(vector),
                },
            )

        self.circuit_breaker.record_success()
        return vector

    @retry(
        retry=retry_if_not_exception_type(NoteDockError),
        stop=stop_after_attempt(settings.embedding_retry_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=settings.retry_min_wait,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _call_gemini_with_retry(
        self, text: str, purpose: EmbeddingPurpose, request_id: str
    ) -> List[float]:
        """
        The single network call that tenacity retries. The circuit breaker
        and the timeout sit outside it so they are not retried themselves.
        """
        start_time = time.time()
        try:
            result = await genai.embed_content_async(
                model=self.model_name,
                content=text,
                task_type=self.TASK_TYPES[purpose],
            )
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                "[%s] Gemini embed call failed after %.0fms: %s",
                request_id, duration_ms, str(e),
            )
            raise

        vector = [float(x) for x in result["embedding"]]
        logger.debug(
            "[%s] Gemini embed (%s) completed in %.0fms, %d dims",
            request_id,
            purpose.value,
            (time.time() - start_time) * 1000,
            len(vector),
        )
        return vector

"""
AppSentinel — Inference Boundary

The text-generation service as seen from the explanation layer: one prompt
in, raw text or a typed failure out. Tokenization, decoding and model
lifecycle live behind this interface.

Two implementations:
  - HttpInferenceRuntime: an Ollama-compatible ``/api/chat`` endpoint
  - FakeInferenceRuntime: scripted outputs, failures and delays for tests
    and for hosts that run without a model
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from pydantic import Field

from appsentinel.primitives.common import SentinelBaseModel
from appsentinel.systems.explain.errors import InferenceError, InferenceFailure

if TYPE_CHECKING:
    from appsentinel.config import InferenceConfig

logger = structlog.get_logger()


class InferenceRequest(SentinelBaseModel):
    prompt: str
    max_new_tokens: int = Field(160, gt=0)
    temperature: float = 0.0
    top_p: float = 1.0
    stop_sequences: list[str] = Field(default_factory=list)
    timeout_s: float = 15.0

    @classmethod
    def from_config(cls, prompt: str, config: InferenceConfig) -> InferenceRequest:
        return cls(
            prompt=prompt,
            max_new_tokens=config.max_new_tokens,
            temperature=config.temperature,
            top_p=config.top_p,
            stop_sequences=list(config.stop_sequences),
            timeout_s=config.timeout_s,
        )


class InferenceResult(SentinelBaseModel):
    success: bool
    raw_output: str = ""
    failure: InferenceFailure | None = None
    error: str | None = None
    tokens_generated: int = 0
    time_to_first_token_ms: float = 0.0
    total_time_ms: float = 0.0

    @classmethod
    def failed(cls, failure: InferenceFailure, error: str = "") -> InferenceResult:
        return cls(success=False, failure=failure, error=error or failure.value)


class InferenceRuntime(ABC):
    """Abstract interface for one text-generation backend."""

    @abstractmethod
    async def run_inference(self, request: InferenceRequest) -> InferenceResult:
        """
        Generate text for ``request.prompt``.

        May return a non-success result or raise InferenceError; callers
        treat both the same way.
        """
        ...

    @abstractmethod
    def is_available(self) -> bool:
        ...

    @property
    @abstractmethod
    def runtime_id(self) -> str:
        ...

    @abstractmethod
    async def shutdown(self) -> None:
        """Release the backend. Later calls report UNAVAILABLE."""
        ...


# ─── HTTP (Ollama-compatible) ────────────────────────────────────


class HttpInferenceRuntime(InferenceRuntime):
    """
    Local model served over HTTP.

    One inference at a time: a second call while the first is in flight
    fails fast with BUSY instead of queueing behind it.
    """

    def __init__(
        self,
        model: str = "qwen2.5:0.5b-instruct",
        endpoint: str = "http://localhost:11434",
        timeout_s: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._model = model
        self._client = client or httpx.AsyncClient(base_url=endpoint, timeout=timeout_s)
        self._lock = asyncio.Lock()
        self._closed = False
        self._logger = logger.bind(system="explain", component="http_runtime")

    @classmethod
    def from_config(cls, config: InferenceConfig) -> HttpInferenceRuntime:
        return cls(model=config.model, endpoint=config.endpoint, timeout_s=config.timeout_s)

    @property
    def runtime_id(self) -> str:
        return f"ollama:{self._model}"

    def is_available(self) -> bool:
        return not self._closed

    async def run_inference(self, request: InferenceRequest) -> InferenceResult:
        if self._closed:
            raise InferenceError(InferenceFailure.UNAVAILABLE, "runtime is shut down")
        if self._lock.locked():
            raise InferenceError(InferenceFailure.BUSY, "another inference is running")

        async with self._lock:
            options: dict[str, Any] = {
                "temperature": request.temperature,
                "top_p": request.top_p,
                "num_predict": request.max_new_tokens,
            }
            if request.stop_sequences:
                options["stop"] = request.stop_sequences

            payload = {
                "model": self._model,
                "messages": [{"role": "user", "content": request.prompt}],
                "stream": False,
                "options": options,
            }

            started = time.monotonic()
            try:
                response = await self._client.post(
                    "/api/chat", json=payload, timeout=request.timeout_s,
                )
                response.raise_for_status()
            except httpx.TimeoutException as exc:
                raise InferenceError(InferenceFailure.TIMEOUT, str(exc)) from exc
            except httpx.HTTPStatusError as exc:
                if exc.response.status_code == 503:
                    raise InferenceError(InferenceFailure.BUSY, "server overloaded") from exc
                raise InferenceError(
                    InferenceFailure.TRANSPORT, f"HTTP {exc.response.status_code}",
                ) from exc
            except httpx.HTTPError as exc:
                raise InferenceError(InferenceFailure.TRANSPORT, str(exc)) from exc

            data = response.json()
            elapsed_ms = (time.monotonic() - started) * 1000

        text = data.get("message", {}).get("content", "")
        if not text:
            return InferenceResult.failed(InferenceFailure.DECODE_FAILURE, "empty completion")

        return InferenceResult(
            success=True,
            raw_output=text,
            tokens_generated=data.get("eval_count", 0),
            # Ollama reports durations in nanoseconds
            time_to_first_token_ms=data.get("prompt_eval_duration", 0) / 1_000_000,
            total_time_ms=elapsed_ms,
        )

    async def shutdown(self) -> None:
        self._closed = True
        await self._client.aclose()


# ─── Fake ────────────────────────────────────────────────────────


ScriptStep = str | InferenceFailure | BaseException


class FakeInferenceRuntime(InferenceRuntime):
    """
    Replays a script, one step per call:

      str               → successful result with that text
      InferenceFailure  → non-success result of that kind
      exception         → raised as-is

    Once the script is exhausted the last step repeats. Every request is
    recorded on ``requests``.
    """

    def __init__(
        self,
        script: Iterable[ScriptStep] = (),
        delay_s: float = 0.0,
        available: bool = True,
    ) -> None:
        self._script: list[ScriptStep] = list(script)
        self._delay_s = delay_s
        self._available = available
        self._calls = 0
        self.requests: list[InferenceRequest] = []

    @property
    def runtime_id(self) -> str:
        return "fake"

    def is_available(self) -> bool:
        return self._available

    async def run_inference(self, request: InferenceRequest) -> InferenceResult:
        self.requests.append(request)
        if not self._available:
            return InferenceResult.failed(InferenceFailure.UNAVAILABLE)
        if self._delay_s:
            await asyncio.sleep(self._delay_s)

        if not self._script:
            return InferenceResult.failed(InferenceFailure.NULL_CONTEXT, "empty script")
        step = self._script[min(self._calls, len(self._script) - 1)]
        self._calls += 1

        if isinstance(step, BaseException):
            raise step
        if isinstance(step, InferenceFailure):
            return InferenceResult.failed(step)
        return InferenceResult(
            success=True,
            raw_output=step,
            tokens_generated=max(len(step) // 4, 1),
        )

    async def shutdown(self) -> None:
        self._available = False

"""
Transparent interceptor for outbound API calls.

Replaces ``httpx.Client.send`` and ``httpx.AsyncClient.send`` process-wide
so every call made through httpx, including calls made by SDKs built on
it, is timed and recorded without call sites changing. Callers observe
exactly the results and exceptions they would see without monitoring.
"""

import logging
from collections import OrderedDict
from enum import Enum
from functools import wraps
from typing import Any, Callable, ClassVar, List, Optional, Tuple

import httpx
import structlog

from ..config.loader import InterceptConfig
from ..core.clock import epoch_ms, monotonic_ms
from ..core.metadata import UNKNOWN_ERROR, ResponseMetadata, try_extract
from ..core.pricing import PricingTable
from ..core.targets import CallTarget, extract_model_id, extract_target, should_monitor
from ..core.token_counter import TokenUsage
from ..storage.metrics_store import MetricsStore
from ..storage.models import TelemetryRecord
from .response_tee import atee_response, tee_response

logger = structlog.wrap_logger(logging.getLogger(__name__), wrapper_class=structlog.stdlib.BoundLogger)


class InterceptorState(Enum):
    """Installation state of the interceptor."""
    INACTIVE = "inactive"
    ACTIVE = "active"


class CallInterceptor:
    """Installs monitored replacements for the httpx send methods.

    Each monitored call produces exactly one TelemetryRecord in ``store``.
    Failures of the call itself are recorded and re-raised unchanged;
    failures of the monitoring (body parsing, recording) are logged and
    never reach the caller.

    Only one interceptor can be active in a process at a time; enabling a
    second one raises RuntimeError.

    Usage:
        interceptor = CallInterceptor(MetricsStore())
        interceptor.enable()
        ...  # application code calls APIs as usual
        interceptor.disable()
    """

    _active: ClassVar[Optional["CallInterceptor"]] = None

    def __init__(
        self,
        store: MetricsStore,
        config: Optional[InterceptConfig] = None,
        pricing: Optional[PricingTable] = None,
        clock: Callable[[], int] = epoch_ms,
        timer: Callable[[], float] = monotonic_ms,
    ):
        """Initialize an inactive interceptor.

        Args:
            store: Metrics store receiving one record per monitored call
            config: Monitoring and model-naming rules (defaults if omitted)
            pricing: Pricing table used to cost each call (costs 0.0 if omitted)
            clock: Source of record timestamps in epoch ms
            timer: Monotonic millisecond timer used for latency
        """
        self.store = store
        self.config = config or InterceptConfig()
        self.pricing = pricing or PricingTable()
        self.state = InterceptorState.INACTIVE
        self._clock = clock
        self._timer = timer
        self._original_send: Optional[Callable[..., httpx.Response]] = None
        self._original_async_send: Optional[Callable[..., Any]] = None
        self._monitored_endpoints: "OrderedDict[str, None]" = OrderedDict()

    @property
    def is_active(self) -> bool:
        return self.state is InterceptorState.ACTIVE

    def __enter__(self) -> "CallInterceptor":
        self.enable()
        return self

    def __exit__(self, *exc_info) -> None:
        self.disable()

    def enable(self) -> None:
        """Install the monitored send methods. No-op when already active.

        Raises:
            RuntimeError: If another interceptor is already active
        """
        if self.is_active:
            return
        if CallInterceptor._active is not None:
            raise RuntimeError("Another CallInterceptor is already active")
        self._original_send = httpx.Client.send
        self._original_async_send = httpx.AsyncClient.send
        httpx.Client.send = self._wrap_send(self._original_send)
        httpx.AsyncClient.send = self._wrap_async_send(self._original_async_send)
        CallInterceptor._active = self
        self.state = InterceptorState.ACTIVE
        logger.info("interceptor_enabled")

    def disable(self) -> None:
        """Restore the original send methods. No-op when already inactive."""
        if not self.is_active:
            return
        httpx.Client.send = self._original_send
        httpx.AsyncClient.send = self._original_async_send
        self._original_send = None
        self._original_async_send = None
        CallInterceptor._active = None
        self.state = InterceptorState.INACTIVE
        logger.info("interceptor_disabled")

    def should_monitor(self, url: str) -> bool:
        return should_monitor(url, self.config.api_markers, self.config.denylist)

    def extract_model_id(self, url: str) -> str:
        return extract_model_id(url, self.config.model_markers)

    def monitored_endpoints(self) -> List[str]:
        """Distinct monitored URLs without query or fragment, sorted.

        At most ``store.capacity`` endpoints are kept; the least recently
        called ones are forgotten first.
        """
        return sorted(self._monitored_endpoints)

    def _wrap_send(self, original: Callable[..., httpx.Response]) -> Callable[..., httpx.Response]:
        interceptor = self

        @wraps(original)
        def send(client: httpx.Client, request: httpx.Request, **kwargs: Any) -> httpx.Response:
            monitored = interceptor._begin(request)
            if monitored is None:
                return original(client, request, **kwargs)

            target, started = monitored
            try:
                if kwargs.get("stream", False):
                    response, body = original(client, request, **kwargs), None
                else:
                    # Take the raw stream so the body can be teed
                    raw_response = original(client, request, **dict(kwargs, stream=True))
                    response, body = tee_response(raw_response)
            except Exception as exc:
                interceptor._observe_failure(target, started, exc)
                raise
            interceptor._observe_success(target, started, response, body)
            return response

        return send

    def _wrap_async_send(self, original: Callable[..., Any]) -> Callable[..., Any]:
        interceptor = self

        @wraps(original)
        async def send(client: httpx.AsyncClient, request: httpx.Request, **kwargs: Any) -> httpx.Response:
            monitored = interceptor._begin(request)
            if monitored is None:
                return await original(client, request, **kwargs)

            target, started = monitored
            try:
                if kwargs.get("stream", False):
                    response, body = await original(client, request, **kwargs), None
                else:
                    raw_response = await original(client, request, **dict(kwargs, stream=True))
                    response, body = await atee_response(raw_response)
            except Exception as exc:
                interceptor._observe_failure(target, started, exc)
                raise
            interceptor._observe_success(target, started, response, body)
            return response

        return send

    def _begin(self, request: Any) -> Optional[Tuple[CallTarget, float]]:
        """Target and start time of a monitored call, None to pass it through."""
        try:
            target = extract_target(request)
            if not self.should_monitor(target.url):
                return None
            self._remember_endpoint(target.url)
            return target, self._timer()
        except Exception:
            logger.warning("telemetry_begin_failed", exc_info=True)
            return None

    def _remember_endpoint(self, url: str) -> None:
        endpoint = url.split("#", 1)[0].split("?", 1)[0]
        self._monitored_endpoints[endpoint] = None
        self._monitored_endpoints.move_to_end(endpoint)
        while len(self._monitored_endpoints) > self.store.capacity:
            self._monitored_endpoints.popitem(last=False)

    def _observe_success(
        self,
        target: CallTarget,
        started: float,
        response: httpx.Response,
        body: Optional[bytes],
    ) -> None:
        try:
            latency = self._timer() - started
            record = self._success_record(target, latency, response, body)
        except Exception:
            logger.warning("telemetry_build_failed", endpoint=target.url, exc_info=True)
            return
        self._submit(record)

    def _observe_failure(self, target: CallTarget, started: float, exc: Exception) -> None:
        try:
            latency = self._timer() - started
            record = TelemetryRecord(
                timestamp=self._clock(),
                model_name=self.extract_model_id(target.url),
                endpoint=target.url,
                method=target.method,
                latency=max(latency, 0.0),
                success=False,
                error_message=str(exc) or UNKNOWN_ERROR,
            )
        except Exception:
            logger.warning("telemetry_build_failed", endpoint=target.url, exc_info=True)
            return
        self._submit(record)

    def _inspect(self, response: httpx.Response, body: Optional[bytes]) -> Optional[ResponseMetadata]:
        if body is None:
            return None
        try:
            return try_extract(body, response.headers.get("content-type", ""))
        except Exception:
            logger.debug("metadata_extraction_failed", exc_info=True)
            return None

    def _success_record(
        self,
        target: CallTarget,
        latency: float,
        response: httpx.Response,
        body: Optional[bytes],
    ) -> TelemetryRecord:
        model_name = self.extract_model_id(target.url)
        usage = TokenUsage()
        success = response.is_success
        error_message = None
        if not success:
            error_message = f"HTTP {response.status_code} {response.reason_phrase}".strip()

        metadata = self._inspect(response, body)
        if metadata is not None:
            usage = metadata.usage
            if metadata.model:
                model_name = metadata.model
            if metadata.error_message is not None:
                success = False
                error_message = metadata.error_message

        return TelemetryRecord(
            timestamp=self._clock(),
            model_name=model_name,
            endpoint=target.url,
            method=target.method,
            status_code=response.status_code,
            latency=max(latency, 0.0),
            success=success,
            input_tokens=usage.prompt_tokens,
            output_tokens=usage.completion_tokens,
            cost=self.pricing.estimate_cost(model_name, usage),
            error_message=error_message,
        )

    def _submit(self, record: TelemetryRecord) -> None:
        # Zero latency means a clock anomaly, not a real call
        if record.latency <= 0:
            logger.debug("telemetry_skipped", endpoint=record.endpoint, latency=record.latency)
            return
        try:
            self.store.record(record)
        except Exception:
            logger.warning("telemetry_record_failed", endpoint=record.endpoint, exc_info=True)
            return
        logger.debug(
            "call_recorded",
            endpoint=record.endpoint,
            model=record.model_name,
            latency_ms=round(record.latency, 3),
            success=record.success,
        )

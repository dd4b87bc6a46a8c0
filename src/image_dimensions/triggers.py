"""
Trigger adapters around the extraction orchestrator.

A scheduled trigger (timer driven) and an on-demand trigger (HTTP or CLI)
share one orchestrator; they only differ in their configuration profile,
in the bearer-token check, and in how results are reported.
"""

import hmac
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from .core.exceptions import (
    CacheError,
    ConfigurationError,
    DimensionsPipelineError,
    PreconditionError,
    StoreError,
)
from .core.factories import (
    LoggerFactory,
    ProcessingPipelineFactory,
    S3ClientFactory,
    StoreFactory,
)
from .core.models import PipelineConfig, PipelineRunSummary
from .core.protocols import (
    KeyValueCacheProtocol,
    LoggerProtocol,
    ObjectStoreProtocol,
    S3ClientProtocol,
)

Payload = Dict[str, Any]
Response = Tuple[int, Payload]


def error_payload(message: str, **extra: Any) -> Payload:
    return {"status": "error", "message": message, **extra}


class ExtractionTrigger:
    """Entry points used by the scheduler, the HTTP API and the CLI."""

    def __init__(
        self,
        object_store: Optional[ObjectStoreProtocol],
        cache: Optional[KeyValueCacheProtocol],
        config: PipelineConfig,
        scheduled_config: Optional[PipelineConfig] = None,
        logger: Optional[LoggerProtocol] = None,
    ):
        self._object_store = object_store
        self._cache = cache
        self._config = config
        self._scheduled_config = scheduled_config or config
        self._logger = logger or LoggerFactory.create_logger(
            "image-dimensions.trigger", debug=config.debug
        )
        if not config.api_token:
            self._logger.warning(
                "No API token configured; on-demand runs are not authenticated"
            )

    @property
    def config(self) -> PipelineConfig:
        return self._config

    def has_bindings(self) -> bool:
        return self._object_store is not None and self._cache is not None

    def _missing_bindings(self) -> Response:
        self._logger.error(
            "Missing required bindings",
            has_store=self._object_store is not None,
            has_cache=self._cache is not None,
        )
        return 500, error_payload("Required object store or cache bindings not available")

    def is_authorized(self, authorization: Optional[str]) -> bool:
        """Check an ``Authorization: Bearer <token>`` header value."""
        if not self._config.api_token:
            return True
        if not authorization:
            return False
        scheme, _, token = authorization.strip().partition(" ")
        if scheme.lower() != "bearer":
            return False
        return hmac.compare_digest(
            token.strip().encode("utf-8"), self._config.api_token.encode("utf-8")
        )

    def run(
        self,
        config: Optional[PipelineConfig] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Tuple[int, Payload, Optional[PipelineRunSummary]]:
        """
        Run one extraction with ``config`` (defaults to the on-demand profile).

        Returns:
            HTTP-style status code, JSON payload, and the summary when the
            run completed.
        """
        config = config or self._config
        if not self.has_bindings():
            status_code, payload = self._missing_bindings()
            return status_code, payload, None

        try:
            orchestrator = ProcessingPipelineFactory.create_orchestrator(
                config, self._object_store, self._cache, logger=self._logger
            )
            summary = orchestrator.run(
                config.prefix, read_cap=config.read_cap, cancel_event=cancel_event
            )
        except (PreconditionError, StoreError, CacheError, ConfigurationError) as e:
            self._logger.error(f"Error during image dimension extraction: {e}")
            return 500, error_payload(str(e)), None

        return 200, summary.to_payload(), summary

    def run_scheduled(self, cancel_event: Optional[threading.Event] = None) -> Payload:
        """Timer entry point; fatal errors are logged and reported in the payload."""
        started = datetime.now(timezone.utc).isoformat()
        self._logger.info(f"[{started}] Running scheduled image dimension extraction")
        _, payload, _ = self.run(self._scheduled_config, cancel_event=cancel_event)
        return payload

    def run_on_demand(
        self,
        authorization: Optional[str],
        cancel_event: Optional[threading.Event] = None,
    ) -> Response:
        """On-demand entry point guarded by the bearer-token check."""
        if not self.has_bindings():
            return self._missing_bindings()
        if not self.is_authorized(authorization):
            self._logger.warning("Rejected unauthorized extraction request")
            return 401, error_payload("Unauthorized")
        status_code, payload, _ = self.run(cancel_event=cancel_event)
        return status_code, payload

    def status(self) -> Response:
        """Readiness and the number of images already cached."""
        try:
            processed = self._map_service().count_cached(self._config.prefix)
        except DimensionsPipelineError as e:
            self._logger.error(f"Error reading cache status: {e}")
            return 500, error_payload(str(e))
        return 200, {
            "status": "ready",
            "message": "Use POST to run the job",
            "processed_images": processed,
        }

    def dimensions_map(self, prefix: Optional[str] = None) -> Response:
        """JSON map of cached identifier to ``{width, height}``."""
        try:
            dimensions = self._map_service().get_dimensions_map(
                self._config.prefix if prefix is None else prefix
            )
        except DimensionsPipelineError as e:
            self._logger.error(f"Error fetching image dimensions: {e}")
            return 500, error_payload("Error fetching image dimensions")
        return 200, {key: value.model_dump() for key, value in dimensions.items()}

    def _map_service(self):
        return ProcessingPipelineFactory.create_dimensions_map_service(
            self._config, self._cache, logger=self._logger
        )


def run_periodically(
    trigger: ExtractionTrigger,
    interval: float,
    stop_event: threading.Event,
    max_runs: Optional[int] = None,
) -> int:
    """
    Call ``trigger.run_scheduled`` every ``interval`` seconds until stopped.

    The stop event doubles as the cancellation signal for the run in
    progress. Returns the number of runs started.
    """
    runs = 0
    while not stop_event.is_set():
        trigger.run_scheduled(cancel_event=stop_event)
        runs += 1
        if max_runs is not None and runs >= max_runs:
            break
        stop_event.wait(interval)
    return runs


def create_trigger(
    config: Optional[PipelineConfig] = None,
    scheduled_config: Optional[PipelineConfig] = None,
    s3_client: Optional[S3ClientProtocol] = None,
) -> ExtractionTrigger:
    """
    Wire a trigger to the S3-backed store and cache described by ``config``.

    Missing buckets leave the corresponding binding unset; the trigger then
    reports a precondition failure instead of touching any object.
    """
    config = config or PipelineConfig.on_demand_profile()
    if scheduled_config is None:
        # Only the profile fields differ between the two runs
        scheduled_config = PipelineConfig.scheduled_profile(
            **config.model_dump(exclude={"prefix", "read_cap"})
        )
    if s3_client is None and (config.bucket or config.cache_bucket):
        s3_client = S3ClientFactory.create_s3_client(timeout=config.object_timeout)

    return ExtractionTrigger(
        StoreFactory.create_object_store(config, s3_client),
        StoreFactory.create_cache(config, s3_client),
        config,
        scheduled_config=scheduled_config,
    )

"""Compliance validation service — async orchestration around the engine.

Adds what the in-process engine deliberately leaves out:

    1. Result cache in front of every run (same schema on hit and miss)
    2. External validation API first, local engine as a lossless fallback
    3. Run sequencing per form: only the newest run may publish its result
    4. Batch validation with bounded concurrency, foreground or background
    5. Compliance status, analytics, reports and queue draining with local fallback

Usage:
    service = ComplianceValidationService.from_settings()
    result = await service.validate(ValidationRequest(formData=data, formType="fall_risk_assessment"))
"""

import asyncio
import inspect
import itertools
import threading
import uuid
from collections import Counter, OrderedDict, defaultdict
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

import structlog
from pydantic import ValidationError

from dohcompliance.config import Settings, get_settings
from dohcompliance.errors import (
    ComplianceValidationError,
    InputValidationError,
    ValidationUnavailableError,
)
from dohcompliance.models.events import (
    BatchCompletedEvent,
    BatchProgressEvent,
    ValidationCompletedEvent,
    ValidationFailedEvent,
    ValidationStartedEvent,
    ValidationSupersededEvent,
)
from dohcompliance.models.requests import (
    PRIORITY_RANK,
    BatchItem,
    BatchValidationRequest,
    ValidationRequest,
)
from dohcompliance.models.responses import (
    BatchItemOutcome,
    BatchStatusResponse,
    CacheClearResponse,
    ComplianceStatusResponse,
)
from dohcompliance.services.api_client import APIResponse, DOHValidationAPIClient
from dohcompliance.services.event_bus import EventBus, event_bus as default_event_bus
from dohcompliance.services.result_cache import (
    InMemoryCacheBackend,
    RedisCacheBackend,
    ResultCache,
    fingerprint,
)
from dohcompliance.standards.loader import StandardsRegistry
from dohcompliance.standards.models import StandardsCatalog
from dohcompliance.validators.engine import (
    ComplianceValidationEngine,
    ValidationCancelledError,
    ValidationRun,
)
from dohcompliance.validators.history import ValidationHistory, ValidationMetrics
from dohcompliance.validators.models import ComplianceStatus, ValidationResult
from dohcompliance.validators.rules import RuleRegistry

logger = structlog.get_logger()

ChangeCallback = Callable[[bool, list[str], list[str]], Any]
CompleteCallback = Callable[[ValidationResult], Any]

TERMINAL_ITEM_STATES = ("completed", "failed", "cancelled", "expired")


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _invoke(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    """Call a sync or async form callback. A failing callback never fails the run."""
    if callback is None:
        return
    try:
        outcome = callback(*args)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception as e:
        logger.warning("validation_callback_failed", callback=getattr(callback, "__name__", "callback"), error=str(e))


class RunSequencer:
    """Issues monotonically increasing run numbers per form key.

    A form key is forgotten once its newest run finishes, so only forms with
    a run in flight take up space. An older run that finishes after that is
    still not the latest.
    """

    def __init__(self):
        self._counter = itertools.count(1)
        self._latest: dict[str, int] = {}
        self._lock = threading.Lock()

    def issue(self, form_key: str) -> int:
        with self._lock:
            sequence = next(self._counter)
            self._latest[form_key] = sequence
            return sequence

    def is_latest(self, form_key: str, sequence: int) -> bool:
        with self._lock:
            return self._latest.get(form_key) == sequence

    def release(self, form_key: str, sequence: int) -> None:
        with self._lock:
            if self._latest.get(form_key) == sequence:
                del self._latest[form_key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._latest)


class BatchHandle:
    """Background batch in flight. Await `wait()` or poll `snapshot()`.

    The deadline timer fires `expire()` after the configured maximum wait; it
    is cancelled as soon as every item reaches a terminal state.
    """

    def __init__(self, batch_id: str, items: list[BatchItem]):
        self.batch_id = batch_id
        self.items = items
        self.outcomes: dict[str, BatchItemOutcome] = {
            item.item_id: BatchItemOutcome(item_id=item.item_id, form_type=item.form_type, priority=item.priority)
            for item in items
        }
        self.status = "queued"
        self.created_at = _utcnow_iso()
        self.completed_at: Optional[str] = None
        self.task: Optional[asyncio.Task] = None
        self.deadline: Optional[asyncio.TimerHandle] = None
        self._finished = asyncio.Event()

    @property
    def done(self) -> bool:
        return self._finished.is_set()

    def snapshot(self) -> BatchStatusResponse:
        outcomes = list(self.outcomes.values())
        return BatchStatusResponse(
            batch_id=self.batch_id,
            status=self.status,
            total=len(outcomes),
            successful=sum(1 for o in outcomes if o.status == "completed"),
            failed=sum(1 for o in outcomes if o.status == "failed"),
            pending=sum(1 for o in outcomes if o.status not in TERMINAL_ITEM_STATES),
            items=[o.model_copy() for o in outcomes],
            created_at=self.created_at,
            completed_at=self.completed_at,
        )

    async def wait(self, timeout: Optional[float] = None) -> BatchStatusResponse:
        """Wait for the batch to finish.

        Raises:
            asyncio.TimeoutError: if `timeout` elapses first (the batch keeps running).
        """
        await asyncio.wait_for(self._finished.wait(), timeout)
        return self.snapshot()

    def cancel(self) -> None:
        if self.done:
            return
        self.finish("cancelled")
        if self.task is not None:
            self.task.cancel()
        logger.info("batch_cancelled", batch_id=self.batch_id)

    def expire(self) -> None:
        if self.done:
            return
        logger.warning("batch_expired", batch_id=self.batch_id, pending=self.snapshot().pending)
        self.finish("expired")
        if self.task is not None:
            self.task.cancel()

    def finish(self, status: str) -> None:
        """Move the batch to a terminal status. Unfinished items take that status too."""
        if self.done:
            return
        leftover = "expired" if status == "expired" else "cancelled"
        for outcome in self.outcomes.values():
            if outcome.status not in TERMINAL_ITEM_STATES:
                outcome.status = leftover
        self.status = status
        self.completed_at = _utcnow_iso()
        if self.deadline is not None:
            self.deadline.cancel()
            self.deadline = None
        self._finished.set()


class ComplianceValidationService:
    """Async front door to compliance validation."""

    def __init__(
        self,
        engine: Optional[ComplianceValidationEngine] = None,
        cache: Optional[ResultCache] = None,
        api_client: Optional[DOHValidationAPIClient] = None,
        event_bus: Optional[EventBus] = None,
        api_timeout_seconds: float = 10.0,
        batch_max_concurrency: int = 5,
        queue_max_wait_seconds: float = 300.0,
        batch_retention: int = 100,
        latest_results_size: int = 1000,
    ):
        self.engine = engine or ComplianceValidationEngine()
        self.cache = cache or ResultCache()
        self.api_client = api_client
        self.event_bus = event_bus or default_event_bus
        self.api_timeout_seconds = api_timeout_seconds
        self.batch_max_concurrency = batch_max_concurrency
        self.queue_max_wait_seconds = queue_max_wait_seconds
        self.batch_retention = max(1, batch_retention)
        self.latest_results_size = max(1, latest_results_size)
        self.sequencer = RunSequencer()
        self._latest_results: OrderedDict[str, ValidationResult] = OrderedDict()
        self._batches: OrderedDict[str, BatchHandle] = OrderedDict()
        self._stale_versions: list[str] = []
        self.engine.standards.subscribe(self._on_catalog_replaced)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        redis_client=None,
        standards: Optional[StandardsRegistry] = None,
        event_bus: Optional[EventBus] = None,
    ) -> "ComplianceValidationService":
        settings = settings or get_settings()
        engine = ComplianceValidationEngine(
            standards=standards,
            rules=RuleRegistry(unknown_rule_policy=settings.UNKNOWN_RULE_POLICY),
            history=ValidationHistory(settings.HISTORY_SIZE),
            aggregation_method=settings.AGGREGATION_METHOD,
            validated_by=settings.VALIDATED_BY,
            validator_role=settings.VALIDATOR_ROLE,
            next_validation_days=settings.NEXT_VALIDATION_DAYS,
        )
        if settings.CACHE_BACKEND == "redis" and redis_client is not None:
            backend = RedisCacheBackend(redis_client)
        else:
            backend = InMemoryCacheBackend()
        return cls(
            engine=engine,
            cache=ResultCache(backend, ttl_hours=settings.CACHE_TTL_HOURS, enabled=settings.CACHE_ENABLED),
            api_client=DOHValidationAPIClient.from_settings(settings),
            event_bus=event_bus,
            api_timeout_seconds=settings.VALIDATION_API_TIMEOUT_SECONDS,
            batch_max_concurrency=settings.BATCH_MAX_CONCURRENCY,
            queue_max_wait_seconds=settings.QUEUE_MAX_WAIT_SECONDS,
            batch_retention=settings.BATCH_RETENTION,
            latest_results_size=settings.LATEST_RESULTS_SIZE,
        )

    @property
    def history(self) -> ValidationHistory:
        return self.engine.history

    @property
    def metrics(self) -> ValidationMetrics:
        return self.engine.history.metrics

    def latest_result(self, form_key: str) -> Optional[ValidationResult]:
        return self._latest_results.get(form_key)

    def _remember(self, form_key: str, result: ValidationResult) -> None:
        self._latest_results[form_key] = result
        self._latest_results.move_to_end(form_key)
        while len(self._latest_results) > self.latest_results_size:
            self._latest_results.popitem(last=False)

    # ── Single validation ──

    async def validate(
        self,
        request: ValidationRequest,
        on_change: Optional[ChangeCallback] = None,
        on_complete: Optional[CompleteCallback] = None,
        run: Optional[ValidationRun] = None,
    ) -> ValidationResult:
        """Validate one form and, if this is still the newest run for it, publish the result.

        Requests without a form id or patient id are one-off: they are never
        sequenced against each other. A superseded run returns its result to
        the caller but leaves history, metrics, `latest_result` and callbacks
        untouched.

        Raises:
            InputValidationError: form data or form type missing
            StandardsNotReadyError: catalog not loaded
            ValidationCancelledError: the run was cancelled
            ValidationUnavailableError: neither the API nor the local engine produced a result
        """
        if request.form_data is None or not request.form_type:
            raise InputValidationError("Form data and type are required for validation")
        catalog = self.engine.standards.get()

        run = run or ValidationRun()
        form_key = request.form_key
        topic = form_key or run.run_id
        sequence = self.sequencer.issue(form_key) if form_key else 0
        await self.event_bus.publish(topic, ValidationStartedEvent(
            run_id=run.run_id, form_key=topic, form_type=request.form_type, sequence=sequence,
        ).model_dump())

        try:
            result, source = await self.fetch_cached_or_compute(request, run=run, catalog=catalog)
            latest = form_key is None or self.sequencer.is_latest(form_key, sequence)
        except asyncio.CancelledError:
            run.cancel()
            logger.info("validation_cancelled", run_id=run.run_id, form_key=topic)
            raise
        except ValidationCancelledError:
            logger.info("validation_cancelled", run_id=run.run_id, form_key=topic)
            raise
        except ComplianceValidationError as e:
            await self.event_bus.publish(topic, ValidationFailedEvent(
                run_id=run.run_id, form_key=topic, error=e.code, message=e.message, retryable=e.retryable,
            ).model_dump())
            raise
        finally:
            if form_key is not None:
                self.sequencer.release(form_key, sequence)

        if not latest:
            logger.info("validation_superseded", run_id=run.run_id, form_key=form_key, sequence=sequence)
            await self.event_bus.publish(topic, ValidationSupersededEvent(
                run_id=run.run_id, form_key=topic, sequence=sequence,
            ).model_dump())
            return result

        await self._commit(topic, form_key, run.run_id, result, source, on_change, on_complete)
        return result

    async def _commit(
        self,
        topic: str,
        form_key: Optional[str],
        run_id: str,
        result: ValidationResult,
        source: str,
        on_change: Optional[ChangeCallback] = None,
        on_complete: Optional[CompleteCallback] = None,
    ) -> None:
        """Record a result as the newest for its form and notify listeners."""
        self.engine.history.record(result)
        if form_key is not None:
            self._remember(form_key, result)

        await _invoke(on_change, result.is_valid, result.error_messages(), result.warning_messages())
        await _invoke(on_complete, result)
        await self.event_bus.publish(topic, ValidationCompletedEvent(
            run_id=run_id,
            form_key=topic,
            overall_status=result.overall_status,
            percentage=result.compliance_score.percentage,
            grade=result.compliance_score.grade,
            critical_findings=len(result.critical_findings),
            source=source,
        ).model_dump())

    async def fetch_cached_or_compute(
        self,
        request: ValidationRequest,
        run: Optional[ValidationRun] = None,
        catalog: Optional[StandardsCatalog] = None,
    ) -> tuple[ValidationResult, str]:
        """Return a memoized result, or compute one and cache it.

        Returns:
            (result, source) where source is "cache", "external" or "local"
        """
        catalog = catalog or self.engine.standards.get()
        run = run or ValidationRun()
        await self._drain_invalidations()

        cache_key = None
        if request.use_cache and self.cache.enabled:
            cache_key = fingerprint(
                request.form_data,
                request.form_type,
                request.validation_type,
                request.validation_scope,
                catalog.version,
            )
            cached = await self.cache.get(cache_key)
            if cached is not None:
                return cached, "cache"

        source = "external"
        result = await self._validate_externally(request, run)
        if result is None:
            source = "local"
            result = await self._validate_locally(request, run)

        if run.cancelled:
            raise ValidationCancelledError(f"Validation run {run.run_id} was cancelled")
        if cache_key is not None:
            await self.cache.put(cache_key, result)
        return result, source

    async def _call_external(self, call: Awaitable[APIResponse], operation: str) -> Optional[APIResponse]:
        """Await an API client call under the service timeout. None means fall back."""
        try:
            response = await asyncio.wait_for(call, timeout=self.api_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("external_api_timeout", operation=operation, timeout_seconds=self.api_timeout_seconds)
            return None
        if not response.success:
            logger.warning("external_api_fallback", operation=operation, error=response.error)
            return None
        return response

    async def _validate_externally(self, request: ValidationRequest, run: ValidationRun) -> Optional[ValidationResult]:
        if self.api_client is None:
            return None
        response = await self._call_external(
            self.api_client.validate_clinical_data_with_cache(
                request.model_dump(mode="json", by_alias=True, exclude={"use_cache"}),
                self.engine.validated_by,
                self.engine.validator_role,
                enable_caching=request.use_cache,
            ),
            "validate",
        )
        if response is None:
            return None
        try:
            return ValidationResult.model_validate(response.data)
        except ValidationError as e:
            logger.warning("external_result_malformed", run_id=run.run_id, error=str(e))
            return None

    async def _validate_locally(self, request: ValidationRequest, run: ValidationRun) -> ValidationResult:
        try:
            return await asyncio.to_thread(
                self.engine.run,
                request.form_data,
                request.form_type,
                request.validation_scope,
                validation_type=request.validation_type,
                patient_id=request.patient_id,
                episode_id=request.episode_id,
                form_id=request.form_id,
                run=run,
            )
        except asyncio.CancelledError:
            run.cancel()
            raise
        except ComplianceValidationError:
            raise
        except Exception as e:
            logger.error("local_validation_failed", run_id=run.run_id, error=str(e), error_type=type(e).__name__)
            raise ValidationUnavailableError(
                "Validation could not be performed", details={"reason": str(e)}
            ) from e

    # ── Batches ──

    def _prepare_batch(self, request: BatchValidationRequest) -> BatchHandle:
        batch_id = f"batch_{uuid.uuid4().hex[:12]}"
        items = []
        for index, item in enumerate(request.items):
            if not item.item_id:
                item = item.model_copy(update={"item_id": f"{batch_id}_{index + 1}"})
            items.append(item)
        # Stable sort keeps submission order within a priority
        items.sort(key=lambda i: PRIORITY_RANK[i.priority])
        handle = BatchHandle(batch_id, items)
        self._batches[batch_id] = handle
        self._evict_batches()
        return handle

    def _evict_batches(self) -> None:
        """Forget the oldest finished batches beyond the retention limit. Running batches are kept."""
        excess = len(self._batches) - self.batch_retention
        if excess <= 0:
            return
        for batch_id in [bid for bid, handle in self._batches.items() if handle.done][:excess]:
            del self._batches[batch_id]

    async def _validate_batch_externally(self, handle: BatchHandle, concurrency: int) -> list[BatchItem]:
        """Offer the batch to the validation API; returns the items it validated.

        Items the API failed, skipped or answered with an unreadable result are
        left pending for the local engine.
        """
        eligible = [item for item in handle.items if item.form_data is not None and item.form_type]
        if not eligible:
            return []
        payload = {
            "batchType": "forms",
            "items": [
                {"id": item.item_id, "type": item.form_type, "data": item.form_data, "priority": item.priority}
                for item in eligible
            ],
            "validationScope": eligible[0].validation_scope,
            "requestedBy": self.engine.validated_by,
            "processingOptions": {
                "enableCaching": all(item.use_cache for item in eligible),
                "backgroundProcessing": False,
                "parallelProcessing": concurrency > 1,
                "maxConcurrency": concurrency,
            },
        }
        response = await self._call_external(self.api_client.perform_batch_validation(payload), "batch_validation")
        if response is None:
            return []
        entries = response.data.get("results") if isinstance(response.data, dict) else None
        if not isinstance(entries, list):
            logger.warning("external_batch_malformed", batch_id=handle.batch_id)
            return []

        pending = {item.item_id: item for item in eligible}
        adopted: list[BatchItem] = []
        for entry in entries:
            if not isinstance(entry, dict) or entry.get("status") != "success":
                continue
            item = pending.pop(entry.get("itemId"), None)
            if item is None:
                continue
            try:
                result = ValidationResult.model_validate(entry.get("result"))
            except ValidationError as e:
                logger.warning("external_result_malformed", batch_id=handle.batch_id, item_id=item.item_id, error=str(e))
                continue

            outcome = handle.outcomes[item.item_id]
            outcome.result = result
            outcome.status = "completed"
            form_key = item.form_key
            if form_key is not None:
                # Supersedes any older run still in flight for this form
                self.sequencer.release(form_key, self.sequencer.issue(form_key))
            await self._commit(form_key or result.validation_id, form_key, result.validation_id, result, "external")
            adopted.append(item)

        logger.info(
            "external_batch_adopted",
            batch_id=handle.batch_id,
            adopted=len(adopted),
            local=len(handle.items) - len(adopted),
        )
        return adopted

    async def _process_batch(self, handle: BatchHandle, max_concurrency: int) -> None:
        concurrency = max(1, min(max_concurrency, self.batch_max_concurrency))
        semaphore = asyncio.Semaphore(concurrency)
        handle.status = "processing"
        total = len(handle.items)

        async def report(item: BatchItem) -> None:
            completed = sum(1 for o in handle.outcomes.values() if o.status in TERMINAL_ITEM_STATES)
            await self.event_bus.publish(handle.batch_id, BatchProgressEvent(
                batch_id=handle.batch_id,
                item_id=item.item_id,
                item_status=handle.outcomes[item.item_id].status,
                completed=completed,
                total=total,
            ).model_dump())

        async def process(item: BatchItem) -> None:
            async with semaphore:
                if handle.done:
                    return
                outcome = handle.outcomes[item.item_id]
                outcome.status = "processing"
                try:
                    outcome.result = await self.validate(item)
                    outcome.status = "completed"
                except ValidationCancelledError:
                    outcome.status = "cancelled"
                except ComplianceValidationError as e:
                    outcome.status = "failed"
                    outcome.error = e.to_dict()
            await report(item)

        if self.api_client is not None:
            for item in await self._validate_batch_externally(handle, concurrency):
                await report(item)

        local = [item for item in handle.items if handle.outcomes[item.item_id].status == "pending"]
        await asyncio.gather(*(process(item) for item in local))
        handle.finish("completed")

        summary = handle.snapshot()
        logger.info(
            "batch_complete",
            batch_id=handle.batch_id,
            total=summary.total,
            successful=summary.successful,
            failed=summary.failed,
        )
        await self.event_bus.publish(handle.batch_id, BatchCompletedEvent(
            batch_id=handle.batch_id,
            status=summary.status,
            total=summary.total,
            successful=summary.successful,
            failed=summary.failed,
        ).model_dump())
        self.event_bus.cleanup(handle.batch_id)

    async def run_batch(self, request: BatchValidationRequest) -> BatchStatusResponse:
        """Validate every item now, at most `max_concurrency` at a time."""
        self.engine.standards.get()
        handle = self._prepare_batch(request)
        await self._process_batch(handle, request.max_concurrency)
        return handle.snapshot()

    async def enqueue_batch(self, request: BatchValidationRequest) -> BatchHandle:
        """Start the batch in the background and return its handle immediately."""
        self.engine.standards.get()
        handle = self._prepare_batch(request)
        loop = asyncio.get_running_loop()
        handle.deadline = loop.call_later(self.queue_max_wait_seconds, handle.expire)
        handle.task = asyncio.create_task(self._run_background(handle, request.max_concurrency))
        logger.info("batch_queued", batch_id=handle.batch_id, total=len(handle.items))
        return handle

    async def _run_background(self, handle: BatchHandle, max_concurrency: int) -> None:
        try:
            await self._process_batch(handle, max_concurrency)
        except asyncio.CancelledError:
            # cancel() or expire() already moved the handle to a terminal state
            handle.finish("cancelled")
            self.event_bus.cleanup(handle.batch_id)
        except Exception as e:
            logger.error("batch_failed", batch_id=handle.batch_id, error=str(e), error_type=type(e).__name__)
            handle.finish("cancelled")
            self.event_bus.cleanup(handle.batch_id)

    def get_batch(self, batch_id: str) -> Optional[BatchHandle]:
        return self._batches.get(batch_id)

    async def process_validation_queue(self, batch_size: int = 10) -> ComplianceStatusResponse:
        """Drain up to `batch_size` items from the external validation queue.

        Without the API, reports the state of this process's background batches.
        """
        if self.api_client is not None:
            response = await self._call_external(
                self.api_client.process_validation_queue(batch_size), "validation_queue"
            )
            if response is not None:
                return ComplianceStatusResponse(source="external", data=response.data or {})

        active = [handle for handle in self._batches.values() if not handle.done]
        return ComplianceStatusResponse(source="local", data={
            "processedItems": 0,
            "activeBatches": len(active),
            "pendingItems": sum(handle.snapshot().pending for handle in active),
            "message": "External validation queue unavailable; background batches run in-process",
        })

    # ── Status, analytics, reports ──

    async def get_compliance_status(self, scope: Optional[dict] = None) -> ComplianceStatusResponse:
        if self.api_client is not None:
            response = await self._call_external(
                self.api_client.get_doh_compliance_status(scope or {}), "compliance_status"
            )
            if response is not None:
                return ComplianceStatusResponse(source="external", data=response.data or {})
        return ComplianceStatusResponse(source="local", data=self._local_status())

    async def generate_compliance_analytics(self, scope: Optional[dict] = None) -> ComplianceStatusResponse:
        if self.api_client is not None:
            response = await self._call_external(
                self.api_client.generate_compliance_analytics(scope or {}), "compliance_analytics"
            )
            if response is not None:
                return ComplianceStatusResponse(source="external", data=response.data or {})
        return ComplianceStatusResponse(source="local", data=self._local_analytics())

    async def generate_compliance_report(self, report_config: Optional[dict] = None) -> ComplianceStatusResponse:
        report_config = report_config or {}
        if self.api_client is not None:
            response = await self._call_external(
                self.api_client.generate_compliance_report(report_config), "compliance_report"
            )
            if response is not None:
                return ComplianceStatusResponse(source="external", data=response.data or {})

        entries = self.history.entries()
        immediate: list[str] = []
        for result in entries:
            for action in result.recommendations.immediate:
                if action not in immediate:
                    immediate.append(action)
        return ComplianceStatusResponse(source="local", data={
            "reportId": f"report_{uuid.uuid4().hex[:12]}",
            "generatedAt": _utcnow_iso(),
            "config": report_config,
            "summary": self._local_status(),
            "analytics": self._local_analytics(),
            "validations": [
                {
                    "validationId": r.validation_id,
                    "formType": r.form_type,
                    "validationDate": r.validation_date,
                    "overallStatus": r.overall_status,
                    "percentage": r.compliance_score.percentage,
                }
                for r in entries
            ],
            "immediateActions": immediate,
        })

    def _local_status(self) -> dict:
        metrics = self.metrics
        latest = self.history.latest()
        return {
            "overallStatus": latest.overall_status if latest else ComplianceStatus.NOT_APPLICABLE.value,
            "percentage": latest.compliance_score.percentage if latest else 0,
            "grade": latest.compliance_score.grade if latest else None,
            "criticalFindings": len(latest.critical_findings) if latest else 0,
            "lastValidated": latest.validation_date if latest else None,
            "totalValidations": metrics.total_validations,
            "averageScore": metrics.average_score,
            "trendDirection": metrics.trend_direction,
            "consecutiveCompliantValidations": metrics.consecutive_compliant_validations,
        }

    def _local_analytics(self) -> dict:
        entries = self.history.entries()
        status_counts = Counter(r.overall_status for r in entries)
        grade_counts = Counter(r.compliance_score.grade for r in entries)
        finding_counts = Counter(f.finding_id for r in entries for f in r.critical_findings)

        domain_totals: dict[str, list[int]] = defaultdict(list)
        for result in entries:
            for domain in result.domain_validations:
                domain_totals[domain.domain].append(domain.percentage)

        return {
            "sampleSize": len(entries),
            "statusDistribution": dict(status_counts),
            "gradeDistribution": dict(grade_counts),
            "domainAverages": {
                domain: round(sum(values) / len(values), 1) for domain, values in domain_totals.items()
            },
            "mostFrequentFindings": [
                {"findingId": finding_id, "occurrences": count}
                for finding_id, count in finding_counts.most_common(5)
            ],
            "metrics": self.metrics.model_dump(),
        }

    # ── Cache ──

    async def clear_expired_cache(self) -> CacheClearResponse:
        await self._drain_invalidations()
        removed = await self.cache.clear_expired()
        external_cleared = False
        if self.api_client is not None:
            external_cleared = await self._call_external(self.api_client.clear_expired_cache(), "clear_cache") is not None
        return CacheClearResponse(removed=removed, external_cleared=external_cleared)

    def _on_catalog_replaced(self, catalog: StandardsCatalog, previous: Optional[StandardsCatalog]) -> None:
        if previous is not None:
            self._stale_versions.append(previous.version)

    async def _drain_invalidations(self) -> None:
        while self._stale_versions:
            version = self._stale_versions.pop(0)
            await self.cache.invalidate_version(version)

    async def close(self) -> None:
        for handle in list(self._batches.values()):
            handle.cancel()
        if self.api_client is not None:
            await self.api_client.close()

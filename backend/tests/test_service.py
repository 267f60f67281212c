"""Tests for the async validation service, batches and the real-time validator."""

import asyncio

import pytest

from dohcompliance.config import Settings
from dohcompliance.errors import InputValidationError, StandardsNotReadyError, ValidationUnavailableError
from dohcompliance.models.requests import BatchItem, BatchValidationRequest, ValidationRequest
from dohcompliance.services.api_client import APIResponse
from dohcompliance.services.event_bus import EventBus
from dohcompliance.services.realtime import RealtimeValidator
from dohcompliance.services.result_cache import ResultCache
from dohcompliance.services.validation_service import ComplianceValidationService, RunSequencer
from dohcompliance.standards.loader import StandardsRegistry
from dohcompliance.standards.models import StandardsCatalog
from dohcompliance.validators.engine import ComplianceValidationEngine
from dohcompliance.validators.history import ValidationHistory

from helpers import strip_volatile

API_DOWN = APIResponse(success=False, error={"error": "external_service_error", "message": "down"})


class FakeAPIClient:
    """Stands in for DOHValidationAPIClient; every call answers `response` after an optional delay.

    Batch validation answers `batch_response` immediately.
    """

    def __init__(self, response: APIResponse = API_DOWN, delays=None, batch_response: APIResponse = API_DOWN):
        self.response = response
        self.batch_response = batch_response
        self.delays = list(delays or [])
        self.calls = []

    async def _answer(self, name, payload=None):
        self.calls.append((name, payload))
        if self.delays:
            await asyncio.sleep(self.delays.pop(0))
        return self.response

    async def validate_clinical_data_with_cache(self, request, validated_by, validator_role, enable_caching=True):
        payload = {
            **request,
            "validatedBy": validated_by,
            "validatorRole": validator_role,
            "enableCaching": enable_caching,
        }
        return await self._answer("validate", payload)

    async def perform_batch_validation(self, batch_request):
        self.calls.append(("batch", batch_request))
        return self.batch_response

    async def process_validation_queue(self, batch_size=10):
        return await self._answer("queue", batch_size)

    async def get_doh_compliance_status(self, scope=None):
        return await self._answer("status", scope)

    async def generate_compliance_analytics(self, scope=None):
        return await self._answer("analytics", scope)

    async def generate_compliance_report(self, config):
        return await self._answer("report", config)

    async def clear_expired_cache(self):
        return await self._answer("clear_cache")

    async def close(self):
        pass


def make_service(engine, api=None, **kwargs) -> ComplianceValidationService:
    return ComplianceValidationService(
        engine=engine,
        cache=ResultCache(),
        api_client=api,
        event_bus=EventBus(),
        **kwargs,
    )


def request_for(form_data, form_type="fall_risk_assessment", **kwargs) -> ValidationRequest:
    return ValidationRequest(form_data=form_data, form_type=form_type, **kwargs)


class TestRunSequencer:
    def test_latest_wins(self):
        seq = RunSequencer()
        first = seq.issue("form-1")
        second = seq.issue("form-1")
        other = seq.issue("form-2")
        assert second > first
        assert not seq.is_latest("form-1", first)
        assert seq.is_latest("form-1", second)
        assert seq.is_latest("form-2", other)

    def test_release_forgets_finished_form(self):
        seq = RunSequencer()
        first = seq.issue("form-1")
        second = seq.issue("form-1")

        seq.release("form-1", first)
        assert len(seq) == 1
        assert seq.is_latest("form-1", second)

        seq.release("form-1", second)
        assert len(seq) == 0
        assert not seq.is_latest("form-1", first)


class TestFromSettings:
    def test_wiring(self, registry):
        settings = Settings(
            UNKNOWN_RULE_POLICY="fail", AGGREGATION_METHOD="weighted_average", HISTORY_SIZE=3, CACHE_ENABLED=False,
        )
        service = ComplianceValidationService.from_settings(settings, standards=registry, event_bus=EventBus())
        assert service.api_client is None
        assert service.cache.enabled is False
        assert service.history.max_size == 3
        assert service.engine.aggregation_method == "weighted_average"
        assert service.engine.rules.unknown_rule_policy == "fail"


class TestValidate:
    @pytest.mark.asyncio
    async def test_local_validation(self, service, complete_form):
        changes, completions = [], []
        result = await service.validate(
            request_for(complete_form, form_id="F1"),
            on_change=lambda valid, errors, warnings: changes.append((valid, errors, warnings)),
            on_complete=completions.append,
        )
        assert result.compliance_score.percentage == 100
        assert changes == [(True, [], [])]
        assert completions == [result]
        assert service.latest_result("F1") is result
        assert service.history.entries() == [result]

    @pytest.mark.asyncio
    async def test_async_callbacks(self, service):
        received = []

        async def on_change(valid, errors, warnings):
            received.append((valid, errors))

        await service.validate(request_for({}), on_change=on_change)
        assert received == [(False, ["Clinical Assessment Documentation requirement not met"])]

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_fail_run(self, service):
        def on_complete(result):
            raise RuntimeError("component unmounted")

        result = await service.validate(request_for({}), on_complete=on_complete)
        assert result.overall_status == "non_compliant"

    @pytest.mark.asyncio
    async def test_input_error_before_catalog_check(self):
        engine = ComplianceValidationEngine(standards=StandardsRegistry(), history=ValidationHistory())
        service = make_service(engine)
        with pytest.raises(InputValidationError):
            await service.validate(request_for(None))
        with pytest.raises(StandardsNotReadyError):
            await service.validate(request_for({}))

    @pytest.mark.asyncio
    async def test_publishes_events(self, service):
        events = []

        async def listener(event):
            events.append(event["type"])

        service.event_bus.subscribe("F1", listener)
        await service.validate(request_for({}, form_id="F1"))
        assert events == ["validation_started", "validation_completed"]

    @pytest.mark.asyncio
    async def test_local_engine_crash_is_unavailable(self, service, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(service.engine, "run", broken)
        with pytest.raises(ValidationUnavailableError):
            await service.validate(request_for({}))
        assert len(service.history) == 0


class TestExternalFallback:
    @pytest.mark.asyncio
    async def test_external_result_used(self, engine, complete_form):
        remote = engine.run(complete_form, "fall_risk_assessment").to_json_dict()
        remote["validationId"] = "remote_1"
        api = FakeAPIClient(APIResponse(success=True, data=remote))
        service = make_service(engine, api)

        result = await service.validate(request_for(complete_form))
        assert result.validation_id == "remote_1"
        assert api.calls[0][0] == "validate"
        assert api.calls[0][1]["formType"] == "fall_risk_assessment"

    @pytest.mark.asyncio
    async def test_sends_caller_context(self, engine):
        api = FakeAPIClient(API_DOWN)
        service = make_service(engine, api)
        await service.validate(request_for({}, form_id="F1", use_cache=False))

        name, payload = api.calls[0]
        assert name == "validate"
        assert payload["formId"] == "F1"
        assert payload["validatedBy"] == "current_user"
        assert payload["validatorRole"] == "clinical_staff"
        assert payload["enableCaching"] is False
        assert "useCache" not in payload

    @pytest.mark.asyncio
    async def test_api_failure_falls_back_losslessly(self, engine, complete_form):
        service = make_service(engine, FakeAPIClient(API_DOWN))
        fallback = await service.validate(request_for({}, use_cache=False))
        local = engine.run({}, "fall_risk_assessment")
        assert fallback.compliance_score == local.compliance_score
        assert fallback.overall_status == local.overall_status
        assert [f.finding_id for f in fallback.critical_findings] == [f.finding_id for f in local.critical_findings]

    @pytest.mark.asyncio
    async def test_api_timeout_falls_back(self, engine):
        api = FakeAPIClient(API_DOWN, delays=[1.0])
        service = make_service(engine, api, api_timeout_seconds=0.05)
        result = await service.validate(request_for({}))
        assert result.compliance_score.percentage == 90

    @pytest.mark.asyncio
    async def test_malformed_api_result_falls_back(self, engine):
        service = make_service(engine, FakeAPIClient(APIResponse(success=True, data={"unexpected": True})))
        result = await service.validate(request_for({}))
        assert result.compliance_score.percentage == 90


class TestCaching:
    @pytest.mark.asyncio
    async def test_hit_returns_same_shape(self, service, complete_form):
        first = await service.validate(request_for(complete_form))
        second = await service.validate(request_for(complete_form))
        assert second.to_json_dict() == first.to_json_dict()
        assert service.cache.hits == 1
        assert len(service.history) == 2

    @pytest.mark.asyncio
    async def test_hit_matches_fresh_run(self, service, complete_form):
        await service.validate(request_for(complete_form))
        cached = await service.validate(request_for(complete_form))
        fresh = await service.validate(request_for(complete_form, use_cache=False))

        assert service.cache.hits == 1
        assert strip_volatile(cached.to_json_dict()) == strip_volatile(fresh.to_json_dict())
        assert cached.to_json_dict()["complianceTracking"] == {
            "trendDirection": "stable",
            "consecutiveCompliantValidations": 1,
        }
        assert service.metrics.consecutive_compliant_validations == 3

    @pytest.mark.asyncio
    async def test_use_cache_false_recomputes(self, service):
        first = await service.validate(request_for({}, use_cache=False))
        second = await service.validate(request_for({}, use_cache=False))
        assert first.validation_id != second.validation_id
        assert service.cache.hits == 0

    @pytest.mark.asyncio
    async def test_catalog_change_invalidates(self, service, registry, two_domain_catalog_data):
        first = await service.validate(request_for({}))
        assert await service.cache.backend.size() == 1

        registry.replace(StandardsCatalog.model_validate(two_domain_catalog_data))
        second = await service.validate(request_for({}))

        assert second.validation_id != first.validation_id
        assert second.validation_metadata.standard_version == "T1"
        assert await service.cache.backend.size() == 1

    @pytest.mark.asyncio
    async def test_clear_expired_cache(self, service):
        await service.validate(request_for({}))
        response = await service.clear_expired_cache()
        assert response.removed == 0
        assert response.external_cleared is False


class TestSequencingAndCancellation:
    @pytest.mark.asyncio
    async def test_stale_run_does_not_overwrite_newer(self, engine, complete_form):
        api = FakeAPIClient(API_DOWN, delays=[0.2, 0.0])
        service = make_service(engine, api)
        completions = []

        slow = asyncio.create_task(service.validate(
            request_for({}, form_id="F1", use_cache=False), on_complete=completions.append,
        ))
        await asyncio.sleep(0.01)
        fast = await service.validate(
            request_for(complete_form, form_id="F1", use_cache=False), on_complete=completions.append,
        )
        stale = await slow

        assert stale.compliance_score.percentage == 90
        assert service.latest_result("F1") is fast
        assert completions == [fast]
        assert service.history.entries() == [fast]
        assert service.metrics.total_validations == 1

    @pytest.mark.asyncio
    async def test_untracked_requests_never_supersede(self, engine, complete_form):
        api = FakeAPIClient(API_DOWN, delays=[0.2, 0.0])
        service = make_service(engine, api)

        slow = asyncio.create_task(service.validate(request_for({}, use_cache=False)))
        await asyncio.sleep(0.01)
        fast = await service.validate(request_for(complete_form, use_cache=False))
        first = await slow

        assert {r.validation_id for r in service.history.entries()} == {first.validation_id, fast.validation_id}
        assert service.metrics.total_validations == 2
        assert len(service.sequencer) == 0

    @pytest.mark.asyncio
    async def test_cancelled_run_leaves_no_trace(self, engine):
        service = make_service(engine, FakeAPIClient(API_DOWN, delays=[0.5]))
        task = asyncio.create_task(service.validate(request_for({}, form_id="F1")))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(service.history) == 0
        assert service.metrics.total_validations == 0
        assert service.latest_result("F1") is None
        assert await service.cache.backend.size() == 0


class TestBatches:
    @pytest.mark.asyncio
    async def test_all_succeed(self, service, complete_form):
        batch = BatchValidationRequest(items=[
            BatchItem(form_data=complete_form, form_type="fall_risk_assessment"),
            BatchItem(form_data={}, form_type="wound_assessment"),
            BatchItem(form_data={"patientId": "P1"}, form_type="medication_review"),
        ])
        summary = await service.run_batch(batch)
        assert summary.status == "completed"
        assert summary.total == 3
        assert summary.successful == 3
        assert summary.failed == 0
        assert summary.pending == 0
        assert all(item.result is not None for item in summary.items)

    @pytest.mark.asyncio
    async def test_failed_item_is_counted(self, service):
        batch = BatchValidationRequest(items=[
            BatchItem(form_data={}, form_type="fall_risk_assessment"),
            BatchItem(form_data=None, form_type="fall_risk_assessment"),
        ])
        summary = await service.run_batch(batch)
        assert summary.successful == 1
        assert summary.failed == 1
        failed = next(item for item in summary.items if item.status == "failed")
        assert failed.error["error"] == "invalid_input"

    @pytest.mark.asyncio
    async def test_priority_order(self, service):
        batch = BatchValidationRequest(max_concurrency=1, items=[
            BatchItem(form_data={}, form_type="low_form", priority="low"),
            BatchItem(form_data={}, form_type="critical_form", priority="critical"),
            BatchItem(form_data={}, form_type="medium_form", priority="medium"),
            BatchItem(form_data={}, form_type="high_form", priority="high"),
        ])
        await service.run_batch(batch)
        processed = [r.form_type for r in reversed(service.history.entries())]
        assert processed == ["critical_form", "high_form", "medium_form", "low_form"]

    @pytest.mark.asyncio
    async def test_batch_requires_catalog(self):
        engine = ComplianceValidationEngine(standards=StandardsRegistry(), history=ValidationHistory())
        batch = BatchValidationRequest(items=[BatchItem(form_data={}, form_type="x")])
        with pytest.raises(StandardsNotReadyError):
            await make_service(engine).run_batch(batch)

    @pytest.mark.asyncio
    async def test_background_batch(self, service):
        batch = BatchValidationRequest(background=True, items=[
            BatchItem(form_data={}, form_type="fall_risk_assessment", item_id="a"),
            BatchItem(form_data={}, form_type="wound_assessment", item_id="b"),
        ])
        handle = await service.enqueue_batch(batch)
        assert service.get_batch(handle.batch_id) is handle

        summary = await handle.wait(timeout=5)
        assert summary.status == "completed"
        assert summary.successful == 2
        assert handle.deadline is None
        assert {item.item_id for item in summary.items} == {"a", "b"}

    @pytest.mark.asyncio
    async def test_background_batch_expires(self, engine):
        service = make_service(engine, FakeAPIClient(API_DOWN, delays=[1.0, 1.0]), queue_max_wait_seconds=0.05)
        batch = BatchValidationRequest(background=True, items=[
            BatchItem(form_data={}, form_type="fall_risk_assessment"),
            BatchItem(form_data={}, form_type="wound_assessment"),
        ])
        handle = await service.enqueue_batch(batch)
        summary = await handle.wait(timeout=2)
        await handle.task

        assert summary.status == "expired"
        assert all(item.status == "expired" for item in summary.items)
        assert len(service.history) == 0

    @pytest.mark.asyncio
    async def test_cancel_background_batch(self, engine):
        service = make_service(engine, FakeAPIClient(API_DOWN, delays=[1.0, 1.0]))
        batch = BatchValidationRequest(background=True, items=[BatchItem(form_data={}, form_type="x")])
        handle = await service.enqueue_batch(batch)
        await asyncio.sleep(0.05)
        handle.cancel()
        await handle.task

        summary = handle.snapshot()
        assert summary.status == "cancelled"
        assert summary.items[0].status == "cancelled"
        assert handle.deadline is None
        assert len(service.history) == 0

    @pytest.mark.asyncio
    async def test_wait_timeout(self, engine):
        service = make_service(engine, FakeAPIClient(API_DOWN, delays=[1.0]))
        handle = await service.enqueue_batch(
            BatchValidationRequest(background=True, items=[BatchItem(form_data={}, form_type="x")])
        )
        with pytest.raises(asyncio.TimeoutError):
            await handle.wait(timeout=0.01)
        handle.cancel()
        await handle.task


class TestExternalBatches:
    @pytest.mark.asyncio
    async def test_api_results_adopted_and_failures_run_locally(self, engine, complete_form):
        remote = engine.run(complete_form, "fall_risk_assessment").to_json_dict()
        remote["validationId"] = "remote_a"
        api = FakeAPIClient(API_DOWN, batch_response=APIResponse(success=True, data={"results": [
            {"itemId": "a", "status": "success", "result": remote},
            {"itemId": "b", "status": "failed", "error": {"message": "form rejected"}},
        ]}))
        service = make_service(engine, api)

        summary = await service.run_batch(BatchValidationRequest(max_concurrency=3, items=[
            BatchItem(form_data=complete_form, form_type="fall_risk_assessment", item_id="a"),
            BatchItem(form_data={}, form_type="wound_assessment", item_id="b"),
        ]))

        assert summary.successful == 2
        outcomes = {item.item_id: item for item in summary.items}
        assert outcomes["a"].result.validation_id == "remote_a"
        assert outcomes["b"].result.compliance_score.percentage == 90
        assert service.latest_result("item:a").validation_id == "remote_a"
        assert len(service.history) == 2

        name, payload = api.calls[0]
        assert name == "batch"
        assert payload["batchType"] == "forms"
        assert [i["id"] for i in payload["items"]] == ["a", "b"]
        assert payload["requestedBy"] == "current_user"
        assert payload["processingOptions"]["maxConcurrency"] == 3
        assert [c[1]["formType"] for c in api.calls if c[0] == "validate"] == ["wound_assessment"]

    @pytest.mark.asyncio
    async def test_unreadable_result_runs_locally(self, engine):
        api = FakeAPIClient(API_DOWN, batch_response=APIResponse(success=True, data={"results": [
            {"itemId": "a", "status": "success", "result": {"unexpected": True}},
        ]}))
        service = make_service(engine, api)
        summary = await service.run_batch(BatchValidationRequest(items=[
            BatchItem(form_data={}, form_type="fall_risk_assessment", item_id="a"),
        ]))
        assert summary.successful == 1
        assert summary.items[0].result.compliance_score.percentage == 90

    @pytest.mark.asyncio
    async def test_malformed_batch_response_runs_locally(self, engine):
        api = FakeAPIClient(API_DOWN, batch_response=APIResponse(success=True, data=["not", "a", "mapping"]))
        service = make_service(engine, api)
        summary = await service.run_batch(BatchValidationRequest(items=[
            BatchItem(form_data={}, form_type="fall_risk_assessment"),
            BatchItem(form_data=None, form_type="fall_risk_assessment"),
        ]))
        assert summary.successful == 1
        assert summary.failed == 1
        assert len(api.calls[0][1]["items"]) == 1


class TestRetention:
    @pytest.mark.asyncio
    async def test_long_running_service_stays_bounded(self, engine):
        service = make_service(engine, batch_retention=10, latest_results_size=10)
        completed = []

        async def listener(event):
            if event["type"] == "batch_completed":
                completed.append(event["batch_id"])

        for n in range(50):
            handle = await service.enqueue_batch(BatchValidationRequest(
                background=True, items=[BatchItem(form_data={}, form_type="fall_risk_assessment")],
            ))
            service.event_bus.subscribe(handle.batch_id, listener)
            await handle.task
        for n in range(50):
            await service.validate(request_for({}, form_id=f"F{n}"))

        assert len(completed) == 50
        assert len(service._batches) <= 10
        assert service.get_batch(completed[-1]) is not None
        assert service.get_batch(completed[0]) is None
        assert len(service._latest_results) == 10
        assert service.latest_result("F49") is not None
        assert service.latest_result("F0") is None
        assert service.event_bus.topics == []
        assert len(service.sequencer) == 0

    @pytest.mark.asyncio
    async def test_running_batches_are_kept(self, engine):
        service = make_service(engine, FakeAPIClient(API_DOWN, delays=[1.0]), batch_retention=1)
        running = await service.enqueue_batch(
            BatchValidationRequest(background=True, items=[BatchItem(form_data={}, form_type="x")])
        )
        await asyncio.sleep(0.01)
        second = await service.enqueue_batch(
            BatchValidationRequest(background=True, items=[BatchItem(form_data={}, form_type="y")])
        )
        assert service.get_batch(running.batch_id) is running
        assert service.get_batch(second.batch_id) is second

        await asyncio.sleep(0.01)
        running.cancel()
        second.cancel()
        await asyncio.gather(running.task, second.task)


class TestValidationQueue:
    @pytest.mark.asyncio
    async def test_external(self, engine):
        api = FakeAPIClient(APIResponse(success=True, data={"processedItems": 4}))
        service = make_service(engine, api)
        response = await service.process_validation_queue(5)
        assert response.source == "external"
        assert response.data == {"processedItems": 4}
        assert api.calls[-1] == ("queue", 5)

    @pytest.mark.asyncio
    async def test_local_reports_background_batches(self, engine):
        service = make_service(engine, FakeAPIClient(API_DOWN, delays=[1.0]))
        handle = await service.enqueue_batch(
            BatchValidationRequest(background=True, items=[BatchItem(form_data={}, form_type="x")])
        )
        await asyncio.sleep(0.05)

        response = await service.process_validation_queue()
        assert response.source == "local"
        assert response.data["processedItems"] == 0
        assert response.data["activeBatches"] == 1
        assert response.data["pendingItems"] == 1

        handle.cancel()
        await handle.task


class TestComplianceStatus:
    @pytest.mark.asyncio
    async def test_local_fallback(self, engine):
        service = make_service(engine, FakeAPIClient(API_DOWN))
        await service.validate(request_for({}))
        status = await service.get_compliance_status({"patientId": "P1"})
        assert status.source == "local"
        assert status.data["totalValidations"] == 1
        assert status.data["overallStatus"] == "non_compliant"
        assert status.data["percentage"] == 90

    @pytest.mark.asyncio
    async def test_external(self, engine):
        service = make_service(engine, FakeAPIClient(APIResponse(success=True, data={"overallCompliance": 97})))
        status = await service.get_compliance_status()
        assert status.source == "external"
        assert status.data == {"overallCompliance": 97}

    @pytest.mark.asyncio
    async def test_no_validations_yet(self, service):
        status = await service.get_compliance_status()
        assert status.data["overallStatus"] == "not_applicable"
        assert status.data["totalValidations"] == 0

    @pytest.mark.asyncio
    async def test_local_analytics(self, service, complete_form):
        await service.validate(request_for({}, use_cache=False))
        await service.validate(request_for(complete_form, use_cache=False))
        analytics = await service.generate_compliance_analytics()
        assert analytics.source == "local"
        assert analytics.data["sampleSize"] == 2
        assert analytics.data["statusDistribution"] == {"compliant": 1, "non_compliant": 1}
        assert analytics.data["domainAverages"]["clinical_care"] == 75.0
        assert analytics.data["mostFrequentFindings"] == [{"findingId": "CC-001_CRITICAL", "occurrences": 1}]

    @pytest.mark.asyncio
    async def test_local_report(self, service):
        await service.validate(request_for({}))
        report = await service.generate_compliance_report({"reportType": "monthly"})
        assert report.source == "local"
        assert report.data["config"] == {"reportType": "monthly"}
        assert len(report.data["validations"]) == 1
        assert "Address critical findings in Clinical Care" in report.data["immediateActions"]


class TestRealtimeValidator:
    def test_from_settings(self, service):
        realtime = RealtimeValidator.from_settings(service, Settings(REALTIME_DEBOUNCE_SECONDS=0.25))
        assert realtime.debounce_seconds == 0.25

    @pytest.mark.asyncio
    async def test_debounce_coalesces(self, service):
        realtime = RealtimeValidator(service, debounce_seconds=0.05)
        changes = []

        first = realtime.submit(request_for({"patientId": "P"}, form_id="F1"), on_change=lambda *a: changes.append(a))
        await asyncio.sleep(0)
        second = realtime.submit(request_for({"patientId": "P1"}, form_id="F1"), on_change=lambda *a: changes.append(a))
        assert realtime.pending("F1")
        result = await second

        assert await first is None
        assert result is not None
        assert len(changes) == 1
        assert len(service.history) == 1
        assert not realtime.pending("F1")

    @pytest.mark.asyncio
    async def test_untracked_requests_debounce_per_form_type(self, service):
        realtime = RealtimeValidator(service, debounce_seconds=0.05)
        first = realtime.submit(request_for({}))
        await asyncio.sleep(0)
        assert realtime.pending("anonymous:fall_risk_assessment")
        second = realtime.submit(request_for({"patientId": "P1"}))

        assert await first is None
        assert await second is not None
        assert len(service.history) == 1

    @pytest.mark.asyncio
    async def test_separate_forms_both_run(self, service):
        realtime = RealtimeValidator(service, debounce_seconds=0.01)
        realtime.submit(request_for({}, form_id="F1"))
        realtime.submit(request_for({}, form_id="F2"))
        await realtime.flush()
        assert service.latest_result("F1") is not None
        assert service.latest_result("F2") is not None

    @pytest.mark.asyncio
    async def test_failure_resolves_to_none(self, service):
        realtime = RealtimeValidator(service, debounce_seconds=0.01)
        assert await realtime.submit(request_for(None, form_id="F1")) is None

    @pytest.mark.asyncio
    async def test_cancel_all(self, service):
        realtime = RealtimeValidator(service, debounce_seconds=1.0)
        task = realtime.submit(request_for({}, form_id="F1"))
        await asyncio.sleep(0)
        realtime.cancel_all()
        assert await task is None
        assert len(service.history) == 0

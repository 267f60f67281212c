"""Real-time validator — debounced validation while a clinician edits a form.

Each form key has at most one pending submission. A new submission inside the
debounce window replaces the pending one; a submission that arrives while a
run is in flight cancels that run, which leaves no trace.
"""

import asyncio
from typing import Optional

import structlog

from dohcompliance.config import Settings, get_settings
from dohcompliance.errors import ComplianceValidationError
from dohcompliance.models.requests import ValidationRequest
from dohcompliance.services.validation_service import (
    ChangeCallback,
    CompleteCallback,
    ComplianceValidationService,
)
from dohcompliance.validators.models import ValidationResult

logger = structlog.get_logger()


class RealtimeValidator:
    """Debounces per-form validation requests onto a ComplianceValidationService."""

    def __init__(self, service: ComplianceValidationService, debounce_seconds: float = 1.0):
        self.service = service
        self.debounce_seconds = debounce_seconds
        self._pending: dict[str, asyncio.Task] = {}

    @classmethod
    def from_settings(
        cls, service: ComplianceValidationService, settings: Optional[Settings] = None
    ) -> "RealtimeValidator":
        settings = settings or get_settings()
        return cls(service, debounce_seconds=settings.REALTIME_DEBOUNCE_SECONDS)

    def submit(
        self,
        request: ValidationRequest,
        on_change: Optional[ChangeCallback] = None,
        on_complete: Optional[CompleteCallback] = None,
    ) -> asyncio.Task:
        """Schedule a validation after the debounce delay, replacing any pending one.

        Returns:
            The task that will run the validation; it resolves to the result,
            or to None if it was replaced or failed.
        """
        form_key = self.debounce_key(request)
        previous = self._pending.get(form_key)
        if previous is not None and not previous.done():
            previous.cancel()
            logger.debug("realtime_validation_replaced", form_key=form_key)

        task = asyncio.create_task(self._run_after_delay(request, on_change, on_complete))
        self._pending[form_key] = task
        task.add_done_callback(lambda t, key=form_key: self._forget(key, t))
        return task

    async def _run_after_delay(
        self,
        request: ValidationRequest,
        on_change: Optional[ChangeCallback],
        on_complete: Optional[CompleteCallback],
    ) -> Optional[ValidationResult]:
        try:
            await asyncio.sleep(self.debounce_seconds)
            return await self.service.validate(request, on_change=on_change, on_complete=on_complete)
        except asyncio.CancelledError:
            return None
        except ComplianceValidationError as e:
            logger.warning(
                "realtime_validation_failed", form_key=self.debounce_key(request), error=e.code, message=e.message
            )
            return None

    @staticmethod
    def debounce_key(request: ValidationRequest) -> str:
        """Key to debounce on; requests without a form identity share one key per form type."""
        return request.form_key or f"anonymous:{request.form_type}"

    def _forget(self, form_key: str, task: asyncio.Task) -> None:
        if self._pending.get(form_key) is task:
            del self._pending[form_key]

    def pending(self, form_key: str) -> bool:
        task = self._pending.get(form_key)
        return task is not None and not task.done()

    async def flush(self) -> None:
        """Wait for every pending validation to finish."""
        tasks = list(self._pending.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def cancel_all(self) -> None:
        for task in list(self._pending.values()):
            task.cancel()
        self._pending.clear()

"""External DOH validation API client with retry logic.

Every public method returns an APIResponse envelope and never raises: the
service layer decides what a failure means (usually a local fallback).
"""

from typing import Any, Optional

import httpx
import structlog
from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from dohcompliance.config import Settings, get_settings
from dohcompliance.errors import ExternalServiceError

logger = structlog.get_logger()


class APIResponse(BaseModel):
    """Envelope for every external API call."""

    success: bool
    data: Optional[Any] = None
    error: Optional[dict] = None

    @classmethod
    def ok(cls, data: Any) -> "APIResponse":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: ExternalServiceError) -> "APIResponse":
        return cls(success=False, error=error.to_dict())


class _TransientHTTPError(Exception):
    """5xx or 429 from the API; worth another attempt."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"HTTP {status_code}: {body[:200]}")
        self.status_code = status_code


class DOHValidationAPIClient:
    """Typed async client for the remote DOH validation service.

    Usage:
        client = DOHValidationAPIClient.from_settings()
        response = await client.validate_clinical_data_with_cache(request, "nurse_01", "clinical_staff")
        if response.success:
            result = ValidationResult.model_validate(response.data)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> Optional["DOHValidationAPIClient"]:
        """Build a client from settings, or None when no API URL is configured."""
        settings = settings or get_settings()
        if not settings.VALIDATION_API_URL:
            return None
        return cls(
            base_url=settings.VALIDATION_API_URL,
            api_key=settings.VALIDATION_API_KEY,
            timeout_seconds=settings.VALIDATION_API_TIMEOUT_SECONDS,
            max_attempts=settings.VALIDATION_API_RETRIES,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _send(self, method: str, path: str, payload: Optional[dict] = None) -> Any:
        response = await self._client.request(method, path, json=payload)
        if response.status_code == 429 or response.status_code >= 500:
            raise _TransientHTTPError(response.status_code, response.text)
        if response.status_code >= 400:
            raise ExternalServiceError(
                f"Validation API rejected {method} {path}",
                details={"status_code": response.status_code, "body": response.text[:500]},
            )
        body = response.json()
        # The API wraps payloads in {success, data, error}; unwrap when it does
        if isinstance(body, dict) and "success" in body:
            if not body.get("success"):
                raise ExternalServiceError(
                    f"Validation API reported failure for {method} {path}",
                    details={"error": body.get("error")},
                )
            return body.get("data")
        return body

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> APIResponse:
        """Call the API with retries on transient failures. Never raises."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=self.backoff_seconds, max=8),
                retry=retry_if_exception_type((httpx.TransportError, _TransientHTTPError)),
                before_sleep=lambda retry_state: logger.warning(
                    "validation_api_retry",
                    path=path,
                    attempt=retry_state.attempt_number,
                    wait=retry_state.next_action.sleep,
                ),
                reraise=True,
            ):
                with attempt:
                    data = await self._send(method, path, payload)
            return APIResponse.ok(data)
        except ExternalServiceError as e:
            logger.warning("validation_api_error", method=method, path=path, error=e.message)
            return APIResponse.fail(e)
        except (httpx.HTTPError, _TransientHTTPError, RetryError, ValueError) as e:
            logger.warning("validation_api_unreachable", method=method, path=path, error=str(e))
            return APIResponse.fail(
                ExternalServiceError(f"Validation API call failed: {method} {path}", details={"reason": str(e)})
            )

    # ── Endpoints ──

    async def validate_clinical_data_with_cache(
        self,
        request: dict,
        validated_by: str,
        validator_role: str,
        enable_caching: bool = True,
    ) -> APIResponse:
        """Validate one form remotely on behalf of `validated_by` acting as `validator_role`."""
        payload = {
            **request,
            "validatedBy": validated_by,
            "validatorRole": validator_role,
            "enableCaching": enable_caching,
        }
        return await self._request("POST", "/validations", payload)

    async def get_doh_compliance_status(self, scope: Optional[dict] = None) -> APIResponse:
        return await self._request("POST", "/compliance/status", scope or {})

    async def perform_batch_validation(self, batch_request: dict) -> APIResponse:
        return await self._request("POST", "/validations/batch", batch_request)

    async def generate_compliance_report(self, report_config: dict) -> APIResponse:
        return await self._request("POST", "/compliance/reports", report_config)

    async def generate_compliance_analytics(self, scope: Optional[dict] = None) -> APIResponse:
        return await self._request("POST", "/compliance/analytics", scope or {})

    async def clear_expired_cache(self) -> APIResponse:
        return await self._request("DELETE", "/validations/cache")

    async def process_validation_queue(self, batch_size: int = 10) -> APIResponse:
        return await self._request("POST", "/validations/queue/process", {"batchSize": batch_size})

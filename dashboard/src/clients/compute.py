"""
HTTPS client for the compute collaborator (Lambda function URLs).

Invokes named compute functions over HTTPS and unwraps the Lambda proxy
response envelope (``{"statusCode": 200, "body": "<json>"}``). Two typed
entry points sit on top of the generic :meth:`ComputeClient.invoke`:

- fetch_series(device_suffix, time_range): raw rows for a time range.
- fetch_latest(device_suffix): the newest raw row, or None.

Any failure (network error, timeout, non-2xx status, error envelope, empty
response) is raised as :class:`ComputeError`. This client never retries;
retry is the caller's decision. TLS certificate verification is always on.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_S = 30.0


class ComputeError(RuntimeError):
    """Raised when a compute function invocation fails."""


class ComputeClient:
    """Async client for the compute collaborator.

    Args:
        base_url: Base URL of the function gateway. Must start with
            ``https://``.
        api_key: Optional API key sent as the ``x-api-key`` header.
        timeout_s: Per-request timeout in seconds.
        series_function: Function name for time-range series.
        latest_function: Function name for the latest reading.
        client: Optional pre-built ``httpx.AsyncClient`` (tests inject one
            with a mock transport). When omitted a client is created and
            owned by this instance.

    Raises:
        ValueError: If *base_url* does not start with ``https://``.

    Usage::

        async with ComputeClient("https://fn.example.com") as compute:
            rows = await compute.fetch_series("0x440", "7days")
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str = "",
        timeout_s: float = _DEFAULT_TIMEOUT_S,
        series_function: str = "bms-series",
        latest_function: str = "bms-latest",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url.lower().startswith("https://"):
            raise ValueError(f"Compute base URL must use HTTPS (got: '{base_url}').")
        self._base_url = base_url.rstrip("/")
        self._series_function = series_function
        self._latest_function = latest_function
        headers = {"x-api-key": api_key} if api_key else {}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            verify=True, timeout=timeout_s, headers=headers
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance owns it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> ComputeClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def invoke(self, function: str, payload: dict[str, Any]) -> Any:
        """Invoke a compute function and return its decoded body.

        Args:
            function: Function name.
            payload: JSON-serialisable request payload.

        Returns:
            The decoded response body (envelope unwrapped when present).

        Raises:
            ComputeError: On any transport, status or envelope failure.
        """
        url = f"{self._base_url}/functions/{function}/invoke"
        try:
            response = await self._client.post(url, json=payload)
        except httpx.TimeoutException as exc:
            raise ComputeError(f"Compute function '{function}' timed out") from exc
        except httpx.HTTPError as exc:
            raise ComputeError(
                f"Compute function '{function}' unreachable: {exc}"
            ) from exc

        if response.status_code != 200:
            raise ComputeError(
                f"Compute function '{function}' failed (HTTP {response.status_code})"
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise ComputeError(
                f"Compute function '{function}' returned invalid JSON"
            ) from exc

        return _unwrap_envelope(function, body)

    async def fetch_series(self, device_suffix: str, time_range: str) -> Any:
        """Fetch raw telemetry for a device and time range.

        Args:
            device_suffix: Device suffix (``"0x440"``) or controller literal.
            time_range: One of the dashboard time range literals.

        Returns:
            The opaque collaborator result.

        Raises:
            ComputeError: On failure or when the function returns nothing.
        """
        result = await self.invoke(
            self._series_function,
            {"tagIdSuffix": device_suffix, "timeRange": time_range},
        )
        if result is None:
            raise ComputeError("No response from compute function")
        logger.debug(
            "Series fetched for %s (%s): %s", device_suffix, time_range, type(result).__name__
        )
        return result

    async def fetch_latest(self, device_suffix: str) -> dict[str, Any] | None:
        """Fetch the newest raw row for a device, or None if there is none."""
        result = await self.invoke(
            self._latest_function, {"tagIdSuffix": device_suffix}
        )
        if isinstance(result, list):
            result = result[0] if result else None
        elif isinstance(result, dict) and "item" in result:
            result = result["item"]
        if result is not None and not isinstance(result, dict):
            raise ComputeError(
                f"Unexpected latest-reading payload of type {type(result).__name__}"
            )
        return result


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _unwrap_envelope(function: str, body: Any) -> Any:
    """Unwrap a Lambda proxy envelope; pass other bodies through."""
    if not (isinstance(body, dict) and "statusCode" in body and "body" in body):
        return body

    inner = body["body"]
    if isinstance(inner, str):
        try:
            inner = json.loads(inner) if inner else None
        except ValueError as exc:
            raise ComputeError(
                f"Compute function '{function}' returned an undecodable body"
            ) from exc

    if body["statusCode"] != 200:
        detail = inner.get("error") if isinstance(inner, dict) else None
        raise ComputeError(
            detail or f"Compute function '{function}' failed "
            f"(statusCode {body['statusCode']})"
        )
    return inner

"""Async HTTP client for the Fly Machines REST API.

Covers the endpoints the machine plane consumes: machine create, get, forced
delete and list (scoped to one app), plus platform region discovery. Auth is a
static bearer token that never leaves this process.

The client performs no retries. Retry and region fallback for creation
belong to the provisioner; every other call fails fast.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.machines.dev/v1"


# ── Exception hierarchy ─────────────────────────────────────────


class TransportError(Exception):
    """Base exception for Machines API failures.

    ``status_code`` is 0 when no HTTP response was received.
    """

    def __init__(self, status_code: int, reason: str = "") -> None:
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"HTTP {status_code} - {reason}")


class FlyAPIError(TransportError):
    """The API answered with a non-success status."""

    def __init__(
        self,
        status_code: int,
        reason: str = "",
        *,
        response_body: str = "",
    ) -> None:
        self.response_body = response_body
        super().__init__(status_code, reason)


class FlyNotFoundError(FlyAPIError):
    """Machine (or app) not found (404)."""

    def __init__(self, reason: str = "Not Found", **kwargs: Any) -> None:
        super().__init__(404, reason, **kwargs)


class FlyTimeoutError(TransportError):
    """Request to the Machines API timed out."""

    def __init__(self, reason: str = "Request timed out") -> None:
        super().__init__(0, reason)


class MachineParseError(TransportError):
    """A success response could not be parsed into a machine."""

    def __init__(self, reason: str) -> None:
        super().__init__(0, reason)


class ProvisionError(TransportError):
    """Machine creation failed after the retry budget was spent."""

    def __init__(self, status_code: int, reason: str = "", *, attempts: int = 1) -> None:
        self.attempts = attempts
        super().__init__(status_code, reason)


class NoFallbackRegionError(ProvisionError):
    """Creation failed and no fallback region is available to retry in."""


# ── Client ───────────────────────────────────────────────────────


class FlyMachinesClient:
    """Async client for one Fly app's machines.

    All calls authenticate via a static bearer token injected server-side.
    """

    def __init__(
        self,
        *,
        api_token: str,
        app_name: str,
        base_url: str = DEFAULT_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        if not api_token:
            raise ValueError("api_token is required")
        if not app_name:
            raise ValueError("app_name is required")

        self._api_token = api_token
        self._app_name = app_name
        self._base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient()
        self._timeout = float(timeout_seconds)

    @property
    def app_name(self) -> str:
        return self._app_name

    def _headers(self) -> dict[str, str]:
        # Never log these headers.
        return {
            "Authorization": f"Bearer {self._api_token}",
            "Accept": "application/json",
        }

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.is_success:
            return

        reason = resp.reason_phrase or ""
        body = resp.text
        if resp.status_code == 404:
            raise FlyNotFoundError(reason=reason or "Not Found", response_body=body)

        raise FlyAPIError(
            status_code=resp.status_code,
            reason=reason,
            response_body=body,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            resp = await self._client.request(
                method,
                url,
                headers=self._headers(),
                json=json,
                params=params,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            raise FlyTimeoutError(str(e) or "Request timed out") from e
        except httpx.HTTPError as e:
            raise TransportError(0, str(e) or type(e).__name__) from e

        self._raise_for_status(resp)
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise MachineParseError(f"invalid JSON body: {resp.text[:200]}") from e

    def _machines_path(self, machine_id: str | None = None) -> str:
        path = f"/apps/{self._app_name}/machines"
        if machine_id is not None:
            path = f"{path}/{machine_id}"
        return path

    # ── Public API ───────────────────────────────────────────────

    async def create_machine(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a machine in the configured app.

        Raises FlyAPIError on any non-success status. Retrying is the
        caller's decision.
        """
        resp = await self._request("POST", self._machines_path(), json=payload)
        result = self._json(resp)
        logger.info(
            "Machine created: app=%s region=%s",
            self._app_name,
            payload.get("region"),
            extra={"app": self._app_name, "region": payload.get("region")},
        )
        return result

    async def get_machine(self, machine_id: str) -> dict[str, Any]:
        """Get live machine details.

        Raises FlyNotFoundError if the machine doesn't exist.
        """
        resp = await self._request("GET", self._machines_path(machine_id))
        return self._json(resp)

    async def delete_machine(self, machine_id: str, *, force: bool = True) -> None:
        """Delete a machine, stopping it first when ``force`` is set."""
        params = {"force": "true"} if force else None
        await self._request("DELETE", self._machines_path(machine_id), params=params)
        logger.info(
            "Machine deleted: app=%s machine_id=%s",
            self._app_name,
            machine_id,
            extra={"app": self._app_name, "machine_id": machine_id},
        )

    async def list_machines(self) -> list[dict[str, Any]]:
        """List every machine in the configured app."""
        resp = await self._request("GET", self._machines_path())
        result = self._json(resp)
        if not isinstance(result, list):
            raise MachineParseError(
                f"Expected list from {self._machines_path()}, got {type(result).__name__}"
            )
        return result

    async def list_regions(self) -> list[dict[str, Any]]:
        """Return the raw platform region list."""
        resp = await self._request("GET", "/platform/regions")
        result = self._json(resp)
        regions = result.get("Regions") if isinstance(result, dict) else None
        if not isinstance(regions, list):
            raise MachineParseError("Expected a Regions list from /platform/regions")
        return regions

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

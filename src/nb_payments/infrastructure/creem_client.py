"""Creem hosted-checkout client."""

from typing import Any

import httpx

from src.nb_common.errors import ProviderApiError

_TIMEOUT_S = 30.0


class CreemApiError(ProviderApiError):
    def __init__(self, message: str, status_code: int | None = None, details: Any = None) -> None:
        super().__init__("Creem", message, status_code, details)


class CreemClient:
    def __init__(
        self,
        *,
        api_key: str,
        api_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout_s: float = _TIMEOUT_S,
    ) -> None:
        self._api_key = (api_key or "").strip()
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_s),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, json: Any = None) -> dict[str, Any]:
        if not self._api_key:
            raise CreemApiError("Creem API key is not configured")
        try:
            resp = await self._client.request(
                method,
                path,
                json=json,
                headers={"Content-Type": "application/json", "x-api-key": self._api_key},
            )
        except httpx.HTTPError as exc:
            raise CreemApiError(str(exc) or f"Creem request failed: {method} {path}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code >= 400:
            message = None
            if isinstance(data, dict):
                message = data.get("error") or data.get("message")
            raise CreemApiError(
                str(message) if message else f"Creem API error: {resp.status_code}",
                resp.status_code,
                data,
            )
        if not isinstance(data, dict):
            raise CreemApiError("Unexpected Creem response body", 502, data)
        return data

    async def create_checkout(self, request: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/checkouts", json=request)

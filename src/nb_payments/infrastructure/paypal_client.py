"""PayPal REST client (Orders v2).

Every call first exchanges the client credentials for an OAuth2 access token.
Non-2xx responses and transport failures surface as PayPalApiError carrying
the upstream status code and body.
"""

import logging
from typing import Any

import httpx

from src.nb_common.errors import ProviderApiError

logger = logging.getLogger(__name__)

_TIMEOUT_S = 30.0


class PayPalApiError(ProviderApiError):
    def __init__(self, message: str, status_code: int | None = None, details: Any = None) -> None:
        super().__init__("PayPal", message, status_code, details)


def _json_or_empty(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return {}


def _error_message(data: Any, status_code: int) -> str:
    if isinstance(data, dict):
        for key in ("message", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return f"PayPal API error: {status_code}"


class PayPalClient:
    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        api_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout_s: float = _TIMEOUT_S,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._client = httpx.AsyncClient(
            base_url=api_url,
            timeout=httpx.Timeout(timeout_s),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_access_token(self) -> str:
        if not self._client_id or not self._client_secret:
            raise PayPalApiError("PayPal credentials are not configured")
        try:
            resp = await self._client.post(
                "/v1/oauth2/token",
                data={"grant_type": "client_credentials"},
                auth=(self._client_id, self._client_secret),
            )
        except httpx.HTTPError as exc:
            raise PayPalApiError(str(exc) or "Failed to get access token") from exc

        data = _json_or_empty(resp)
        if resp.status_code >= 400:
            raise PayPalApiError(
                f"Failed to get access token: {resp.status_code}", resp.status_code, data
            )
        token = data.get("access_token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise PayPalApiError("PayPal token response had no access_token", 502, data)
        return token

    async def _request(self, method: str, path: str, json: Any = None) -> dict[str, Any]:
        token = await self.get_access_token()
        try:
            resp = await self._client.request(
                method,
                path,
                json=json,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {token}",
                },
            )
        except httpx.HTTPError as exc:
            raise PayPalApiError(str(exc) or f"PayPal request failed: {method} {path}") from exc

        data = _json_or_empty(resp)
        if resp.status_code >= 400:
            raise PayPalApiError(_error_message(data, resp.status_code), resp.status_code, data)
        if not isinstance(data, dict):
            raise PayPalApiError("Unexpected PayPal response body", 502, data)
        return data

    async def create_order(self, order: dict[str, Any]) -> dict[str, Any]:
        data = await self._request("POST", "/v2/checkout/orders", json=order)
        logger.info("PayPal order created: id=%s status=%s", data.get("id"), data.get("status"))
        return data

    async def capture_order(self, order_id: str) -> dict[str, Any]:
        data = await self._request("POST", f"/v2/checkout/orders/{order_id}/capture")
        logger.info("PayPal order captured: id=%s status=%s", data.get("id"), data.get("status"))
        return data

"""Authenticated HTTP access to the SCEI backend."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from scei.config import Settings
from scei.core.exceptions import ApiError

logger = logging.getLogger(__name__)

UnauthorizedHook = Callable[[], None]


@dataclass(frozen=True)
class ApiResponse:
  """Decoded backend response."""

  status_code: int
  body: Any


def _upstream_message(body: Any, fallback: str) -> str:
  """Pick the most useful human-readable message from an error body."""
  if isinstance(body, dict):
    for key in ("message", "detail", "error"):
      value = body.get(key)
      if isinstance(value, str) and value.strip():
        return value.strip()
  return fallback


def unwrap_envelope(body: Any) -> Any:
  """Strip the backend's `{success, data, message}` envelope when present."""
  if not isinstance(body, dict):
    return body

  # An explicit success=false is a failure even when the HTTP status was 2xx.
  if body.get("success") is False:
    raise ApiError(_upstream_message(body, "Request failed"), body=body)

  data = body.get("data")
  if isinstance(data, dict):
    return data
  return body


class SceiApiClient:
  """Thin wrapper over httpx that applies auth headers and normalizes errors."""

  def __init__(
    self,
    *,
    base_url: str,
    token: str | None = None,
    domain: str | None = None,
    timeout: float = 30.0,
    http_client: httpx.AsyncClient | None = None,
    on_unauthorized: UnauthorizedHook | None = None,
  ) -> None:
    self._base_url = base_url.rstrip("/")
    self._token = token
    self._domain = domain
    self._on_unauthorized = on_unauthorized
    self._client = http_client or httpx.AsyncClient(timeout=timeout)
    self._owns_client = http_client is None

  @classmethod
  def from_settings(cls, settings: Settings, *, http_client: httpx.AsyncClient | None = None, on_unauthorized: UnauthorizedHook | None = None) -> SceiApiClient:
    return cls(base_url=settings.api_base_url, token=settings.api_token, domain=settings.api_domain, timeout=settings.http_timeout_seconds, http_client=http_client, on_unauthorized=on_unauthorized)

  def _headers(self) -> dict[str, str]:
    headers = {"accept": "application/json"}
    # The backend expects the raw token, not a Bearer-prefixed value.
    if self._token:
      headers["authorization"] = self._token
    if self._domain:
      headers["domain"] = self._domain
    return headers

  def _url(self, path: str) -> str:
    return f"{self._base_url}/{path.lstrip('/')}"

  async def get(self, path: str) -> ApiResponse:
    """Issue a GET request and return the decoded body."""
    return await self._request("GET", path)

  async def post(self, path: str, json: dict[str, Any] | None = None) -> ApiResponse:
    """Issue a POST request with a JSON body and return the decoded body."""
    return await self._request("POST", path, json=json)

  async def _request(self, method: str, path: str, *, json: dict[str, Any] | None = None) -> ApiResponse:
    url = self._url(path)
    try:
      response = await self._client.request(method, url, json=json, headers=self._headers())
    except httpx.RequestError as exc:
      logger.error("Request %s %s failed: %s", method, url, exc)
      raise ApiError(str(exc) or type(exc).__name__) from exc

    body = self._decode(response)

    if response.status_code == 401 and self._on_unauthorized is not None:
      # Let the host drop its credentials before the failure propagates.
      try:
        self._on_unauthorized()
      except Exception as exc:  # noqa: BLE001
        logger.error("Unauthorized hook failed for %s %s: %s", method, url, exc, exc_info=True)

    if response.is_error:
      message = _upstream_message(body, response.reason_phrase or f"HTTP {response.status_code}")
      logger.warning("Request %s %s returned %s: %s", method, url, response.status_code, message)
      raise ApiError(message, status_code=response.status_code, body=body)

    if body is None:
      raise ApiError("Malformed response body - expected JSON", status_code=response.status_code)

    return ApiResponse(status_code=response.status_code, body=body)

  @staticmethod
  def _decode(response: httpx.Response) -> Any:
    if not response.content:
      return None
    try:
      return response.json()
    except ValueError:
      return None

  async def aclose(self) -> None:
    """Close the underlying HTTP client when this instance created it."""
    if self._owns_client:
      await self._client.aclose()

  async def __aenter__(self) -> SceiApiClient:
    return self

  async def __aexit__(self, *exc_info: object) -> None:
    await self.aclose()

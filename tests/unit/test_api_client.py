"""Unit tests for the authenticated backend client."""

from __future__ import annotations

import logging

import httpx
import pytest

from scei.core.exceptions import ApiError
from scei.services.api_client import SceiApiClient, unwrap_envelope


def _client(handler, **kwargs) -> tuple[SceiApiClient, httpx.AsyncClient]:
  http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
  return SceiApiClient(base_url="http://scei.test/api/", http_client=http, **kwargs), http


@pytest.mark.anyio
async def test_requests_carry_raw_token_and_domain_headers() -> None:
  captured: dict[str, httpx.Request] = {}

  def handler(request: httpx.Request) -> httpx.Response:
    captured["request"] = request
    return httpx.Response(200, json={"ok": True})

  client, http = _client(handler, token="abc123", domain="scei-he")
  response = await client.get("/study-guides/U1/latex")
  await http.aclose()

  request = captured["request"]
  assert str(request.url) == "http://scei.test/api/study-guides/U1/latex"
  assert request.headers["authorization"] == "abc123"
  assert request.headers["domain"] == "scei-he"
  assert response.status_code == 200
  assert response.body == {"ok": True}


@pytest.mark.anyio
async def test_headers_omitted_when_not_configured() -> None:
  captured: dict[str, httpx.Request] = {}

  def handler(request: httpx.Request) -> httpx.Response:
    captured["request"] = request
    return httpx.Response(200, json={})

  client, http = _client(handler)
  await client.post("/presentations/U1/generate-beamer", json={"theme": "madrid"})
  await http.aclose()

  assert "authorization" not in captured["request"].headers
  assert "domain" not in captured["request"].headers


@pytest.mark.anyio
async def test_error_status_raises_with_upstream_message() -> None:
  client, http = _client(lambda request: httpx.Response(500, json={"message": "database unavailable"}))
  with pytest.raises(ApiError) as exc:
    await client.get("/anything")
  await http.aclose()

  assert exc.value.status_code == 500
  assert exc.value.message == "database unavailable"
  assert exc.value.body == {"message": "database unavailable"}


@pytest.mark.anyio
async def test_unauthorized_invokes_hook_before_raising() -> None:
  calls: list[str] = []
  client, http = _client(lambda request: httpx.Response(401, json={"detail": "expired"}), on_unauthorized=lambda: calls.append("logout"))
  with pytest.raises(ApiError) as exc:
    await client.get("/anything")
  await http.aclose()

  assert calls == ["logout"]
  assert exc.value.status_code == 401
  assert exc.value.message == "expired"


@pytest.mark.anyio
async def test_transport_failure_has_no_status_code() -> None:
  def handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)

  client, http = _client(handler)
  with pytest.raises(ApiError) as exc:
    await client.get("/anything")
  await http.aclose()

  assert exc.value.status_code is None
  assert exc.value.is_network_error
  assert "connection refused" in exc.value.message


@pytest.mark.anyio
async def test_non_json_success_body_is_malformed() -> None:
  client, http = _client(lambda request: httpx.Response(200, content=b"<html>proxy page</html>"))
  with pytest.raises(ApiError, match="Malformed response body"):
    await client.get("/anything")
  await http.aclose()


def test_unwrap_envelope_returns_nested_data() -> None:
  assert unwrap_envelope({"success": True, "data": {"status": "queued"}}) == {"status": "queued"}
  assert unwrap_envelope({"status": "queued"}) == {"status": "queued"}
  assert unwrap_envelope(["not", "a", "dict"]) == ["not", "a", "dict"]


def test_unwrap_envelope_rejects_explicit_failure() -> None:
  with pytest.raises(ApiError, match="Status check failed upstream"):
    unwrap_envelope({"success": False, "message": "Status check failed upstream"})


@pytest.mark.anyio
async def test_unauthorized_hook_failure_is_logged(caplog: pytest.LogCaptureFixture) -> None:
  def logout() -> None:
    raise RuntimeError("session store offline")

  client, http = _client(lambda request: httpx.Response(401, json={"message": "expired"}), on_unauthorized=logout)
  with caplog.at_level(logging.ERROR, logger="scei.services.api_client"):
    with pytest.raises(ApiError) as exc:
      await client.get("/anything")
  await http.aclose()

  assert exc.value.status_code == 401
  assert "Unauthorized hook failed" in caplog.text

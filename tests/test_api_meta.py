from __future__ import annotations

import httpx
import pytest

from apps.api.main import app


@pytest.mark.anyio
async def test_meta_returns_supported_capabilities_and_request_id() -> None:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.get("/v1/meta")

    assert response.status_code == 200
    assert response.headers["X-FieldUsage-Request-Id"]

    payload = response.json()
    assert payload["version"]
    assert payload["supported_schemas"] == ["legacy", "pbir"]
    assert payload["export_views"] == ["summary", "details", "raw"]
    assert payload["accepted_suffixes"] == [".pbix", ".zip"]

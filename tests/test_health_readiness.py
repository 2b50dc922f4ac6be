from __future__ import annotations

import pytest
from fastapi import HTTPException

import app.main as main_module


def _database(ready: bool):
    async def _check() -> bool:
        return ready

    return _check


@pytest.mark.asyncio
async def test_liveness_does_not_touch_database(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main_module, "_is_database_ready", _database(False))

    assert await main_module.healthcheck() == {"status": "ok"}


@pytest.mark.asyncio
async def test_ready_reports_service_and_calendar_zone(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main_module, "_is_database_ready", _database(True))

    response = await main_module.readiness_check()

    assert response["status"] == "ready"
    assert response["service"] == main_module.settings.app_name
    assert response["database"] == "ok"
    assert response["default_timezone"] == main_module.settings.default_timezone
    assert response["timestamp"].endswith("+00:00")


@pytest.mark.asyncio
async def test_ready_fails_with_503_without_database(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main_module, "_is_database_ready", _database(False))

    with pytest.raises(HTTPException) as exc:
        await main_module.readiness_check()

    assert exc.value.status_code == 503
    assert exc.value.detail == "Database is not ready"

from __future__ import annotations

import json

import pytest
from fastapi import Request

from app.shared.exceptions import (
    BusinessRuleException,
    ConflictException,
    app_exception_handler,
    unhandled_exception_handler,
)


def _make_request() -> Request:
    return Request({"type": "http", "method": "POST", "path": "/api/v1/booking/sessions", "headers": []})


@pytest.mark.asyncio
async def test_conflict_is_rendered_as_409_with_error_envelope() -> None:
    response = await app_exception_handler(
        _make_request(),
        ConflictException("Selected time is no longer available"),
    )

    assert response.status_code == 409
    assert json.loads(response.body) == {
        "error": {"code": "conflict", "message": "Selected time is no longer available"},
    }


@pytest.mark.asyncio
async def test_business_rule_is_rendered_as_422() -> None:
    response = await app_exception_handler(
        _make_request(),
        BusinessRuleException("Time block overlaps an existing block"),
    )

    assert response.status_code == 422
    assert json.loads(response.body)["error"]["code"] == "business_rule_violation"


@pytest.mark.asyncio
async def test_unexpected_errors_hide_details() -> None:
    response = await unhandled_exception_handler(_make_request(), RuntimeError("boom"))

    assert response.status_code == 500
    assert json.loads(response.body)["error"]["message"] == "Internal server error"

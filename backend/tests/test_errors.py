"""
Tests for error translation and the operational endpoints.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import IntegrityError

from tourbook.core.errors import AppError, NotFoundError, handle_integrity_error


def test_app_error_status():
    assert AppError("bad", 400).status == "fail"
    assert AppError("boom", 500).status == "error"
    assert NotFoundError().status_code == 404


def test_integrity_error_postgres_duplicate():
    orig = Exception('duplicate key value violates unique constraint "users_email_key"\n'
                     "DETAIL:  Key (email)=(a@b.com) already exists.")
    error = handle_integrity_error(IntegrityError("INSERT", {}, orig))

    assert error.status_code == 400
    assert error.message == "Duplicate field value: a@b.com. Please use another value!"


@pytest.mark.asyncio
async def test_unknown_api_route(client: AsyncClient):
    response = await client.get("/api/v1/nowhere")

    assert response.status_code == 404
    assert response.json() == {"status": "fail", "message": "Can't find /api/v1/nowhere on this server!"}


@pytest.mark.asyncio
async def test_unknown_page_renders_html(client: AsyncClient):
    response = await client.get("/nowhere")

    assert response.status_code == 404
    assert response.headers["content-type"].startswith("text/html")


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "connected"
    assert body["cache"] == {"status": "disabled"}


@pytest.mark.asyncio
async def test_metrics_endpoint(client: AsyncClient):
    await client.get("/api/v1/tours/")

    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "http_request_latency_seconds" in response.text

from __future__ import annotations

import logging

from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.testclient import TestClient

from app.errors import register_error_handlers
from app.services.network.errors import NoAddressAvailable, OverlapConflict, PoolTooLarge


def _build_app() -> FastAPI:
    app = FastAPI()
    register_error_handlers(app)

    api_router = APIRouter(prefix="/api/v1")

    @api_router.get("/overlap")
    def api_overlap():
        raise OverlapConflict(
            "10.0.0.0/16", [{"id": None, "cidr": "10.0.1.0/24", "name": "Branch"}]
        )

    @api_router.get("/too-large")
    def api_too_large():
        raise PoolTooLarge("too many", {"total": 16777216, "limit": 65536})

    @api_router.get("/exhausted")
    def api_exhausted():
        raise NoAddressAvailable("No available IP addresses in subnet 10.0.0.0/30")

    @api_router.get("/http-404")
    def api_http_404():
        raise HTTPException(status_code=404, detail="Subnet not found")

    @api_router.get("/needs-int")
    def api_needs_int(value: int):
        return {"value": value}

    @api_router.get("/crash")
    def api_crash():
        raise RuntimeError("boom")

    app.include_router(api_router)
    return app


def test_ipam_error_renders_code_and_details() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/api/v1/overlap")
    assert resp.status_code == 409
    payload = resp.json()
    assert payload["code"] == "subnet_overlap"
    assert payload["message"] == "10.0.0.0/16 overlaps with: Branch (10.0.1.0/24)"
    assert payload["details"]["subnets"][0]["cidr"] == "10.0.1.0/24"
    assert payload["request_id"] == "unknown"


def test_ipam_error_status_codes() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/api/v1/too-large")
    assert resp.status_code == 400
    assert resp.json()["code"] == "pool_too_large"
    assert resp.json()["details"] == {"total": 16777216, "limit": 65536}

    resp = client.get("/api/v1/exhausted")
    assert resp.status_code == 409
    assert resp.json()["code"] == "pool_exhausted"
    assert resp.json()["details"] == {}


def test_ipam_error_is_logged_as_warning(caplog) -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    with caplog.at_level(logging.WARNING, logger="app.errors"):
        client.get("/api/v1/exhausted")
    assert any("pool_exhausted" in record.getMessage() for record in caplog.records)


def test_http_exception_uses_error_envelope() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/api/v1/http-404")
    assert resp.status_code == 404
    assert resp.json() == {
        "code": "http_404",
        "message": "Subnet not found",
        "details": None,
        "request_id": "unknown",
    }


def test_unknown_route_uses_error_envelope() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/api/v1/missing")
    assert resp.status_code == 404
    assert resp.json()["code"] == "http_404"


def test_validation_error_payload() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/api/v1/needs-int", params={"value": "abc"})
    assert resp.status_code == 422
    payload = resp.json()
    assert payload["code"] == "validation_error"
    assert payload["details"][0]["input"] == "abc"


def test_unhandled_exception_returns_internal_error() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/api/v1/crash")
    assert resp.status_code == 500
    assert resp.json()["code"] == "internal_error"


def test_request_id_header_is_echoed(client) -> None:
    resp = client.get("/api/v1/network/subnets/not-a-uuid", headers={"X-Request-ID": "req-123"})
    assert resp.status_code == 404
    assert resp.headers["X-Request-ID"] == "req-123"
    assert resp.json()["request_id"] == "req-123"

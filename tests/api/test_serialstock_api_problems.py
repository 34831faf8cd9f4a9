# tests/api/test_serialstock_api_problems.py
from __future__ import annotations

import httpx
import pytest


def _assert_problem(resp: httpx.Response, status: int, code: str) -> dict:
    assert resp.status_code == status, resp.text
    detail = resp.json()["detail"]
    assert detail["error_code"] == code
    assert detail["http_status"] == status
    assert isinstance(detail["message"], str) and detail["message"]
    return detail


async def _batch(client: httpx.AsyncClient, serials: list[str]) -> dict:
    r = await client.post(
        "/batches",
        json={
            "source": {"kind": "package", "sku": "SKU1"},
            "quantity": 2,
            "actor": "u1",
            "pre_assigned_serials": serials,
        },
    )
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_not_found_problems(client: httpx.AsyncClient):
    _assert_problem(await client.get("/batches/404"), 404, "NOT_FOUND")
    _assert_problem(await client.get("/items/404"), 404, "NOT_FOUND")
    _assert_problem(await client.get("/bulk-operations/404"), 404, "NOT_FOUND")
    _assert_problem(await client.get("/returns/404"), 404, "NOT_FOUND")
    detail = _assert_problem(
        await client.post("/items/404/serial", json={"serial_number": "X", "actor": "u1"}),
        404,
        "NOT_FOUND",
    )
    assert detail["context"] == {"item_id": 404}


@pytest.mark.asyncio
async def test_conflict_problems(client: httpx.AsyncClient):
    created = await _batch(client, ["SN1"])
    first, second = created["item_ids"]

    detail = _assert_problem(
        await client.post(f"/items/{second}/serial", json={"serial_number": "SN1", "actor": "u1"}),
        409,
        "DUPLICATE_SERIAL_NUMBER",
    )
    assert detail["context"]["serial_number"] == "SN1"

    _assert_problem(
        await client.post(f"/items/{first}/serial", json={"serial_number": "SN9", "actor": "u1"}),
        409,
        "ALREADY_ASSIGNED",
    )
    _assert_problem(
        await client.post("/deliveries", json={"sku": "NOPE", "actor": "u2"}),
        409,
        "INSUFFICIENT_STOCK",
    )
    _assert_problem(
        await client.post("/returns", json={"serial_number": "SN1", "actor": "u9"}),
        409,
        "INVALID_STATE",
    )


@pytest.mark.asyncio
async def test_validation_problems(client: httpx.AsyncClient):
    created = await _batch(client, [])

    # 请求体校验仍由 FastAPI 报 422（detail 为错误列表）
    r = await client.post(
        "/batches",
        json={"source": {"kind": "package", "sku": "SKU1"}, "quantity": 0, "actor": "u1"},
    )
    assert r.status_code == 422
    assert isinstance(r.json()["detail"], list)

    r = await client.post(
        "/batches",
        json={"source": {"kind": "crate", "sku": "SKU1"}, "quantity": 1, "actor": "u1"},
    )
    assert r.status_code == 422

    # 引擎层校验：空白序列号 / 出库件无序列号
    _assert_problem(
        await client.post(
            f"/items/{created['item_ids'][0]}/serial", json={"serial_number": "   ", "actor": "u1"}
        ),
        422,
        "VALIDATION_ERROR",
    )
    _assert_problem(
        await client.post("/deliveries", json={"sku": "SKU1", "actor": "u2"}),
        422,
        "VALIDATION_ERROR",
    )
    _assert_problem(
        await client.post(
            "/batches",
            json={
                "source": {"kind": "package", "sku": "SKU1"},
                "quantity": 1,
                "actor": "u1",
                "pre_assigned_serials": ["A", "B"],
            },
        ),
        422,
        "VALIDATION_ERROR",
    )


@pytest.mark.asyncio
async def test_unknown_serial_is_not_an_error(client: httpx.AsyncClient):
    r = await client.get("/serials/NOPE")
    assert r.status_code == 200
    assert r.json()["exists"] is False
    assert r.json()["return_history"] == []

"""Record store tests: Supabase PostgREST query shapes and in-memory invariants."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from machine_plane.db.errors import (
    RecordStoreConflictError,
    RecordStoreError,
    SupabaseAuthError,
    SupabaseConflictError,
    SupabaseError,
)
from machine_plane.db.machine_repo import SupabaseMachineRecordStore
from machine_plane.db.supabase_client import SupabaseClient
from machine_plane.inmemory import InMemoryMachineRecordStore
from machine_plane.protocols import MachineRecordStore


def _make_client(handler) -> tuple[httpx.AsyncClient, SupabaseClient]:
    transport = httpx.MockTransport(handler)
    http = httpx.AsyncClient(transport=transport)
    client = SupabaseClient(
        supabase_url="https://test.supabase.co",
        service_role_key="test-key",
        http_client=http,
    )
    return http, client


ROW = {
    "token": "owner-token",
    "machine_id": "m-1",
    "ipv6": "fdaa::2",
    "deleted": False,
    "created_at": "2026-10-18T12:00:00Z",
    "lifecycle": "active",
}


# ── Supabase ─────────────────────────────────────────────────────


def test_both_stores_satisfy_protocol():
    store = SupabaseMachineRecordStore(
        SupabaseClient(supabase_url="https://x.supabase.co", service_role_key="k"),
    )
    assert isinstance(store, MachineRecordStore)
    assert isinstance(InMemoryMachineRecordStore(), MachineRecordStore)


@pytest.mark.asyncio
async def test_create_record_inserts_with_representation():
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["headers"] = dict(request.headers)
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=[{"id": 1, **ROW}])

    http, client = _make_client(handler)
    async with http:
        store = SupabaseMachineRecordStore(client)
        row = await store.create_record(ROW)

    assert row["machine_id"] == "m-1"
    assert seen["method"] == "POST"
    assert seen["url"] == "https://test.supabase.co/rest/v1/machines"
    assert seen["body"] == ROW
    assert seen["headers"]["prefer"] == "return=representation"
    assert seen["headers"]["content-profile"] == "public"


@pytest.mark.asyncio
async def test_update_records_patches_by_machine_id():
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["params"] = dict(request.url.params)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=[{**ROW, "deleted": True}])

    http, client = _make_client(handler)
    async with http:
        store = SupabaseMachineRecordStore(client)
        rows = await store.update_records(
            {"machine_id": "m-1"},
            {"deleted": True, "lifecycle": "pending_remote_delete"},
        )

    assert rows[0]["deleted"] is True
    assert seen["method"] == "PATCH"
    assert seen["params"] == {"machine_id": "eq.m-1"}
    assert seen["body"] == {"deleted": True, "lifecycle": "pending_remote_delete"}


@pytest.mark.asyncio
async def test_find_records_encodes_boolean_filter():
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=[ROW])

    http, client = _make_client(handler)
    async with http:
        store = SupabaseMachineRecordStore(client)
        rows = await store.find_records({"deleted": False})

    assert rows == [ROW]
    assert seen["params"]["deleted"] == "eq.false"
    assert seen["params"]["select"] == "*"
    assert seen["params"]["order"] == "created_at.asc"


@pytest.mark.asyncio
async def test_find_first_projects_columns_and_limits():
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=[{"ipv6": "fdaa::2"}])

    http, client = _make_client(handler)
    async with http:
        store = SupabaseMachineRecordStore(client)
        row = await store.find_first({"machine_id": "m-1", "deleted": False}, columns="ipv6")

    assert row == {"ipv6": "fdaa::2"}
    assert seen["params"] == {
        "machine_id": "eq.m-1",
        "deleted": "eq.false",
        "select": "ipv6",
        "limit": "1",
    }


@pytest.mark.asyncio
async def test_find_first_empty_returns_none():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[])

    http, client = _make_client(handler)
    async with http:
        store = SupabaseMachineRecordStore(client)
        assert await store.find_first({"machine_id": "nope"}) is None


@pytest.mark.asyncio
async def test_duplicate_machine_id_is_a_conflict():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"message": "duplicate key value", "code": "23505"})

    http, client = _make_client(handler)
    async with http:
        store = SupabaseMachineRecordStore(client)
        with pytest.raises(RecordStoreConflictError) as exc_info:
            await store.create_record(ROW)

    assert isinstance(exc_info.value, SupabaseConflictError)
    assert exc_info.value.code == "23505"


@pytest.mark.asyncio
async def test_auth_error_is_a_record_store_error():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "invalid api key"})

    http, client = _make_client(handler)
    async with http:
        store = SupabaseMachineRecordStore(client)
        with pytest.raises(SupabaseAuthError) as exc_info:
            await store.find_records({"deleted": False})

    assert isinstance(exc_info.value, RecordStoreError)
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_network_failure_is_a_record_store_error():
    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused")

    http, client = _make_client(handler)
    async with http:
        store = SupabaseMachineRecordStore(client)
        with pytest.raises(SupabaseError) as exc_info:
            await store.update_records({"machine_id": "m-1"}, {"deleted": True})

    assert exc_info.value.status_code == 0


@pytest.mark.asyncio
async def test_unfiltered_update_is_refused():
    async def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover
        raise AssertionError("no request expected")

    http, client = _make_client(handler)
    async with http:
        with pytest.raises(ValueError):
            await client.update("machines", {}, {"deleted": True})


# ── In-memory ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_inmemory_rejects_reused_machine_id(record_store):
    await record_store.create_record(ROW)
    await record_store.update_records({"machine_id": "m-1"}, {"deleted": True})

    with pytest.raises(RecordStoreConflictError):
        await record_store.create_record({**ROW, "token": "someone-else"})

    assert len(record_store.rows) == 1


@pytest.mark.asyncio
async def test_inmemory_update_many_and_projection(record_store):
    await record_store.create_record(ROW)
    await record_store.create_record({**ROW, "machine_id": "m-2"})

    updated = await record_store.update_records({"token": "owner-token"}, {"deleted": True})

    assert len(updated) == 2
    assert await record_store.find_records({"deleted": False}) == []
    assert await record_store.find_first({"machine_id": "m-2"}, columns="ipv6, deleted") == {
        "ipv6": "fdaa::2",
        "deleted": True,
    }


@pytest.mark.asyncio
async def test_inmemory_returns_copies(record_store):
    created = await record_store.create_record(ROW)
    created["deleted"] = True

    [row] = await record_store.find_records({})
    row["ipv6"] = "mutated"

    assert record_store.rows[0]["deleted"] is False
    assert record_store.rows[0]["ipv6"] == "fdaa::2"

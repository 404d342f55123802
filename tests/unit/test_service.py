"""Settings, factory wiring and FlyMachineService end-to-end behaviour."""

from __future__ import annotations

import json
import logging
import random
from unittest.mock import AsyncMock, patch

import pytest
from prometheus_client import REGISTRY

from machine_plane import NOT_FOUND, CreateMachineOptions, MachinePlaneSettings, build_machine_service
from machine_plane.db.machine_repo import SupabaseMachineRecordStore
from machine_plane.inmemory import InMemoryMachineRecordStore
from machine_plane.observability import logging as obs_logging
from machine_plane.observability.metrics import metrics_text
from machine_plane.providers.fly_client import DEFAULT_BASE_URL

SLEEP = "machine_plane.provisioning.provisioner.asyncio.sleep"


def _settings(**overrides) -> MachinePlaneSettings:
    values = dict(fly_api_token="test-fly-token", fly_app_name="test-app")
    values.update(overrides)
    return MachinePlaneSettings(**values)


# ── Settings ─────────────────────────────────────────────────────


def test_defaults_validate_once_fly_credentials_are_set():
    assert _settings().validate() == []
    assert MachinePlaneSettings().validate() == [
        "local: fly_api_token is required",
        "local: fly_app_name is required",
    ]


def test_non_local_requires_supabase():
    errors = _settings(environment="production").validate()

    assert "production: supabase_url is required" in errors
    assert "production: supabase_service_role_key is required" in errors


def test_negative_retry_settings_rejected():
    errors = _settings(retry_limit=-1, retry_delay_seconds=-0.5).validate()

    assert errors == [
        "local: retry_limit must be >= 0",
        "local: retry_delay_seconds must be >= 0",
    ]


def test_from_env_reads_all_variables():
    settings = MachinePlaneSettings.from_env({
        "ENVIRONMENT": "staging",
        "FLY_API_TOKEN": "tok",
        "FLY_APP_NAME": "workers",
        "FLY_IMAGE_REF": "registry.fly.io/workers:v3",
        "SUPABASE_URL": "https://proj.supabase.co",
        "SUPABASE_SERVICE_ROLE_KEY": "srk",
        "MACHINES_TABLE": "ops.machines",
        "MACHINE_CREATE_RETRY_LIMIT": "5",
        "MACHINE_CREATE_RETRY_DELAY": "0.25",
        "FALLBACK_REGION_MIN_CAPACITY": "50",
        "FLY_REQUEST_TIMEOUT": "10",
    })

    assert settings.environment == "staging"
    assert not settings.is_local
    assert settings.fly_base_url == DEFAULT_BASE_URL
    assert settings.machines_table == "ops.machines"
    assert settings.retry_limit == 5
    assert settings.retry_delay_seconds == 0.25
    assert settings.min_region_capacity == 50
    assert settings.request_timeout_seconds == 10.0
    assert settings.validate() == []


def test_from_env_defaults():
    settings = MachinePlaneSettings.from_env({})

    assert settings.is_local
    assert settings.retry_limit == 3
    assert settings.retry_delay_seconds == 1.0
    assert settings.min_region_capacity == 100
    assert settings.machines_table == "public.machines"


# ── Factory ──────────────────────────────────────────────────────


def test_factory_rejects_invalid_settings():
    with pytest.raises(ValueError, match="fly_api_token is required"):
        build_machine_service(MachinePlaneSettings())


@pytest.mark.asyncio
async def test_factory_uses_in_memory_store_locally(fly_http):
    service = build_machine_service(_settings(), http_client=fly_http)

    assert isinstance(service._controller._store, InMemoryMachineRecordStore)
    await service.aclose()


@pytest.mark.asyncio
async def test_factory_uses_supabase_store_outside_local(fly_http):
    service = build_machine_service(
        _settings(
            environment="production",
            supabase_url="https://proj.supabase.co",
            supabase_service_role_key="srk",
        ),
        http_client=fly_http,
    )

    assert isinstance(service._controller._store, SupabaseMachineRecordStore)
    await service.aclose()


@pytest.mark.asyncio
async def test_aclose_runs_every_closer():
    first, second = AsyncMock(), AsyncMock()
    service = build_machine_service(_settings(), record_store=InMemoryMachineRecordStore())
    service._closers = (first, second)

    async with service:
        pass

    first.assert_awaited_once()
    second.assert_awaited_once()


def test_image_ref_is_exposed_unchanged():
    assert build_machine_service(_settings(fly_image_ref="img:v1")).get_image_ref() == "img:v1"
    assert build_machine_service(_settings()).get_image_ref() is None


# ── End to end ───────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_full_lifecycle(fly_api, fly_http, record_store):
    service = build_machine_service(
        _settings(), http_client=fly_http, record_store=record_store, rng=random.Random(1),
    )
    options = CreateMachineOptions(region="ams", image="registry.fly.io/worker:latest")

    machine = await service.create_machine(options, "owner-token")

    [record] = await service.list_machines()
    assert record.machine_id == machine.id
    assert await service.get_machine_ip(machine.id) == machine.private_ip
    status = await service.get_machine_status(machine.id)
    assert status.id == machine.id
    assert (await service.audit()).is_consistent

    await service.destroy_machine(machine.id)

    assert await service.list_machines() == []
    assert await service.get_machine(machine.id) is NOT_FOUND
    assert await service.get_machine_status(machine.id) is NOT_FOUND
    assert (await service.reconcile()).total_scanned == 0


@pytest.mark.asyncio
async def test_warm_preloads_fallbacks(fly_api, fly_http):
    service = build_machine_service(_settings(), http_client=fly_http)

    await service.warm()
    fly_api.fail_next("POST", "machines", 500)
    with patch(SLEEP, new_callable=AsyncMock):
        machine = await service.create_machine(CreateMachineOptions(region="syd"), "tok")

    assert machine.region in service.catalog.codes
    assert fly_api.calls("GET", "regions") == 1


# ── Observability ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_and_destroy_are_counted(fly_http):
    def sample(name: str, **labels: str) -> float:
        return REGISTRY.get_sample_value(name, labels) or 0.0

    created_before = sample("machine_plane_create_attempts_total", outcome="success")
    destroyed_before = sample("machine_plane_destroy_total", outcome="success")
    service = build_machine_service(_settings(), http_client=fly_http)

    machine = await service.create_machine(CreateMachineOptions(region="ams"), "tok")
    await service.destroy_machine(machine.id)

    assert sample("machine_plane_create_attempts_total", outcome="success") == created_before + 1
    assert sample("machine_plane_destroy_total", outcome="success") == destroyed_before + 1
    body, content_type = metrics_text()
    assert b"machine_plane_region_fallbacks_total" in body
    assert content_type.startswith("text/plain")


def test_configure_logging_renders_extra_fields_as_json(capsys):
    obs_logging._reset_for_tests()
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        obs_logging.configure_logging(level="INFO", json_output=True)
        token = obs_logging.correlation_id_ctx.set("req-42")
        try:
            logging.getLogger("machine_plane.test").info(
                "Machine created", extra={"machine_id": "m-1", "region": "ams"},
            )
        finally:
            obs_logging.correlation_id_ctx.reset(token)

        line = capsys.readouterr().out.strip().splitlines()[-1]
        entry = json.loads(line)
        assert entry["event"] == "Machine created"
        assert entry["machine_id"] == "m-1"
        assert entry["region"] == "ams"
        assert entry["correlation_id"] == "req-42"
        assert entry["level"] == "info"
    finally:
        obs_logging._reset_for_tests()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

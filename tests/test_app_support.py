import json
import threading
from datetime import datetime, timezone
from types import SimpleNamespace

import requests

import workers.keep_alive_worker as keep_alive_worker
from endpoints.verification import get_verified_users
from models.verification import VerificationRecord
from utils.route import is_method_open, is_route_open
from utils.scheduler import run_on_schedule
from workers.keep_alive_worker import (
    KeepAlivePinger,
    get_keep_alive_scheduler,
    normalize_url,
)


def request(method, path):
    return SimpleNamespace(method=method, path=path)


def test_open_routes():
    assert is_route_open(request("GET", "/"))
    assert is_route_open(request("GET", "/health"))
    assert not is_route_open(request("GET", "/v1/verification/123"))
    assert not is_route_open(request("POST", "/health"))
    assert is_method_open(request("OPTIONS", "/v1/verification/123"))
    assert not is_method_open(request("GET", "/v1/verification/123"))


def test_normalize_url():
    assert normalize_url("bot.onrender.com") == "http://bot.onrender.com"
    assert normalize_url("https://bot.onrender.com") == "https://bot.onrender.com"


def test_ping(monkeypatch):
    calls = []

    def fake_get(url, timeout):
        calls.append(url)
        return SimpleNamespace(raise_for_status=lambda: None)

    monkeypatch.setattr(keep_alive_worker.requests, "get", fake_get)
    assert KeepAlivePinger("bot.onrender.com").ping() is True
    assert calls == ["http://bot.onrender.com"]


def test_ping_failure_is_not_raised(monkeypatch):
    def fake_get(url, timeout):
        raise requests.exceptions.ConnectionError("refused")

    monkeypatch.setattr(keep_alive_worker.requests, "get", fake_get)
    assert KeepAlivePinger("bot.onrender.com").ping() is False


def test_keep_alive_disabled_without_url():
    start, stop = get_keep_alive_scheduler(url=None)
    start()
    stop()


def test_scheduler_runs_event_until_stopped():
    ran = threading.Event()

    def event():
        ran.set()

    start, stop = run_on_schedule(event, 1)
    start()
    try:
        assert ran.wait(timeout=5)
    finally:
        stop()


async def test_verified_users_endpoint(ledger):
    ledger.record(
        VerificationRecord(
            requester_id="42",
            requester_display_name="someone",
            external_account_handle="insta.user",
            verified_at=datetime(2026, 10, 1, tzinfo=timezone.utc),
            community_id="guild-1",
        )
    )
    req = SimpleNamespace(app=SimpleNamespace(ctx=SimpleNamespace(ledger=ledger)))

    response = await get_verified_users(req, "guild-1")

    assert response.status == 200
    data = json.loads(response.body)["data"]
    assert data["community_id"] == "guild-1"
    assert [u["external_account_handle"] for u in data["users"]] == ["insta.user"]


async def test_verified_users_endpoint_error():
    def broken(community_id):
        raise ConnectionError("database unavailable")

    req = SimpleNamespace(
        app=SimpleNamespace(ctx=SimpleNamespace(ledger=SimpleNamespace(list_by_community=broken)))
    )
    response = await get_verified_users(req, "guild-1")

    assert response.status == 500
    assert json.loads(response.body) == {"message": "database unavailable"}

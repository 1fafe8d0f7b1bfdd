"""Shared fixtures: in-memory settings, a controllable clock and a fake sync endpoint."""

from __future__ import annotations

import json
import threading
from datetime import datetime, timedelta, timezone

import httpx
import pytest

import fidelis.backends as backends
import fidelis.models as models
import fidelis.settings as settings

START = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
PASSCODE = "060821"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeEndpoint:
    """In-process stand-in for the remote JSON document endpoint."""

    def __init__(self, document: object | None = None) -> None:
        self.document = document if document is not None else {
            "customers": [],
            "cards": [],
            "transactions": [],
        }
        self.posts: list[dict] = []
        self.fail_with: Exception | None = None
        self.reply: dict = {"status": "success"}
        self._lock = threading.Lock()

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.fail_with is not None:
            raise self.fail_with
        if request.method == "GET":
            return httpx.Response(200, json=self.document)
        with self._lock:
            body = json.loads(request.content)
            self.posts.append(body)
            if self.reply.get("status") == "success":
                self.document = body
        return httpx.Response(200, json=self.reply)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_settings(url: str | None = None, pull_on_start: bool = False) -> settings.FidelisSettings:
    return settings.FidelisSettings.model_validate(
        {
            "name": "test-shop",
            "passcode": PASSCODE,
            "store": backends.MemoryKeyValueStore(),
            "sync": {"url": url, "pull_on_start": pull_on_start},
        }
    )


def new_customer(name: str = "Ayu", **overrides) -> models.NewCustomer:
    data = {
        "name": name,
        "instagram": f"@{name.lower()}",
        "phone": models.Phone(country_code="+62", number="812345678"),
        "registered_by": "Dewi",
    }
    data.update(overrides)
    return models.NewCustomer(**data)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def endpoint() -> FakeEndpoint:
    return FakeEndpoint()


@pytest.fixture
def memory_settings() -> settings.FidelisSettings:
    return make_settings()

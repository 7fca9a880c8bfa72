import json

import pytest
import requests

CREDENTIAL_ENV = ("DEEPSEEK_API_KEY", "GITHUB_TOKEN", "VERCEL_TOKEN", "VERCEL_PROJECT_ID")


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else (json.dumps(payload) if payload is not None else "")

    def json(self):
        if self._payload is None:
            raise ValueError("no json body")
        return self._payload


class FakeHTTP:
    """Records outbound calls and answers them from a queue per method.

    A queued exception instance is raised instead of returned.
    """

    def __init__(self):
        self.calls = []
        self.replies = {"get": [], "post": [], "put": []}

    def queue(self, method, *replies):
        self.replies[method].extend(replies)

    def _handle(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if not self.replies[method]:
            raise AssertionError(f"unexpected {method.upper()} {url}")
        reply = self.replies[method].pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def get(self, url, **kwargs):
        return self._handle("get", url, **kwargs)

    def post(self, url, **kwargs):
        return self._handle("post", url, **kwargs)

    def put(self, url, **kwargs):
        return self._handle("put", url, **kwargs)

    def methods(self):
        return [c[0] for c in self.calls]


@pytest.fixture(autouse=True)
def no_credentials(monkeypatch):
    for name in CREDENTIAL_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def http(monkeypatch):
    fake = FakeHTTP()
    monkeypatch.setattr(requests, "get", fake.get)
    monkeypatch.setattr(requests, "post", fake.post)
    monkeypatch.setattr(requests, "put", fake.put)
    return fake


@pytest.fixture
def fixed_clock():
    return lambda: 1700000000.123


def completion(content):
    return FakeResponse(200, {"choices": [{"message": {"content": content}}]})

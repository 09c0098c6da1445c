import json
import os
import sys

import httpx
import pytest

# Ensure project root is on sys.path for direct module import
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from portal import create_app
from portal.api_client import EzittClient
from portal.config import TestingConfig

BASE_URL = "https://api.test"


class FakeApi:
    """Routes (method, path) to canned responses and records every request it serves."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, method, path, body=None, status=200):
        self.routes[(method, path)] = (status, body)
        return self

    def handle(self, method, path, func):
        self.routes[(method, path)] = func
        return self

    def __call__(self, request):
        self.calls.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": f"No route for {request.method} {request.url.path}"})
        if callable(route):
            return route(request)
        status, body = route
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def transport(self):
        return httpx.MockTransport(self)

    def sent(self, method, path):
        return [c for c in self.calls if c.method == method and c.url.path == path]

    def sent_json(self, method, path):
        return [json.loads(c.content) for c in self.sent(method, path)]


def make_request(id, requester, recipient, status="approved", request_type=None):
    """Request dict between two (role, id) tuples."""
    return {
        "id": id,
        "request_type": request_type or f"{requester[0]}-{recipient[0]}",
        "requester_type": requester[0],
        "requester_id": requester[1],
        "recipient_type": recipient[0],
        "recipient_id": recipient[1],
        "status": status,
    }


@pytest.fixture
def fake_api():
    return FakeApi()


@pytest.fixture
def api_client(fake_api):
    client = EzittClient(BASE_URL, transport=fake_api.transport())
    yield client
    client.close()


@pytest.fixture
def app(fake_api):
    class Config(TestingConfig):
        EZITT_API_BASE_URL = BASE_URL
        EZITT_API_TRANSPORT = fake_api.transport()

    return create_app(Config)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    def _login(user_id, role):
        with client.session_transaction() as sess:
            sess["user_id"] = user_id
            sess["role"] = role
            sess["email"] = f"{user_id}@example.com"
        return client
    return _login

"""
Pytest configuration and fixtures for mp-import tests

This module provides shared fixtures for unit, integration, and E2E tests.
HTTP is faked at the session seam: the pipeline accepts any object with a
requests-compatible request() method.
"""
import gzip
import json
import os
import threading
from typing import Any, Callable

import pytest

from mpimport.core.config import build_config
from mpimport.core.job import JobState


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that run the pipeline against a fake HTTP session"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that drive the command-line interface"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# FAKE HTTP
# =======================

class _FakeResponse:
    """Minimal stand-in for requests.Response"""

    def __init__(self, status_code: int = 200, body: Any = None):
        self.status_code = status_code
        self._body = body

    @property
    def text(self) -> str:
        if isinstance(self._body, str):
            return self._body
        return json.dumps(self._body)

    def json(self) -> Any:
        if isinstance(self._body, str):
            raise ValueError("not JSON")
        return self._body


class _FakeSession:
    """
    Records every request and answers from a responder.

    The responder is called as responder(call_number, request_kwargs) and
    returns a _FakeResponse or raises (to simulate network faults).
    """

    def __init__(self, responder: Callable[[int, dict], _FakeResponse]):
        self.responder = responder
        self.calls: list[dict] = []
        self.closed = False
        self._lock = threading.Lock()

    def request(self, method: str, url: str, **kwargs) -> _FakeResponse:
        with self._lock:
            call = {"method": method, "url": url, **kwargs}
            self.calls.append(call)
            number = len(self.calls)
        return self.responder(number, call)

    def close(self) -> None:
        self.closed = True


def import_ok(call_number: int, call: dict) -> _FakeResponse:
    """Accept every record of the request."""
    body = call["data"]
    if call["headers"].get("Content-Encoding") == "gzip":
        body = gzip.decompress(body)
    count = len(json.loads(body))
    return _FakeResponse(200, {"code": 200, "num_records_imported": count, "status": "OK"})


@pytest.fixture
def fake_session() -> Callable[..., _FakeSession]:
    """
    Factory for fake HTTP sessions

    Returns:
        Callable taking an optional responder (defaults to accepting everything)
    """
    def _make(responder: Callable[[int, dict], _FakeResponse] | None = None) -> _FakeSession:
        return _FakeSession(responder or import_ok)

    return _make


@pytest.fixture
def fake_response():
    """The _FakeResponse class, for building responders"""
    return _FakeResponse


# =======================
# JOB FIXTURES
# =======================

@pytest.fixture
def make_job() -> Callable[..., JobState]:
    """
    Factory for JobState instances

    Credentials default to an API secret; the environment is ignored.

    Returns:
        Callable taking option keyword arguments
    """
    def _make(credentials: dict | None = None, **options) -> JobState:
        creds = {"secret": "test-secret"} if credentials is None else credentials
        creds, opts = build_config(creds, options, environ={})
        return JobState(creds, opts)

    return _make


@pytest.fixture
def no_backoff() -> dict:
    """Options that make retries immediate"""
    return {"retry_backoff_base": 0, "retry_backoff_max": 0}


# =======================
# DATA FIXTURES
# =======================

def make_events(count: int, start: int = 0, name: str = "page view") -> list[dict]:
    """Build event records with distinct ids and insert ids"""
    return [
        {
            "event": name,
            "properties": {
                "distinct_id": f"user-{i}",
                "time": 1_700_000_000_000 + i,
                "$insert_id": f"insert-{i}",
            },
        }
        for i in range(start, start + count)
    ]


@pytest.fixture
def events() -> Callable[..., list[dict]]:
    """Factory for event records"""
    return make_events


@pytest.fixture
def jsonl_file(tmp_path):
    """
    Write records to a temporary .jsonl file

    Returns:
        Callable taking (records, name) and returning the file path
    """
    def _write(records: list[Any], name: str = "events.jsonl") -> str:
        path = tmp_path / name
        path.write_text("\n".join(json.dumps(r) for r in records) + "\n", encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture(scope="session")
def test_data_dir() -> str:
    """
    Get path to test data fixtures directory

    Returns:
        Path to tests/fixtures directory
    """
    return os.path.join(os.path.dirname(__file__), "fixtures")


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture(scope="session")
def test_env_vars():
    """
    Set test environment variables

    This fixture loads test.env and sets environment variables
    """
    from dotenv import load_dotenv

    env_path = os.path.join(
        os.path.dirname(os.path.dirname(__file__)),
        "config",
        "test.env"
    )

    if os.path.exists(env_path):
        load_dotenv(env_path, override=True)

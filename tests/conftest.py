# =====================================================================
# alertmanager2hangoutschat Pytest Configuration and Fixtures
# =====================================================================
# This file contains shared fixtures and configuration for all tests
# =====================================================================

import copy

import pytest
from unittest.mock import Mock, patch
from prometheus_client import CollectorRegistry

from alertmanager2hangoutschat.config import Config
from alertmanager2hangoutschat.relay_service import create_app


WEBHOOK_URL = "http://mock/webhook"


# --- Configuration ---

@pytest.fixture
def relay_config():
    """Default relay configuration"""
    return Config()


@pytest.fixture
def registry():
    """Fresh Prometheus registry per test"""
    return CollectorRegistry()


# --- Flask Test Client Fixtures ---

@pytest.fixture
def app(relay_config, registry):
    """Relay Flask application"""
    app = create_app(relay_config, registry=registry)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """Flask test client for the relay"""
    return app.test_client()


# --- Outbound HTTP ---

@pytest.fixture
def mock_post():
    """Patched requests.post answering 200 with an empty body"""
    with patch("alertmanager2hangoutschat.chat_client.requests.post") as post:
        post.return_value = Mock(status_code=200, text="")
        yield post


# --- Sample Data Fixtures ---

@pytest.fixture
def firing_payload():
    """Single firing alert as sent by Alertmanager"""
    return {
        "receiver": "hangouts",
        "status": "firing",
        "groupKey": "{}:{alertname=\"HighCPU\"}",
        "alerts": [
            {
                "status": "firing",
                "labels": {"alertname": "HighCPU"},
                "annotations": {"summary": "cpu high", "runbook": "wiki/cpu"},
                "generatorURL": "http://p/g",
            }
        ],
    }


@pytest.fixture
def resolved_payload(firing_payload):
    """The firing_payload notification once it resolves"""
    payload = copy.deepcopy(firing_payload)
    payload["status"] = "resolved"
    payload["alerts"][0]["status"] = "resolved"
    return payload


@pytest.fixture
def mixed_payload():
    """Two firing alerts and one resolved alert in one group"""
    return {
        "status": "firing",
        "alerts": [
            {
                "status": "firing",
                "labels": {"alertname": "DiskFull"},
                "annotations": {"summary": "disk at 95%"},
                "generatorURL": "http://p/disk",
            },
            {
                "status": "resolved",
                "labels": {"alertname": "NodeDown"},
                "annotations": {"summary": "node unreachable"},
                "generatorURL": "http://p/node",
            },
            {
                "status": "firing",
                "labels": {"alertname": "HighLatency"},
                "annotations": {"summary": "p99 over 2s"},
                "generatorURL": "http://p/latency",
            },
        ],
    }


# --- Pytest Configuration ---

def pytest_configure(config):
    """Pytest configuration hook"""
    config.addinivalue_line(
        "markers", "unit: Unit tests (mock all external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (Flask app end to end, outbound HTTP mocked)"
    )


# --- Helper Functions ---

def assert_log_contains(caplog, level, message_fragment):
    """Assert that logs contain a specific message"""
    for record in caplog.records:
        if record.levelname == level and message_fragment in record.getMessage():
            return True
    raise AssertionError(
        f"Log message containing '{message_fragment}' at level '{level}' not found"
    )

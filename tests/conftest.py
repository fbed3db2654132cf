"""
Pytest configuration and shared fixtures for the transit tracker backend.
"""
import pytest

from app import create_app
from config import TestingConfig
from fleet import fleet as _fleet


@pytest.fixture
def app():
    """A fresh app (and freshly seeded fleet) per test."""
    return create_app(TestingConfig)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def fleet(app):
    return _fleet


def login(client, role: str):
    return client.post("/api/login", json={"role": role})


@pytest.fixture
def passenger_client(client):
    assert login(client, "passenger").status_code == 200
    return client


@pytest.fixture
def driver_client(client):
    assert login(client, "driver").status_code == 200
    return client


@pytest.fixture
def admin_client(client):
    assert login(client, "admin").status_code == 200
    return client

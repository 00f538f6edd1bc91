"""Tests for application wiring: lifespan, root and health endpoints."""

import logging

from starlette.testclient import TestClient

from tradeflow import __version__
from tradeflow.main import app


def test_lifespan_runs_startup_and_shutdown(caplog):
    """Test that entering and leaving the app runs the lifespan hooks."""
    caplog.set_level(logging.INFO, logger="tradeflow.main")

    with TestClient(app) as client:
        assert "TradeFlow Settlement API starting" in caplog.text

        health = client.get("/health")
        assert health.status_code == 200
        assert health.json()["status"] == "healthy"

        root = client.get("/")
        assert root.json()["version"] == __version__

    assert "TradeFlow Settlement API shutting down" in caplog.text

"""Fixtures for the FastAPI integration suite."""

from __future__ import annotations

from typing import Generator

import pytest
from fastapi.testclient import TestClient

from promptgrid.api import main as api_main
from promptgrid.api.main import app
from promptgrid.core.pipeline import GenerationPipeline
from promptgrid.core.retriever import ArtifactRetriever


@pytest.fixture
def client_factory(test_config, fake_backend, fake_fetcher, monkeypatch):
    """Return a factory building a TestClient around *session*.

    The application reads ``test_config`` instead of the process-wide
    configuration, so ``.env`` files and ``PROMPTGRID_*`` variables do not
    leak in.  The lifespan runs normally; the collaborators it creates are
    then swapped for in-memory fakes so no network or subprocess is touched.
    """
    monkeypatch.setattr(api_main, "config", test_config)
    clients: list[TestClient] = []

    def _make(session) -> TestClient:
        client = TestClient(app)
        client.__enter__()
        app.state.session = session
        app.state.pipeline = GenerationPipeline(session, fake_backend, ArtifactRetriever(fake_fetcher))
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def test_client(client_factory, session) -> Generator[TestClient, None, None]:
    """TestClient with an authenticated session."""
    yield client_factory(session)


@pytest.fixture
def anon_client(client_factory, empty_session) -> Generator[TestClient, None, None]:
    """TestClient whose session is empty and cannot be restored."""
    yield client_factory(empty_session)

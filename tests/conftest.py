"""
tests/conftest.py -- Shared test fixtures for Dealer Stock API tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for dealers + cars
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient plus two provisioned dealers for integration tests
  - aged_assertion(): a live session issued in the past, for sliding renewal
  - dealer_store / car_store / authority: per-test in-memory stores for unit tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
for the TestClient because route handlers run in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. Unit-test fixtures stay in one thread and use plain :memory:.

The DEBUG env var must be set before any auth/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Dealer, SessionToken
from auth.session import SessionAuthority
from auth.store import DealerStore
from auth.tokens import create_identity_assertion, generate_session_token, hash_password, hash_session_token
from core.config import get_settings
from inventory.store import CarStore

ALPHA = ("alpha-motors", "alpha-pass-123")
BRAVO = ("bravo-cars", "bravo-pass-456")


@dataclass
class ApiHarness:
    client: TestClient
    dealer_store: DealerStore
    car_store: CarStore
    alpha_id: int
    bravo_id: int

    def login(self, name: str, password: str) -> str:
        """Log in and return the bearer assertion. Clears the cookie jar afterwards
        so each request states its credentials explicitly."""
        resp = self.client.post("/api/v1/dealers/login", json={"name": name, "password": password})
        assert resp.status_code == 200, resp.text
        self.client.cookies.clear()
        return resp.json()["access_token"]

    @staticmethod
    def bearer(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[DealerStore, CarStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Both stores point at the same named DB, mirroring production where they
    share DATABASE_URL.
    """
    url = f"sqlite:///file:test_dealerapi_{db_suffix}?mode=memory&cache=shared&uri=true"
    return DealerStore(url), CarStore(url)


def aged_assertion(store: DealerStore, dealer_id: int, name: str, age: timedelta) -> str:
    """Open a real session for the dealer as if it had been issued `age` ago,
    and return the matching assertion. Past half-life it is due for renewal."""
    token = generate_session_token()
    issued = datetime.now(timezone.utc) - age
    expires = issued + timedelta(days=get_settings().session_lifetime_days)
    store.upsert_session(
        SessionToken(dealer_id=dealer_id, token_hash=hash_session_token(token), issued_at=issued, expires_at=expires)
    )
    return create_identity_assertion(dealer_id, name, token, expires, issued_at=issued)


def _patch_lifespan(dealer_store: DealerStore, car_store: CarStore):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.dealer_store = dealer_store
        app.state.car_store = car_store
        app.state.session_authority = SessionAuthority(dealer_store, get_settings())
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped integration fixture
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness with two provisioned dealers (alpha and bravo).

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers but use isolated in-memory stores.
    """
    dealer_store, car_store = _make_test_stores(request.module.__name__.rsplit(".", 1)[-1])
    alpha_id = dealer_store.create_dealer(Dealer(name=ALPHA[0], hashed_password=hash_password(ALPHA[1])))
    bravo_id = dealer_store.create_dealer(Dealer(name=BRAVO[0], hashed_password=hash_password(BRAVO[1])))

    app.router.lifespan_context = _patch_lifespan(dealer_store, car_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiHarness(client, dealer_store, car_store, alpha_id, bravo_id)

    car_store.close()
    dealer_store.close()


# ---------------------------------------------------------------------------
# Function-scoped unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def dealer_store() -> Generator[DealerStore, None, None]:
    store = DealerStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def car_store() -> Generator[CarStore, None, None]:
    store = CarStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def alpha(dealer_store: DealerStore) -> Dealer:
    dealer_id = dealer_store.create_dealer(Dealer(name=ALPHA[0], hashed_password=hash_password(ALPHA[1])))
    return dealer_store.get_by_id(dealer_id)


@pytest.fixture
def authority(dealer_store: DealerStore) -> SessionAuthority:
    return SessionAuthority(dealer_store, get_settings())

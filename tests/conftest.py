"""Pytest fixtures for the cart offer service."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")  # keep import-time create_all off disk

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from cart_offer.main import app, get_segment_client
from cart_offer.models import Base, get_db, make_engine


@pytest.fixture
def session_factory(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'offers.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    engine.dispose()


@pytest.fixture
def segment_transport():
    # the service's own mock /api/v1/user_segment endpoint
    return httpx.ASGITransport(app=app)


@pytest.fixture
def client(session_factory, segment_transport):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    async def _get_segment_client():
        async with httpx.AsyncClient(
            transport=segment_transport, base_url="http://segments"
        ) as segment_client:
            yield segment_client

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_segment_client] = _get_segment_client
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def seeded_client(client):
    offers = [
        {"restaurant_id": 1, "offer_type": "FLAT10", "offer_value": 10, "customer_segment": ["p1"]},
        {"restaurant_id": 1, "offer_type": "FLAT20%", "offer_value": 20, "customer_segment": ["p2"]},
        {"restaurant_id": 1, "offer_type": "FLAT50", "offer_value": 50, "customer_segment": ["p3"]},
    ]
    for offer in offers:
        resp = client.post("/api/v1/offer", json=offer)
        assert resp.status_code == 200
        assert resp.json() == {"response_msg": "success"}
    return client

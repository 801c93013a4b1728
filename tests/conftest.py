import pytest
from fastapi.testclient import TestClient

import config
import main
from pricing import GlobalPriceStore
from registry import GiftCardRegistry


@pytest.fixture
def stores(monkeypatch):
    registry = GiftCardRegistry()
    price_store = GlobalPriceStore()
    monkeypatch.setattr(main, "registry", registry)
    monkeypatch.setattr(main, "price_store", price_store)
    return registry, price_store


@pytest.fixture
def client(stores):
    return TestClient(main.app)


@pytest.fixture
def admin_client(client):
    res = client.post(
        "/api/admin/login",
        json={"username": config.ADMIN_USERNAME, "password": config.ADMIN_PASSWORD},
    )
    assert res.status_code == 200
    return client

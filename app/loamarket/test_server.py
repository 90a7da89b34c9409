from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi.testclient import TestClient

from loamarket.routes import admin
from loamarket.routes.common import optional_datastore
from loamarket.server import app
from loamarket.services import breakthrough
from loamarket.services.lostark import get_lostark_client
from loamarket.storage import featured
from loamarket.storage.db import get_datastore


@pytest.fixture
def client(data_root, fake_client, fake_store):
    app.dependency_overrides[get_lostark_client] = lambda: fake_client
    app.dependency_overrides[get_datastore] = lambda: fake_store
    app.dependency_overrides[optional_datastore] = lambda: fake_store
    breakthrough.clear_cache()
    yield TestClient(app)
    app.dependency_overrides.clear()
    breakthrough.clear_cache()


def test_root_answers_readiness_probe(client):
    resp = client.get("/")

    assert resp.status_code == 200
    assert resp.json()["service"] == "loamarket"


def test_env_check_reports_key_length_only(client, monkeypatch):
    monkeypatch.setenv("LOSTARK_API_KEY", "\ufeffabcd ")

    body = client.get("/env/check").json()

    assert body["hasKey"] is True
    assert body["length"] == 4
    assert body["isSet"] is True
    assert "LOSTARK_API_KEY" in body["relatedEnvKeys"]
    assert "abcd" not in str(body)


def test_featured_items_lifecycle(client):
    client.post("/admin/items", json={"id": 1, "name": "A"})
    client.post("/admin/items", json={"id": 2, "name": "B", "type": "auction"})

    assert client.post("/admin/items", json={"id": 3, "name": " A "}).status_code == 400
    assert client.patch("/admin/items/reorder", json={"id": 1, "direction": "up"}).status_code == 400
    assert client.patch("/admin/items/reorder", json={"id": 1, "direction": "left"}).status_code == 400
    assert client.patch("/admin/items/reorder", json={"id": 9, "direction": "up"}).status_code == 404

    resp = client.patch("/admin/items/reorder", json={"id": 2, "direction": "up"})
    assert [i["id"] for i in resp.json()["items"]] == [2, 1]

    assert client.delete("/admin/items", params={"id": "abc"}).status_code == 400
    assert client.delete("/admin/items", params={"id": "7"}).status_code == 404
    resp = client.delete("/admin/items", params={"id": "2"})
    assert resp.json()["items"] == [{"id": 1, "name": "A", "type": "market"}]
    assert client.get("/admin/items").json()["items"] == [{"id": 1, "name": "A", "type": "market"}]


def test_invalid_json_body_is_rejected(client):
    resp = client.post(
        "/market/search", content=b"{not json", headers={"Content-Type": "application/json"}
    )

    assert resp.status_code == 400
    assert "error" in resp.json()


def test_market_search_requires_item_name(client):
    assert client.post("/market/search", json={}).status_code == 400


def test_autocomplete_returns_items(client, fake_client):
    fake_client.market[("돌파석", 50000)] = {"Items": [{"Name": "운명의 돌파석"}]}

    resp = client.post("/market/autocomplete", json={"query": "돌파석"})

    assert resp.json() == {"Items": [{"Name": "운명의 돌파석"}]}


def test_unknown_character_is_404(client):
    resp = client.post("/character/search", json={"characterName": "nobody"})

    assert resp.status_code == 404


def test_character_roster(client, fake_client):
    fake_client.rosters["모코코"] = [{"CharacterName": "모코코"}]

    resp = client.get("/character/roster", params={"characterName": "모코코"})

    assert resp.json() == [{"CharacterName": "모코코"}]


def test_discord_rate_validation_and_rounding(client):
    assert client.post("/admin/crystal-gold", json={"discord": 0}).status_code == 400

    resp = client.post("/admin/crystal-gold", json={"discord": 84.6})

    assert resp.json()["data"]["discord"] == 85
    assert client.get("/admin/crystal-gold").json()["discord"] == 85


def test_packages_crud(client):
    created = client.post(
        "/packages", json={"package_name": "p", "package_data": {"gold": 1}}
    ).json()["package"]

    assert client.post("/packages", json={"package_name": "p"}).status_code == 400
    assert client.put(
        "/packages/999", json={"package_name": "q", "package_data": {}}
    ).status_code == 400
    assert client.put(
        "/packages/999", json={"package_name": "q", "package_data": {"x": 1}}
    ).status_code == 404

    updated = client.put(
        f"/packages/{created['id']}", json={"package_name": "q", "package_data": {"x": 1}}
    ).json()["package"]
    assert updated["package_name"] == "q"
    assert updated["updated_at"]

    assert client.delete(f"/packages/{created['id']}").json() == {"success": True}
    assert client.get("/packages").json() == {"packages": []}


def test_packages_without_datastore_is_503(data_root, monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    app.dependency_overrides.clear()

    resp = TestClient(app).get("/packages")

    assert resp.status_code == 503
    assert "error" in resp.json()


def test_breakthrough_endpoints(client):
    assert client.get("/refining/circular-breakthrough").json() == {"value": 0.0}

    resp = client.post(
        "/refining/circular-breakthrough/update",
        json={"values": [{"level": 1, "weaponValue": 2, "armorValue": 4}]},
    )

    assert resp.json() == {"success": True, "count": 1}
    assert client.get("/refining/circular-breakthrough").json() == {"value": 3.0}


def test_market_cache_serves_existing_snapshot(client):
    from loamarket.storage.market_cache import write_cache
    from loamarket.utils import to_iso, utcnow

    write_cache({"lastUpdated": to_iso(utcnow()), "data": {"tier4Results": []}})

    body = client.get("/market/cache").json()

    assert body["cached"] is True
    assert body["data"] == {"tier4Results": []}


def test_discord_rate_rejects_non_finite_numbers(client):
    resp = client.post(
        "/admin/crystal-gold", content=b'{"discord": NaN}', headers={"Content-Type": "application/json"}
    )

    assert resp.status_code == 400
    assert client.get("/admin/crystal-gold").json()["exchangeRates"] == []


def test_concurrent_featured_additions_are_all_kept(data_root):
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda n: admin.add_featured_item(n, f"item {n}"), range(1, 25)))

    assert sorted(i["id"] for i in featured.load_items()) == list(range(1, 25))

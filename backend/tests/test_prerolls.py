"""
Preroll grid tests: seeding, price fallback and availability.
"""

import pytest

from kiosk.services import preroll_service
from kiosk.services.preroll_service import PrerollError


@pytest.fixture
def grid(db_session):
    preroll_service.seed_default_data()


class TestPrerollService:
    def test_seed_creates_full_grid(self, grid):
        catalog = preroll_service.get_catalog()
        assert [q["type_key"] for q in catalog["qualities"]] == ["outdoor", "indoor", "top"]
        assert [s["type_key"] for s in catalog["strains"]] == ["sativa", "hybrid", "indica"]
        assert len(catalog["sizes"]) == 3
        assert len(catalog["variants"]) == 27

    def test_seed_is_idempotent(self, grid):
        assert preroll_service.seed_default_data() == {"created": False}
        assert preroll_service.seed_default_data(reset=True) == {"created": True}
        assert len(preroll_service.get_catalog()["variants"]) == 27

    def test_variant_price_wins(self, grid):
        assert preroll_service.get_price_cents("top", "indica", "king") == 30000

    def test_size_price_fallback(self, grid):
        preroll_service.update_size_prices({"small": 12000})
        # no variant override for an unknown strain key; size price applies
        assert preroll_service.get_price_cents("outdoor", "ruderalis", "small") == 12000
        assert preroll_service.get_price_cents("outdoor", "ruderalis", "giant") == 10000

    def test_resolve(self, grid):
        preroll = preroll_service.resolve_preroll("indoor", "hybrid", "normal")
        assert preroll["name"] == "Prerolls - Indoor - Hybrid - Normal"
        assert preroll["price_cents"] == 20000

    def test_unavailable_variant(self, grid):
        preroll_service.upsert_variant(quality="indoor", strain="hybrid", size="normal", is_available=False)
        with pytest.raises(PrerollError, match="not available"):
            preroll_service.resolve_preroll("indoor", "hybrid", "normal")

    def test_unknown_quality(self, grid):
        with pytest.raises(PrerollError, match="Unknown preroll quality"):
            preroll_service.resolve_preroll("premium", "hybrid", "normal")

    def test_negative_size_price(self, grid):
        with pytest.raises(PrerollError):
            preroll_service.update_size_prices({"small": -1})


class TestPrerollRoutes:
    def test_variant_update(self, client, admin_headers, grid):
        resp = client.put(
            "/api/prerolls/variants/indoor/sativa/king",
            json={"price_cents": 27500},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json["price_cents"] == 27500

        kiosk = client.get("/api/kiosk/prerolls")
        assert kiosk.status_code == 200
        assert len(kiosk.json["qualities"]) == 3

    def test_bad_price_type(self, client, admin_headers, grid):
        resp = client.put(
            "/api/prerolls/variants/indoor/sativa/king",
            json={"price_cents": "cheap"},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_staff_cannot_seed(self, client, staff_headers):
        assert client.post("/api/prerolls/seed", headers=staff_headers).status_code == 403

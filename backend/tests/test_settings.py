import pytest

from kiosk.extensions import db
from kiosk.services import settings_service
from kiosk.validation import ValidationError


class TestSettingsService:
    def test_defaults(self, app, db_session):
        assert settings_service.get_transaction_prefix() == "TRX"
        assert settings_service.get_non_member_payment_methods() == {"cash": True, "card": False, "crypto": False}
        assert settings_service.get_baht_to_usd_rate() == 0.029

    @pytest.mark.parametrize("prefix", ["", "TOO-LONG-PREFIX", "A B"])
    def test_invalid_prefix(self, db_session, prefix):
        with pytest.raises(ValidationError):
            settings_service.set_setting("transaction_prefix", prefix)

    def test_category_lists_are_deduplicated(self, db_session):
        settings_service.set_setting("category_order", [3, 1, 3])
        db.session.commit()
        assert settings_service.get_category_order() == [3, 1]

    def test_unknown_payment_method(self, db_session):
        with pytest.raises(ValidationError, match="bitcoin"):
            settings_service.set_setting("non_member_payment_methods", {"bitcoin": True})

    def test_rate_must_be_positive(self, db_session):
        with pytest.raises(ValidationError):
            settings_service.set_setting("baht_to_usd_rate", 0)


class TestSettingsApi:
    def test_update_prefix(self, client, admin_headers):
        resp = client.put("/api/settings/transaction_prefix", json={"value": "shop1"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["value"] == "SHOP1"

        listed = client.get("/api/settings", headers=admin_headers)
        assert listed.json["transaction_prefix"] == "SHOP1"

    def test_unknown_key(self, client, admin_headers):
        assert client.get("/api/settings/colour", headers=admin_headers).status_code == 404
        resp = client.put("/api/settings/colour", json={"value": 1}, headers=admin_headers)
        assert resp.status_code == 400

    def test_value_required(self, client, admin_headers):
        resp = client.put("/api/settings/category_order", json={}, headers=admin_headers)
        assert resp.status_code == 400

    def test_staff_cannot_change_settings(self, client, staff_headers):
        resp = client.put("/api/settings/category_order", json={"value": []}, headers=staff_headers)
        assert resp.status_code == 403

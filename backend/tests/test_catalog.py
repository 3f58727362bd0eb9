"""
Catalog tests.

Verifies:
- Display codes are allocated per entity kind (CAT-001, SUB-001, PRD-001)
- Categories follow the saved order, unlisted ones last by name
- Which categories a kiosk customer may browse
- Unit prices for members and variant options
- Category images are replaced and removed on disk
- Admin writes are checked against the model rules
"""

import io
import json
import os

import pytest
from werkzeug.datastructures import FileStorage

from kiosk.extensions import db
from kiosk.models import Category, Product
from kiosk.services import catalog_service, settings_service, storage_service
from kiosk.services.catalog_service import CatalogError


def upload(name="a.png", body=b"\x89PNGfake"):
    return FileStorage(stream=io.BytesIO(body), filename=name)


def stored(path):
    return os.path.exists(os.path.join(storage_service.upload_root(), path))


VARIANTS = [
    {
        "variant_id": "size",
        "name": "Size",
        "options": [
            {"option_id": "1g", "name": "1 g", "price_cents": 30000, "member_price_cents": 25000},
            {"option_id": "3g", "name": "3 g", "price_cents": 80000, "member_price_cents": 90000},
        ],
    },
    {
        "variant_id": "jar",
        "name": "Jar",
        "options": [{"option_id": "glass", "name": "Glass", "price_cents": 5000}],
    },
]


class TestCodes:
    def test_codes_are_sequential_per_kind(self, db_session):
        first = catalog_service.create_category(patch={"name": "Flowers"})
        second = catalog_service.create_category(patch={"name": "Edibles"})
        sub = catalog_service.create_subcategory(patch={"category_id": first["id"], "name": "Indica"})
        prod = catalog_service.create_product(
            patch={"category_id": first["id"], "name": "Lemon Haze", "price_cents": 50000}
        )

        assert first["category_code"] == "CAT-001"
        assert second["category_code"] == "CAT-002"
        assert sub["subcategory_code"] == "SUB-001"
        assert prod["product_code"] == "PRD-001"
        assert prod["has_variants"] is False

    def test_subcategory_needs_a_category(self, db_session):
        with pytest.raises(CatalogError, match="Category not found"):
            catalog_service.create_subcategory(patch={"category_id": 999, "name": "Indica"})


class TestCategoryOrder:
    def test_saved_order_first_then_name(self, db_session):
        zeta = catalog_service.create_category(patch={"name": "Zeta"})
        catalog_service.create_category(patch={"name": "alpha"})
        catalog_service.create_category(patch={"name": "Beta"})
        gamma = catalog_service.create_category(patch={"name": "Gamma"})

        catalog_service.save_category_order([gamma["id"], 999, zeta["id"]])

        names = [c["name"] for c in catalog_service.list_categories()]
        assert names == ["Gamma", "Zeta", "alpha", "Beta"]

    def test_sort_without_order(self, db_session):
        cats = [Category(id=2, name="b"), Category(id=1, name="B"), Category(id=3, name="a")]
        assert [c.id for c in catalog_service.sort_categories(cats, [])] == [3, 1, 2]

    def test_delete_drops_id_from_settings(self, db_session):
        keep = catalog_service.create_category(patch={"name": "Keep"})
        gone = catalog_service.create_category(patch={"name": "Gone"})
        catalog_service.save_category_order([gone["id"], keep["id"]])
        settings_service.set_setting(settings_service.SETTING_NON_MEMBER_CATEGORIES, [gone["id"]])
        db.session.commit()

        assert catalog_service.delete_category(category_id=gone["id"]) is True
        assert settings_service.get_category_order() == [keep["id"]]
        assert settings_service.get_non_member_categories() == []

    def test_delete_refused_while_products_exist(self, db_session, product, category):
        with pytest.raises(CatalogError) as exc:
            catalog_service.delete_category(category_id=category.id)
        assert exc.value.details == {"products": 1, "subcategories": 0}
        assert db.session.get(Category, category.id) is not None

    def test_order_route(self, client, admin_headers, db_session):
        cat = catalog_service.create_category(patch={"name": "Flowers"})
        resp = client.put("/api/catalog/categories/order", json={"order": [cat["id"], cat["id"]]}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["order"] == [cat["id"]]

        resp = client.put("/api/catalog/categories/order", json={"order": "all"}, headers=admin_headers)
        assert resp.status_code == 400


class TestVisibility:
    @pytest.fixture
    def cats(self, db_session):
        flowers = catalog_service.create_category(patch={"name": "Flowers"})
        edibles = catalog_service.create_category(patch={"name": "Edibles"})
        hidden = catalog_service.create_category(patch={"name": "Hidden", "is_active": False})
        return flowers["id"], edibles["id"], hidden["id"]

    def test_member_without_list_sees_every_active_category(self, cats, member):
        assert catalog_service.visible_category_ids(customer=member, is_no_member=False) is None
        visible = catalog_service.list_visible_categories(customer=member, is_no_member=False)
        assert sorted(c["name"] for c in visible) == ["Edibles", "Flowers"]

    def test_member_with_allowed_categories(self, cats, member):
        flowers, _, hidden = cats
        member.allowed_categories = [str(flowers), hidden]
        db.session.commit()

        assert catalog_service.visible_category_ids(customer=member, is_no_member=False) == {flowers, hidden}
        visible = catalog_service.list_visible_categories(customer=member, is_no_member=False)
        assert [c["name"] for c in visible] == ["Flowers"]

    def test_no_member_uses_setting(self, cats):
        _, edibles, _ = cats
        settings_service.set_setting(settings_service.SETTING_NON_MEMBER_CATEGORIES, [edibles])
        db.session.commit()

        assert catalog_service.visible_category_ids(customer=None, is_no_member=True) == {edibles}
        visible = catalog_service.list_visible_categories(customer=None, is_no_member=True)
        assert [c["name"] for c in visible] == ["Edibles"]

    def test_unidentified_sees_nothing(self, cats):
        assert catalog_service.visible_category_ids(customer=None, is_no_member=False) == set()
        assert catalog_service.list_visible_categories(customer=None, is_no_member=False) == []


class TestPricing:
    def test_base_member_price(self, product):
        assert catalog_service.unit_price_cents(product, is_member=False) == 50000
        assert catalog_service.unit_price_cents(product, is_member=True) == 45000

    def test_member_price_missing(self, product):
        product.member_price_cents = None
        assert catalog_service.unit_price_cents(product, is_member=True) == 50000

    def test_variant_member_price_only_when_lower(self, db_session, category):
        created = catalog_service.create_product(
            patch={"category_id": category.id, "name": "Lemon Haze", "price_cents": 1, "variants": VARIANTS}
        )
        prod = db.session.get(Product, created["id"])
        assert prod.has_variants is True

        small = {"size": "1g", "jar": "glass"}
        assert catalog_service.unit_price_cents(prod, is_member=False, selections=small) == 35000
        assert catalog_service.unit_price_cents(prod, is_member=True, selections=small) == 30000

        # member price above the regular price is ignored
        large = {"size": "3g"}
        assert catalog_service.unit_price_cents(prod, is_member=True, selections=large) == 80000

    def test_unknown_option(self, db_session, category):
        created = catalog_service.create_product(
            patch={"category_id": category.id, "name": "Lemon Haze", "price_cents": 1, "variants": VARIANTS}
        )
        prod = db.session.get(Product, created["id"])
        with pytest.raises(CatalogError, match="Unknown variant option"):
            catalog_service.unit_price_cents(prod, is_member=False, selections={"size": "7g"})


class TestProductStats:
    def test_counts(self, db_session, category):
        catalog_service.create_product(patch={"category_id": category.id, "name": "A", "price_cents": 100})
        catalog_service.create_product(
            patch={"category_id": category.id, "name": "B", "price_cents": 100, "is_active": False}
        )
        catalog_service.create_product(
            patch={"category_id": category.id, "name": "C", "price_cents": 1, "variants": VARIANTS}
        )

        expected = {"total": 3, "active": 2, "inactive": 1, "with_variants": 1}
        assert catalog_service.product_stats() == expected

    def test_stats_route(self, client, staff_headers, product):
        resp = client.get("/api/catalog/products/stats", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["total"] == 1


class TestCategoryImages:
    def test_replace_deletes_old_file(self, db_session):
        cat = catalog_service.create_category(patch={"name": "Flowers"}, image=upload())
        old_path = cat["image_path"]
        assert old_path.startswith("categories/CAT-001/image-")
        assert cat["image"] == f"/uploads/{old_path}"
        assert stored(old_path)

        updated = catalog_service.update_category(category_id=cat["id"], patch={}, image=upload("b.jpg"))
        assert updated["image_path"] != old_path
        assert updated["image_path"].endswith(".jpg")
        assert stored(updated["image_path"])
        assert not stored(old_path)

    def test_remove_flags(self, db_session):
        cat = catalog_service.create_category(
            patch={"name": "Flowers"}, image=upload(), background_image=upload("bg.png")
        )
        image_path, background_path = cat["image_path"], cat["background_image_path"]
        assert background_path.startswith("categories/CAT-001/background-")

        updated = catalog_service.update_category(category_id=cat["id"], patch={}, remove_background=True)
        assert updated["background_image"] is None
        assert updated["background_image_path"] is None
        assert updated["image_path"] == image_path
        assert not stored(background_path)
        assert stored(image_path)

    def test_multipart_route(self, client, admin_headers, db_session):
        resp = client.post(
            "/api/catalog/categories",
            data={"data": json.dumps({"name": "Flowers"}), "image": (io.BytesIO(b"x"), "a.png")},
            content_type="multipart/form-data",
            headers=admin_headers,
        )
        assert resp.status_code == 201
        cat_id, image_path = resp.json["id"], resp.json["image_path"]
        assert stored(image_path)

        resp = client.put(
            f"/api/catalog/categories/{cat_id}",
            data={"data": "{}", "remove_image": "true"},
            content_type="multipart/form-data",
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json["image"] is None
        assert not stored(image_path)

    def test_file_type_checked(self, client, admin_headers, db_session):
        resp = client.post(
            "/api/catalog/categories",
            data={"data": json.dumps({"name": "Flowers"}), "image": (io.BytesIO(b"x"), "a.exe")},
            content_type="multipart/form-data",
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert "File type not allowed" in resp.json["error"]


class TestWriteRules:
    def test_staff_cannot_write(self, client, staff_headers, db_session):
        resp = client.post("/api/catalog/categories", json={"name": "Flowers"}, headers=staff_headers)
        assert resp.status_code == 403

    @pytest.mark.parametrize("body, error", [
        ({"price_cents": 1.5}, "price_cents must be an integer"),
        ({"price_cents": -1}, "price_cents must be between"),
        ({"cashback_type": "bogus"}, "cashback_type must be"),
        ({"cashback_type": "percentage", "cashback_value": 20000}, "cannot exceed"),
        ({"variants": [{"variant_id": "size", "options": [{"option_id": "1g", "price_cents": "5"}]}]},
         "variant option price_cents"),
    ])
    def test_product_rules(self, client, admin_headers, category, body, error):
        payload = {"name": "Lemon Haze", "category_id": category.id, "price_cents": 100}
        payload.update(body)
        resp = client.post("/api/catalog/products", json=payload, headers=admin_headers)
        assert resp.status_code == 400
        assert error in resp.json["error"]
        assert db.session.query(Product).count() == 0

    def test_category_background_fit(self, client, admin_headers, category):
        resp = client.put(
            f"/api/catalog/categories/{category.id}", json={"background_fit": "stretch"}, headers=admin_headers
        )
        assert resp.status_code == 400
        resp = client.put(
            f"/api/catalog/categories/{category.id}", json={"background_fit": "cover"}, headers=admin_headers
        )
        assert resp.status_code == 200

    def test_cashback_rate_limit(self, client, admin_headers, category):
        resp = client.post(
            "/api/cashback-rules", json={"category_id": category.id, "rate_bps": 20000}, headers=admin_headers
        )
        assert resp.status_code == 400
        assert "rate_bps" in resp.json["error"]

    def test_joint_option_prices(self, client, admin_headers, db_session):
        resp = client.post(
            "/api/joint-options",
            json={"kind": "filling", "option_type": "flower", "name": "Haze", "price_per_gram_cents": -5},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.json["error"] == "price_per_gram_cents must be >= 0"

    def test_unknown_field(self, client, admin_headers, db_session):
        resp = client.post(
            "/api/catalog/categories", json={"name": "Flowers", "category_code": "X"}, headers=admin_headers
        )
        assert resp.status_code == 400
        assert resp.json["error"] == "Field not allowed: category_code"

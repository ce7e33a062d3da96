import itertools
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from unittest import mock

from django.contrib import admin
from django.contrib.auth import get_user_model
from django.core.exceptions import ImproperlyConfigured
from django.db import OperationalError
from django.test import SimpleTestCase, override_settings
from rest_framework.test import APITestCase, APITransactionTestCase
from rest_framework_simplejwt.tokens import RefreshToken

from .admin import CategoryAdmin, ProductAdmin, TransactionItemInline
from .models import Category, Product, Transaction, TransactionItem
from .serializers import resolve_payment_method

SYNC_URL = "/api/sync"
TS = "2024-01-01T00:00:00Z"
JAN_1 = datetime(2024, 1, 1, tzinfo=dt_timezone.utc)


def category_data(cat_id="c1", name="Drinks", **extra):
    data = {"id": cat_id, "name": name, "createdAt": TS, "updatedAt": TS}
    data.update(extra)
    return data


def product_data(prod_id="p1", category_id="c1", **extra):
    data = {
        "id": prod_id,
        "name": "Cola",
        "barcode": "4870001",
        "price": "1.50",
        "stock": 10,
        "categoryId": category_id,
        "imagePath": "images/cola.png",
        "createdAt": TS,
        "updatedAt": TS,
    }
    data.update(extra)
    return data


def item_data(item_id, product_id="p1", quantity=1, price="1.50"):
    return {"id": item_id, "productId": product_id, "quantity": quantity, "price": price, "createdAt": TS}


def transaction_data(tx_id="t1", items=None, **header):
    base = {"id": tx_id, "totalAmount": "3.00", "paymentMethod": "cash", "createdAt": TS}
    base.update(header)
    if items is None:
        items = [item_data(f"{tx_id}-i1"), item_data(f"{tx_id}-i2")]
    return {"header": base, "items": items}


class SyncTestMixin:
    def _push(self, payload):
        return self.client.post(SYNC_URL, payload, format="json")


class CategorySyncTests(SyncTestMixin, APITestCase):
    def test_create_then_rename_updates_in_place(self):
        resp1 = self._push({"categories": [category_data()]})
        resp2 = self._push({"categories": [category_data(name="Beverages")]})

        self.assertEqual(resp1.status_code, 200)
        self.assertEqual(resp1.data, {"success": True})
        self.assertEqual(resp2.status_code, 200)
        self.assertEqual(Category.objects.count(), 1)
        self.assertEqual(Category.objects.get(pk="c1").name, "Beverages")

    def test_create_stores_client_timestamps(self):
        self._push({"categories": [category_data(description="Cold drinks")]})
        category = Category.objects.get(pk="c1")
        self.assertEqual(category.created_at, JAN_1)
        self.assertEqual(category.updated_at, JAN_1)
        self.assertEqual(category.description, "Cold drinks")

    def test_update_does_not_touch_timestamps_by_default(self):
        self._push({"categories": [category_data()]})
        self._push({"categories": [category_data(name="Beverages", updatedAt="2024-02-01T00:00:00Z")]})
        category = Category.objects.get(pk="c1")
        self.assertEqual(category.created_at, JAN_1)
        self.assertEqual(category.updated_at, JAN_1)

    @override_settings(SYNC_TOUCH_UPDATED_AT=True)
    def test_update_refreshes_updated_at_when_enabled(self):
        self._push({"categories": [category_data()]})
        self._push({"categories": [category_data(updatedAt="2024-02-01T00:00:00Z")]})
        category = Category.objects.get(pk="c1")
        self.assertEqual(category.created_at, JAN_1)
        self.assertEqual(category.updated_at, datetime(2024, 2, 1, tzinfo=dt_timezone.utc))

    def test_soft_delete_keeps_row(self):
        self._push({"categories": [category_data()]})
        self._push({"categories": [category_data(deletedAt="2024-03-01T10:00:00Z")]})
        category = Category.objects.get(pk="c1")
        self.assertTrue(category.is_deleted)
        self.assertEqual(category.deleted_at, datetime(2024, 3, 1, 10, tzinfo=dt_timezone.utc))

    def test_deleted_marker_kept_on_first_sight(self):
        self._push({"categories": [category_data(deletedAt="2024-03-01T10:00:00Z")]})
        self.assertIsNotNone(Category.objects.get(pk="c1").deleted_at)

    def test_missing_or_falsy_deleted_at_restores_row(self):
        self._push({"categories": [category_data(deletedAt="2024-03-01T10:00:00Z")]})
        self._push({"categories": [category_data(deletedAt="")]})
        self.assertIsNone(Category.objects.get(pk="c1").deleted_at)

        self._push({"categories": [category_data(deletedAt="2024-03-01T10:00:00Z")]})
        self._push({"categories": [category_data()]})
        self.assertIsNone(Category.objects.get(pk="c1").deleted_at)

    def test_description_untouched_when_omitted(self):
        self._push({"categories": [category_data(description="Cold drinks")]})
        self._push({"categories": [category_data(name="Beverages")]})
        self.assertEqual(Category.objects.get(pk="c1").description, "Cold drinks")


class ProductSyncTests(SyncTestMixin, APITestCase):
    def test_product_with_category_in_same_payload(self):
        resp = self._push({"categories": [category_data()], "products": [product_data()]})
        self.assertEqual(resp.status_code, 200)
        product = Product.objects.get(pk="p1")
        self.assertEqual(product.category_id, "c1")
        self.assertEqual(product.price, Decimal("1.50"))
        self.assertEqual(product.image_path, "images/cola.png")

    def test_resubmission_updates_single_row(self):
        self._push({"categories": [category_data()], "products": [product_data()]})
        self._push({"products": [product_data(stock=4, price="1.75", name="Cola Zero")]})

        self.assertEqual(Product.objects.count(), 1)
        product = Product.objects.get(pk="p1")
        self.assertEqual(product.stock, 4)
        self.assertEqual(product.price, Decimal("1.75"))
        self.assertEqual(product.name, "Cola Zero")
        self.assertEqual(product.created_at, JAN_1)

    def test_full_batch_resolves_references_in_order(self):
        payload = {
            "categories": [category_data()],
            "products": [product_data()],
            "transactions": [transaction_data()],
        }
        resp = self._push(payload)

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Product.objects.get(pk="p1").category_id, "c1")
        self.assertEqual(TransactionItem.objects.filter(product_id="p1", transaction_id="t1").count(), 2)

    def test_float_amounts_are_rounded_to_cents(self):
        payload = {
            "categories": [category_data()],
            "products": [product_data(price=0.1 + 0.2)],
            "transactions": [
                transaction_data(totalAmount=3 * 1.1, items=[item_data("i1", quantity=3, price=3.3 / 3)])
            ],
        }
        resp = self._push(payload)

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Product.objects.get(pk="p1").price, Decimal("0.30"))
        self.assertEqual(Transaction.objects.get(pk="t1").total_amount, Decimal("3.30"))
        self.assertEqual(TransactionItem.objects.get(pk="i1").price, Decimal("1.10"))

    def test_empty_category_reference_is_uncategorised(self):
        resp = self._push({"products": [product_data(category_id="")]})
        self.assertEqual(resp.status_code, 200)
        self.assertIsNone(Product.objects.get(pk="p1").category_id)

    def test_omitted_optional_fields_are_kept(self):
        self._push({"categories": [category_data()], "products": [product_data()]})
        update = product_data(stock=2)
        del update["barcode"]
        del update["imagePath"]
        self._push({"products": [update]})
        product = Product.objects.get(pk="p1")
        self.assertEqual(product.barcode, "4870001")
        self.assertEqual(product.image_path, "images/cola.png")
        self.assertEqual(product.stock, 2)


class TransactionSyncTests(SyncTestMixin, APITestCase):
    def setUp(self):
        self._push({"categories": [category_data()], "products": [product_data()]})

    def test_transaction_is_write_once(self):
        payload = {"transactions": [transaction_data()]}
        resp1 = self._push(payload)
        resp2 = self._push(payload)

        self.assertEqual(resp1.status_code, 200)
        self.assertEqual(resp2.status_code, 200)
        self.assertEqual(Transaction.objects.count(), 1)
        self.assertEqual(TransactionItem.objects.count(), 2)

    def test_resubmitted_transaction_is_not_modified(self):
        self._push({"transactions": [transaction_data()]})
        self._push({"transactions": [transaction_data(totalAmount="99.00", items=[item_data("t1-i9")])]})
        sale = Transaction.objects.get(pk="t1")
        self.assertEqual(sale.total_amount, Decimal("3.00"))
        self.assertEqual(sorted(sale.items.values_list("id", flat=True)), ["t1-i1", "t1-i2"])

    def test_items_preserve_client_fields(self):
        self._push({"transactions": [transaction_data(items=[item_data("x1", quantity=3, price="2.25")])]})
        item = TransactionItem.objects.get(pk="x1")
        self.assertEqual(item.transaction_id, "t1")
        self.assertEqual(item.product_id, "p1")
        self.assertEqual(item.quantity, 3)
        self.assertEqual(item.price, Decimal("2.25"))
        self.assertEqual(item.created_at, JAN_1)

    def test_duplicate_transaction_in_one_payload(self):
        resp = self._push({"transactions": [transaction_data(), transaction_data()]})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Transaction.objects.count(), 1)
        self.assertEqual(TransactionItem.objects.count(), 2)

    def test_payment_method_spellings_persist_identically(self):
        camel = transaction_data("t1", items=[])
        snake = transaction_data("t2", items=[])
        del snake["header"]["paymentMethod"]
        snake["header"]["payment_method"] = "cash"

        self._push({"transactions": [camel, snake]})
        self.assertEqual(Transaction.objects.get(pk="t1").payment_method, "cash")
        self.assertEqual(Transaction.objects.get(pk="t2").payment_method, "cash")

    def test_empty_payment_method_falls_back_to_alias(self):
        payload = transaction_data(items=[], paymentMethod="", payment_method="card")
        self._push({"transactions": [payload]})
        self.assertEqual(Transaction.objects.get(pk="t1").payment_method, "card")

    def test_blank_payment_method_falls_back_to_alias(self):
        payload = transaction_data(items=[], paymentMethod="   ", payment_method="card")
        self._push({"transactions": [payload]})
        self.assertEqual(Transaction.objects.get(pk="t1").payment_method, "card")

    def test_soft_deleted_product_stays_referenceable(self):
        self._push({"products": [product_data(deletedAt="2024-05-01T00:00:00Z")]})
        resp = self._push({"transactions": [transaction_data()]})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(TransactionItem.objects.filter(product_id="p1").count(), 2)


class PayloadShapeTests(SyncTestMixin, APITestCase):
    def test_empty_payload_succeeds(self):
        resp = self._push({})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data, {"success": True})

    def test_non_list_sections_are_skipped(self):
        resp = self._push({"categories": "oops", "products": None, "transactions": {"id": "t1"}})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Category.objects.count(), 0)
        self.assertEqual(Transaction.objects.count(), 0)

    def test_invalid_json_is_rejected(self):
        resp = self.client.post(SYNC_URL, "{not json", content_type="application/json")
        self.assertEqual(resp.status_code, 400)
        self.assertIn("error", resp.data)

    def test_non_object_body_is_rejected(self):
        resp = self._push([category_data()])
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["error"], "Invalid sync payload")

    def test_invalid_record_rejects_whole_batch_before_writing(self):
        bad_product = product_data()
        del bad_product["price"]
        resp = self._push({"categories": [category_data()], "products": [bad_product]})

        self.assertEqual(resp.status_code, 400)
        self.assertIn("products", resp.data["details"])
        self.assertEqual(Category.objects.count(), 0)


class AtomicityTests(SyncTestMixin, APITransactionTestCase):
    def test_product_with_unknown_category_fails(self):
        with self.assertLogs("apps.sync.views", level="ERROR"):
            resp = self._push({"products": [product_data(category_id="missing")]})
        self.assertEqual(resp.status_code, 500)
        self.assertIn("error", resp.data)
        self.assertEqual(Product.objects.count(), 0)

    def test_constraint_violation_rolls_back_everything(self):
        payload = {
            "categories": [category_data()],
            "transactions": [transaction_data(items=[item_data("i1", product_id="ghost")])],
        }
        with self.assertLogs("apps.sync.views", level="ERROR"):
            resp = self._push(payload)

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(Category.objects.count(), 0)
        self.assertEqual(Transaction.objects.count(), 0)
        self.assertEqual(TransactionItem.objects.count(), 0)

    @override_settings(SYNC_TRANSACTION_TIMEOUT=15)
    def test_timeout_rolls_back(self):
        with mock.patch("apps.sync.services.reconcile.time") as fake_time:
            fake_time.monotonic.side_effect = itertools.chain([0.0], itertools.repeat(100.0))
            with self.assertLogs("apps.sync.views", level="ERROR"):
                resp = self._push({"categories": [category_data()]})

        self.assertEqual(resp.status_code, 500)
        self.assertIn("timeout", resp.data["error"])
        self.assertEqual(Category.objects.count(), 0)

    @override_settings(DEBUG=True)
    def test_debug_build_exposes_stack(self):
        with self.assertLogs("apps.sync.views", level="ERROR"):
            resp = self._push({"products": [product_data(category_id="missing")]})
        self.assertIn("stack", resp.data)
        self.assertIn("Traceback", resp.data["stack"])

    @override_settings(DEBUG=False)
    def test_production_build_hides_stack(self):
        with self.assertLogs("apps.sync.views", level="ERROR"):
            resp = self._push({"products": [product_data(category_id="missing")]})
        self.assertNotIn("stack", resp.data)


class HealthTests(APITestCase):
    def test_reports_connected(self):
        resp = self.client.get(SYNC_URL)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data, {"status": "Sync API is active", "database": "connected"})

    def test_reports_degraded_database(self):
        with mock.patch("apps.sync.views.check_database", side_effect=OperationalError("connection refused")):
            with self.assertLogs("apps.sync.views", level="WARNING"):
                resp = self.client.get(SYNC_URL)
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.data["database"], "error")
        self.assertEqual(resp.data["message"], "connection refused")

    def test_reports_misconfigured_backend_as_degraded(self):
        error = ImproperlyConfigured("Error loading psycopg module")
        with mock.patch("apps.sync.views.check_database", side_effect=error):
            with self.assertLogs("apps.sync.views", level="ERROR"):
                resp = self.client.get(SYNC_URL)
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.data["database"], "error")
        self.assertEqual(resp.data["message"], "Error loading psycopg module")


@override_settings(SYNC_REQUIRE_AUTH=True)
class SyncAuthTests(SyncTestMixin, APITestCase):
    def test_push_requires_authentication(self):
        resp = self._push({"categories": [category_data()]})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(Category.objects.count(), 0)

    def test_health_stays_open(self):
        self.assertEqual(self.client.get(SYNC_URL).status_code, 200)

    def test_push_with_jwt(self):
        user = get_user_model().objects.create_user(username="till-1", password="pass1234")
        token = RefreshToken.for_user(user)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token.access_token}")
        resp = self._push({"categories": [category_data()]})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Category.objects.count(), 1)


class PaymentMethodAliasTests(SimpleTestCase):
    def test_first_non_empty_spelling_wins(self):
        self.assertEqual(resolve_payment_method({"paymentMethod": "cash", "payment_method": "card"}), "cash")
        self.assertEqual(resolve_payment_method({"paymentMethod": None, "payment_method": "card"}), "card")
        self.assertEqual(resolve_payment_method({"paymentMethod": "  ", "payment_method": "card"}), "card")
        self.assertEqual(resolve_payment_method({}), "")


class AdminDisplayTests(SimpleTestCase):
    def test_deleted_column_follows_marker(self):
        category_admin = CategoryAdmin(Category, admin.site)
        self.assertTrue(category_admin.deleted(Category(deleted_at=JAN_1)))
        self.assertFalse(category_admin.deleted(Category()))

        product_admin = ProductAdmin(Product, admin.site)
        self.assertTrue(product_admin.deleted(Product(deleted_at=JAN_1)))
        self.assertFalse(product_admin.deleted(Product()))

    def test_item_inline_shows_line_total(self):
        self.assertIn("line_total", TransactionItemInline.readonly_fields)
        item = TransactionItem(quantity=3, price=Decimal("2.25"))
        self.assertEqual(item.line_total(), Decimal("6.75"))

import json
import os
import sys
import unittest

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db import models  # noqa: E402
from db.ids import IdGenerator  # noqa: E402
from utils.pure import count_by_status, price_range  # noqa: E402

# a product as the storefront has always stored it
STORED_PRODUCT = {
    "id": "prod-1",
    "title": "Free Fire Diamonds",
    "description": "Top up your Free Fire account with diamonds",
    "image": "/placeholder.svg?height=192&width=256",
    "categoryId": "cat-1",
    "inStock": True,
    "onSale": True,
    "featured": True,
    "createdAt": "2024-05-01T10:00:00.000Z",
    "options": [
        {"id": "opt-1", "name": "100 Diamonds", "price": 100, "inStock": True},
        {"id": "opt-2", "name": "310 Diamonds", "price": 300, "inStock": False},
    ],
}


class RecordEncodingTestCase(unittest.TestCase):
    def test_product_reads_stored_layout(self):
        product = models.Product.from_dict(STORED_PRODUCT)
        self.assertEqual(product.category_id, "cat-1")
        self.assertTrue(product.on_sale)
        self.assertEqual(product.options[1].name, "310 Diamonds")
        self.assertFalse(product.options[1].in_stock)
        self.assertIsInstance(product.options[0], models.ProductOption)

    def test_product_writes_stored_layout(self):
        product = models.Product.from_dict(STORED_PRODUCT)
        self.assertEqual(product.to_dict(), STORED_PRODUCT)
        # and it stays plain JSON
        self.assertEqual(json.loads(json.dumps(product.to_dict())), STORED_PRODUCT)

    def test_order_keys(self):
        order = models.Order(
            id="order-1",
            date="2024-05-01",
            customer_name="Rafi",
            customer_email="rafi@example.com",
            customer_phone="+880",
            product_id="prod-1",
            product_title="Free Fire Diamonds",
            option_id="opt-1",
            option_name="100 Diamonds",
            price=100,
            uid="99887766",
            payment_method="nagad",
        )
        data = order.to_dict()
        self.assertEqual(data["customerName"], "Rafi")
        self.assertEqual(data["paymentProof"], None)
        self.assertEqual(data["status"], "pending")
        self.assertEqual(data["uid"], "99887766")

    def test_optional_fields_fall_back_to_defaults(self):
        config = models.SiteConfig.from_dict(
            {"siteName": "Shop", "contactEmail": "a@b.c", "contactPhone": "1"}
        )
        self.assertEqual(config.site_name, "Shop")
        self.assertEqual(config.qr_code_url, models.QR_PLACEHOLDER_IMAGE)

        submission = models.ContactSubmission.from_dict(
            {
                "id": "contact-1",
                "name": "A",
                "email": "a@example.com",
                "subject": "s",
                "message": "m",
                "date": "2024-05-01T10:00:00.000Z",
                "extra": "ignored",
            }
        )
        self.assertFalse(submission.is_read)

    def test_from_dict_rejects_bad_input(self):
        with self.assertRaises(TypeError):
            models.Category.from_dict({"name": "no id"})
        with self.assertRaises(TypeError):
            models.Category.from_dict(["cat-1"])
        with self.assertRaises(TypeError):
            models.Product.from_dict({**STORED_PRODUCT, "options": ["opt-1"]})


class PatchTestCase(unittest.TestCase):
    def setUp(self):
        self.product = models.Product.from_dict(STORED_PRODUCT)

    def test_unset_fields_are_untouched(self):
        patch = models.ProductPatch(on_sale=False)
        self.assertEqual(patch.changes(), {"on_sale": False})
        patched = patch.apply(self.product)
        self.assertFalse(patched.on_sale)
        self.assertEqual(patched.title, self.product.title)
        self.assertEqual(patched.options, self.product.options)

    def test_none_is_a_value(self):
        patch = models.OrderPatch(payment_proof=None)
        self.assertEqual(patch.changes(), {"payment_proof": None})
        self.assertFalse(patch.is_empty())

    def test_empty_patch(self):
        patch = models.CategoryPatch()
        self.assertTrue(patch.is_empty())
        category = models.Category(id="cat-1", name="Mobile Games")
        self.assertEqual(patch.apply(category), category)

    def test_unset_repr(self):
        self.assertEqual(repr(models.UNSET), "UNSET")


class IdGeneratorTestCase(unittest.TestCase):
    def test_ids_increase_within_same_millisecond(self):
        ids = IdGenerator(clock=lambda: 1700000000.0)
        first = ids.next("prod")
        second = ids.next("prod")
        self.assertEqual(first, "prod-1700000000000")
        self.assertEqual(second, "prod-1700000000001")

    def test_taken_ids_are_skipped(self):
        ids = IdGenerator(clock=lambda: 1.0)
        self.assertEqual(ids.next("cat", {"cat-1000", "cat-1001"}), "cat-1002")


class PureHelpersTestCase(unittest.TestCase):
    def test_price_range(self):
        product = models.Product.from_dict(STORED_PRODUCT)
        self.assertEqual(price_range(product.options), (100, 300))
        self.assertEqual(price_range([]), (0, 0))

    def test_count_by_status(self):
        base = dict(
            date="2024-05-01",
            customer_name="A",
            customer_email="a@example.com",
            customer_phone="1",
            product_id="prod-1",
            product_title="T",
            option_id="opt-1",
            option_name="O",
            price=1,
            uid="1",
            payment_method="bkash",
        )
        orders = [
            models.Order(id="order-1", status="pending", **base),
            models.Order(id="order-2", status="completed", **base),
            models.Order(id="order-3", status="completed", **base),
        ]
        self.assertEqual(
            count_by_status(orders), {"pending": 1, "completed": 2, "cancelled": 0}
        )


if __name__ == "__main__":
    unittest.main()
